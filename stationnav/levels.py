"""Floor level parsing for OSM `level` / `layer` tag values.

Purpose:
- Turn tag strings like ``"0"``, ``"-1;0"``, ``"0,1,3"`` or ``"0-2"`` into
  ordered numeric level lists.
- Provide one explicit default-substitution policy for missing or broken tags.

Usage example:
    >>> from stationnav.levels import parse_levels
    >>> parse_levels("1;-1;0").levels
    (-1.0, 0.0, 1.0)
    >>> parse_levels("ground").defaulted
    True
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

DEFAULT_LEVEL = 0.0

_RANGE_RE = re.compile(r"^(-?\d+(?:\.\d+)?)\s*-\s*(-?\d+(?:\.\d+)?)$")


@dataclass(frozen=True, slots=True)
class LevelParse:
    """Result of parsing a level tag.

    `levels` is always non-empty, ascending and distinct. `defaulted` is True
    when nothing usable was found and `DEFAULT_LEVEL` was substituted.
    """

    levels: tuple[float, ...]
    defaulted: bool = False

    @property
    def first(self) -> float:
        return self.levels[0]

    @property
    def last(self) -> float:
        return self.levels[-1]


def _parse_number(token: str) -> float | None:
    try:
        value = float(token)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def _parse_token(token: str) -> list[float]:
    """Parse one list item: a plain number or an `a-b` range (endpoints only)."""
    token = token.strip()
    if not token:
        return []

    value = _parse_number(token)
    if value is not None:
        return [value]

    match = _RANGE_RE.match(token)
    if match:
        return [float(match.group(1)), float(match.group(2))]
    return []


def parse_levels(value: str | None) -> LevelParse:
    """Parse a level tag into an ordered list of distinct levels.

    Never raises. Absent or unparseable input yields ``(DEFAULT_LEVEL,)`` with
    ``defaulted=True``.
    """
    if value is None:
        return LevelParse((DEFAULT_LEVEL,), defaulted=True)

    found: set[float] = set()
    for token in re.split(r"[;,]", str(value)):
        found.update(_parse_token(token))

    if not found:
        return LevelParse((DEFAULT_LEVEL,), defaulted=True)
    return LevelParse(tuple(sorted(found)))


def _first_level(raw: str | None) -> float:
    if raw is None:
        return DEFAULT_LEVEL
    first = re.split(r"[;,]", raw, maxsplit=1)[0]
    return parse_levels(first).first


def resolve_level(tags: dict[str, str]) -> float:
    """Single level of a flat entity (corridor, room, relation, entrance).

    Uses the first listed value of `level`, else `DEFAULT_LEVEL`. `layer`
    is ignored here: on footways it marks tunnels and bridges, not floors.
    """
    return _first_level(tags.get("level"))


def resolve_rail_level(tags: dict[str, str]) -> float:
    """Level of a railway or platform way.

    Like `resolve_level`, but entities without `level` fall back to `layer`.
    """
    raw = tags.get("level")
    if raw is None:
        raw = tags.get("layer")
    return _first_level(raw)
