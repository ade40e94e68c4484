"""Registry of named platforms and tracks for destination lookup."""

from __future__ import annotations

import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

import numpy as np

from stationnav.document import PlanarPoint, Tags
from stationnav.graph import GraphNode, NavGraph

LEVEL_MATCH_TOLERANCE = 0.5

TRACK_RAILWAYS = {"rail", "light_rail", "subway", "tram"}


@dataclass(slots=True)
class PlatformEntry:
    osm_id: int
    center: PlanarPoint
    level: float
    kind: str  # platform | track
    ref: str | None = None
    track_ref: str | None = None
    local_ref: str | None = None
    name: str | None = None

    @property
    def display_ref(self) -> str:
        return self.track_ref or self.ref or self.name or self.local_ref or str(self.osm_id)

    def matches(self, query: str) -> bool:
        """Case-insensitive match against a normalized query."""
        if self.track_ref and self.track_ref.casefold() == query:
            return True
        if self.local_ref and self.local_ref.casefold() == query:
            return True
        if self.name and query in self.name.casefold():
            return True
        if self.ref:
            refs = [r.strip().casefold() for r in re.split(r"[;,]", self.ref)]
            if query in refs:
                return True
        return False


def normalize_query(query: str | None) -> str:
    return (query or "").strip().casefold()


def is_platform(tags: Tags) -> bool:
    return tags.get("railway") == "platform" or tags.get("public_transport") == "platform"


class PlatformRegistry:
    """Platform/track entries keyed by OSM id, kept in registration order."""

    def __init__(self) -> None:
        self._entries: dict[int, PlatformEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PlatformEntry]:
        return iter(self._entries.values())

    def get(self, osm_id: int) -> PlatformEntry | None:
        return self._entries.get(osm_id)

    def clear(self) -> None:
        self._entries.clear()

    def register(
        self,
        osm_id: int,
        tags: Tags,
        points: Sequence[PlanarPoint],
        level: float,
    ) -> PlatformEntry | None:
        """Index one platform/track fragment at the centroid of its points.

        Entities without ref, name, railway:track_ref or local_ref are skipped.
        """
        ref = tags.get("ref")
        name = tags.get("name")
        track_ref = tags.get("railway:track_ref")
        local_ref = tags.get("local_ref")
        if not (ref or name or track_ref or local_ref) or not points:
            return None

        center = np.asarray(points, dtype=float).mean(axis=0)
        entry = PlatformEntry(
            osm_id=osm_id,
            center=(float(center[0]), float(center[1])),
            level=float(level),
            kind="track" if tags.get("railway") in TRACK_RAILWAYS else "platform",
            ref=ref,
            track_ref=track_ref,
            local_ref=local_ref,
            name=name,
        )
        self._entries[osm_id] = entry
        return entry

    def lookup(self, query: str | None) -> PlatformEntry | None:
        """Return the first registered entry matching `query`, or None."""
        needle = normalize_query(query)
        if not needle:
            return None
        for entry in self._entries.values():
            if entry.matches(needle):
                return entry
        return None


def nearest_node(entry: PlatformEntry, graph: NavGraph) -> GraphNode | None:
    """Closest graph node on the entry's level (within `LEVEL_MATCH_TOLERANCE`)."""
    candidates = [
        node for node in graph.nodes.values() if abs(node.level - entry.level) < LEVEL_MATCH_TOLERANCE
    ]
    if not candidates:
        return None

    coords = np.array([(node.x, node.z) for node in candidates], dtype=float)
    deltas = coords - np.asarray(entry.center, dtype=float)
    distances = np.hypot(deltas[:, 0], deltas[:, 1])
    return candidates[int(np.argmin(distances))]
