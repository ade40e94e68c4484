"""Typed model of an Overpass/OSM JSON element document.

The loader only accepts complete documents: any malformed element raises
`ValueError` before a single graph node is built.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

Tags = dict[str, str]
PlanarPoint = tuple[float, float]  # (x, z) in meters
Projector = Callable[[float, float], PlanarPoint]

METERS_PER_DEGREE = 111320.0


@dataclass(slots=True)
class OsmNode:
    id: int
    lat: float
    lon: float
    tags: Tags = field(default_factory=dict)


@dataclass(slots=True)
class OsmWay:
    id: int
    nodes: list[int]
    tags: Tags = field(default_factory=dict)


@dataclass(slots=True)
class RelationMember:
    type: str
    ref: int
    role: str = ""


@dataclass(slots=True)
class OsmRelation:
    id: int
    members: list[RelationMember]
    tags: Tags = field(default_factory=dict)


@dataclass(slots=True)
class OsmDocument:
    """Elements of one loaded document, each kind kept in input order."""

    nodes: dict[int, OsmNode] = field(default_factory=dict)
    ways: dict[int, OsmWay] = field(default_factory=dict)
    relations: list[OsmRelation] = field(default_factory=list)

    @property
    def element_count(self) -> int:
        return len(self.nodes) + len(self.ways) + len(self.relations)


def _parse_tags(raw: Any, where: str) -> Tags:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"{where}.tags must be an object")
    return {str(k): str(v) for k, v in raw.items()}


def _parse_id(raw: Any, where: str) -> int:
    if isinstance(raw, bool):
        raise ValueError(f"{where}.id must be an integer")
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{where}.id must be an integer") from exc


def _parse_element(item: Any, idx: int, doc: OsmDocument) -> None:
    where = f"elements[{idx}]"
    if not isinstance(item, dict):
        raise ValueError(f"{where} must be an object")

    kind = item.get("type")
    element_id = _parse_id(item.get("id"), where)
    tags = _parse_tags(item.get("tags"), where)

    if kind == "node":
        try:
            lat = float(item["lat"])
            lon = float(item["lon"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"{where} node must include numeric lat/lon") from exc
        # `out skel` repeats nodes without tags; keep the tagged copy.
        existing = doc.nodes.get(element_id)
        if existing is not None and not tags:
            tags = existing.tags
        doc.nodes[element_id] = OsmNode(id=element_id, lat=lat, lon=lon, tags=tags)

    elif kind == "way":
        refs = item.get("nodes") or []
        if not isinstance(refs, list):
            raise ValueError(f"{where}.nodes must be a list")
        doc.ways[element_id] = OsmWay(
            id=element_id,
            nodes=[_parse_id(ref, f"{where}.nodes") for ref in refs],
            tags=tags,
        )

    elif kind == "relation":
        raw_members = item.get("members") or []
        if not isinstance(raw_members, list):
            raise ValueError(f"{where}.members must be a list")
        members: list[RelationMember] = []
        for m_idx, member in enumerate(raw_members):
            if not isinstance(member, dict):
                raise ValueError(f"{where}.members[{m_idx}] must be an object")
            members.append(
                RelationMember(
                    type=str(member.get("type", "")),
                    ref=_parse_id(member.get("ref"), f"{where}.members[{m_idx}]"),
                    role=str(member.get("role") or ""),
                )
            )
        doc.relations.append(OsmRelation(id=element_id, members=members, tags=tags))

    else:
        raise ValueError(f"{where}.type must be node, way or relation (got {kind!r})")


def parse_document(payload: Any) -> OsmDocument:
    """Parse an Overpass JSON payload (`{"elements": [...]}` or a bare list).

    Raises:
        ValueError: If the payload or any element is malformed.
    """
    if isinstance(payload, dict):
        elements = payload.get("elements")
    else:
        elements = payload

    if not isinstance(elements, list):
        raise ValueError("Document must be a list of elements or an object with an 'elements' list")

    doc = OsmDocument()
    for idx, item in enumerate(elements):
        _parse_element(item, idx, doc)
    return doc


def make_projector(center_lat: float, center_lon: float) -> Projector:
    """Equirectangular projection around a center point, in meters.

    +x points east, +z points south (screen-style, matching the 3D viewer).
    """
    scale_x = METERS_PER_DEGREE * math.cos(math.radians(center_lat))

    def project(lat: float, lon: float) -> PlanarPoint:
        x = (lon - center_lon) * scale_x
        z = (lat - center_lat) * METERS_PER_DEGREE * -1
        return float(x), float(z)

    return project
