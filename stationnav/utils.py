"""Serialization helpers shared by the API and rendering consumers.

Purpose:
- Convert shapes, graph segments and routes to JSON-safe payloads.
- Keep float conversion in one place (numpy scalars never leak out).
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from stationnav.document import PlanarPoint
from stationnav.graph import GraphEdgeSegment, GraphNode
from stationnav.pathfinding import RouteStep
from stationnav.platforms import PlatformEntry
from stationnav.rings import Shape
from stationnav.store import Entrance


def to_serializable_ring(ring: Iterable[PlanarPoint]) -> list[dict[str, float]]:
    """Convert `(x, z)` tuples to JSON-friendly dictionary objects."""
    return [{"x": float(x), "z": float(z)} for x, z in ring]


def serialize_shape(shape: Shape) -> dict[str, Any]:
    polygon = shape.to_polygon()
    return {
        "osm_id": shape.osm_id,
        "level": float(shape.level),
        "tags": dict(shape.tags),
        "outer": to_serializable_ring(shape.outer),
        "holes": [to_serializable_ring(hole) for hole in shape.holes],
        "area_m2": float(polygon.area) if polygon.is_valid else None,
    }


def serialize_segment(segment: GraphEdgeSegment) -> dict[str, Any]:
    return {
        "osm_id": segment.osm_id,
        "kind": segment.kind,
        "start": {"x": float(segment.start[0]), "z": float(segment.start[1])},
        "end": {"x": float(segment.end[0]), "z": float(segment.end[1])},
        "from_level": float(segment.from_level),
        "to_level": float(segment.to_level),
    }


def serialize_node(node: GraphNode) -> dict[str, Any]:
    return {
        "id": node.id,
        "osm_id": node.osm_id,
        "x": float(node.x),
        "z": float(node.z),
        "level": float(node.level),
    }


def serialize_platform(entry: PlatformEntry) -> dict[str, Any]:
    return {
        "osm_id": entry.osm_id,
        "kind": entry.kind,
        "center": {"x": float(entry.center[0]), "z": float(entry.center[1])},
        "level": float(entry.level),
        "ref": entry.ref,
        "track_ref": entry.track_ref,
        "local_ref": entry.local_ref,
        "name": entry.name,
        "display_ref": entry.display_ref,
    }


def serialize_entrance(entrance: Entrance) -> dict[str, Any]:
    return {
        "node_id": entrance.node_id,
        "osm_id": entrance.osm_id,
        "x": float(entrance.x),
        "z": float(entrance.z),
        "level": float(entrance.level),
        "tags": dict(entrance.tags),
    }


def serialize_steps(steps: Iterable[RouteStep]) -> list[dict[str, Any]]:
    return [
        {
            "node_id": step.node_id,
            "x": float(step.x),
            "z": float(step.z),
            "level": float(step.level),
            "distance": float(step.distance),
            "changes_level": step.changes_level,
        }
        for step in steps
    ]
