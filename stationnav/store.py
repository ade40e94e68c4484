"""Owned in-memory model for one loaded map document.

`NavStore.build` runs the full pipeline (projection, shape assembly, graph
building, platform indexing) and replaces all previous state at once. There
is no incremental update: reloading means building again.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from stationnav.document import OsmDocument, PlanarPoint, Projector, Tags, parse_document
from stationnav.graph import NavGraph, build_graph, node_key, way_vertices
from stationnav.levels import resolve_level, resolve_rail_level
from stationnav.platforms import PlatformRegistry, is_platform
from stationnav.rings import RING_EPSILON, Shape, assemble_multipolygon

logger = logging.getLogger(__name__)


class BuildInProgressError(RuntimeError):
    """Raised when a build is requested while another one is running."""


@dataclass(slots=True)
class Entrance:
    node_id: str
    osm_id: int
    x: float
    z: float
    level: float
    tags: Tags = field(default_factory=dict)


def _is_area_relation(tags: Tags) -> bool:
    return tags.get("type") == "multipolygon" or "building" in tags or is_platform(tags)


def _is_room(tags: Tags) -> bool:
    return (tags.get("indoor") == "room" or "building" in tags or "wall" in tags) and not is_platform(tags)


@dataclass(slots=True)
class StoreContents:
    """Everything derived from one document; replaced as a whole on rebuild."""

    graph: NavGraph = field(default_factory=NavGraph)
    registry: PlatformRegistry = field(default_factory=PlatformRegistry)
    shapes: list[Shape] = field(default_factory=list)
    entrances: list[Entrance] = field(default_factory=list)
    loaded: bool = False


class NavStore:
    """Graph, platform registry, shapes and entrances of the current document.

    Builds work on fresh structures and are swapped in with one assignment,
    so readers holding a `snapshot()` never see a half-built document.
    """

    def __init__(self, hole_matching: str = "all", ring_epsilon: float = RING_EPSILON) -> None:
        if hole_matching not in {"all", "containment"}:
            raise ValueError("hole_matching must be 'all' or 'containment'")
        self.hole_matching = hole_matching
        self.ring_epsilon = ring_epsilon
        self._contents = StoreContents()
        self._lock = threading.Lock()

    @property
    def building(self) -> bool:
        return self._lock.locked()

    @property
    def graph(self) -> NavGraph:
        return self._contents.graph

    @property
    def registry(self) -> PlatformRegistry:
        return self._contents.registry

    @property
    def shapes(self) -> list[Shape]:
        return self._contents.shapes

    @property
    def entrances(self) -> list[Entrance]:
        return self._contents.entrances

    @property
    def loaded(self) -> bool:
        return self._contents.loaded

    def snapshot(self) -> StoreContents:
        """Current contents; stays consistent even if a rebuild swaps them later."""
        return self._contents

    def reset(self) -> None:
        """Drop every derived structure."""
        if not self._lock.acquire(blocking=False):
            raise BuildInProgressError("Cannot reset while a build is in progress")
        try:
            self._contents = StoreContents()
        finally:
            self._lock.release()

    def build(self, document: OsmDocument | Any, project: Projector) -> StoreContents:
        """Rebuild all state from a document and return the new contents.

        Args:
            document: Parsed `OsmDocument` or raw Overpass JSON payload.
            project: `(lat, lon) -> (x, z)` planar projection.

        Raises:
            ValueError: If the raw payload is malformed (state is untouched).
            BuildInProgressError: If another build is running.
        """
        if not self._lock.acquire(blocking=False):
            raise BuildInProgressError("A build is already in progress")
        try:
            doc = document if isinstance(document, OsmDocument) else parse_document(document)
            contents = self._build_contents(doc, project)
            self._contents = contents
        finally:
            self._lock.release()

        logger.info(
            "Loaded document: %d elements, %d graph nodes, %d shapes, %d platforms, %d entrances",
            doc.element_count,
            len(contents.graph),
            len(contents.shapes),
            len(contents.registry),
            len(contents.entrances),
        )
        return contents

    def _build_contents(self, doc: OsmDocument, project: Projector) -> StoreContents:
        points: dict[int, PlanarPoint] = {node.id: project(node.lat, node.lon) for node in doc.nodes.values()}
        contents = StoreContents()
        self._build_relations(doc, points, contents)
        self._build_ways(doc, points, contents)
        contents.graph = build_graph(doc, points)
        self._build_entrances(doc, points, contents)
        contents.loaded = True
        return contents

    def _build_relations(self, doc: OsmDocument, points: dict[int, PlanarPoint], contents: StoreContents) -> None:
        for rel in doc.relations:
            if not _is_area_relation(rel.tags):
                continue
            tags = dict(rel.tags)
            platform = is_platform(tags)
            if platform:
                tags["type"] = "platform"

            level = resolve_level(rel.tags)
            shapes = assemble_multipolygon(
                rel,
                doc.ways,
                points,
                level,
                tags=tags,
                hole_matching=self.hole_matching,
                epsilon=self.ring_epsilon,
            )
            if not shapes:
                logger.debug("Relation %d produced no rings", rel.id)
            for shape in shapes:
                contents.shapes.append(shape)
                if platform:
                    contents.registry.register(rel.id, tags, shape.outer, level)

    def _build_ways(self, doc: OsmDocument, points: dict[int, PlanarPoint], contents: StoreContents) -> None:
        for way in doc.ways.values():
            if len(way.nodes) < 2:
                continue
            vertices = way_vertices(way, points)
            if len(vertices) < 2:
                continue

            tags = way.tags
            coords = [(v.x, v.z) for v in vertices]
            closed = way.nodes[0] == way.nodes[-1]

            if is_platform(tags):
                rail_level = resolve_rail_level(tags)
                contents.registry.register(way.id, tags, coords, rail_level)
                if closed and len(coords) > 2:
                    contents.shapes.append(
                        Shape(outer=coords, tags={**tags, "type": "platform"}, level=rail_level, osm_id=way.id)
                    )
            elif "railway" in tags and "level" in tags:
                if tags.get("railway:track_ref") or tags.get("ref"):
                    contents.registry.register(way.id, tags, coords, resolve_rail_level(tags))

            if _is_room(tags) and len(coords) > 2:
                contents.shapes.append(
                    Shape(outer=coords, tags=dict(tags), level=resolve_level(tags), osm_id=way.id)
                )

    def _build_entrances(self, doc: OsmDocument, points: dict[int, PlanarPoint], contents: StoreContents) -> None:
        for node in doc.nodes.values():
            if "entrance" not in node.tags and "door" not in node.tags:
                continue
            if node.id not in points:
                continue
            level = resolve_level(node.tags)
            x, z = points[node.id]
            contents.entrances.append(
                Entrance(
                    node_id=node_key(node.id, level),
                    osm_id=node.id,
                    x=x,
                    z=z,
                    level=level,
                    tags=dict(node.tags),
                )
            )
