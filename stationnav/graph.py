"""Multi-level routable graph built from OSM ways and elevator nodes.

Graph convention:
- A node is one physical OSM node on one level, keyed ``"{osm_id}_{level}"``.
- Edges live in the source node's outgoing list and are never deduplicated;
  two ways sharing a segment produce parallel edges.

Weighting policy:
- Corridors: planar Euclidean distance.
- Stairs/escalators: endpoint distance times `STAIR_PENALTY`.
- Elevators: flat `ELEVATOR_WEIGHT` per consecutive level pair.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from stationnav.document import OsmDocument, OsmNode, OsmWay, PlanarPoint, Tags
from stationnav.levels import parse_levels, resolve_level

logger = logging.getLogger(__name__)

ELEVATOR_WEIGHT = 10.0
STAIR_PENALTY = 2.0

_ONEWAY_FORWARD = {"yes", "true", "1"}
_CONVEYING_DIRECTED = {"yes", "forward", "backward"}


@dataclass(slots=True)
class Edge:
    target: str
    weight: float


@dataclass(slots=True)
class GraphNode:
    id: str
    x: float
    z: float
    level: float
    osm_id: int
    edges: list[Edge] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class WayVertex:
    """Resolved way point: OSM node id plus projected coordinates."""

    osm_id: int
    x: float
    z: float


@dataclass(frozen=True, slots=True)
class GraphEdgeSegment:
    """Flat edge record handed to the rendering layer."""

    start: PlanarPoint
    end: PlanarPoint
    from_level: float
    to_level: float
    osm_id: int
    kind: str  # corridor | stairs | escalator | elevator


def format_level(level: float) -> str:
    """Render a level the way node keys use it (``0``, ``-1``, ``1.5``)."""
    level = float(level)
    if level.is_integer():
        return str(int(level))
    return repr(level)


def node_key(osm_id: int, level: float) -> str:
    return f"{osm_id}_{format_level(level)}"


def planar_distance(ax: float, az: float, bx: float, bz: float) -> float:
    return math.hypot(ax - bx, az - bz)


class NavGraph:
    """Node table plus the render segment list for one loaded document."""

    def __init__(self) -> None:
        self.nodes: dict[str, GraphNode] = {}
        self.segments: list[GraphEdgeSegment] = []

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return sum(len(node.edges) for node in self.nodes.values())

    def get(self, node_id: str) -> GraphNode | None:
        return self.nodes.get(node_id)

    def get_or_create_node(self, osm_id: int, x: float, z: float, level: float) -> GraphNode:
        """Return the node for `(osm_id, level)`, creating it on first use."""
        key = node_key(osm_id, level)
        node = self.nodes.get(key)
        if node is None:
            node = GraphNode(id=key, x=float(x), z=float(z), level=float(level), osm_id=osm_id)
            self.nodes[key] = node
        return node

    def add_edge(self, a: GraphNode, b: GraphNode, weight: float, bidirectional: bool = True) -> None:
        if weight < 0:
            raise ValueError("Edge weight must be >= 0")
        a.edges.append(Edge(target=b.id, weight=float(weight)))
        if bidirectional:
            b.edges.append(Edge(target=a.id, weight=float(weight)))

    def edges_between(self, a_id: str, b_id: str) -> list[Edge]:
        node = self.nodes.get(a_id)
        if node is None:
            return []
        return [edge for edge in node.edges if edge.target == b_id]


def oneway_direction(tags: Tags) -> int:
    """Return 0 for two-way, 1 for forward only, -1 for backward only."""
    oneway = tags.get("oneway", "").strip().lower()
    conveying = tags.get("conveying", "").strip().lower()

    if oneway == "-1" or conveying == "backward":
        return -1
    if oneway in _ONEWAY_FORWARD or conveying in _CONVEYING_DIRECTED:
        return 1
    return 0


def is_walkable(tags: Tags) -> bool:
    return "highway" in tags or tags.get("indoor") == "corridor"


def add_corridor(
    graph: NavGraph,
    way_id: int,
    vertices: Sequence[WayVertex],
    level: float,
    direction: int = 0,
) -> int:
    """Add N-1 consecutive edges for a walkable way on one level.

    Returns:
        Number of way segments added.
    """
    added = 0
    for a, b in zip(vertices, vertices[1:]):
        node_a = graph.get_or_create_node(a.osm_id, a.x, a.z, level)
        node_b = graph.get_or_create_node(b.osm_id, b.x, b.z, level)
        weight = planar_distance(a.x, a.z, b.x, b.z)
        if direction < 0:
            graph.add_edge(node_b, node_a, weight, bidirectional=False)
        else:
            graph.add_edge(node_a, node_b, weight, bidirectional=direction == 0)
        graph.segments.append(
            GraphEdgeSegment((a.x, a.z), (b.x, b.z), level, level, way_id, "corridor")
        )
        added += 1
    return added


def add_elevator(graph: NavGraph, osm_id: int, x: float, z: float, levels: Sequence[float]) -> int:
    """Connect consecutive served levels of one lift with `ELEVATOR_WEIGHT`.

    Returns:
        Number of level pairs linked (0 when fewer than two levels).
    """
    ordered = sorted(set(float(lv) for lv in levels))
    linked = 0
    for lower, upper in zip(ordered, ordered[1:]):
        node_a = graph.get_or_create_node(osm_id, x, z, lower)
        node_b = graph.get_or_create_node(osm_id, x, z, upper)
        graph.add_edge(node_a, node_b, ELEVATOR_WEIGHT)
        graph.segments.append(GraphEdgeSegment((x, z), (x, z), lower, upper, osm_id, "elevator"))
        linked += 1
    return linked


def add_steps(graph: NavGraph, way_id: int, vertices: Sequence[WayVertex], tags: Tags) -> bool:
    """Add the single vertical edge of a stair or escalator way.

    Only the first and last parsed levels are used; intermediate levels are
    skipped. ``incline=down`` means the way is drawn from the upper level.

    Returns:
        True when an edge was added.
    """
    if len(vertices) < 2:
        return False

    parsed = parse_levels(tags.get("level"))
    if parsed.defaulted or len(parsed.levels) < 2:
        return False

    start_level, end_level = parsed.first, parsed.last
    if tags.get("incline", "").strip().lower() == "down":
        start_level, end_level = end_level, start_level

    first, last = vertices[0], vertices[-1]
    start = graph.get_or_create_node(first.osm_id, first.x, first.z, start_level)
    end = graph.get_or_create_node(last.osm_id, last.x, last.z, end_level)
    weight = planar_distance(first.x, first.z, last.x, last.z) * STAIR_PENALTY

    direction = oneway_direction(tags)
    if direction < 0:
        graph.add_edge(end, start, weight, bidirectional=False)
    else:
        graph.add_edge(start, end, weight, bidirectional=direction == 0)

    kind = "escalator" if "conveying" in tags else "stairs"
    graph.segments.append(
        GraphEdgeSegment((first.x, first.z), (last.x, last.z), start_level, end_level, way_id, kind)
    )
    return True


def way_vertices(way: OsmWay, points: Mapping[int, PlanarPoint]) -> list[WayVertex]:
    """Resolve way node refs to projected vertices, skipping unknown ids."""
    return [WayVertex(nid, points[nid][0], points[nid][1]) for nid in way.nodes if nid in points]


def ingest_way(graph: NavGraph, way: OsmWay, points: Mapping[int, PlanarPoint]) -> str | None:
    """Add one way to the graph according to its tags.

    Returns:
        ``"steps"`` or ``"corridor"`` when the way contributed edges, else None.
    """
    vertices = way_vertices(way, points)
    if len(vertices) < 2:
        return None

    tags = way.tags
    if tags.get("highway") == "steps":
        return "steps" if add_steps(graph, way.id, vertices, tags) else None

    if is_walkable(tags):
        add_corridor(graph, way.id, vertices, resolve_level(tags), oneway_direction(tags))
        return "corridor"
    return None


def ingest_elevator(graph: NavGraph, node: OsmNode, point: PlanarPoint) -> bool:
    parsed = parse_levels(node.tags.get("level"))
    if parsed.defaulted:
        return False
    return add_elevator(graph, node.id, point[0], point[1], parsed.levels) > 0


def build_graph(doc: OsmDocument, points: Mapping[int, PlanarPoint]) -> NavGraph:
    """Build the routable graph: ways first (input order), then elevators."""
    graph = NavGraph()
    counts = {"corridor": 0, "steps": 0, "elevator": 0}

    for way in doc.ways.values():
        kind = ingest_way(graph, way, points)
        if kind is not None:
            counts[kind] += 1

    for node in doc.nodes.values():
        if node.tags.get("highway") != "elevator" or node.id not in points:
            continue
        if ingest_elevator(graph, node, points[node.id]):
            counts["elevator"] += 1

    logger.info(
        "Built graph: %d nodes, %d edges (%d corridors, %d stairs, %d elevators)",
        len(graph),
        graph.edge_count,
        counts["corridor"],
        counts["steps"],
        counts["elevator"],
    )
    return graph
