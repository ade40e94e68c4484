"""Ring stitching for fragmented OSM multipolygon boundaries.

Purpose:
- Join independently ordered way fragments into closed rings under a small
  distance tolerance.
- Assemble relation members into renderable shapes (outer ring + holes).

Stitching order is fixed: the pool keeps input order and the next chain seed
is always taken from the end of the pool (reverse-insertion order). For each
seed, pool segments are scanned front to back and the first one that touches
the chain in any orientation is consumed.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from shapely.geometry import Polygon

from stationnav.document import OsmRelation, OsmWay, PlanarPoint, Tags

logger = logging.getLogger(__name__)

RING_EPSILON = 0.01  # meters in projected space

Ring = list[PlanarPoint]


@dataclass(slots=True)
class Shape:
    """One outer ring plus holes, carrying the owning entity's tags and level."""

    outer: Ring
    holes: list[Ring] = field(default_factory=list)
    tags: Tags = field(default_factory=dict)
    level: float = 0.0
    osm_id: int = 0

    def to_polygon(self) -> Polygon:
        """Shapely polygon of the shape; empty when the outer ring is degenerate."""
        try:
            return Polygon(self.outer, [h for h in self.holes if len(h) >= 4])
        except ValueError:
            return Polygon()


def _dist(a: PlanarPoint, b: PlanarPoint) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def is_closed(ring: Sequence[PlanarPoint], epsilon: float = RING_EPSILON) -> bool:
    return len(ring) > 1 and _dist(ring[0], ring[-1]) < epsilon


def _extend(chain: Ring, seg: Ring, epsilon: float) -> Ring | None:
    """Try the four join orientations; return the extended chain or None."""
    head, tail = chain[0], chain[-1]
    s_head, s_tail = seg[0], seg[-1]

    if _dist(tail, s_head) < epsilon:
        return chain + seg[1:]
    if _dist(tail, s_tail) < epsilon:
        return chain + seg[::-1][1:]
    if _dist(head, s_tail) < epsilon:
        return seg + chain[1:]
    if _dist(head, s_head) < epsilon:
        return seg[::-1] + chain[1:]
    return None


def stitch_segments(
    segments: Iterable[Sequence[PlanarPoint]],
    epsilon: float = RING_EPSILON,
) -> list[Ring]:
    """Stitch boundary fragments into rings.

    Args:
        segments: Point sequences, each with at least two points.
        epsilon: Endpoint match tolerance in projected meters.

    Returns:
        Rings that either closed or hold more than two points. Shorter open
        chains are discarded.
    """
    pool: list[Ring] = [list(seg) for seg in segments if len(seg) >= 2]
    rings: list[Ring] = []

    while pool:
        chain = pool.pop()
        closed = is_closed(chain, epsilon)

        # Each pass consumes exactly one pool segment or stops.
        while not closed:
            for idx, seg in enumerate(pool):
                extended = _extend(chain, seg, epsilon)
                if extended is not None:
                    del pool[idx]
                    chain = extended
                    break
            else:
                break
            closed = is_closed(chain, epsilon)

        if closed or len(chain) > 2:
            rings.append(chain)
        else:
            logger.debug("Discarding open boundary fragment with %d points", len(chain))

    return rings


def _contains(outer: Ring, hole: Ring) -> bool:
    if len(outer) < 3 or len(hole) < 3:
        return False
    try:
        outer_poly = Polygon(outer)
        hole_poly = Polygon(hole)
    except ValueError:
        return False
    if not outer_poly.is_valid:
        outer_poly = outer_poly.buffer(0)
    if not hole_poly.is_valid:
        hole_poly = hole_poly.buffer(0)
    if hole_poly.is_empty:
        return False
    return bool(outer_poly.contains(hole_poly.representative_point()))


def assemble_multipolygon(
    relation: OsmRelation,
    ways: Mapping[int, OsmWay],
    points: Mapping[int, PlanarPoint],
    level: float,
    tags: Tags | None = None,
    hole_matching: str = "all",
    epsilon: float = RING_EPSILON,
) -> list[Shape]:
    """Build shapes for one multipolygon-like relation.

    Members with role ``inner`` become holes, every other way member is outer.
    With ``hole_matching="all"`` every hole is attached to every outer ring of
    the relation. ``"containment"`` attaches a hole only to outer rings that
    contain it.
    """
    if hole_matching not in {"all", "containment"}:
        raise ValueError("hole_matching must be 'all' or 'containment'")

    outers: list[Ring] = []
    inners: list[Ring] = []
    for member in relation.members:
        if member.type != "way":
            continue
        way = ways.get(member.ref)
        if way is None or len(way.nodes) < 2:
            continue
        pts = [points[nid] for nid in way.nodes if nid in points]
        if len(pts) < 2:
            continue
        if member.role == "inner":
            inners.append(pts)
        else:
            outers.append(pts)

    outer_rings = stitch_segments(outers, epsilon)
    inner_rings = stitch_segments(inners, epsilon)
    shape_tags = dict(tags if tags is not None else relation.tags)

    shapes: list[Shape] = []
    for outer in outer_rings:
        if hole_matching == "all":
            holes = [list(h) for h in inner_rings]
        else:
            holes = [list(h) for h in inner_rings if _contains(outer, h)]
        shapes.append(Shape(outer=outer, holes=holes, tags=dict(shape_tags), level=level, osm_id=relation.id))
    return shapes
