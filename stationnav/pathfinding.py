"""Dijkstra shortest-path search over the multi-level navigation graph.

Purpose:
- Compute single-pair routes across corridors, stairs and elevators.
- Expose a read-only step view of a route for replay consumers.

Usage example:
    >>> from stationnav.pathfinding import find_path
    >>> result = find_path(graph, "101_0", "205_1")
    >>> result.path if result else "no route"
"""

from __future__ import annotations

import heapq
from collections.abc import Callable
from dataclasses import dataclass

from stationnav.graph import NavGraph


class SearchCancelled(RuntimeError):
    """Raised when a caller-supplied cancel check stops a search."""


@dataclass(slots=True)
class PathResult:
    """Route from start to end (inclusive) plus tentative distances.

    `distances` only covers nodes settled or relaxed before the search
    stopped; it is not a full distance table.
    """

    path: list[str]
    distances: dict[str, float]

    @property
    def total_distance(self) -> float:
        return self.distances[self.path[-1]]


@dataclass(slots=True)
class RouteStep:
    node_id: str
    x: float
    z: float
    level: float
    distance: float
    changes_level: bool


def find_path(
    graph: NavGraph,
    start_id: str,
    end_id: str,
    should_cancel: Callable[[], bool] | None = None,
) -> PathResult | None:
    """Compute the cheapest route between two graph nodes.

    Args:
        graph: Graph produced by the graph builder.
        start_id: Start node key.
        end_id: Target node key.
        should_cancel: Optional check run before each frontier extraction.

    Returns:
        PathResult, or None if either node is missing, the target is
        unreachable, or start and end are the same node.

    Raises:
        SearchCancelled: If `should_cancel` returns True.
    """
    if start_id not in graph or end_id not in graph or start_id == end_id:
        return None

    distances: dict[str, float] = {start_id: 0.0}
    came_from: dict[str, str] = {}
    settled: set[str] = set()
    frontier: list[tuple[float, str]] = [(0.0, start_id)]

    while frontier:
        if should_cancel is not None and should_cancel():
            raise SearchCancelled(f"Search {start_id} -> {end_id} cancelled")

        dist, current = heapq.heappop(frontier)
        if current in settled:
            continue
        if current == end_id:
            break
        settled.add(current)

        for edge in graph.nodes[current].edges:
            if edge.target in settled:
                continue
            tentative = dist + edge.weight
            if tentative < distances.get(edge.target, float("inf")):
                distances[edge.target] = tentative
                came_from[edge.target] = current
                heapq.heappush(frontier, (tentative, edge.target))
    else:
        return None

    path = [end_id]
    while path[-1] != start_id:
        path.append(came_from[path[-1]])
    path.reverse()

    if len(set(path)) < 2:
        return None
    return PathResult(path=path, distances=distances)


def describe_route(graph: NavGraph, result: PathResult) -> list[RouteStep]:
    """Per-node view of a route with cumulative distance and level changes."""
    steps: list[RouteStep] = []
    prev_level: float | None = None
    for node_id in result.path:
        node = graph.nodes[node_id]
        steps.append(
            RouteStep(
                node_id=node_id,
                x=node.x,
                z=node.z,
                level=node.level,
                distance=result.distances[node_id],
                changes_level=prev_level is not None and node.level != prev_level,
            )
        )
        prev_level = node.level
    return steps
