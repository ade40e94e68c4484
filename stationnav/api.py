"""FastAPI routes for loading station map documents and routing across levels.

Flow:
- `POST /load-document` rebuilds the in-memory store from Overpass JSON.
- `GET /platforms/lookup` resolves a platform/track query to a graph node.
- `POST /find-path` computes a route between graph nodes.
- `GET /shapes`, `/graph/nodes`, `/graph/edges`, `/entrances` feed renderers.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, model_validator

from stationnav.document import make_projector, parse_document
from stationnav.pathfinding import describe_route, find_path
from stationnav.platforms import LEVEL_MATCH_TOLERANCE, nearest_node
from stationnav.store import BuildInProgressError, NavStore, StoreContents
from stationnav.utils import (
    serialize_entrance,
    serialize_node,
    serialize_platform,
    serialize_segment,
    serialize_shape,
    serialize_steps,
)

logger = logging.getLogger(__name__)

API_VERSION = "0.3.0"

STORE = NavStore(hole_matching=os.getenv("STATIONNAV_HOLE_MATCHING", "all").strip().lower() or "all")


class LoadDocumentRequest(BaseModel):
    """Overpass JSON elements plus the projection center."""

    center_lat: float = Field(..., ge=-90.0, le=90.0)
    center_lon: float = Field(..., ge=-180.0, le=180.0)
    elements: list[dict[str, Any]]


class LoadDocumentResponse(BaseModel):
    node_count: int
    edge_count: int
    shape_count: int
    platform_count: int
    entrance_count: int


class PathRequest(BaseModel):
    """Route request.

    Provide `start_id` and either:
    - `end_id` (graph node key), or
    - `target_query` (platform/track lookup text)
    """

    start_id: str = Field(..., min_length=1)
    end_id: str | None = None
    target_query: str | None = None

    @model_validator(mode="after")
    def validate_target(self) -> "PathRequest":
        """Ensure caller provides exactly one target form."""
        has_end = bool(self.end_id)
        has_query = bool(self.target_query and self.target_query.strip())
        if has_end == has_query:
            raise ValueError("Provide exactly one of end_id or target_query")
        return self


class PathResponse(BaseModel):
    path: list[str]
    total_distance: float
    steps: list[dict[str, Any]]
    target: dict[str, Any] | None = None


def _loaded_contents_or_400() -> StoreContents:
    """Get the current store contents or raise 400 if no document was loaded yet."""
    if STORE.building:
        raise HTTPException(status_code=409, detail="Document build in progress")
    contents = STORE.snapshot()
    if not contents.loaded:
        raise HTTPException(status_code=400, detail="No map document loaded yet")
    return contents


def cors_settings(raw_origins: str) -> tuple[list[str], bool]:
    """Allowed origins and credential flag for a comma-separated origin list.

    A wildcard never allows credentials.
    """
    origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
    if not origins or "*" in origins:
        return ["*"], False
    return origins, True


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(title="stationnav API", version=API_VERSION)

    cors_origins, allow_credentials = cors_settings(os.getenv("STATIONNAV_CORS_ORIGINS", "*"))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict[str, Any]:
        """Health endpoint with loaded-document summary."""
        contents = STORE.snapshot()
        return {
            "status": "ok",
            "version": app.version,
            "loaded": contents.loaded,
            "building": STORE.building,
            "node_count": len(contents.graph),
            "platform_count": len(contents.registry),
        }

    @app.post("/load-document", response_model=LoadDocumentResponse)
    def load_document(payload: LoadDocumentRequest) -> LoadDocumentResponse:
        """Parse and build the store from an element list; replaces previous state."""
        try:
            doc = parse_document(payload.elements)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid map document: {exc}") from exc

        try:
            contents = STORE.build(doc, make_projector(payload.center_lat, payload.center_lon))
        except BuildInProgressError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc

        logger.info("Document loaded around (%.6f, %.6f)", payload.center_lat, payload.center_lon)
        return LoadDocumentResponse(
            node_count=len(contents.graph),
            edge_count=contents.graph.edge_count,
            shape_count=len(contents.shapes),
            platform_count=len(contents.registry),
            entrance_count=len(contents.entrances),
        )

    @app.get("/graph/nodes")
    def get_graph_nodes(level: float | None = Query(default=None)) -> dict[str, Any]:
        """Return graph nodes, optionally filtered to one level."""
        contents = _loaded_contents_or_400()
        nodes = [
            serialize_node(node)
            for node in contents.graph.nodes.values()
            if level is None or abs(node.level - level) < LEVEL_MATCH_TOLERANCE
        ]
        return {"nodes": nodes}

    @app.get("/graph/edges")
    def get_graph_edges() -> dict[str, Any]:
        """Return the flat edge list for visualization."""
        contents = _loaded_contents_or_400()
        return {"edges": [serialize_segment(seg) for seg in contents.graph.segments]}

    @app.get("/shapes")
    def get_shapes() -> dict[str, Any]:
        """Return assembled area shapes (rooms, buildings, platforms)."""
        contents = _loaded_contents_or_400()
        return {"shapes": [serialize_shape(shape) for shape in contents.shapes]}

    @app.get("/entrances")
    def get_entrances() -> dict[str, Any]:
        contents = _loaded_contents_or_400()
        return {"entrances": [serialize_entrance(e) for e in contents.entrances]}

    @app.get("/platforms/lookup")
    def lookup_platform(q: str = Query(..., min_length=1)) -> dict[str, Any]:
        """Resolve platform/track text to its entry and nearest graph node."""
        contents = _loaded_contents_or_400()
        entry = contents.registry.lookup(q)
        if entry is None:
            raise HTTPException(status_code=404, detail=f"Platform or track '{q}' not found")

        node = nearest_node(entry, contents.graph)
        return {
            "platform": serialize_platform(entry),
            "nearest_node_id": node.id if node is not None else None,
        }

    @app.post("/find-path", response_model=PathResponse)
    def find_path_route(payload: PathRequest) -> PathResponse:
        """Compute the shortest route to a node id or a looked-up platform."""
        contents = _loaded_contents_or_400()

        target: dict[str, Any] | None = None
        end_id = payload.end_id
        if payload.target_query:
            entry = contents.registry.lookup(payload.target_query)
            if entry is None:
                raise HTTPException(status_code=404, detail=f"Platform or track '{payload.target_query}' not found")
            node = nearest_node(entry, contents.graph)
            if node is None:
                raise HTTPException(
                    status_code=404,
                    detail=f"Platform '{entry.display_ref}' found on level {entry.level:g}, but no graph node nearby",
                )
            end_id = node.id
            target = serialize_platform(entry)

        if payload.start_id not in contents.graph:
            raise HTTPException(status_code=404, detail=f"Unknown start node '{payload.start_id}'")
        if end_id not in contents.graph:
            raise HTTPException(status_code=404, detail=f"Unknown end node '{end_id}'")

        result = find_path(contents.graph, payload.start_id, end_id)
        if result is None:
            raise HTTPException(status_code=404, detail="No route found")

        return PathResponse(
            path=result.path,
            total_distance=result.total_distance,
            steps=serialize_steps(describe_route(contents.graph, result)),
            target=target,
        )

    return app
