"""Pytest global fixtures and test isolation hooks."""

from __future__ import annotations

import math
from typing import Any

import pytest

from stationnav.api import STORE
from stationnav.document import METERS_PER_DEGREE

# Planar sample station (x, z) in meters, keyed by OSM node id.
#   level 0: corridor 1-2-3, corridor 1-6, stairs 3(L0) -> 4(L1)
#   level 1: corridor 4-5 (indoor=corridor), corridor 6-5
#   elevator node 6 serves levels 0 and 1
STATION_POINTS: dict[int, tuple[float, float]] = {
    1: (0.0, 0.0),
    2: (10.0, 0.0),
    3: (10.0, 10.0),
    4: (10.0, 20.0),
    5: (20.0, 20.0),
    6: (0.0, 5.0),
    7: (18.0, 18.0),
    8: (22.0, 18.0),
    9: (22.0, 22.0),
    10: (18.0, 22.0),
    11: (18.0, 25.0),
    12: (22.0, 25.0),
    20: (30.0, 0.0),
    21: (40.0, 0.0),
    22: (40.0, 10.0),
    23: (30.0, 10.0),
    24: (33.0, 3.0),
    25: (36.0, 3.0),
    26: (34.0, 6.0),
    30: (0.0, -10.0),
    31: (8.0, -10.0),
    32: (8.0, -4.0),
    33: (0.0, -4.0),
    40: (0.0, -2.0),
}

STATION_NODE_TAGS: dict[int, dict[str, str]] = {
    6: {"highway": "elevator", "level": "0;1"},
    40: {"entrance": "main", "level": "0"},
}

STATION_WAYS: list[dict[str, Any]] = [
    {"type": "way", "id": 100, "nodes": [1, 2, 3], "tags": {"highway": "footway", "level": "0"}},
    {"type": "way", "id": 101, "nodes": [3, 4], "tags": {"highway": "steps", "level": "0;1"}},
    {"type": "way", "id": 102, "nodes": [4, 5], "tags": {"indoor": "corridor", "level": "1"}},
    {"type": "way", "id": 103, "nodes": [1, 6], "tags": {"highway": "footway", "level": "0"}},
    {"type": "way", "id": 104, "nodes": [6, 5], "tags": {"highway": "footway", "level": "1"}},
    {
        "type": "way",
        "id": 200,
        "nodes": [7, 8, 9, 10, 7],
        "tags": {"railway": "platform", "level": "1", "ref": "3;4", "name": "Gleis 3/4"},
    },
    {
        "type": "way",
        "id": 201,
        "nodes": [11, 12],
        "tags": {"railway": "rail", "level": "1", "railway:track_ref": "3"},
    },
    {"type": "way", "id": 301, "nodes": [20, 21, 22]},
    {"type": "way", "id": 302, "nodes": [22, 23, 20]},
    {"type": "way", "id": 303, "nodes": [24, 25, 26, 24]},
    {
        "type": "way",
        "id": 400,
        "nodes": [30, 31, 32, 33, 30],
        "tags": {"indoor": "room", "level": "0", "name": "Ticket office"},
    },
]

STATION_RELATIONS: list[dict[str, Any]] = [
    {
        "type": "relation",
        "id": 300,
        "members": [
            {"type": "way", "ref": 301, "role": "outer"},
            {"type": "way", "ref": 302, "role": "outer"},
            {"type": "way", "ref": 303, "role": "inner"},
        ],
        "tags": {"type": "multipolygon", "public_transport": "platform", "level": "0", "local_ref": "A"},
    }
]


def station_elements(center: tuple[float, float] | None = None) -> list[dict[str, Any]]:
    """Sample station as Overpass elements.

    Without `center`, lat/lon carry the planar meters directly (lat=z, lon=x)
    for use with `planar_projector`. With `center`, meters are converted to
    degrees around it so `make_projector(*center)` reproduces them.
    """
    elements: list[dict[str, Any]] = []
    for node_id, (x, z) in STATION_POINTS.items():
        if center is None:
            lat, lon = z, x
        else:
            lat0, lon0 = center
            lat = lat0 - z / METERS_PER_DEGREE
            lon = lon0 + x / (METERS_PER_DEGREE * math.cos(math.radians(lat0)))
        item: dict[str, Any] = {"type": "node", "id": node_id, "lat": lat, "lon": lon}
        if node_id in STATION_NODE_TAGS:
            item["tags"] = dict(STATION_NODE_TAGS[node_id])
        elements.append(item)
    elements.extend(dict(w) for w in STATION_WAYS)
    elements.extend(dict(r) for r in STATION_RELATIONS)
    return elements


def planar_project(lat: float, lon: float) -> tuple[float, float]:
    return float(lon), float(lat)


@pytest.fixture(autouse=True)
def reset_store_state() -> None:
    """Reset the in-memory API store before each test."""
    STORE.reset()


@pytest.fixture()
def station_payload() -> dict[str, Any]:
    return {"elements": station_elements()}


@pytest.fixture()
def planar_projector():
    """Identity projection: lat is z, lon is x."""
    return planar_project


@pytest.fixture()
def geo_station_payload() -> dict[str, Any]:
    """Sample station around a real center, as posted to /load-document."""
    center = (52.525, 13.369)
    return {"center_lat": center[0], "center_lon": center[1], "elements": station_elements(center)}
