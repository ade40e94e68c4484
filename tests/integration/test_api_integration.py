"""Integration tests for FastAPI document loading, lookup and routing endpoints."""

from __future__ import annotations

import threading

import pytest
from fastapi.testclient import TestClient

from stationnav.api import STORE, cors_settings, create_app


@pytest.fixture()
def client() -> TestClient:
    return TestClient(create_app())


@pytest.fixture()
def loaded_client(client: TestClient, geo_station_payload) -> TestClient:
    res = client.post("/load-document", json=geo_station_payload)
    assert res.status_code == 200
    return client


def test_health_reports_load_state(client: TestClient, geo_station_payload) -> None:
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"
    assert res.json()["loaded"] is False

    client.post("/load-document", json=geo_station_payload)
    body = client.get("/health").json()
    assert body["loaded"] is True
    assert body["node_count"] == 7


def test_load_document_returns_counts(client: TestClient, geo_station_payload) -> None:
    res = client.post("/load-document", json=geo_station_payload)

    assert res.status_code == 200
    assert res.json() == {
        "node_count": 7,
        "edge_count": 14,
        "shape_count": 3,
        "platform_count": 3,
        "entrance_count": 1,
    }


def test_load_document_rejects_malformed_elements(client: TestClient) -> None:
    payload = {"center_lat": 52.5, "center_lon": 13.4, "elements": [{"type": "way", "id": 1, "nodes": "abc"}]}
    res = client.post("/load-document", json=payload)

    assert res.status_code == 400
    assert "Invalid map document" in res.json()["detail"]
    assert STORE.loaded is False


def test_endpoints_require_loaded_document(client: TestClient) -> None:
    for path in ["/graph/nodes", "/graph/edges", "/shapes", "/entrances", "/platforms/lookup?q=1"]:
        res = client.get(path)
        assert res.status_code == 400
        assert "No map document loaded" in res.json()["detail"]

    res = client.post("/find-path", json={"start_id": "1_0", "end_id": "5_1"})
    assert res.status_code == 400


def test_render_payloads(loaded_client: TestClient) -> None:
    nodes = loaded_client.get("/graph/nodes", params={"level": 1}).json()["nodes"]
    assert {n["id"] for n in nodes} == {"4_1", "5_1", "6_1"}

    edges = loaded_client.get("/graph/edges").json()["edges"]
    assert {e["kind"] for e in edges} == {"corridor", "stairs", "elevator"}

    shapes = loaded_client.get("/shapes").json()["shapes"]
    relation_shape = next(s for s in shapes if s["osm_id"] == 300)
    assert len(relation_shape["holes"]) == 1
    assert relation_shape["tags"]["type"] == "platform"

    entrances = loaded_client.get("/entrances").json()["entrances"]
    assert entrances[0]["node_id"] == "40_0"


def test_platform_lookup(loaded_client: TestClient) -> None:
    res = loaded_client.get("/platforms/lookup", params={"q": "GLEIS"})
    assert res.status_code == 200
    body = res.json()
    assert body["platform"]["osm_id"] == 200
    assert body["nearest_node_id"] == "5_1"

    missing = loaded_client.get("/platforms/lookup", params={"q": "99"})
    assert missing.status_code == 404


def test_find_path_by_node_ids(loaded_client: TestClient) -> None:
    res = loaded_client.post("/find-path", json={"start_id": "1_0", "end_id": "5_1"})

    assert res.status_code == 200
    body = res.json()
    assert body["path"] == ["1_0", "6_0", "6_1", "5_1"]
    assert body["total_distance"] == pytest.approx(40.0, abs=1e-3)
    assert [s["changes_level"] for s in body["steps"]] == [False, False, True, False]
    assert body["target"] is None


def test_find_path_to_platform_query(loaded_client: TestClient) -> None:
    res = loaded_client.post("/find-path", json={"start_id": "2_0", "target_query": "gleis 3"})

    assert res.status_code == 200
    body = res.json()
    assert body["path"][-1] == "5_1"
    assert body["target"]["osm_id"] == 200


def test_find_path_errors(loaded_client: TestClient) -> None:
    same = loaded_client.post("/find-path", json={"start_id": "1_0", "end_id": "1_0"})
    assert same.status_code == 404
    assert same.json()["detail"] == "No route found"

    unknown = loaded_client.post("/find-path", json={"start_id": "999_0", "end_id": "1_0"})
    assert unknown.status_code == 404

    both = loaded_client.post("/find-path", json={"start_id": "1_0", "end_id": "5_1", "target_query": "3"})
    assert both.status_code == 422

    neither = loaded_client.post("/find-path", json={"start_id": "1_0"})
    assert neither.status_code == 422


def test_reload_replaces_previous_document(loaded_client: TestClient) -> None:
    payload = {
        "center_lat": 0.0,
        "center_lon": 0.0,
        "elements": [
            {"type": "node", "id": 1, "lat": 0.0, "lon": 0.0},
            {"type": "node", "id": 2, "lat": 0.0, "lon": 0.0001},
            {"type": "way", "id": 10, "nodes": [1, 2], "tags": {"highway": "corridor"}},
        ],
    }
    res = loaded_client.post("/load-document", json=payload)

    assert res.status_code == 200
    assert res.json()["node_count"] == 2
    assert res.json()["platform_count"] == 0
    assert loaded_client.get("/platforms/lookup", params={"q": "gleis"}).status_code == 404


def test_node_level_filter_matches_within_tolerance(loaded_client: TestClient) -> None:
    near_first = loaded_client.get("/graph/nodes", params={"level": 0.6}).json()["nodes"]
    assert {n["id"] for n in near_first} == {"4_1", "5_1", "6_1"}

    near_ground = loaded_client.get("/graph/nodes", params={"level": 0.4}).json()["nodes"]
    assert {n["id"] for n in near_ground} == {"1_0", "2_0", "3_0", "6_0"}

    assert loaded_client.get("/graph/nodes", params={"level": -1}).json()["nodes"] == []


def test_requests_during_build_get_conflict(client: TestClient, geo_station_payload, planar_projector) -> None:
    started = threading.Event()
    release = threading.Event()

    def blocking_project(lat: float, lon: float) -> tuple[float, float]:
        started.set()
        release.wait(timeout=5)
        return planar_projector(lat, lon)

    worker = threading.Thread(target=STORE.build, args=(geo_station_payload, blocking_project))
    worker.start()
    try:
        assert started.wait(timeout=5)

        load = client.post("/load-document", json=geo_station_payload)
        assert load.status_code == 409
        assert "already in progress" in load.json()["detail"]

        nodes = client.get("/graph/nodes")
        assert nodes.status_code == 409
        assert client.get("/health").json()["building"] is True
    finally:
        release.set()
        worker.join(timeout=5)

    assert client.get("/health").json()["loaded"] is True


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("*", (["*"], False)),
        ("", (["*"], False)),
        (" https://a.example , ,https://b.example ", (["https://a.example", "https://b.example"], True)),
        ("https://a.example,*", (["*"], False)),
    ],
)
def test_cors_settings(raw: str, expected: tuple[list[str], bool]) -> None:
    assert cors_settings(raw) == expected
