"""Tests for API endpoints (fake render surface, mocked provider, no network)."""

from __future__ import annotations

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from canvasprompt.config import Settings
from canvasprompt.dependencies import get_settings
from canvasprompt.llm.client import GenerationClient
from canvasprompt.main import create_app
from tests.conftest import RED_PNG_B64, RED_PNG_DATA_URL, FakeSurface

TEST_SETTINGS = Settings(
    google_api_key="server-key",
    relay_url="http://relay.test/api/relay",
    provider_base_url="https://provider.test/v1beta",
    store_path="",
)
PROVIDER_URL = "https://provider.test/v1beta/models/gemini-3-pro-image-preview:generateContent"


def _provider(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={"candidates": [{"content": {"parts": [{"inlineData": {"mimeType": "image/png", "data": RED_PNG_B64}}]}}]},
    )


@pytest.fixture
def app():
    app = create_app(TEST_SETTINGS)
    app.state.surface_factory = FakeSurface
    app.state.client = GenerationClient(TEST_SETTINGS, transport=httpx.MockTransport(_provider))
    app.dependency_overrides[get_settings] = lambda: TEST_SETTINGS
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def sid(client) -> str:
    return client.post("/api/sessions").json()["session_id"]


def _add(client, sid, **body):
    response = client.post(f"/api/sessions/{sid}/objects", json=body)
    assert response.status_code == 200, response.text
    return response.json()["object"]


def _add_plan(client, sid):
    return _add(
        client, sid, kind="image", width=1000, height=500, left=0, top=0,
        is_base_image=True, props={"src": RED_PNG_DATA_URL},
    )


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_models(client):
    data = client.get("/api/models").json()
    assert "gemini-3-pro-image-preview" in [m["id"] for m in data["models"]]
    assert data["default"]


def test_new_session_has_only_workspace(client, sid):
    data = client.get(f"/api/sessions/{sid}").json()
    assert len(data["objects"]) == 1
    assert data["objects"][0]["roles"]["is_workspace"] is True
    assert data["can_undo"] is False


def test_unknown_session(client):
    assert client.get("/api/sessions/nope").status_code == 404


def test_add_base_image_gets_border(client, sid):
    obj = _add_plan(client, sid)
    assert obj["roles"]["is_base_image"] is True
    assert obj["stroke"] == "#4CAF50"


def test_base_role_on_shape_rejected(client, sid):
    response = client.post(
        f"/api/sessions/{sid}/objects",
        json={"kind": "shape", "width": 10, "height": 10, "is_base_image": True},
    )
    assert response.status_code == 422


def test_undo_redo(client, sid):
    rect = _add(client, sid, kind="shape", width=50, height=50, left=10, top=10)
    undo = client.post(f"/api/sessions/{sid}/undo").json()
    assert undo["applied"] is True
    ids = [o["id"] for o in client.get(f"/api/sessions/{sid}").json()["objects"]]
    assert rect["id"] not in ids
    assert client.post(f"/api/sessions/{sid}/redo").json()["applied"] is True
    ids = [o["id"] for o in client.get(f"/api/sessions/{sid}").json()["objects"]]
    assert rect["id"] in ids
    assert client.post(f"/api/sessions/{sid}/redo").json()["applied"] is False


def test_transform_is_clamped(client, sid):
    rect = _add(client, sid, kind="shape", width=50, height=50, left=10, top=10)
    response = client.patch(f"/api/sessions/{sid}/objects/{rect['id']}/transform", json={"left": 9000})
    assert response.status_code == 200
    assert response.json()["object"]["left"] == 4096
    assert response.json()["object"]["top"] == 10


def test_role_toggle(client, sid):
    img = _add(client, sid, kind="image", width=100, height=100)
    response = client.put(f"/api/sessions/{sid}/objects/{img['id']}/role", json={"is_base_image": True})
    assert response.json()["object"]["stroke"] == "#4CAF50"
    response = client.put(f"/api/sessions/{sid}/objects/{img['id']}/role", json={"is_base_image": False})
    assert response.json()["object"]["stroke"] is None


def test_layer_back_keeps_workspace_bottom(client, sid):
    _add(client, sid, kind="shape", width=10, height=10)
    second = _add(client, sid, kind="shape", width=10, height=10)
    client.post(f"/api/sessions/{sid}/objects/{second['id']}/layer", json={"direction": "back"})
    objects = client.get(f"/api/sessions/{sid}").json()["objects"]
    assert objects[0]["roles"]["is_workspace"] is True
    assert objects[1]["id"] == second["id"]


def test_nudge_large_step(client, sid):
    rect = _add(client, sid, kind="shape", width=10, height=10, left=100, top=100)
    response = client.post(f"/api/sessions/{sid}/objects/{rect['id']}/nudge", json={"dx": 1, "large": True})
    assert response.json()["object"]["left"] == 110


def test_copy_paste(client, sid):
    rect = _add(client, sid, kind="shape", width=10, height=10, left=100, top=100)
    assert client.post(f"/api/sessions/{sid}/paste").status_code == 409
    client.post(f"/api/sessions/{sid}/copy", json={"object_id": rect["id"]})
    pasted = client.post(f"/api/sessions/{sid}/paste").json()["object"]
    assert (pasted["left"], pasted["top"]) == (120, 120)
    assert pasted["id"] != rect["id"]


def test_remove_and_clear(client, sid):
    rect = _add(client, sid, kind="shape", width=10, height=10)
    _add(client, sid, kind="text", width=50, height=10, props={"text": "here"})
    assert client.delete(f"/api/sessions/{sid}/objects/{rect['id']}").json()["removed"] is True
    assert client.delete(f"/api/sessions/{sid}/objects/{rect['id']}").status_code == 404
    assert client.post(f"/api/sessions/{sid}/clear").json()["removed"] == 1
    assert len(client.get(f"/api/sessions/{sid}").json()["objects"]) == 1


def test_fov_lifecycle(client, sid):
    assert client.get(f"/api/sessions/{sid}/fov").status_code == 404
    assert client.patch(f"/api/sessions/{sid}/fov", json={"angle": 45, "length": 100}).status_code == 404

    created = client.post(f"/api/sessions/{sid}/fov", json={"left": 500, "top": 500, "rotation": 90}).json()
    marker_id = created["object"]["id"]

    updated = client.patch(f"/api/sessions/{sid}/fov", json={"angle": 45, "length": 100}).json()
    assert updated["object"]["id"] == marker_id
    assert updated["object"]["props"] == {"angle": 45.0, "length": 100.0}

    data = client.get(f"/api/sessions/{sid}/fov").json()
    assert data["heading"] == "down"
    assert data["angle_degrees"] == 45

    bad = client.patch(f"/api/sessions/{sid}/fov", json={"angle": 180, "length": 100})
    assert bad.status_code == 422


def test_prepare_empty_canvas(client, sid):
    response = client.post(f"/api/sessions/{sid}/generate/prepare", json={})
    assert response.status_code == 422
    assert "empty" in response.json()["detail"].lower()


def test_prepare_without_base(client, sid):
    _add(client, sid, kind="shape", width=10, height=10)
    response = client.post(f"/api/sessions/{sid}/generate/prepare", json={})
    assert response.status_code == 422
    assert "base" in response.json()["detail"].lower()
    # Session is released after a failed prepare.
    assert client.get(f"/api/sessions/{sid}").json()["generating"] is False


def test_generate_flow(client, sid):
    _add_plan(client, sid)
    prepared = client.post(
        f"/api/sessions/{sid}/generate/prepare",
        json={"prompt": "Add a sofa", "aspect_ratio": "16:9"},
    )
    assert prepared.status_code == 200
    data = prepared.json()
    assert data["image_count"] == 2
    assert data["reference_count"] == 0
    assert data["prompt"].startswith("Add a sofa")

    assert client.post(f"/api/sessions/{sid}/generate/prepare", json={}).status_code == 409

    executed = client.post(f"/api/sessions/{sid}/generate/execute", json={})
    assert executed.status_code == 200
    result = executed.json()
    assert result["image"].startswith("data:image/png;base64,")
    assert result["placed_object_id"]

    gallery = client.get("/api/gallery").json()
    assert [g["id"] for g in gallery] == [result["gallery_id"]]
    assert gallery[0]["ratio"] == "16:9"

    assert client.post(f"/api/sessions/{sid}/generate/execute", json={}).status_code == 422


def test_manual_reference_counts(client, sid):
    _add_plan(client, sid)
    bad = client.post(f"/api/sessions/{sid}/reference", json={"image": "bm90IGFuIGltYWdl"})
    assert bad.status_code == 422
    assert client.post(f"/api/sessions/{sid}/reference", json={"image": RED_PNG_DATA_URL}).status_code == 200
    data = client.post(f"/api/sessions/{sid}/generate/prepare", json={}).json()
    assert data["reference_count"] == 1
    assert client.post(f"/api/sessions/{sid}/generate/cancel").json()["cancelled"] is True
    client.delete(f"/api/sessions/{sid}/reference")
    data = client.post(f"/api/sessions/{sid}/generate/prepare", json={}).json()
    assert data["reference_count"] == 0


def test_execute_maps_safety_block(app, client, sid):
    app.state.client = GenerationClient(
        TEST_SETTINGS,
        transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json={"candidates": [{"finishReason": "SAFETY"}]})
        ),
    )
    _add_plan(client, sid)
    client.post(f"/api/sessions/{sid}/generate/prepare", json={})
    response = client.post(f"/api/sessions/{sid}/generate/execute", json={})
    assert response.status_code == 422
    assert client.get(f"/api/sessions/{sid}").json()["generating"] is False


def test_gallery_place_and_delete(client, sid):
    _add_plan(client, sid)
    client.post(f"/api/sessions/{sid}/generate/prepare", json={})
    gallery_id = client.post(
        f"/api/sessions/{sid}/generate/execute", json={"place_result": False}
    ).json()["gallery_id"]

    image = client.get(f"/api/gallery/{gallery_id}").json()
    assert image["data_url"].startswith("data:image/png")

    placed = client.post(f"/api/sessions/{sid}/gallery/{gallery_id}/place").json()
    assert placed["object"]["kind"] == "image"
    assert placed["bounding_rect"]["width"] == 8

    assert client.delete(f"/api/gallery/{gallery_id}").status_code == 200
    assert client.get(f"/api/gallery/{gallery_id}").status_code == 404


def test_relay_injects_server_key(app, client):
    seen = []

    def upstream(request):
        seen.append(request)
        return httpx.Response(200, json={"candidates": []})

    app.state.relay_transport = httpx.MockTransport(upstream)
    response = client.post(
        "/api/relay",
        json={"url": "https://provider.test/v1beta/models/m:generateContent", "payload": {"contents": []}},
    )
    assert response.status_code == 200
    assert response.json() == {"candidates": []}
    assert seen[0].url.params["key"] == "server-key"
    assert json.loads(seen[0].content) == {"contents": []}


def test_relay_missing_fields(client):
    response = client.post("/api/relay", json={"url": "https://provider.test"})
    assert response.status_code == 400


def test_relay_without_server_key(app, client):
    app.dependency_overrides[get_settings] = lambda: Settings(google_api_key="")
    response = client.post("/api/relay", json={"url": "https://provider.test", "payload": {}})
    assert response.status_code == 500


def test_relay_timeout(app, client):
    def upstream(request):
        raise httpx.ReadTimeout("slow", request=request)

    app.state.relay_transport = httpx.MockTransport(upstream)
    response = client.post("/api/relay", json={"url": PROVIDER_URL, "payload": {}})
    assert response.status_code == 504
    assert "Timeout" in response.json()["error"]["message"]


@pytest.mark.parametrize(
    "url",
    [
        "https://attacker.example/steal",
        "https://provider.test/v1beta.attacker.example/steal",
    ],
)
def test_relay_refuses_foreign_target(app, client, url):
    seen = []

    def upstream(request):
        seen.append(request)
        return httpx.Response(200, json={})

    app.state.relay_transport = httpx.MockTransport(upstream)
    response = client.post("/api/relay", json={"url": url, "payload": {"contents": []}})
    assert response.status_code == 400
    assert seen == []


def test_relay_unreachable_provider(app, client):
    def upstream(request):
        raise httpx.ConnectError("provider unreachable", request=request)

    app.state.relay_transport = httpx.MockTransport(upstream)
    response = client.post("/api/relay", json={"url": PROVIDER_URL, "payload": {}})
    assert response.status_code == 502
    assert response.json()["error"]["status"] == "TRANSPORT"
