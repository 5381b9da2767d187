from __future__ import annotations

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

import app.api.routes as routes_module
from app.main import app
from app.services.relay import DoorRelay


@pytest.fixture
def relay():
    fresh = DoorRelay()
    previous = app.dependency_overrides.get(routes_module.get_relay)
    app.dependency_overrides[routes_module.get_relay] = lambda: fresh
    try:
        yield fresh
    finally:
        app.dependency_overrides[routes_module.get_relay] = previous


@pytest.fixture
def client(relay):
    # Not entered as a context manager: the lifespan (and the MQTT client) stays off.
    return TestClient(app)


class _RecordingChannel:
    def __init__(self) -> None:
        self.events: list[str] = []

    def send(self, data: str) -> None:
        self.events.append(data)


@pytest.mark.parametrize("path", ["/api/door/status", "/api/status"])
def test_read_state(client, relay, path) -> None:
    resp = client.get(path)
    assert resp.status_code == 200
    body = resp.json()
    assert body == relay.current().to_dict()
    assert body["isOpen"] is False
    assert body["status"] == "CLEAR"
    assert body["lastUpdated"].endswith("Z")


def test_force_open_then_read_back(client, relay) -> None:
    resp = client.post("/api/door/test", json={"isOpen": True})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["state"]["isOpen"] is True
    assert body["state"]["status"] == "DETECTED"

    assert client.get("/api/door/status").json() == body["state"]


def test_force_closed_defaults_to_clear(client) -> None:
    body = client.post("/api/door/test", json={"isOpen": False}).json()
    assert body["state"]["isOpen"] is False
    assert body["state"]["status"] == "CLEAR"


def test_force_broadcasts_to_stream_clients(client, relay) -> None:
    channel = _RecordingChannel()
    relay.registry.register(channel)

    client.post("/api/status", json={"isOpen": True, "status": "DOOR_AJAR"})

    assert len(channel.events) == 2
    assert '"status": "DOOR_AJAR"' in channel.events[-1]


def test_sequential_writes_leave_the_last_one(client) -> None:
    client.post("/api/door/test", json={"isOpen": True})
    last = client.post("/api/door/test", json={"isOpen": False}).json()["state"]
    assert client.get("/api/door/status").json() == last


@pytest.mark.parametrize(
    "body, is_open, status",
    [
        ({"payload": "DETECTED", "topic": "home/ir/state"}, True, "DETECTED"),
        ({"message": "CLEAR"}, False, "CLEAR"),
        ({"status": "MQTT_CONNECTED"}, False, "MQTT_CONNECTED"),
        ({"payload": "DETECTED", "message": "CLEAR"}, True, "DETECTED"),
    ],
)
def test_webhook_uses_broker_mapping(client, body, is_open, status) -> None:
    resp = client.post("/api/webhook", json=body)
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["message"] == "State updated"
    assert data["state"]["isOpen"] is is_open
    assert data["state"]["status"] == status


def test_malformed_json_is_rejected(client, relay) -> None:
    before = relay.current()
    resp = client.post(
        "/api/door/test",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid request body"
    assert relay.current() is before


def test_wrong_type_is_rejected(client, relay) -> None:
    before = relay.current()
    resp = client.post("/api/door/test", json={"isOpen": "sometimes"})
    assert resp.status_code == 400
    assert relay.current() is before


def test_body_without_state_fields_is_rejected(client, relay) -> None:
    before = relay.current()
    resp = client.post("/api/webhook", json={"topic": "home/ir/state"})
    assert resp.status_code == 400
    assert "isOpen" in resp.json()["error"]
    assert relay.current() is before


@pytest.mark.parametrize(
    "method, path",
    [
        ("DELETE", "/api/door/status"),
        ("PUT", "/api/door/test"),
        ("GET", "/api/webhook"),
        ("POST", "/api/door/stream"),
    ],
)
def test_unsupported_method(client, relay, method, path) -> None:
    before = relay.current()
    resp = client.request(method, path)
    assert resp.status_code == 405
    assert resp.json() == {"error": "Method not allowed"}
    assert relay.current() is before


@pytest.mark.parametrize("path", ["/api/door/status", "/api/door/test", "/api/webhook", "/api/status"])
def test_options_returns_empty_200(client, path) -> None:
    resp = client.options(path)
    assert resp.status_code == 200
    assert resp.content == b""


@pytest.mark.parametrize(
    "method, request_headers",
    [
        ("POST", "Content-Type"),
        ("POST", "Content-Type, X-Requested-With"),
        ("PUT", "X-Custom-Header"),
    ],
)
def test_cors_preflight_allows_anything_with_empty_body(client, method, request_headers) -> None:
    resp = client.options(
        "/api/door/test",
        headers={
            "Origin": "http://example.com",
            "Access-Control-Request-Method": method,
            "Access-Control-Request-Headers": request_headers,
        },
    )
    assert resp.status_code == 200
    assert resp.content == b""
    assert resp.headers["access-control-allow-origin"] == "*"
    assert method in resp.headers["access-control-allow-methods"]
    allowed = resp.headers["access-control-allow-headers"].lower()
    for name in request_headers.split(","):
        assert name.strip().lower() in allowed


def test_cors_on_simple_request(client) -> None:
    resp = client.get("/api/door/status", headers={"Origin": "http://example.com"})
    assert resp.headers["access-control-allow-origin"] == "*"


def test_unknown_api_path_is_not_found(client) -> None:
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not Found"}


@pytest.mark.asyncio
async def test_stream_pushes_updates_and_unregisters_on_disconnect(relay) -> None:
    incoming: asyncio.Queue = asyncio.Queue()
    incoming.put_nowait({"type": "http.request", "body": b"", "more_body": False})
    start: dict = {}
    frames: list[dict] = []

    async def receive():
        return await incoming.get()

    async def send(message):
        if message["type"] == "http.response.start":
            start.update(message)
            return
        chunk = message.get("body", b"").decode()
        for block in chunk.split("\n\n"):
            if block.startswith("data: "):
                frames.append(json.loads(block[len("data: "):]))
                if len(frames) == 1:
                    relay.ingest("DETECTED")
                elif len(frames) == 2:
                    incoming.put_nowait({"type": "http.disconnect"})

    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": "/api/door/stream",
        "raw_path": b"/api/door/stream",
        "root_path": "",
        "query_string": b"",
        "headers": [(b"host", b"testserver"), (b"accept", b"text/event-stream")],
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
    }

    await asyncio.wait_for(app(scope, receive, send), timeout=5)

    assert start["status"] == 200
    headers = {k.decode().lower(): v.decode() for k, v in start["headers"]}
    assert headers["content-type"].startswith("text/event-stream")
    assert headers["cache-control"] == "no-cache"
    assert headers["x-accel-buffering"] == "no"

    assert [(f["isOpen"], f["status"]) for f in frames] == [(False, "CLEAR"), (True, "DETECTED")]
    assert relay.registry.count == 0
