"""
Tests for the REST API and the WebSocket endpoint.
"""
import asyncio

import pytest
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketDisconnect
from httpx import AsyncClient

from kidscode_engine.main import app

PROGRAM = [
    {"id": "events_when_start_aaaaaaa", "type": "events_when_start", "next": "motion_move_up_bbbbbbb"},
    {"id": "motion_move_up_bbbbbbb", "type": "motion_move_up", "next": "looks_say_ccccccc"},
    {"id": "looks_say_ccccccc", "type": "looks_say", "properties": {"message": "Hi"}},
]

ACTORS = [{"id": "cat", "name": "Cat", "imageUrl": "cat.png"}]


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    """Health reports the session count."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "session_count": 0}


@pytest.mark.asyncio
async def test_palette(client: AsyncClient):
    """Palette lists every category with its templates."""
    response = await client.get("/api/palette")
    assert response.status_code == 200

    categories = response.json()["categories"]
    assert [c["id"] for c in categories] == ["motion", "looks", "sound", "control", "events"]
    assert categories[0]["color"] == "#4C97FF"

    control = {t["kind"]: t for t in categories[3]["templates"]}
    assert control["repeatCount"]["is_container"] is True
    assert control["repeatCount"]["parameters"] == {"times": 10}


@pytest.mark.asyncio
async def test_new_block(client: AsyncClient):
    """A new block comes back in the studio's wire shape."""
    response = await client.post("/api/palette/looks_think")
    assert response.status_code == 201

    data = response.json()
    assert data["type"] == "think"
    assert data["id"].startswith("think_")
    assert data["properties"] == {"message": "Hmm..."}
    assert data["children"] == []
    assert data["next"] is None


@pytest.mark.asyncio
async def test_new_block_unknown_kind(client: AsyncClient):
    response = await client.post("/api/palette/dance")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_simulate(client: AsyncClient):
    """Simulation runs on virtual time and returns the final stage."""
    response = await client.post(
        "/api/simulate",
        json={"program": PROGRAM, "actors": ACTORS, "background": {"imageUrl": "park.png"}},
    )
    assert response.status_code == 200

    data = response.json()
    assert data["report"]["status"] == "completed"
    assert data["report"]["operations_executed"] == 3
    assert data["report"]["elapsed_ms"] == pytest.approx(1500)

    actor = data["stage"]["actors"][0]
    assert actor["id"] == "cat"
    assert actor["image_ref"] == "cat.png"
    assert actor["y"] == 50
    assert actor["speech"] == {"type": "say", "text": "Hi"}
    assert data["stage"]["background"]["image_ref"] == "park.png"
    assert data["stage"]["running"] is False


@pytest.mark.asyncio
async def test_simulate_no_start_block(client: AsyncClient):
    response = await client.post(
        "/api/simulate",
        json={"program": [{"id": 1, "type": "moveUp"}], "actors": ACTORS},
    )
    assert response.status_code == 200
    assert response.json()["report"]["status"] == "no_start_block"


@pytest.mark.asyncio
async def test_simulate_invalid_program(client: AsyncClient):
    """Blocks without a type are rejected before reaching the engine."""
    response = await client.post(
        "/api/simulate",
        json={"program": [{"id": 1}], "actors": ACTORS},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_run_conflict_and_stop(client: AsyncClient):
    """A second run while the first is in flight is refused."""
    program = [
        {"id": "s", "type": "start", "next": "w"},
        {"id": "w", "type": "wait", "properties": {"seconds": 5}},
    ]

    response = await client.post("/api/sessions/room/run", json={"program": program, "actors": ACTORS})
    assert response.status_code == 202
    assert response.json() == {"session_id": "room", "running": True}

    response = await client.post("/api/sessions/room/run", json={"program": program, "actors": ACTORS})
    assert response.status_code == 409

    await asyncio.sleep(0.01)

    response = await client.get("/api/sessions/room/stage")
    assert response.status_code == 200
    assert response.json()["running"] is True

    response = await client.post("/api/sessions/room/stop")
    assert response.status_code == 200
    assert response.json() == {"session_id": "room", "stopped": True}


@pytest.mark.asyncio
async def test_run_invalid_program(client: AsyncClient):
    response = await client.post(
        "/api/sessions/room/run",
        json={"program": [{"id": "x", "type": ""}], "actors": ACTORS},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_session(client: AsyncClient):
    response = await client.get("/api/sessions/nobody/stage")
    assert response.status_code == 404

    response = await client.post("/api/sessions/nobody/stop")
    assert response.status_code == 404


def test_websocket_run_streams_state():
    """A run started over the socket streams state frames and a final report."""
    with TestClient(app) as client:
        with client.websocket_connect("/ws/studio") as websocket:
            hello = websocket.receive_json()
            assert hello["type"] == "subscribed"
            assert hello["session_id"] == "studio"
            assert hello["running"] is False

            websocket.send_json({
                "type": "run",
                "program": [
                    {"id": "s", "type": "events_when_start", "next": "h"},
                    {"id": "h", "type": "looks_hide"},
                ],
                "actors": ACTORS,
            })

            messages = []
            while True:
                message = websocket.receive_json()
                messages.append(message)
                if message["type"] == "run_finished":
                    break

            types = [m["type"] for m in messages]
            assert "run_started" in types
            states = [m for m in messages if m["type"] == "state"]
            assert any(s["actors"][0]["visible"] is False for s in states)
            assert messages[-1]["report"]["status"] == "completed"
            assert messages[-1]["report"]["operations_by_kind"] == {"start": 1, "hide": 1}


def test_websocket_no_start_block_diagnostic():
    with TestClient(app) as client:
        with client.websocket_connect("/ws/empty") as websocket:
            websocket.receive_json()
            websocket.send_json({
                "type": "run",
                "program": [{"id": "m", "type": "moveUp"}],
                "actors": ACTORS,
            })

            messages = []
            while True:
                message = websocket.receive_json()
                messages.append(message)
                if message["type"] == "run_finished":
                    break

            assert {"type": "diagnostic", "code": "no_start_block"} in messages
            assert messages[-1]["report"]["status"] == "no_start_block"


def test_websocket_errors():
    """Bad messages get an error reply without closing the socket."""
    with TestClient(app) as client:
        with client.websocket_connect("/ws/errors") as websocket:
            websocket.receive_json()

            websocket.send_json({"type": "dance"})
            assert websocket.receive_json() == {"type": "error", "message": "Unknown message type: dance"}

            websocket.send_json({"hello": "world"})
            assert websocket.receive_json()["message"] == "Missing message type"

            websocket.send_json({"type": "run", "program": [{"id": 1}]})
            error = websocket.receive_json()
            assert error["type"] == "error"
            assert error["message"].startswith("Invalid run request")

            websocket.send_json({"type": "stop"})
            assert websocket.receive_json() == {"type": "stop_requested", "stopped": False}

            websocket.send_json({"type": "snapshot"})
            assert websocket.receive_json()["type"] == "state"


def test_websocket_invalid_json_closes():
    with TestClient(app) as client:
        with client.websocket_connect("/ws/broken") as websocket:
            websocket.receive_json()
            websocket.send_text("{not json")

            with pytest.raises(WebSocketDisconnect) as exc_info:
                websocket.receive_json()
            assert exc_info.value.code == 1007
