"""Tests for the FastAPI XO Arena interface."""

from __future__ import annotations

from fastapi.testclient import TestClient

from xoarena import web
from xoarena.web import app


client = TestClient(app)


def _auth(user_id: str, name: str) -> dict:
    return {"Authorization": f"Bearer {web.VERIFIER.issue(user_id, name)}"}


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "OK"


def test_create_game_and_first_move():
    response = client.post("/api/game", json={"difficulty": "impossible"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["turn"] == "X"
    assert payload["playerMark"] == "X"
    assert payload["moves"] == []

    game_id = payload["id"]
    move_response = client.post(f"/api/game/{game_id}/move", json={"position": 0})
    assert move_response.status_code == 200
    state = move_response.json()
    assert state["board"][0] == "X"
    assert state["board"][4] == "O"
    assert state["lastMove"]["mark"] == "O"
    assert state["turn"] == "X"

    follow_up = client.get(f"/api/game/{game_id}")
    assert follow_up.json()["moves"] == state["moves"]


def test_invalid_move_rejected():
    game_id = client.post("/api/game", json={"difficulty": "easy"}).json()["id"]
    assert client.post(f"/api/game/{game_id}/move", json={"position": 3}).status_code == 200

    duplicate_move = client.post(f"/api/game/{game_id}/move", json={"position": 3})
    assert duplicate_move.status_code == 400
    assert duplicate_move.json()["detail"] == "Cell already taken"

    out_of_range = client.post(f"/api/game/{game_id}/move", json={"position": 9})
    assert out_of_range.status_code == 422


def test_rejects_unsupported_difficulty():
    response = client.post("/api/game", json={"difficulty": "nightmare"})
    assert response.status_code == 422


def test_missing_game_returns_404():
    assert client.get("/api/game/missing").status_code == 404
    assert client.post("/api/game/missing/move", json={"position": 0}).status_code == 404


def test_delete_game():
    game_id = client.post("/api/game", json={"difficulty": "easy"}).json()["id"]
    assert client.delete(f"/api/game/{game_id}").status_code == 204
    assert client.get(f"/api/game/{game_id}").status_code == 404
    assert client.delete(f"/api/game/{game_id}").status_code == 404


def test_restart_game():
    game_id = client.post("/api/game", json={"difficulty": "hard", "mark": "O"}).json()["id"]
    restarted = client.post(f"/api/game/{game_id}/restart").json()
    assert restarted["status"] == "playing"
    assert len(restarted["moves"]) == 1
    assert restarted["turn"] == "O"


def test_finished_game_updates_leaderboard():
    headers = _auth("api-user", "apiuser")
    game_id = client.post(
        "/api/game", json={"difficulty": "impossible"}, headers=headers
    ).json()["id"]
    state = client.get(f"/api/game/{game_id}").json()
    while state["status"] == "playing":
        position = state["board"].index(None)
        state = client.post(f"/api/game/{game_id}/move", json={"position": position}).json()

    stats = client.get("/api/stats", headers=headers).json()
    assert stats["totalGames"] == 1
    assert stats["rank"] >= 1
    board = client.get("/api/leaderboard").json()["leaderboard"]
    assert "api-user" in [row["user_id"] for row in board]


def test_stats_require_token():
    assert client.get("/api/stats").status_code == 401


def test_inspect_missing_room_returns_404():
    assert client.get("/api/room/INVALID").status_code == 404


def test_hub_and_rest_share_room_registry():
    assert web.HUB.registry is web.ROOMS


def test_websocket_match():
    with TestClient(app) as ws_client:
        with ws_client.websocket_connect("/ws") as host, ws_client.websocket_connect("/ws") as guest:
            assert host.receive_json()["type"] == "connected"
            assert guest.receive_json()["type"] == "connected"

            host.send_json({"type": "create-room", "id": 1})
            created = host.receive_json()
            assert created["success"] is True
            code = created["roomCode"]

            inspect = ws_client.get(f"/api/room/{code}").json()
            assert inspect["status"] == "waiting"

            guest.send_json({"type": "join-room", "id": 2, "data": {"roomCode": code}})
            assert guest.receive_json()["type"] == "game-start"
            assert guest.receive_json()["success"] is True
            start = host.receive_json()
            assert start["type"] == "game-start"
            assert start["data"]["room"]["players"][0]["mark"] == "X"

            host.send_json({"type": "make-move", "id": 3, "data": {"roomCode": code, "position": 4}})
            assert host.receive_json()["type"] == "move-made"
            assert host.receive_json() == {"type": "ack", "id": 3, "success": True}
            assert guest.receive_json()["data"]["position"] == 4

            host.send_text("not json")
            assert host.receive_json()["error"] == "Invalid JSON"
