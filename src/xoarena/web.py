"""FastAPI application: single-player REST API and the multiplayer websocket."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from .ai import Tier
from .board import Mark
from .config import Settings
from .errors import GameError, GameNotFound, InvalidCredential, RoomNotFound
from .hub import ConnectionHub
from .identity import Identity, SignedTokenVerifier, bearer_token
from .registry import RoomRegistry
from .solo import SoloGames
from .stats import InMemoryStatsStore

logger = logging.getLogger(__name__)

SETTINGS = Settings.from_env()
STATS = InMemoryStatsStore()
VERIFIER = SignedTokenVerifier(SETTINGS.secret)
ROOMS = RoomRegistry(max_attempts=SETTINGS.room_code_attempts)
HUB = ConnectionHub(ROOMS, stats=STATS, verifier=VERIFIER)
GAMES = SoloGames(stats=STATS, max_games=SETTINGS.max_solo_games)

app = FastAPI(title="XO Arena", description="Tic-tac-toe against friends or the computer")


class NewGameRequest(BaseModel):
    """Request payload for starting a single-player game."""

    difficulty: Tier = Field(
        default=SETTINGS.default_tier,
        description="Computer strength: easy, medium, hard or impossible",
    )
    mark: Mark = Field(default=Mark.X, description="Mark played by the human; X moves first")


class MoveRequest(BaseModel):
    """Request payload for submitting a move on an existing game."""

    position: int = Field(ge=0, le=8)


def _http_error(exc: GameError) -> HTTPException:
    status = 404 if isinstance(exc, (GameNotFound, RoomNotFound)) else 400
    return HTTPException(status_code=status, detail=str(exc))


def _identity(authorization: Optional[str]) -> Optional[Identity]:
    token = bearer_token(authorization)
    if token is None:
        return None
    try:
        return VERIFIER.verify(token)
    except InvalidCredential:
        logger.info("Invalid token, continuing as guest")
        return None


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}


# ---------- single player ----------


@app.post("/api/game")
def create_game(
    request: NewGameRequest, authorization: Optional[str] = Header(default=None)
) -> Dict[str, object]:
    game = GAMES.create(
        tier=request.difficulty, human=request.mark, identity=_identity(authorization)
    )
    return game.to_dict()


@app.get("/api/game/{game_id}")
def get_game(game_id: str) -> Dict[str, object]:
    try:
        return GAMES.get(game_id).to_dict()
    except GameError as exc:
        raise _http_error(exc) from exc


@app.post("/api/game/{game_id}/move")
def make_move(game_id: str, request: MoveRequest) -> Dict[str, object]:
    try:
        game = GAMES.get(game_id)
        game.play(request.position)
    except GameError as exc:
        raise _http_error(exc) from exc
    return game.to_dict()


@app.post("/api/game/{game_id}/restart")
def restart_game(game_id: str) -> Dict[str, object]:
    try:
        game = GAMES.get(game_id)
    except GameError as exc:
        raise _http_error(exc) from exc
    game.restart()
    return game.to_dict()


@app.delete("/api/game/{game_id}", status_code=204)
def delete_game(game_id: str) -> None:
    try:
        GAMES.discard(game_id)
    except GameError as exc:
        raise _http_error(exc) from exc


# ---------- stats ----------


@app.get("/api/leaderboard")
def leaderboard(
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> Dict[str, List[Dict[str, object]]]:
    return {"leaderboard": STATS.leaderboard(limit=limit, offset=offset)}


@app.get("/api/stats")
def my_stats(authorization: Optional[str] = Header(default=None)) -> Dict[str, object]:
    identity = _identity(authorization)
    if identity is None:
        raise HTTPException(status_code=401, detail="Access denied. No token provided.")
    stats = STATS.register(identity.user_id, identity.display_name)
    win_rate = round(stats.wins / stats.total_games * 100, 1) if stats.total_games else 0
    return {
        "userId": stats.user_id,
        "username": stats.display_name,
        "wins": stats.wins,
        "losses": stats.losses,
        "draws": stats.draws,
        "totalGames": stats.total_games,
        "points": stats.points,
        "bestWinStreak": stats.best_win_streak,
        "winRate": win_rate,
        "rank": STATS.rank(identity.user_id),
    }


# ---------- multiplayer ----------


@app.get("/api/room/{room_code}")
def inspect_room(room_code: str) -> Dict[str, object]:
    try:
        return ROOMS.find(room_code).to_dict()
    except GameError as exc:
        raise _http_error(exc) from exc


@app.websocket("/ws")
async def room_socket(websocket: WebSocket) -> None:
    await websocket.accept()
    connection_id = HUB.connect(websocket.send_json, websocket.query_params.get("token"))
    await websocket.send_json(
        {"type": "connected", "data": {"connectionId": connection_id}}
    )
    try:
        while True:
            text = await websocket.receive_text()
            try:
                message = json.loads(text)
            except ValueError:
                await websocket.send_json(
                    {"type": "ack", "id": None, "success": False, "error": "Invalid JSON"}
                )
                continue
            if not isinstance(message, dict):
                message = {"type": None}
            await websocket.send_json(await HUB.handle(connection_id, message))
    except WebSocketDisconnect:
        pass
    finally:
        await HUB.disconnect(connection_id)
