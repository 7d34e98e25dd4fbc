"""Connection bindings, inbound message dispatch and per-room broadcast."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .board import serialize_board
from .errors import GameError, InvalidCredential, NotInRoom, RoomNotFound
from .identity import Identity, IdentityVerifier
from .registry import RoomRegistry, normalize_code
from .session import GameOver, MatchSession, MoveApplied
from .stats import StatsStore, record_results

logger = logging.getLogger(__name__)

Sender = Callable[[Dict[str, Any]], Awaitable[None]]

CHAT_MAX_LENGTH = 500


# ---------- payloads ----------


class RoomPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_code: str = Field(alias="roomCode", min_length=1)

    @field_validator("room_code")
    @classmethod
    def normalize(cls, value: str) -> str:
        return normalize_code(value)


class MovePayload(RoomPayload):
    position: int


class ChatPayload(RoomPayload):
    text: str = Field(min_length=1)

    @field_validator("text")
    @classmethod
    def clean_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Message cannot be empty")
        return value[:CHAT_MAX_LENGTH]


# ---------- bindings ----------


@dataclass
class Connection:
    connection_id: str
    send: Sender
    identity: Optional[Identity] = None
    room_code: Optional[str] = None


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConnectionHub:
    """Routes messages from transport connections into rooms.

    Every handler for a room runs under that room's lock, so a move is
    validated, applied and broadcast before the next event for the same
    room is processed. Unrelated rooms never wait on each other.
    """

    def __init__(
        self,
        registry: Optional[RoomRegistry] = None,
        stats: Optional[StatsStore] = None,
        verifier: Optional[IdentityVerifier] = None,
    ) -> None:
        self.registry = registry if registry is not None else RoomRegistry()
        self.stats = stats
        self.verifier = verifier
        self._connections: Dict[str, Connection] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._handlers: Dict[str, Callable[[Connection, Dict[str, Any]], Awaitable[Dict[str, Any]]]] = {
            "create-room": self._create_room,
            "join-room": self._join_room,
            "make-move": self._make_move,
            "request-rematch": self._request_rematch,
            "accept-rematch": self._accept_rematch,
            "leave-room": self._leave_room,
            "chat-message": self._chat_message,
        }

    # ---- connection lifecycle ----

    def connect(self, send: Sender, credential: Optional[str] = None) -> str:
        identity: Optional[Identity] = None
        if credential and self.verifier is not None:
            try:
                identity = self.verifier.verify(credential)
            except InvalidCredential:
                logger.info("Invalid token, continuing as guest")
        connection_id = uuid.uuid4().hex
        self._connections[connection_id] = Connection(connection_id, send, identity)
        logger.info(
            "Connection %s bound to %s",
            connection_id,
            identity.display_name if identity else "guest",
        )
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        connection = self._connections.get(connection_id)
        if connection is None:
            return
        if connection.room_code is not None:
            await self._leave(connection, connection.room_code)
        self._connections.pop(connection_id, None)
        logger.info("Connection %s closed", connection_id)

    def identity_of(self, connection_id: str) -> Optional[Identity]:
        connection = self._connections.get(connection_id)
        return connection.identity if connection else None

    def room_of(self, connection_id: str) -> Optional[str]:
        connection = self._connections.get(connection_id)
        return connection.room_code if connection else None

    # ---- dispatch ----

    async def handle(self, connection_id: str, message: Dict[str, Any]) -> Dict[str, Any]:
        """Run one inbound message and return the acknowledgment for its sender."""
        ack: Dict[str, Any] = {"type": "ack", "id": message.get("id")}
        connection = self._connections.get(connection_id)
        message_type = message.get("type")
        handler = self._handlers.get(message_type) if isinstance(message_type, str) else None
        if connection is None or handler is None:
            ack.update(success=False, error=f"Unknown message type: {message_type!r}")
            return ack

        data = message.get("data") or {}
        if not isinstance(data, dict):
            ack.update(success=False, error="Invalid payload")
            return ack
        try:
            ack.update(success=True, **await handler(connection, data))
        except GameError as exc:
            logger.debug("Rejected %s from %s: %s", message_type, connection_id, exc)
            ack.update(success=False, error=str(exc), code=exc.code)
        except ValidationError:
            ack.update(success=False, error="Invalid payload")
        return ack

    def _lock(self, code: str) -> asyncio.Lock:
        """Return the lock of an existing room; unknown codes never get one."""
        lock = self._locks.get(code)
        if lock is None:
            if code not in self.registry:
                raise RoomNotFound()
            lock = self._locks[code] = asyncio.Lock()
        return lock

    def _member_session(self, connection: Connection, code: str) -> MatchSession:
        session = self.registry.find(code)
        if session.player(connection.connection_id) is None:
            raise NotInRoom()
        return session

    # ---- handlers ----

    async def _create_room(self, connection: Connection, data: Dict[str, Any]) -> Dict[str, Any]:
        if connection.room_code is not None:
            await self._leave(connection, connection.room_code)
        identity = connection.identity
        code, session = self.registry.create(
            connection.connection_id,
            identity.display_name if identity else "Player 1",
            identity,
        )
        connection.room_code = code
        return {"roomCode": code, "room": session.to_dict()}

    async def _join_room(self, connection: Connection, data: Dict[str, Any]) -> Dict[str, Any]:
        payload = RoomPayload.model_validate(data)
        previous = connection.room_code
        async with self._lock(payload.room_code):
            identity = connection.identity
            session, _ = self.registry.join(
                payload.room_code,
                connection.connection_id,
                identity.display_name if identity else "Player 2",
                identity,
            )
            connection.room_code = session.code
            await self.broadcast(
                session.code,
                "game-start",
                {"room": session.to_dict(), "message": "Game started!"},
            )
            room = session.to_dict()
        # Old room is left only once the new seat is taken; never two locks at once.
        if previous is not None and previous != session.code:
            await self._leave(connection, previous)
        return {"room": room}

    async def _make_move(self, connection: Connection, data: Dict[str, Any]) -> Dict[str, Any]:
        payload = MovePayload.model_validate(data)
        async with self._lock(payload.room_code):
            session = self.registry.find(payload.room_code)
            event = session.submit_move(connection.connection_id, payload.position)
            if isinstance(event, MoveApplied):
                await self.broadcast(
                    session.code,
                    "move-made",
                    {
                        "position": event.move.position,
                        "mark": event.move.mark.value,
                        "player": event.move.actor,
                        "board": serialize_board(event.board),
                        "turn": event.turn.value,
                    },
                )
            else:
                await self._finish(session, event)
        return {}

    async def _finish(self, session: MatchSession, event: GameOver) -> None:
        await self.broadcast(
            session.code,
            "game-over",
            {
                "winner": event.winner.to_dict() if event.winner else None,
                "isDraw": event.is_draw,
                "winningLine": list(event.line) if event.line else None,
                "board": serialize_board(event.board),
            },
        )
        record_results(self.stats, event.results)

    async def _request_rematch(self, connection: Connection, data: Dict[str, Any]) -> Dict[str, Any]:
        payload = RoomPayload.model_validate(data)
        async with self._lock(payload.room_code):
            session = self.registry.find(payload.room_code)
            event = session.request_rematch(connection.connection_id)
            await self.broadcast(
                session.code,
                "rematch-requested",
                {"fromName": event.requester.display_name},
                exclude=connection.connection_id,
            )
        return {}

    async def _accept_rematch(self, connection: Connection, data: Dict[str, Any]) -> Dict[str, Any]:
        payload = RoomPayload.model_validate(data)
        async with self._lock(payload.room_code):
            session = self.registry.find(payload.room_code)
            event = session.accept_rematch(connection.connection_id)
            logger.info("Rematch in %s, %s opens", session.code, event.opener.display_name)
            await self.broadcast(
                session.code,
                "game-start",
                {"room": session.to_dict(), "message": "Rematch started!"},
            )
        return {}

    async def _leave_room(self, connection: Connection, data: Dict[str, Any]) -> Dict[str, Any]:
        payload = RoomPayload.model_validate(data)
        await self._leave(connection, payload.room_code)
        return {}

    async def _leave(self, connection: Connection, code: str) -> None:
        code = normalize_code(code)
        if code not in self.registry:
            if connection.room_code == code:
                connection.room_code = None
            return
        async with self._lock(code):
            player, session = self.registry.leave(code, connection.connection_id)
            if connection.room_code == code:
                connection.room_code = None
            if player is None:
                return
            if session is None:
                self._locks.pop(code, None)
                return
            await self.broadcast(
                code,
                "player-left",
                {"playerName": player.display_name, "room": session.to_dict()},
            )

    async def _chat_message(self, connection: Connection, data: Dict[str, Any]) -> Dict[str, Any]:
        if "text" not in data and "message" in data:
            data = {**data, "text": data["message"]}
        payload = ChatPayload.model_validate(data)
        async with self._lock(payload.room_code):
            session = self._member_session(connection, payload.room_code)
            player = session.player(connection.connection_id)
            await self.broadcast(
                session.code,
                "chat-message",
                {
                    "fromName": player.display_name if player else "Anonymous",
                    "text": payload.text,
                    "timestamp": _timestamp(),
                },
            )
        return {}

    # ---- broadcast ----

    async def broadcast(
        self,
        code: str,
        event_type: str,
        data: Dict[str, Any],
        exclude: Optional[str] = None,
    ) -> None:
        """Send an event to every connection currently bound to room ``code``."""
        message = {"type": event_type, "data": data}
        for connection in list(self._connections.values()):
            if connection.room_code != code or connection.connection_id == exclude:
                continue
            try:
                await connection.send(message)
            except Exception:
                logger.warning(
                    "Failed to deliver %s to %s", event_type, connection.connection_id, exc_info=True
                )
