"""Owner of every live room, keyed by its six-character code."""

from __future__ import annotations

import logging
import random
import string
from typing import Dict, Optional, Tuple

from .errors import RoomAllocationError, RoomNotFound
from .identity import Identity
from .session import MatchSession, Player

logger = logging.getLogger(__name__)

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
ROOM_CODE_LENGTH = 6
ROOM_CODE_ATTEMPTS = 10


def normalize_code(code: str) -> str:
    return code.strip().upper()


class RoomRegistry:
    """Creates, finds and destroys rooms.

    Sessions are handed out for their own state machine to mutate; the
    registry alone adds or removes entries in the code map.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        max_attempts: int = ROOM_CODE_ATTEMPTS,
    ) -> None:
        self._rooms: Dict[str, MatchSession] = {}
        self._rng = rng or random.SystemRandom()
        self._max_attempts = max(1, max_attempts)

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, code: str) -> bool:
        return normalize_code(code) in self._rooms

    def generate_code(self) -> str:
        return "".join(self._rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))

    def create(
        self,
        connection_id: Optional[str] = None,
        display_name: Optional[str] = None,
        identity: Optional[Identity] = None,
    ) -> Tuple[str, MatchSession]:
        """Allocate a fresh room, seating its creator when one is given."""
        for _ in range(self._max_attempts):
            code = self.generate_code()
            if code not in self._rooms:
                break
        else:
            raise RoomAllocationError()

        session = MatchSession(code=code)
        if connection_id is not None:
            session.seat(connection_id, display_name, identity)
        self._rooms[code] = session
        logger.info("Room created: %s", code)
        return code, session

    def find(self, code: str) -> MatchSession:
        try:
            return self._rooms[normalize_code(code)]
        except KeyError as exc:
            raise RoomNotFound() from exc

    def join(
        self,
        code: str,
        connection_id: str,
        display_name: Optional[str] = None,
        identity: Optional[Identity] = None,
    ) -> Tuple[MatchSession, Player]:
        """Seat a second player; the session moves to Playing when full."""
        session = self.find(code)
        player = session.seat(connection_id, display_name, identity)
        logger.info("Player joined room %s as %s", session.code, player.mark.value)
        return session, player

    def leave(
        self, code: str, connection_id: str
    ) -> Tuple[Optional[Player], Optional[MatchSession]]:
        """Remove a player and return it with the surviving session, if any."""
        session = self._rooms.get(normalize_code(code))
        if session is None:
            return None, None
        player = session.unseat(connection_id)
        if not session.players:
            del self._rooms[session.code]
            logger.info("Room deleted: %s", session.code)
            return player, None
        return player, session
