"""Rejected-operation errors reported back to the player who caused them."""

from __future__ import annotations


class GameError(ValueError):
    """Base class for recoverable, per-request failures.

    ``code`` is a stable machine-readable identifier; ``str(exc)`` is the
    message shown to the player.
    """

    code = "game-error"
    default_message = "Request rejected"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class RoomNotFound(GameError):
    code = "room-not-found"
    default_message = "Room not found"


class RoomFull(GameError):
    code = "room-full"
    default_message = "Room is full"


class GameInProgress(GameError):
    code = "game-in-progress"
    default_message = "Game already in progress"


class NotInRoom(GameError):
    code = "not-in-room"
    default_message = "You are not in this room"


class NotYourTurn(GameError):
    code = "not-your-turn"
    default_message = "Not your turn"


class CellTaken(GameError):
    code = "cell-taken"
    default_message = "Cell already taken"


class IllegalMove(GameError):
    code = "illegal-move"
    default_message = "Move is not allowed on this board"


class NoLegalMove(GameError):
    code = "no-legal-move"
    default_message = "No valid moves available"


class GameNotActive(GameError):
    code = "game-not-active"
    default_message = "Game is not in progress"


class RematchUnavailable(GameError):
    code = "rematch-unavailable"
    default_message = "Rematch is not available"


class GameNotFound(GameError):
    code = "game-not-found"
    default_message = "Game not found"


class InvalidCredential(GameError):
    code = "invalid-credential"
    default_message = "Invalid or expired token"


class RoomAllocationError(GameError):
    code = "room-allocation-failed"
    default_message = "Unable to allocate room"
