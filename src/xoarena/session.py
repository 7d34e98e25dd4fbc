"""Per-room match state machine: seating, turn validation, results and rematches."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from .board import (
    BOARD_SIZE,
    Board,
    Mark,
    Win,
    apply_move,
    empty_board,
    outcome,
    serialize_board,
)
from .errors import (
    CellTaken,
    GameInProgress,
    GameNotActive,
    IllegalMove,
    NotInRoom,
    NotYourTurn,
    RematchUnavailable,
    RoomFull,
)
from .identity import Identity
from .stats import Result


MAX_PLAYERS = 2


class Status(str, Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


@dataclass
class Player:
    connection_id: str
    display_name: str
    mark: Mark
    identity: Optional[Identity] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.display_name,
            "mark": self.mark.value,
            "userId": self.identity.user_id if self.identity else None,
        }


@dataclass(frozen=True)
class Move:
    position: int
    mark: Mark
    actor: str
    sequence: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "position": self.position,
            "mark": self.mark.value,
            "player": self.actor,
            "sequence": self.sequence,
        }


# ---------- events ----------


@dataclass(frozen=True)
class MoveApplied:
    move: Move
    board: Board
    turn: Mark


@dataclass(frozen=True)
class GameOver:
    winner: Optional[Player]
    line: Optional[Tuple[int, int, int]]
    board: Board
    results: Tuple[Tuple[str, Result], ...] = ()

    @property
    def is_draw(self) -> bool:
        return self.winner is None


@dataclass(frozen=True)
class RematchRequested:
    requester: Player


@dataclass(frozen=True)
class GameStarted:
    opener: Player


MoveEvent = Union[MoveApplied, GameOver]


def next_player_label(position: int) -> str:
    return f"Player {position}"


# ---------- state machine ----------


@dataclass
class MatchSession:
    """One two-player room.

    Only the methods below mutate a session; the board always holds exactly
    the marks recorded in ``history``.
    """

    code: str
    players: List[Player] = field(default_factory=list)
    board: Board = field(default_factory=empty_board)
    turn: Mark = Mark.X
    status: Status = Status.WAITING
    history: List[Move] = field(default_factory=list)
    rematch_requested_by: Optional[str] = None

    # ---- seating ----

    def player(self, connection_id: str) -> Optional[Player]:
        for p in self.players:
            if p.connection_id == connection_id:
                return p
        return None

    def seat(
        self,
        connection_id: str,
        display_name: Optional[str] = None,
        identity: Optional[Identity] = None,
    ) -> Player:
        """Seat a player: the first takes X, the second O and starts the game."""
        if len(self.players) >= MAX_PLAYERS:
            raise RoomFull()
        if self.status is not Status.WAITING:
            raise GameInProgress()
        if self.player(connection_id) is not None:
            raise GameInProgress("You are already in this room")

        mark = Mark.X if not self.players else self.players[0].mark.opponent
        name = display_name or (
            identity.display_name if identity else next_player_label(len(self.players) + 1)
        )
        player = Player(
            connection_id=connection_id, display_name=name, mark=mark, identity=identity
        )
        self.players.append(player)
        if len(self.players) == MAX_PLAYERS:
            self.status = Status.PLAYING
        return player

    def unseat(self, connection_id: str) -> Optional[Player]:
        """Remove a player; a lone remaining player waits for a new opponent."""
        player = self.player(connection_id)
        if player is None:
            return None
        self.players.remove(player)
        if self.players:
            self._reset_board()
            self.players[0].mark = Mark.X
            self.status = Status.WAITING
        return player

    # ---- moves ----

    def submit_move(self, connection_id: str, position: int) -> MoveEvent:
        player = self.player(connection_id)
        if player is None:
            raise NotInRoom()
        if self.status is not Status.PLAYING:
            raise GameNotActive()
        if player.mark != self.turn:
            raise NotYourTurn()
        if not isinstance(position, int) or not 0 <= position < BOARD_SIZE:
            raise IllegalMove(f"Position {position!r} is outside the board")
        if self.board[position] is not None:
            raise CellTaken()

        self.board = apply_move(self.board, position, player.mark)
        move = Move(
            position=position,
            mark=player.mark,
            actor=player.display_name,
            sequence=len(self.history) + 1,
        )
        self.history.append(move)
        self.turn = self.turn.opponent

        result = outcome(self.board)
        if result is None:
            return MoveApplied(move=move, board=self.board, turn=self.turn)

        self.status = Status.FINISHED
        if isinstance(result, Win):
            winner = next(p for p in self.players if p.mark == result.mark)
            return GameOver(
                winner=winner,
                line=result.line,
                board=self.board,
                results=self._results(result.mark),
            )
        return GameOver(winner=None, line=None, board=self.board, results=self._results(None))

    def _results(self, winning_mark: Optional[Mark]) -> Tuple[Tuple[str, Result], ...]:
        results = []
        for p in self.players:
            if p.identity is None:
                continue
            if winning_mark is None:
                results.append((p.identity.user_id, Result.DRAW))
            elif p.mark == winning_mark:
                results.append((p.identity.user_id, Result.WIN))
            else:
                results.append((p.identity.user_id, Result.LOSS))
        return tuple(results)

    # ---- rematch ----

    def request_rematch(self, connection_id: str) -> RematchRequested:
        player = self.player(connection_id)
        if player is None:
            raise NotInRoom()
        if self.status is not Status.FINISHED:
            raise RematchUnavailable("Rematch is only available after a finished game")
        self.rematch_requested_by = connection_id
        return RematchRequested(requester=player)

    def accept_rematch(self, connection_id: str) -> GameStarted:
        if self.player(connection_id) is None:
            raise NotInRoom()
        if self.status is not Status.FINISHED or self.rematch_requested_by is None:
            raise RematchUnavailable("No rematch has been requested")
        if self.rematch_requested_by == connection_id:
            raise RematchUnavailable("Your opponent must accept the rematch")

        self._reset_board()
        for p in self.players:
            p.mark = p.mark.opponent
        self.status = Status.PLAYING
        opener = next(p for p in self.players if p.mark is Mark.X)
        return GameStarted(opener=opener)

    def _reset_board(self) -> None:
        self.board = empty_board()
        self.turn = Mark.X
        self.history = []
        self.rematch_requested_by = None

    # ---- views ----

    def to_dict(self) -> Dict[str, object]:
        return {
            "code": self.code,
            "players": [p.to_dict() for p in self.players],
            "board": serialize_board(self.board),
            "turn": self.turn.value,
            "status": self.status.value,
            "moves": [m.to_dict() for m in self.history],
            "rematchPending": self.rematch_requested_by is not None,
        }
