"""Single-player games in which the computer answers every move synchronously."""

from __future__ import annotations

import logging
import random
import threading
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .ai import MinimaxAI, Tier
from .board import Board, Mark, Win, apply_move, empty_board, outcome, serialize_board
from .errors import CellTaken, GameNotActive, GameNotFound, IllegalMove, NotYourTurn
from .identity import Identity
from .session import Move, Status
from .stats import Result, StatsStore, record_results

logger = logging.getLogger(__name__)

MAX_SOLO_GAMES = 1000


def ai_label(tier: Tier) -> str:
    return f"AI ({tier.value.capitalize()})"


@dataclass
class SoloGame:
    """A human against the decision engine; X always moves first."""

    game_id: str
    ai: MinimaxAI
    identity: Optional[Identity] = None
    board: Board = field(default_factory=empty_board)
    turn: Mark = Mark.X
    status: Status = Status.PLAYING
    history: List[Move] = field(default_factory=list)
    winning_line: Optional[Tuple[int, int, int]] = None
    result: Optional[Result] = None
    stats: Optional[StatsStore] = field(default=None, repr=False)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        if self.turn == self.ai.player:
            self._engine_turn()

    @property
    def human(self) -> Mark:
        return self.ai.opponent

    @property
    def human_name(self) -> str:
        return self.identity.display_name if self.identity else "Player"

    def play(self, position: int) -> None:
        """Apply the human move and, unless the game ended, the engine reply."""
        with self.lock:
            if self.status is not Status.PLAYING:
                raise GameNotActive("Game already finished")
            if self.turn != self.human:
                raise NotYourTurn()
            if not isinstance(position, int) or not 0 <= position < len(self.board):
                raise IllegalMove(f"Position {position!r} is outside the board")
            if self.board[position] is not None:
                raise CellTaken()

            self._place(position, self.human, self.human_name)
            if self.status is Status.PLAYING:
                self._engine_turn()

    def restart(self) -> None:
        with self.lock:
            self.board = empty_board()
            self.turn = Mark.X
            self.status = Status.PLAYING
            self.history = []
            self.winning_line = None
            self.result = None
            if self.turn == self.ai.player:
                self._engine_turn()

    # ---- internals ----

    def _engine_turn(self) -> None:
        position = self.ai.choose(self.board)
        self._place(position, self.ai.player, ai_label(self.ai.tier))

    def _place(self, position: int, mark: Mark, actor: str) -> None:
        self.board = apply_move(self.board, position, mark)
        self.history.append(
            Move(position=position, mark=mark, actor=actor, sequence=len(self.history) + 1)
        )
        self.turn = self.turn.opponent

        state = outcome(self.board)
        if state is None:
            return
        self.status = Status.FINISHED
        if isinstance(state, Win):
            self.winning_line = state.line
            self.result = Result.WIN if state.mark == self.human else Result.LOSS
        else:
            self.result = Result.DRAW
        logger.info("Solo game %s finished: %s", self.game_id, self.result.value)
        if self.identity is not None:
            record_results(self.stats, [(self.identity.user_id, self.result)])

    def to_dict(self) -> Dict[str, object]:
        with self.lock:
            state: Dict[str, object] = {
                "id": self.game_id,
                "difficulty": self.ai.tier.value,
                "playerMark": self.human.value,
                "aiMark": self.ai.player.value,
                "board": serialize_board(self.board),
                "turn": self.turn.value,
                "status": self.status.value,
                "winningLine": list(self.winning_line) if self.winning_line else None,
                "result": self.result.value if self.result else None,
                "moves": [m.to_dict() for m in self.history],
            }
            if self.history:
                state["lastMove"] = self.history[-1].to_dict()
            return state


class SoloGames:
    """Registry of live single-player games keyed by random hex ids.

    At most ``max_games`` games are kept. When a new game would exceed the
    cap, finished games are evicted oldest first, then the oldest live ones.
    """

    def __init__(self, stats: Optional[StatsStore] = None, max_games: int = MAX_SOLO_GAMES) -> None:
        if max_games < 1:
            raise ValueError("max_games must be positive")
        self.stats = stats
        self.max_games = max_games
        self._games: Dict[str, SoloGame] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._games)

    def create(
        self,
        tier: Tier | str = Tier.MEDIUM,
        human: Mark = Mark.X,
        identity: Optional[Identity] = None,
        rng: Optional[random.Random] = None,
    ) -> SoloGame:
        ai = MinimaxAI(player=Mark(human).opponent, tier=Tier.parse(tier), rng=rng or random.Random())
        game = SoloGame(
            game_id=uuid.uuid4().hex, ai=ai, identity=identity, stats=self.stats
        )
        with self._lock:
            self._evict(self.max_games - 1)
            self._games[game.game_id] = game
        return game

    def get(self, game_id: str) -> SoloGame:
        with self._lock:
            try:
                return self._games[game_id]
            except KeyError as exc:
                raise GameNotFound() from exc

    def discard(self, game_id: str) -> None:
        with self._lock:
            if self._games.pop(game_id, None) is None:
                raise GameNotFound()

    def _evict(self, keep: int) -> None:
        excess = len(self._games) - keep
        if excess <= 0:
            return
        finished = [gid for gid, game in self._games.items() if game.status is Status.FINISHED]
        victims = finished[:excess]
        if len(victims) < excess:
            done = set(finished)
            live = [gid for gid in self._games if gid not in done]
            victims += live[: excess - len(victims)]
        for game_id in victims:
            del self._games[game_id]
        logger.info("Evicted %d single-player games", len(victims))
