"""Tiered computer opponent built on full-depth minimax with alpha-beta pruning."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence
import math
import random

from .board import (
    CENTER,
    CORNERS,
    Cell,
    Draw,
    Mark,
    Win,
    apply_move,
    legal_moves,
    outcome,
    winner_line,
)
from .errors import NoLegalMove


WIN_SCORE = 10
MEDIUM_OPTIMAL_RATE = 0.5
HARD_OPTIMAL_RATE = 0.8


class Tier(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    IMPOSSIBLE = "impossible"

    @classmethod
    def parse(cls, value: object) -> "Tier":
        """Map a tier name onto a tier; unknown names play at medium."""
        if isinstance(value, Tier):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MEDIUM


# ---------- search ----------


def _score(board: Sequence[Cell], depth: int, me: Mark) -> Optional[int]:
    result = outcome(board)
    if isinstance(result, Win):
        return WIN_SCORE - depth if result.mark == me else depth - WIN_SCORE
    if isinstance(result, Draw):
        return 0
    return None


def _minimax(
    board: Sequence[Cell],
    depth: int,
    maximizing: bool,
    alpha: float,
    beta: float,
    me: Mark,
    opp: Mark,
) -> float:
    terminal = _score(board, depth, me)
    if terminal is not None:
        return terminal

    if maximizing:
        value = -math.inf
        for move in legal_moves(board):
            score = _minimax(apply_move(board, move, me), depth + 1, False, alpha, beta, me, opp)
            value = max(value, score)
            alpha = max(alpha, score)
            if beta <= alpha:
                break
        return value

    value = math.inf
    for move in legal_moves(board):
        score = _minimax(apply_move(board, move, opp), depth + 1, True, alpha, beta, me, opp)
        value = min(value, score)
        beta = min(beta, score)
        if beta <= alpha:
            break
    return value


def best_move(board: Sequence[Cell], me: Mark, opp: Mark) -> int:
    """Perfect-play move for ``me``; ties go to the lowest index."""
    moves = legal_moves(board)
    if not moves:
        raise NoLegalMove()

    best_score = -math.inf
    best: Optional[int] = None
    for move in moves:
        # Each root reply gets a full window so its score is exact.
        score = _minimax(apply_move(board, move, me), 0, False, -math.inf, math.inf, me, opp)
        if score > best_score:
            best_score, best = score, move
    assert best is not None
    return best


def winning_move(board: Sequence[Cell], mark: Mark) -> Optional[int]:
    """First empty cell that completes three-in-a-row for ``mark``."""
    for move in legal_moves(board):
        win = winner_line(apply_move(board, move, mark))
        if win is not None and win.mark == mark:
            return move
    return None


# ---------- player ----------


@dataclass
class MinimaxAI:
    """Computer opponent playing ``player`` at the given ``tier``.

    ``rng`` drives every random decision so a seeded instance is reproducible.
    """

    player: Mark
    tier: Tier = Tier.MEDIUM
    rng: random.Random = field(default_factory=random.Random, repr=False)

    @property
    def opponent(self) -> Mark:
        return self.player.opponent

    def choose(self, board: Sequence[Cell]) -> int:
        moves = legal_moves(board)
        if not moves:
            raise NoLegalMove()

        if self.tier is Tier.EASY:
            return self._random_move(moves)
        if self.tier is Tier.IMPOSSIBLE:
            return best_move(board, self.player, self.opponent)

        tactical = self._tactical_move(board)
        if tactical is not None:
            return tactical

        if self.tier is Tier.MEDIUM:
            if self.rng.random() < MEDIUM_OPTIMAL_RATE:
                return best_move(board, self.player, self.opponent)
            return self._random_move(moves)

        if self.rng.random() < HARD_OPTIMAL_RATE:
            return best_move(board, self.player, self.opponent)
        return self._strategic_move(moves)

    # ---- tier helpers ----

    def _tactical_move(self, board: Sequence[Cell]) -> Optional[int]:
        move = winning_move(board, self.player)
        if move is None:
            move = winning_move(board, self.opponent)
        return move

    def _random_move(self, moves: Sequence[int]) -> int:
        return self.rng.choice(list(moves))

    def _strategic_move(self, moves: Sequence[int]) -> int:
        if CENTER in moves:
            return CENTER
        corners = [c for c in CORNERS if c in moves]
        if corners:
            return self.rng.choice(corners)
        return self._random_move(moves)


def choose_move(
    board: Sequence[Cell],
    self_mark: Mark,
    opponent_mark: Mark,
    tier: Tier | str,
    rng: Optional[random.Random] = None,
) -> int:
    """Pick a move for ``self_mark`` on ``board`` at the requested tier."""
    if opponent_mark == self_mark:
        raise ValueError("The engine and its opponent must hold different marks")
    ai = MinimaxAI(player=Mark(self_mark), tier=Tier.parse(tier), rng=rng or random.Random())
    return ai.choose(board)
