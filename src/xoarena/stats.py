"""Stats-persistence collaborator: win/loss/draw recording and leaderboard."""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class Result(str, Enum):
    WIN = "win"
    LOSS = "loss"
    DRAW = "draw"


WIN_POINTS = 10
STREAK_BONUS = 5
LOSS_PENALTY = 3
DRAW_POINTS = 2


class StatsStore(Protocol):
    def record_outcome(self, user_id: str, result: Result) -> None:
        ...


@dataclass
class PlayerStats:
    user_id: str
    display_name: str
    wins: int = 0
    losses: int = 0
    draws: int = 0
    total_games: int = 0
    win_streak: int = 0
    best_win_streak: int = 0
    points: int = 0

    def apply(self, result: Result) -> None:
        if result is Result.WIN:
            self.wins += 1
            self.win_streak += 1
            self.points += WIN_POINTS
            if self.win_streak > self.best_win_streak:
                self.best_win_streak = self.win_streak
                self.points += STREAK_BONUS
        elif result is Result.LOSS:
            self.losses += 1
            self.win_streak = 0
            self.points = max(0, self.points - LOSS_PENALTY)
        else:
            self.draws += 1
            self.points += DRAW_POINTS
        self.total_games += 1


class InMemoryStatsStore:
    """Process-local stats store, safe to share between request threads."""

    def __init__(self) -> None:
        self._stats: Dict[str, PlayerStats] = {}
        self._lock = threading.Lock()

    def register(self, user_id: str, display_name: str) -> PlayerStats:
        with self._lock:
            stats = self._stats.get(user_id)
            if stats is None:
                stats = self._stats[user_id] = PlayerStats(user_id, display_name)
            return stats

    def record_outcome(self, user_id: str, result: Result) -> None:
        result = Result(result)
        with self._lock:
            stats = self._stats.setdefault(user_id, PlayerStats(user_id, user_id))
            stats.apply(result)

    def get(self, user_id: str) -> Optional[PlayerStats]:
        with self._lock:
            return self._stats.get(user_id)

    def leaderboard(self, limit: int = 10, offset: int = 0) -> List[Dict[str, object]]:
        with self._lock:
            ordered = sorted(
                self._stats.values(), key=lambda s: (-s.points, -s.wins, s.user_id)
            )
        page = ordered[offset : offset + limit]
        return [
            {**asdict(s), "rank": offset + index + 1} for index, s in enumerate(page)
        ]

    def rank(self, user_id: str) -> Optional[int]:
        with self._lock:
            me = self._stats.get(user_id)
            if me is None:
                return None
            return 1 + sum(1 for s in self._stats.values() if s.points > me.points)


def record_results(
    store: Optional[StatsStore], results: Iterable[Tuple[str, Result]]
) -> None:
    """Report finished-game results, logging and discarding any store failure."""
    if store is None:
        return
    for user_id, result in results:
        try:
            store.record_outcome(user_id, result)
        except Exception:
            logger.exception("Failed to record %s for user %s", result.value, user_id)
