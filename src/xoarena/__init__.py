"""XO Arena package exposing board rules, the computer opponent, and match rooms."""

from .ai import MinimaxAI, Tier, choose_move
from .board import Mark, apply_move, legal_moves, outcome
from .hub import ConnectionHub
from .registry import RoomRegistry
from .session import MatchSession

__all__ = [
    "ConnectionHub",
    "Mark",
    "MatchSession",
    "MinimaxAI",
    "RoomRegistry",
    "Tier",
    "apply_move",
    "choose_move",
    "legal_moves",
    "outcome",
]
