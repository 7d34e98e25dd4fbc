"""Board values and rule functions for classic 3x3 tic-tac-toe."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .errors import IllegalMove


class Mark(str, Enum):
    X = "X"
    O = "O"

    @property
    def opponent(self) -> "Mark":
        return Mark.O if self is Mark.X else Mark.X


Cell = Optional[Mark]
Board = Tuple[Cell, ...]

BOARD_SIZE = 9
CENTER = 4
CORNERS: Tuple[int, ...] = (0, 2, 6, 8)

# Rows, then columns, then diagonals. The first matching line is reported.
WINNING_LINES: Tuple[Tuple[int, int, int], ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


# ---------- Outcomes ----------


@dataclass(frozen=True)
class Win:
    mark: Mark
    line: Tuple[int, int, int]


@dataclass(frozen=True)
class Draw:
    pass


Outcome = Union[Win, Draw, None]


# ---------- Rules ----------


def empty_board() -> Board:
    return (None,) * BOARD_SIZE


def make_board(cells: Iterable[Union[str, Mark, None]]) -> Board:
    """Build a board from ``"X"``/``"O"``/``None`` (or empty string) values."""
    board = tuple(Mark(c) if c else None for c in cells)
    if len(board) != BOARD_SIZE:
        raise ValueError(f"A board has exactly {BOARD_SIZE} cells, got {len(board)}")
    return board


def legal_moves(board: Sequence[Cell]) -> List[int]:
    """All empty cells in ascending index order."""
    return [i for i, c in enumerate(board) if c is None]


def winner_line(board: Sequence[Cell]) -> Optional[Win]:
    for a, b, c in WINNING_LINES:
        v = board[a]
        if v is not None and v == board[b] == board[c]:
            return Win(mark=v, line=(a, b, c))
    return None


def outcome(board: Sequence[Cell]) -> Outcome:
    win = winner_line(board)
    if win is not None:
        return win
    if all(c is not None for c in board):
        return Draw()
    return None


def apply_move(board: Sequence[Cell], position: int, mark: Mark) -> Board:
    """Return a new snapshot with ``mark`` placed at ``position``."""
    if not isinstance(position, int) or not 0 <= position < BOARD_SIZE:
        raise IllegalMove(f"Position {position!r} is outside the board")
    if board[position] is not None:
        raise IllegalMove(f"Position {position} is already occupied")
    cells = list(board)
    cells[position] = mark
    return tuple(cells)


def serialize_board(board: Sequence[Cell]) -> List[Optional[str]]:
    return [c.value if c is not None else None for c in board]
