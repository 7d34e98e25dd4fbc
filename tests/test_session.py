"""Tests for the per-room match state machine."""

import pytest

from xoarena.board import Mark, empty_board
from xoarena.errors import (
    CellTaken,
    GameInProgress,
    GameNotActive,
    IllegalMove,
    NotInRoom,
    NotYourTurn,
    RematchUnavailable,
    RoomFull,
)
from xoarena.identity import Identity
from xoarena.session import GameOver, MatchSession, MoveApplied, Status
from xoarena.stats import Result


def _playing_room(**kwargs):
    room = MatchSession(code="ABC123")
    room.seat("a", "Alice", **kwargs)
    room.seat("b", "Bob")
    return room


def test_seating_assigns_marks_and_starts_game():
    room = MatchSession(code="ABC123")
    first = room.seat("a")
    assert room.status is Status.WAITING
    second = room.seat("b")

    assert first.mark is Mark.X
    assert second.mark is Mark.O
    assert first.display_name == "Player 1"
    assert second.display_name == "Player 2"
    assert room.status is Status.PLAYING


def test_third_player_is_rejected():
    room = _playing_room()
    with pytest.raises(RoomFull):
        room.seat("c")


def test_moves_rejected_before_opponent_arrives():
    room = MatchSession(code="ABC123")
    room.seat("a")
    with pytest.raises(GameNotActive):
        room.submit_move("a", 0)


def test_move_validation_order():
    room = _playing_room()
    with pytest.raises(NotInRoom):
        room.submit_move("stranger", 0)
    with pytest.raises(NotYourTurn):
        room.submit_move("b", 0)
    with pytest.raises(IllegalMove):
        room.submit_move("a", 9)


def test_occupied_cell_leaves_state_unchanged():
    room = _playing_room()
    room.submit_move("a", 4)
    board_before, turn_before = room.board, room.turn

    with pytest.raises(CellTaken):
        room.submit_move("b", 4)

    assert room.board == board_before
    assert room.turn is turn_before
    assert len(room.history) == 1


def test_turn_alternates_with_each_move():
    room = _playing_room()
    for n, position in enumerate([0, 1, 2, 4, 3, 5], start=1):
        actor = "a" if room.turn is Mark.X else "b"
        event = room.submit_move(actor, position)
        assert isinstance(event, MoveApplied)
        assert room.turn is (Mark.X if n % 2 == 0 else Mark.O)
        assert [m.sequence for m in room.history] == list(range(1, n + 1))


def test_win_finishes_game_and_reports_results():
    room = _playing_room(identity=Identity("u1", "Alice"))
    for actor, position in [("a", 0), ("b", 3), ("a", 1), ("b", 4)]:
        room.submit_move(actor, position)
    event = room.submit_move("a", 2)

    assert isinstance(event, GameOver)
    assert event.winner.connection_id == "a"
    assert event.line == (0, 1, 2)
    assert not event.is_draw
    assert event.results == (("u1", Result.WIN),)
    assert room.status is Status.FINISHED
    with pytest.raises(GameNotActive):
        room.submit_move("b", 5)


def test_draw_reports_draw_for_known_players():
    room = _playing_room(identity=Identity("u1", "Alice"))
    moves = [0, 1, 2, 4, 3, 5, 7, 6]
    for position in moves:
        room.submit_move("a" if room.turn is Mark.X else "b", position)
    event = room.submit_move("a", 8)

    assert isinstance(event, GameOver)
    assert event.is_draw
    assert event.line is None
    assert event.results == (("u1", Result.DRAW),)


def _finish(room):
    for actor, position in [("a", 0), ("b", 3), ("a", 1), ("b", 4), ("a", 2)]:
        room.submit_move(actor, position)


def test_rematch_swaps_marks_and_clears_board():
    room = _playing_room()
    _finish(room)

    request = room.request_rematch("a")
    assert request.requester.display_name == "Alice"
    with pytest.raises(RematchUnavailable):
        room.accept_rematch("a")

    started = room.accept_rematch("b")

    assert started.opener.display_name == "Bob"
    assert room.player("a").mark is Mark.O
    assert room.player("b").mark is Mark.X
    assert room.board == empty_board()
    assert room.history == []
    assert room.turn is Mark.X
    assert room.status is Status.PLAYING
    room.submit_move("b", 4)


def test_rematch_requires_request_and_finished_game():
    room = _playing_room()
    with pytest.raises(RematchUnavailable):
        room.request_rematch("a")
    _finish(room)
    with pytest.raises(RematchUnavailable):
        room.accept_rematch("b")


def test_leaving_player_returns_room_to_waiting():
    room = _playing_room()
    room.submit_move("a", 0)
    room.submit_move("b", 4)

    left = room.unseat("a")

    assert left.display_name == "Alice"
    assert room.status is Status.WAITING
    assert room.board == empty_board()
    assert room.history == []
    assert room.player("b").mark is Mark.X
    newcomer = room.seat("c")
    assert newcomer.mark is Mark.O
    assert room.status is Status.PLAYING


def test_cannot_seat_twice():
    room = MatchSession(code="ABC123")
    room.seat("a")
    with pytest.raises(GameInProgress):
        room.seat("a")


def test_finished_room_turns_away_newcomers():
    room = _playing_room()
    _finish(room)
    with pytest.raises(RoomFull):
        room.seat("c")
    assert [p.connection_id for p in room.players] == ["a", "b"]
    assert room.status is Status.FINISHED
