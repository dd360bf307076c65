import pytest

from coach.engine.board import Board
from coach.engine.errors import ErrorCode, PolicyError
from coach.engine.physics import (apply_placement, can_place, clear_lines, completed_lines,
                                  enumerate_landings, landing_piece, try_rotate)
from coach.engine.pieces import piece_cells
from coach.engine.state import ActivePiece, GameState


def test_board_is_read_only():
    b = Board.empty()
    assert not b.cells.flags.writeable
    with pytest.raises(ValueError):
        b.cells[0, 0] = 1


def test_from_rows_places_rows_at_bottom():
    b = Board.from_rows(["X.........", "XX........"])
    assert b.is_filled(0, 18) and b.is_filled(0, 19) and b.is_filled(1, 19)
    assert not b.is_filled(1, 18)
    assert b.filled_count() == 3
    with pytest.raises(ValueError):
        Board.from_rows(["XXX"])


def test_state_rejects_unknown_active_piece():
    with pytest.raises(ValueError):
        GameState(active=ActivePiece("X"))


def test_i_lands_on_floor():
    landed = landing_piece(Board.empty(), "I", "spawn", 3)
    assert landed is not None
    assert sorted(piece_cells("I", landed.rot, landed.x, landed.y)) == [(3, 19), (4, 19), (5, 19), (6, 19)]


def test_apply_placement_clears_line():
    b = Board.from_rows(["....XXXXXX"])
    after, lines = apply_placement(b, "I", "spawn", 0)
    assert lines == 1
    assert after.filled_count() == 0


def test_apply_placement_illegal_raises():
    with pytest.raises(PolicyError) as ei:
        apply_placement(Board.empty(), "I", "spawn", 8)
    assert ei.value.code == ErrorCode.ERR_ILLEGAL_PLACEMENT


def test_clear_multiple_lines_keeps_remainder():
    b = Board.from_rows(["XXXXXXXXXX", "X.........", "XXXXXXXXXX"])
    assert completed_lines(b) == [17, 19]
    after, n = clear_lines(b)
    assert n == 2
    assert after.filled_count() == 1 and after.is_filled(0, 19)


def test_rotation_uses_srs_kick_against_wall():
    piece = ActivePiece("I", "right", -2, 5)
    assert can_place(Board.empty(), piece)
    rotated = try_rotate(Board.empty(), piece, "CW")
    assert rotated == ActivePiece("I", "two", 0, 5)


def test_landings_cover_distinct_rotations():
    assert len(enumerate_landings(Board.empty(), "O")) == 9
    assert len(enumerate_landings(Board.empty(), "T")) == 34
    assert len(enumerate_landings(Board.empty(), "I")) == 34
