from coach.engine.board import Board
from coach.policy.features import extract_features, is_flat_field


def test_empty_board():
    f = extract_features(Board.empty())
    assert f.heights == (0,) * 10
    assert (f.holes, f.overhangs, f.aggregate_height, f.max_height, f.bumpiness) == (0, 0, 0, 0, 0)
    assert f.wells == ()
    assert is_flat_field(f)


def test_holes_and_overhangs():
    f = extract_features(Board.from_rows(["XX........", "X........."]))
    assert f.heights[:3] == (2, 2, 0)
    assert f.holes == 1
    assert f.overhangs == 2
    assert not is_flat_field(f)


def test_covered_hole_counts_once_per_cell():
    f = extract_features(Board.from_rows(["X.........", "X.........", ".........."]))
    assert f.heights[0] == 3
    assert f.holes == 1


def test_well_against_wall():
    f = extract_features(Board.from_rows(["XXXXXXXXX."] * 4))
    assert f.wells == ((9, 4),)
    assert f.well_depth == 4
    assert f.aggregate_height == 36
    assert f.bumpiness == 4


def test_full_column_does_not_break_extraction():
    f = extract_features(Board.from_rows([".........X"] * 20))
    assert f.heights[9] == 20
    assert f.max_height == 20
    assert f.bumpiness == 20
    assert f.holes == 0


def test_wall_counts_as_well_side():
    f = extract_features(Board.from_rows(["XXXX.XXXX.", "XXXX.XXXX.", "XXXX.XXXXX"]))
    assert f.wells == ((4, 3), (9, 2))
    assert f.deepest_well == 3 and f.well_depth == 5
