import math

from coach.engine.finesse import FinesseCalculator


def test_spawn_column_needs_only_hard_drop():
    f = FinesseCalculator()
    assert f.path("T", 3, "spawn") == ["HardDrop"]
    assert f.cost("T", 3, "spawn") == 1


def test_moves_das_and_hold():
    f = FinesseCalculator()
    assert f.cost("T", 2, "spawn") == 2
    assert f.path("T", 0, "spawn") == ["DASLeft", "HardDrop"]
    assert f.cost("T", 3, "spawn", use_hold=True) == 2


def test_rotation_then_das_to_wall():
    f = FinesseCalculator()
    assert f.cost("I", 7, "right") == 3


def test_unreachable_is_infinite_and_memoised():
    f = FinesseCalculator()
    assert math.isinf(f.cost("T", 9, "spawn"))
    assert len(f) == 1
    f.clear()
    assert len(f) == 0
