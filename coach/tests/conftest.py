import pytest

from coach.engine.board import Board
from coach.engine.state import GameState
from coach.policy.recommender import OpenerPolicy


def frozen_clock():
    return 0.0


@pytest.fixture
def policy():
    # frozen timestamp so contexts compare equal; the rollout runs on its evaluation cap
    return OpenerPolicy(clock=frozen_clock)


@pytest.fixture
def empty_board():
    return Board.empty()


def state_from(queue, rows=None, hold=None, can_hold=True):
    board = Board.from_rows(rows) if rows else Board.empty()
    return GameState.from_queue(queue, board=board, hold=hold, can_hold=can_hold)
