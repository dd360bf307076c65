import itertools

import pytest

from coach.engine.board import Board
from coach.engine.finesse import FinesseCalculator
from coach.engine.physics import apply_placement, enumerate_landings
from coach.engine.state import ActivePiece, GameState
from coach.policy.cache import PolicyCaches
from coach.policy.config import RolloutConfig, SearchConfig
from coach.policy.rollout import MicroRollout, advance_state
from coach.policy.scoring import PlanScorer
from coach.policy.search import AfterStateSearch
from coach.policy.templates.registry import default_registry
from coach.policy.types import DEFAULT_PLACEMENT, Placement
from coach.utils.timers import Budget

from conftest import frozen_clock, state_from


def _search(clock=frozen_clock):
    caches = PolicyCaches()
    return AfterStateSearch(SearchConfig(), MicroRollout(RolloutConfig(), clock), FinesseCalculator(), caches)


def _ticking_clock(step=1.0):
    counter = itertools.count()
    return lambda: next(counter) * step


def test_holes_weigh_more_than_height():
    s = _search()
    assert s.score_board(Board.empty(), 0) == 0.0
    flat = s.score_board(Board.from_rows(["XXXXXXXXX."]), 0)
    holed = s.score_board(Board.from_rows(["XXXXXXXXX.", "........X."]), 0)
    assert holed < flat < 0.0


def test_search_takes_the_tetris():
    rows = ["XXXXXXXXX."] * 4
    state = GameState(board=Board.from_rows(rows), active=ActivePiece.spawn("I"), next_queue=("O",))
    res = _search().search(state)
    p = res.best
    assert not p.use_hold and p.rot in ("right", "left")
    assert p.x + (2 if p.rot == "right" else 1) == 9
    assert res.best_score >= res.second_score
    assert res.best_score == max(c.utility for c in res.candidates)
    assert res.groups


def test_search_without_piece_is_inert():
    res = _search().search(GameState())
    assert res.inert and res.best == DEFAULT_PLACEMENT
    assert (res.best_score, res.second_score) == (0.0, 0.0)


def test_advance_state_with_empty_hold_consumes_preview():
    s = GameState(active=ActivePiece.spawn("T"), next_queue=("I", "O"))
    nxt = advance_state(s, Placement(0, "spawn", use_hold=True))
    assert nxt.hold == "T"
    assert nxt.active_id == "O" and nxt.next_queue == ()
    assert nxt.board.filled_count() == 4


def test_template_rollout_evaluates_up_to_cap():
    reg = default_registry()
    scorer = PlanScorer(PolicyCaches())
    r = MicroRollout(RolloutConfig(), frozen_clock).evaluate_template(
        reg.get("Neither/safe"), state_from(["T", "I", "O", "S"]), scorer)
    assert r.value is not None
    assert r.evaluated == r.planned == 8 and not r.exhausted


def test_exhausted_budget_falls_back_to_static():
    reg = default_registry()
    scorer = PlanScorer(PolicyCaches())
    ro = MicroRollout(RolloutConfig(), _ticking_clock())
    r = ro.evaluate_template(reg.get("Neither/safe"), state_from(["T", "I", "O", "S"]), scorer)
    assert r.exhausted and r.evaluated == 0 and r.value is None
    assert ro.blend(1.25, r.value) == 1.25


def test_rollout_without_pieces_scores_negative():
    reg = default_registry()
    ro = MicroRollout(RolloutConfig(), frozen_clock)
    r = ro.evaluate_template(reg.get("Neither/safe"), GameState(), PlanScorer(PolicyCaches()))
    assert r.value == RolloutConfig().no_placement_score


def test_board_rollout_needs_a_next_piece():
    ro = MicroRollout(RolloutConfig(), frozen_clock)
    search = _search()
    assert ro.evaluate_board(Board.empty(), (), search.score_board) is None
    expected = max(search.score_board(*apply_placement(Board.empty(), "O", rot, x))
                   for rot, x, _ in enumerate_landings(Board.empty(), "O"))
    assert ro.evaluate_board(Board.empty(), ("O",), search.score_board) == pytest.approx(expected)


def _static_utilities(search, state):
    out = []
    for c in search.search(state).candidates:
        p = c.placement
        after, lines = apply_placement(state.board, p.piece, p.rot, p.x)
        out.append(search.score_board(after, lines) - search.cfg.finesse_beta * min(c.cost, 20))
    return out


def test_partial_search_rollout_keeps_static_scores():
    state = GameState(active=ActivePiece.spawn("O"), next_queue=("O", "O"))
    capped = AfterStateSearch(SearchConfig(), MicroRollout(RolloutConfig(max_evaluations=12)),
                              FinesseCalculator(), PolicyCaches())
    res = capped.search(state)
    assert res.diagnostics["rollout_exhausted"]
    assert res.diagnostics["rolled_out"] == 0
    static = _static_utilities(capped, state)
    assert [c.utility for c in res.candidates] == pytest.approx(static)
    assert res.best == res.candidates[static.index(max(static))].placement


def test_search_rollout_prefers_placement_that_keeps_the_line_open():
    # only cleared lines score: every O drop ties at zero, but the I that
    # follows can only clear the bottom row if the four-wide gap stays open
    cfg = SearchConfig(aggregate_height=0.0, max_height=0.0, bumpiness=0.0, holes=0.0,
                       well_depth=0.0, finesse_beta=0.0, use_hold=False)
    search = AfterStateSearch(cfg, MicroRollout(RolloutConfig(max_evaluations=1000)),
                              FinesseCalculator(), PolicyCaches())
    state = GameState(board=Board.from_rows(["....XXXXXX"]), active=ActivePiece.spawn("O"),
                      next_queue=("I",))
    res = search.search(state)
    assert res.candidates[0].placement.x == -1
    assert res.diagnostics["rolled_out"] == len(res.candidates) == 9
    assert not res.diagnostics["rollout_exhausted"]
    assert res.best.x == 3
    assert res.best_score == pytest.approx(0.3 * 0.4)
    blocked = [c for c in res.candidates if c.placement.x < 3]
    assert all(c.utility == pytest.approx(0.0) for c in blocked)


def test_budget_without_clock_counts_steps_only():
    budget = Budget(0.0, max_steps=3).start()
    budget.tick(); budget.tick()
    assert not budget.expired()
    budget.tick()
    assert budget.expired()

    timed = Budget(2.0, _ticking_clock(0.001)).start()
    assert not timed.expired()
    timed.elapsed()
    assert timed.expired()
