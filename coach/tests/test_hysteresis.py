import pytest

from coach.policy.cache import PolicyCaches
from coach.policy.config import PolicyConfig
from coach.policy.hysteresis import BRANCHED, EXITED, INITIAL, KEPT, STUCK, SWITCHED, HysteresisController
from coach.policy.scoring import PlanScorer
from coach.policy.templates.registry import default_registry
from coach.policy.types import PolicyContext

from conftest import state_from

SCORES = {
    "TKI/base": 1.3, "TKI/flatTop": 1.5, "PCO/standard": 1.2,
    "PCO/edge": 1.35, "PCO/transition": 1.3, "Neither/safe": 1.0,
}


@pytest.fixture
def ctl():
    reg = default_registry()
    return HysteresisController(reg, PlanScorer(PolicyCaches()), PolicyConfig())


@pytest.fixture
def opener_state():
    return state_from(["I", "T", "S", "Z", "O", "L", "J"])


def _decide(ctl, state, ctx, best="TKI/flatTop", best_score=None, scores=SCORES):
    best_score = scores[best] if best_score is None else best_score
    return ctl.decide(ctl.registry.get(best), best_score, scores, ctx, state)


def test_first_call_adopts_best(ctl, opener_state):
    d = _decide(ctl, opener_state, PolicyContext())
    assert (d.template.id, d.kind, d.plan_history) == ("TKI/flatTop", INITIAL, ("TKI/flatTop",))


def test_same_plan_is_kept(ctl, opener_state):
    ctx = PolicyContext("TKI/flatTop", 1.5, 1.35, plan_age=3, plan_history=("TKI/flatTop",))
    assert _decide(ctl, opener_state, ctx).kind == KEPT


def test_small_margin_keeps_young_plan(ctl, opener_state):
    ctx = PolicyContext("Neither/safe", 1.4, 0.0, plan_age=1, plan_history=("Neither/safe",))
    d = _decide(ctl, opener_state, ctx)
    assert (d.template.id, d.kind) == ("Neither/safe", STUCK)


def test_large_margin_on_young_plan_still_sticks(ctl, opener_state):
    ctx = PolicyContext("Neither/safe", 1.0, 0.0, plan_age=1, plan_history=("Neither/safe",))
    assert _decide(ctl, opener_state, ctx).template.id == "Neither/safe"


def test_large_margin_on_mature_plan_switches(ctl, opener_state):
    ctx = PolicyContext("Neither/safe", 1.0, 0.0, plan_age=2, plan_history=("Neither/safe",))
    d = _decide(ctl, opener_state, ctx)
    assert (d.template.id, d.kind) == ("TKI/flatTop", SWITCHED)
    assert d.plan_history == ("TKI/flatTop", "Neither/safe")


def test_low_confidence_plan_yields_to_any_improvement(ctl, opener_state):
    ctx = PolicyContext("Neither/safe", 1.0, 1.5, plan_age=0, plan_history=("Neither/safe",))
    d = _decide(ctl, opener_state, ctx, best_score=1.05)
    assert d.kind == SWITCHED


def test_switch_prefers_branch_within_family(ctl, opener_state):
    ctx = PolicyContext("PCO/standard", 1.2, 1.0, plan_age=2, plan_history=("PCO/standard",))
    d = _decide(ctl, opener_state, ctx)
    assert (d.template.id, d.kind) == ("PCO/edge", BRANCHED)
    assert d.plan_history == ("PCO/edge", "PCO/standard")

    back = PolicyContext("PCO/edge", 1.2, 1.0, plan_age=2, plan_history=d.plan_history)
    scores = dict(SCORES, **{"PCO/standard": 1.4, "PCO/edge": 1.2})
    d2 = _decide(ctl, opener_state, back, scores=scores)
    assert (d2.template.id, d2.kind) == ("TKI/flatTop", SWITCHED)


def test_infeasible_plan_takes_graceful_exit(ctl):
    no_i = state_from(["S", "Z", "O", "L"])
    ctx = PolicyContext("TKI/base", 1.3, 1.0, plan_age=5, plan_history=("TKI/base",))
    d = _decide(ctl, no_i, ctx, best="Neither/safe")
    assert (d.template.id, d.kind) == ("Neither/safe", EXITED)


def test_unknown_previous_plan_resets(ctl, opener_state):
    d = _decide(ctl, opener_state, PolicyContext("Gone/away", 1.0, 0.0, plan_age=4))
    assert (d.template.id, d.kind) == ("TKI/flatTop", INITIAL)


def test_fallback_plan_has_no_branch_to_take(ctl, opener_state):
    safe = ctl.registry.get("Neither/safe")
    assert ctl.find_branch(safe, opener_state, ()) is None
    assert ctl.find_branch(safe, opener_state, (), SCORES) is None
    assert ctl.find_branch(ctl.registry.get("PCO/standard"), opener_state, ()).id == "PCO/edge"
