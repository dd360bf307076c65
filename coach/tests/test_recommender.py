import json
import math
from dataclasses import replace
from typing import List

import pytest
from overrides import overrides

from coach.engine.errors import ErrorCode, PolicyError
from coach.engine.queue import SevenBagQueue
from coach.engine.state import GameState
from coach.policy.features import BoardFeatures
from coach.policy.recommender import SEARCH_RATIONALE, OpenerPolicy, create_default_policy
from coach.policy.templates.base import Template, legal_placements
from coach.policy.templates.registry import TemplateRegistry
from coach.policy.types import DEFAULT_PLACEMENT, Intent, PolicyContext, Preconditions, StepCandidate
from coach.scripts.benchmark import initial_state, main, run, step_state

from conftest import frozen_clock, state_from

OPENER_QUEUE = ["I", "T", "S", "Z", "O", "L", "J"]


def test_opener_with_i_and_t_goes_for_tki(policy):
    state = state_from(OPENER_QUEUE)
    out = policy.recommend(state)
    s = out.suggestion
    assert s.intent == Intent.TKI and s.plan_id == "TKI/flatTop"
    assert out.diagnostics["decision"] == "initial"
    assert not out.diagnostics["rollout_used"]
    assert s.rationale.startswith("Choosing TKI")
    assert len(s.rationale) <= 90
    assert 0.05 <= s.confidence <= 1.0
    assert s.placement in legal_placements(state, state.active.id, include_hold=True)
    assert s.guidance is not None and s.guidance.target_x == s.placement.x
    assert s.groups

    ctx = out.next_context
    assert ctx.last_plan_id == "TKI/flatTop" and ctx.plan_age == 0
    assert ctx.last_best_score == pytest.approx(1.5)
    assert ctx.last_second_score == pytest.approx(1.35)
    assert ctx.plan_history == ("TKI/flatTop",)


def test_no_i_falls_back_to_search(policy):
    out = policy.recommend(state_from(["S", "Z", "O", "L", "J", "S", "Z"]))
    s = out.suggestion
    assert s.intent == Intent.NEITHER and s.plan_id == "Neither/safe"
    assert s.rationale == SEARCH_RATIONALE
    assert s.placement.piece in ("S", "Z")
    assert out.diagnostics["scores"]["TKI/base"] < 0
    assert out.diagnostics["search"]["explored"] > 0
    assert 0.05 <= s.confidence <= 1.0


def test_repeated_state_ages_the_plan(policy):
    state = state_from(OPENER_QUEUE)
    first = policy.recommend(state)
    second = policy.recommend(state, first.next_context)
    assert second.diagnostics["decision"] == "kept"
    assert second.suggestion == first.suggestion
    assert second.next_context.plan_age == first.next_context.plan_age + 1
    assert second.next_context.plan_history == first.next_context.plan_history


def test_previous_plan_sticks_on_small_margin(policy):
    ctx = PolicyContext(last_plan_id="PCO/edge", last_best_score=1.35, last_second_score=1.3, plan_age=0)
    out = policy.recommend(state_from(OPENER_QUEUE), ctx)
    assert out.diagnostics["decision"] == "stuck"
    assert out.suggestion.plan_id == "PCO/edge" and out.suggestion.intent == Intent.PCO
    assert out.next_context.plan_age == 1
    assert out.next_context.last_best_score == pytest.approx(1.35)


def test_mature_plan_switches_on_large_margin(policy):
    ctx = PolicyContext(last_plan_id="PCO/edge", last_best_score=1.2, last_second_score=1.1, plan_age=2)
    out = policy.recommend(state_from(OPENER_QUEUE), ctx)
    assert out.diagnostics["decision"] == "switched"
    assert out.suggestion.plan_id == "TKI/flatTop"
    assert out.next_context.plan_age == 0
    assert out.next_context.plan_history == ("TKI/flatTop", "PCO/edge")


class _FlatUtilityTemplate(Template):
    def __init__(self, tid, intent, utility):
        self.id = tid
        self.intent = intent
        self._step = StepCandidate(
            name=f"{tid}-step",
            when=lambda s: s.active is not None,
            propose=lambda s: legal_placements(s, s.active.id),
            utility=lambda p, s, f: utility,
        )

    @overrides
    def preconditions(self, state: GameState, feats: BoardFeatures) -> Preconditions:
        return Preconditions(True, (), 0.0)

    @overrides
    def next_step(self, state: GameState) -> List[StepCandidate]:
        return [self._step]


def test_rollout_breaks_static_tie():
    registry = TemplateRegistry([
        _FlatUtilityTemplate("Test/low", Intent.TKI, 0.0),
        _FlatUtilityTemplate("Test/high", Intent.PCO, 2.0),
    ])
    policy = OpenerPolicy(registry=registry, hazards=(), clock=frozen_clock)
    out = policy.recommend(state_from(["T", "I", "O", "L"]))
    assert out.diagnostics["static_scores"] == {"Test/low": 1.0, "Test/high": 1.0}
    assert out.diagnostics["rollout_used"]
    assert out.diagnostics["scores"]["Test/low"] == pytest.approx(0.7)
    assert out.suggestion.plan_id == "Test/high"
    assert out.next_context.last_best_score == pytest.approx(1.3)


def test_no_active_piece_gets_default_and_floor(policy):
    out = policy.recommend(GameState())
    s = out.suggestion
    assert s.placement == DEFAULT_PLACEMENT
    assert s.confidence == pytest.approx(policy.config.confidence.floor)
    assert s.guidance is None and s.groups == ()


def test_warm_and_cold_caches_agree():
    warm = OpenerPolicy(clock=frozen_clock)
    cold = OpenerPolicy(clock=frozen_clock)
    bag = SevenBagQueue(3)
    state, ctx = initial_state(bag), PolicyContext()
    for _ in range(12):
        a = warm.recommend(state, ctx)
        cold.clear_cache()
        b = cold.recommend(state, ctx)
        assert a.suggestion == b.suggestion
        assert a.next_context == b.next_context
        assert len(a.suggestion.rationale) <= 90
        ctx = a.next_context
        try:
            state = step_state(state, a.suggestion.placement, bag)
        except PolicyError:
            break
    assert warm.cache_stats()["features"]["hits"] > 0


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_default_policy_is_replayable(seed):
    # no injected clocks at all: only the timestamp may differ between runs
    warm, cold = OpenerPolicy(), OpenerPolicy()
    bag = SevenBagQueue(seed)
    state, ctx = initial_state(bag), PolicyContext()
    for _ in range(15):
        a = warm.recommend(state, ctx)
        cold.clear_cache()
        b = cold.recommend(state, ctx)
        assert a.suggestion == b.suggestion
        assert replace(a.next_context, last_update=None) == replace(b.next_context, last_update=None)
        assert a.diagnostics["scores"] == b.diagnostics["scores"]
        ctx = a.next_context
        try:
            state = step_state(state, a.suggestion.placement, bag)
        except PolicyError:
            break


def test_instances_do_not_share_caches():
    a = OpenerPolicy(clock=frozen_clock)
    b = OpenerPolicy(clock=frozen_clock)
    a.recommend(state_from(OPENER_QUEUE))
    assert a.cache_stats()["features"]["misses"] > 0
    assert b.cache_stats()["features"]["misses"] == 0
    a.clear_cache()
    assert a.cache_stats()["features"]["entries"] == 0
    assert len(a.finesse) == 0


def test_introspection(policy):
    assert [t.id for t in policy.templates] == [
        "TKI/base", "TKI/flatTop", "PCO/standard", "PCO/edge", "PCO/transition", "Neither/safe"]
    assert policy.constants == {
        "switch_margin": 0.2, "min_plan_age": 2, "low_confidence": 0.4, "rollout_epsilon": 0.05}


def test_empty_registry_rejected():
    with pytest.raises(PolicyError) as e:
        OpenerPolicy(registry=TemplateRegistry([]))
    assert e.value.code == ErrorCode.ERR_EMPTY_REGISTRY


def test_create_default_policy_reads_json(tmp_path):
    p = tmp_path / "policy.json"
    p.write_text('{"hysteresis": {"switch_margin": 0.35}}')
    policy = create_default_policy(str(p), clock=frozen_clock)
    assert policy.constants["switch_margin"] == 0.35


def test_benchmark_harness_writes_trace(tmp_path):
    trace = tmp_path / "bench" / "trace.jsonl"
    policy = OpenerPolicy(clock=frozen_clock)
    lat = run(policy, 5, seed=1, trace=str(trace))
    assert len(lat) == 5 and all(ms >= 0 and not math.isnan(ms) for ms in lat)
    assert len(trace.read_text().splitlines()) == 5


def test_benchmark_cli_writes_summary(tmp_path, capsys):
    out = tmp_path / "summary.json"
    main(["--calls", "3", "--seed", "2", "--summary", str(out)])
    assert "calls=3" in capsys.readouterr().out
    data = json.loads(out.read_text())
    assert data["calls"] == 3 and data["seed"] == 2
    assert data["config"]["rollout"]["epsilon"] == 0.05
