# coach/policy/recommender.py
"""
Opener recommendation entry point.

    policy = OpenerPolicy()
    out = policy.recommend(state, context)
    out.suggestion, out.next_context

Every collaborator (registry, caches, finesse oracle, clocks) is injected so
tests can run isolated instances side by side.
"""
from __future__ import annotations

import logging
import math
import time
from typing import Any, Dict, Iterable, Optional, Tuple

from coach.engine.finesse import FinesseCalculator
from coach.engine.state import GameState
from coach.utils.timers import Clock

from .cache import PolicyCaches
from .config import PolicyConfig, load_policy_config
from .executor import cluster_placements, collect_candidates, pareto_filter
from .hazards import HAZARDS
from .hysteresis import HysteresisController, HysteresisDecision
from .rollout import MicroRollout
from .scoring import PlanScorer, best_two, build_rationale, policy_confidence
from .search import AfterStateSearch
from .templates.base import Template
from .templates.registry import TemplateRegistry, default_registry
from .types import (DEFAULT_PLACEMENT, Guidance, Hazard, Intent, PolicyContext, PolicyOutput,
                    Suggestion)

logger = logging.getLogger(__name__)

SEARCH_RATIONALE = "Flat, low-risk placement (search)"


class OpenerPolicy:
    def __init__(self, registry: Optional[TemplateRegistry] = None, config: Optional[PolicyConfig] = None,
                 caches: Optional[PolicyCaches] = None, finesse: Optional[FinesseCalculator] = None,
                 hazards: Iterable[Hazard] = HAZARDS, clock: Optional[Clock] = None,
                 rollout_clock: Optional[Clock] = None):
        """
        clock: wall clock for `PolicyContext.last_update` (default time.time)
        rollout_clock: optional monotonic clock (e.g. time.perf_counter) that adds a
                       wall-clock deadline to the rollout. Without it the rollout
                       is capped by `max_evaluations` only and outputs depend on
                       the inputs alone.
        """
        self.config = config or PolicyConfig()
        self.config.validate()
        self.registry = registry if registry is not None else default_registry()
        assert len(self.registry) > 0, "template registry must not be empty"
        self.caches = caches or PolicyCaches(self.config.cache)
        self.finesse = finesse or FinesseCalculator()
        self.scorer = PlanScorer(self.caches, self.config.scoring, tuple(hazards))
        self.rollout = MicroRollout(self.config.rollout, rollout_clock)
        self.search = AfterStateSearch(self.config.search, self.rollout, self.finesse, self.caches)
        self.hysteresis = HysteresisController(self.registry, self.scorer, self.config)
        self._clock = clock or time.time

    # --------- introspection ---------
    @property
    def templates(self) -> Tuple[Template, ...]:
        return self.registry.templates

    @property
    def constants(self) -> Dict[str, float]:
        return {
            "switch_margin": self.config.hysteresis.switch_margin,
            "min_plan_age": self.config.hysteresis.min_plan_age,
            "low_confidence": self.config.hysteresis.low_confidence,
            "rollout_epsilon": self.config.rollout.epsilon,
        }

    def clear_cache(self) -> None:
        self.caches.clear()
        self.finesse.clear()

    def cache_stats(self) -> Dict[str, Dict[str, float]]:
        return self.caches.stats()

    # --------- main entry ---------
    def recommend(self, state: GameState, context: Optional[PolicyContext] = None) -> PolicyOutput:
        ctx = context or PolicyContext()
        plan_scores = self.scorer.score_all(self.registry.templates, state)
        static = {tid: ps.adjusted for tid, ps in plan_scores.items()}
        scores, rolled = self._break_ties(state, static)

        best_id, best_score, _ = best_two(scores, self.registry.ids)
        decision = self.hysteresis.decide(self.registry.get(best_id), best_score, scores, ctx, state)
        adopted = decision.template
        adopted_score = scores[adopted.id]
        rival = max((s for tid, s in scores.items() if tid != adopted.id), default=-math.inf)
        next_ctx = self._next_context(ctx, decision, adopted_score, rival)

        diagnostics: Dict[str, Any] = {
            "static_scores": static,
            "scores": scores,
            "rollout_used": rolled,
            "decision": decision.kind,
        }
        feats = self.scorer.features(state)

        if adopted.intent == Intent.NEITHER:
            result = self.search.search(state)
            diagnostics["search"] = result.diagnostics
            if result.inert:
                confidence = self.config.confidence.floor
            else:
                confidence = policy_confidence(result.best_score, result.second_score, Intent.NEITHER,
                                               state, feats, self.config)
            suggestion = Suggestion(
                intent=Intent.NEITHER,
                placement=result.best,
                confidence=confidence,
                rationale=SEARCH_RATIONALE,
                plan_id=adopted.id,
                groups=result.groups,
                guidance=None if result.inert else Guidance("Safe", result.best.x, result.best.rot),
            )
            return PolicyOutput(suggestion, next_ctx, diagnostics)

        cands, chosen = collect_candidates(adopted, state, feats, self.caches, self.finesse)
        groups = tuple(cluster_placements(pareto_filter(cands)))
        if chosen is None:
            placement = DEFAULT_PLACEMENT
            confidence = self.config.confidence.floor
        else:
            placement = chosen
            confidence = policy_confidence(adopted_score, rival, adopted.intent, state, feats, self.config)
        suggestion = Suggestion(
            intent=adopted.intent,
            placement=placement,
            confidence=confidence,
            rationale=build_rationale(adopted.intent, plan_scores[adopted.id].hazards, self.config.scoring),
            plan_id=adopted.id,
            groups=groups,
            guidance=None if chosen is None else Guidance(adopted.id, placement.x, placement.rot,
                                                          highlight_target=True, show_path=placement.use_hold),
        )
        return PolicyOutput(suggestion, next_ctx, diagnostics)

    def _break_ties(self, state: GameState, static: Dict[str, float]) -> Tuple[Dict[str, float], bool]:
        """Blend in rollout values for every template within epsilon of the leader."""
        scores = dict(static)
        best_id, best, second = best_two(static, self.registry.ids)
        if not math.isfinite(second) or not self.rollout.near_tie(best, second):
            return scores, False
        results = {}
        for t in self.registry:
            if not self.rollout.near_tie(static[t.id], best):
                continue
            r = self.rollout.evaluate_template(t, state, self.scorer)
            if r.value is None or r.exhausted:
                logger.debug("rollout tie-break incomplete at %s; keeping static scores", t.id)
                return scores, False
            results[t.id] = r.value
        for tid, value in results.items():
            scores[tid] = self.rollout.blend(static[tid], value)
        logger.debug("rollout tie-break: %s", {k: round(v, 3) for k, v in scores.items() if v != static[k]})
        return scores, True

    def _next_context(self, ctx: PolicyContext, decision: HysteresisDecision,
                      adopted_score: float, rival: float) -> PolicyContext:
        same = decision.template.id == ctx.last_plan_id
        return PolicyContext(
            last_plan_id=decision.template.id,
            last_best_score=adopted_score,
            last_second_score=rival,
            plan_age=ctx.plan_age + 1 if same else 0,
            last_update=self._clock(),
            plan_history=decision.plan_history,
        )


def create_default_policy(config_path: Optional[str] = None, **kwargs) -> OpenerPolicy:
    cfg = load_policy_config(config_path) if config_path else PolicyConfig()
    return OpenerPolicy(config=cfg, **kwargs)
