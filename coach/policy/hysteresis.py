# coach/policy/hysteresis.py
"""
Plan stickiness across calls.

Given this round's template scores and the caller's context, decide whether to
keep the previous plan, branch to a sibling variant, take its graceful exit,
or switch to the best-scoring template.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from coach.engine.state import GameState

from .config import PolicyConfig
from .scoring import PlanScorer, calculate_confidence, calculate_fragility
from .templates.base import Template
from .templates.registry import TemplateRegistry
from .types import PolicyContext

logger = logging.getLogger(__name__)

INITIAL = "initial"
KEPT = "kept"
STUCK = "stuck"
SWITCHED = "switched"
BRANCHED = "branched"
EXITED = "exited"


@dataclass(frozen=True)
class HysteresisDecision:
    template: Template
    kind: str
    plan_history: Tuple[str, ...]


def push_history(new_id: str, history: Tuple[str, ...], depth: int) -> Tuple[str, ...]:
    return ((new_id,) + tuple(h for h in history if h != new_id))[:depth]


class HysteresisController:
    def __init__(self, registry: TemplateRegistry, scorer: PlanScorer, cfg: PolicyConfig):
        self.registry = registry
        self.scorer = scorer
        self.cfg = cfg

    def _feasible(self, t: Template, state: GameState) -> bool:
        return self.scorer.preconditions(t, state).feasible

    def previous_confidence(self, prev: Template, ctx: PolicyContext, state: GameState,
                            scores: Dict[str, float], best_score: float) -> float:
        last_best = ctx.last_best_score if ctx.last_best_score is not None else scores[prev.id]
        last_second = ctx.last_second_score if ctx.last_second_score is not None else best_score
        frag = calculate_fragility(prev.intent, state, self.scorer.features(state), self.cfg.confidence)
        return calculate_confidence(last_best, last_second, frag, self.cfg.confidence)

    def find_branch(self, prev: Template, state: GameState, history: Tuple[str, ...],
                    scores: Optional[Dict[str, float]] = None) -> Optional[Template]:
        """
        First viable sibling: feasible and not tried recently. With `scores`, the
        sibling must also beat the previous plan, and the best such sibling wins.
        """
        if not prev.can_branch:
            return None
        found: Optional[Template] = None
        for bid in prev.branch_candidates(state):
            t = self.registry.get(bid)
            if t is None or bid in history or not self._feasible(t, state):
                continue
            if scores is None:
                return t
            if scores[bid] > scores[prev.id] and (found is None or scores[bid] > scores[found.id]):
                found = t
        return found

    def decide(self, best: Template, best_score: float, scores: Dict[str, float],
               ctx: PolicyContext, state: GameState) -> HysteresisDecision:
        h = self.cfg.hysteresis
        if ctx.last_plan_id is None:
            return HysteresisDecision(best, INITIAL, (best.id,))

        prev = self.registry.get(ctx.last_plan_id)
        if prev is None:
            logger.warning("previous plan %r is not registered; adopting %s", ctx.last_plan_id, best.id)
            return HysteresisDecision(best, INITIAL, (best.id,))

        history = ctx.plan_history or (prev.id,)

        def moved(t: Template, kind: str) -> HysteresisDecision:
            logger.debug("plan %s: %s -> %s", kind, prev.id, t.id)
            return HysteresisDecision(t, kind, push_history(t.id, history, h.max_plan_history))

        if not self._feasible(prev, state):
            branch = self.find_branch(prev, state, history)
            if branch is not None:
                return moved(branch, BRANCHED)
            exit_t = self.registry.get(prev.graceful_exit(state)) if prev.has_exit else None
            if exit_t is not None and self._feasible(exit_t, state):
                return moved(exit_t, EXITED)
            if best.id == prev.id:
                return HysteresisDecision(prev, KEPT, history)
            return moved(best, SWITCHED)

        if best.id == prev.id:
            return HysteresisDecision(prev, KEPT, history)

        last_best = ctx.last_best_score if ctx.last_best_score is not None else scores[prev.id]
        margin_gap = best_score - last_best
        prev_conf = self.previous_confidence(prev, ctx, state, scores, best_score)
        switch = ((prev_conf < h.low_confidence and margin_gap > 0)
                  or (margin_gap > h.switch_margin and ctx.plan_age >= h.min_plan_age))
        if not switch:
            return HysteresisDecision(prev, STUCK, history)

        branch = self.find_branch(prev, state, history, scores)
        if branch is not None:
            return moved(branch, BRANCHED)
        return moved(best, SWITCHED)
