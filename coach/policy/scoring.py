# coach/policy/scoring.py
"""
Plan scoring, fragility, confidence and rationale text.

    adjusted = base utility + precondition delta + sum(hazard penalties)
    confidence = clamp(sigmoid(margin / k) * (1 - c * fragility) * decay ** horizon, floor, 1)
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from coach.engine.state import GameState

from .cache import PolicyCaches
from .config import ConfidenceConfig, PolicyConfig, ScoringConfig
from .features import BoardFeatures
from .hazards import HAZARDS, detect_hazards
from .templates.base import Template
from .types import Hazard, Intent, Preconditions

logger = logging.getLogger(__name__)

NEEDS_I = (Intent.TKI, Intent.PCO)
NEEDS_T = (Intent.TKI,)

RATIONALE_PHRASES: Dict[Intent, str] = {
    Intent.TKI: "I available",
    Intent.PCO: "field flat",
    Intent.NEITHER: "safe option",
}
WARNING_MARKER = "⚠"


@dataclass(frozen=True)
class PlanScore:
    template_id: str
    intent: Intent
    base: float
    delta: float
    hazard_penalty: float
    preconditions: Preconditions
    hazards: Tuple[Hazard, ...]

    @property
    def adjusted(self) -> float:
        return self.base + self.delta + self.hazard_penalty

    @property
    def feasible(self) -> bool:
        return self.preconditions.feasible


class PlanScorer:
    """Scores templates against a state, memoising preconditions and hazards in the injected caches."""

    def __init__(self, caches: PolicyCaches, cfg: Optional[ScoringConfig] = None,
                 hazards: Tuple[Hazard, ...] = HAZARDS):
        self.caches = caches
        self.cfg = cfg or ScoringConfig()
        self.hazards = tuple(hazards)

    def features(self, state: GameState) -> BoardFeatures:
        return self.caches.board_features(state.board)

    def preconditions(self, template: Template, state: GameState) -> Preconditions:
        key = self.caches.state_key("pre", template.id, state=state)
        return self.caches.preconditions.get_or_compute(
            key, lambda: template.preconditions(state, self.features(state)))

    def triggered(self, template: Template, state: GameState) -> Tuple[Hazard, ...]:
        key = self.caches.state_key("haz", template.id, state=state)
        return self.caches.hazards.get_or_compute(
            key, lambda: tuple(detect_hazards(template.intent, state, self.features(state), self.hazards)))

    def base_utility(self, template: Template, state: GameState, pre: Preconditions) -> float:
        base = self.cfg.base_utility
        if not pre.feasible:
            base -= self.cfg.infeasible_penalty
        return base

    def score(self, template: Template, state: GameState) -> PlanScore:
        pre = self.preconditions(template, state)
        hz = self.triggered(template, state)
        return PlanScore(
            template_id=template.id,
            intent=template.intent,
            base=self.base_utility(template, state, pre),
            delta=pre.score_delta or 0.0,
            hazard_penalty=sum(h.penalty for h in hz),
            preconditions=pre,
            hazards=hz,
        )

    def score_all(self, templates: Sequence[Template], state: GameState) -> Dict[str, PlanScore]:
        out = {t.id: self.score(t, state) for t in templates}
        logger.debug("template scores: %s", {k: round(v.adjusted, 3) for k, v in out.items()})
        return out


def best_two(scores: Dict[str, float], order: Sequence[str]) -> Tuple[str, float, float]:
    """Best id, best score and runner-up score; earlier ids win ties. Runner-up is -inf when alone."""
    best_id, best, second = None, -math.inf, -math.inf
    for tid in order:
        s = scores[tid]
        if best_id is None or s > best:
            if best_id is not None:
                second = best
            best_id, best = tid, s
        elif s > second:
            second = s
    return best_id, best, second


def calculate_fragility(intent: Intent, state: GameState, feats: BoardFeatures,
                        cfg: Optional[ConfidenceConfig] = None) -> float:
    cfg = cfg or ConfidenceConfig()
    frag = 0.0
    if intent in NEEDS_I and not state.piece_available("I", cfg.fragility_lookahead):
        frag += 0.4
    if intent in NEEDS_T and not state.piece_available("T", cfg.fragility_lookahead):
        frag += 0.3
    if feats.max_height > cfg.tall_stack_height:
        frag += 0.3
    return min(1.0, frag)


def _sigmoid(x: float) -> float:
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def calculate_confidence(best: float, second: float, fragility: float = 0.0,
                         cfg: Optional[ConfidenceConfig] = None) -> float:
    cfg = cfg or ConfidenceConfig()
    margin = best - second
    if math.isnan(margin):
        return cfg.floor
    if math.isinf(margin):
        margin_conf = 1.0 if margin > 0 else 0.0
    else:
        margin_conf = _sigmoid(margin / cfg.steepness)
    frag = min(1.0, max(0.0, fragility))
    raw = margin_conf * (1.0 - cfg.fragility_weight * frag) * (cfg.progress_decay ** cfg.planning_horizon)
    return max(cfg.floor, min(1.0, raw))


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def build_rationale(intent: Intent, hazards: Sequence[Hazard], cfg: Optional[ScoringConfig] = None) -> str:
    cfg = cfg or ScoringConfig()
    text = f"Choosing {intent.value} ({RATIONALE_PHRASES.get(intent, 'best score')})"
    if hazards:
        reasons = "; ".join(h.reason for h in hazards[: cfg.rationale_max_hazards])
        text += f". {WARNING_MARKER} {reasons}"
    return truncate(text, cfg.rationale_max_len)


def policy_confidence(best: float, second: float, intent: Intent, state: GameState,
                      feats: BoardFeatures, cfg: PolicyConfig) -> float:
    return calculate_confidence(best, second, calculate_fragility(intent, state, feats, cfg.confidence), cfg.confidence)
