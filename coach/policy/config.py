# coach/policy/config.py
"""
Typed tuning constants for the opener policy.

Every group parses its own fields explicitly; `PolicyConfig.merged()` applies a
partial patch field by field on top of an existing config, so a typo in a
patch fails loudly instead of silently adding a key.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from coach.engine.errors import ErrorCode, PolicyError
from coach.utils.jsonio import load_json


def _default_json_path() -> Path:
    # this file:   coach/policy/config.py
    # defaults:    coach/configs/policy.json
    return Path(__file__).resolve().parents[1] / "configs" / "policy.json"


def _invalid(msg: str, **details: Any) -> PolicyError:
    return PolicyError(ErrorCode.ERR_INVALID_CONFIG, msg, details)


def _check_keys(group: str, raw: Dict[str, Any], cls) -> None:
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise _invalid(f"unknown keys in '{group}': {unknown}", group=group, keys=unknown)


@dataclass(frozen=True)
class HysteresisConfig:
    switch_margin: float = 0.2
    min_plan_age: int = 2
    low_confidence: float = 0.4
    max_plan_history: int = 2

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], base: Optional["HysteresisConfig"] = None) -> "HysteresisConfig":
        b = base or cls()
        _check_keys("hysteresis", raw, cls)
        return cls(
            switch_margin=float(raw.get("switch_margin", b.switch_margin)),
            min_plan_age=int(raw.get("min_plan_age", b.min_plan_age)),
            low_confidence=float(raw.get("low_confidence", b.low_confidence)),
            max_plan_history=int(raw.get("max_plan_history", b.max_plan_history)),
        )


@dataclass(frozen=True)
class ConfidenceConfig:
    steepness: float = 0.8            # k in sigmoid(margin / k)
    fragility_weight: float = 0.6     # c in 1 - c * fragility
    progress_decay: float = 0.97
    planning_horizon: int = 2
    floor: float = 0.05
    fragility_lookahead: int = 2
    tall_stack_height: int = 15

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], base: Optional["ConfidenceConfig"] = None) -> "ConfidenceConfig":
        b = base or cls()
        _check_keys("confidence", raw, cls)
        return cls(
            steepness=float(raw.get("steepness", b.steepness)),
            fragility_weight=float(raw.get("fragility_weight", b.fragility_weight)),
            progress_decay=float(raw.get("progress_decay", b.progress_decay)),
            planning_horizon=int(raw.get("planning_horizon", b.planning_horizon)),
            floor=float(raw.get("floor", b.floor)),
            fragility_lookahead=int(raw.get("fragility_lookahead", b.fragility_lookahead)),
            tall_stack_height=int(raw.get("tall_stack_height", b.tall_stack_height)),
        )


@dataclass(frozen=True)
class ScoringConfig:
    base_utility: float = 1.0
    infeasible_penalty: float = 10.0
    rationale_max_len: int = 90
    rationale_max_hazards: int = 2

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], base: Optional["ScoringConfig"] = None) -> "ScoringConfig":
        b = base or cls()
        _check_keys("scoring", raw, cls)
        return cls(
            base_utility=float(raw.get("base_utility", b.base_utility)),
            infeasible_penalty=float(raw.get("infeasible_penalty", b.infeasible_penalty)),
            rationale_max_len=int(raw.get("rationale_max_len", b.rationale_max_len)),
            rationale_max_hazards=int(raw.get("rationale_max_hazards", b.rationale_max_hazards)),
        )


@dataclass(frozen=True)
class SearchConfig:
    aggregate_height: float = -0.10
    max_height: float = -0.15
    bumpiness: float = -0.06
    holes: float = -1.0
    well_depth: float = -0.05
    lines_cleared: float = 0.40
    finesse_beta: float = 0.02
    use_hold: bool = True

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], base: Optional["SearchConfig"] = None) -> "SearchConfig":
        b = base or cls()
        _check_keys("search", raw, cls)
        return cls(
            aggregate_height=float(raw.get("aggregate_height", b.aggregate_height)),
            max_height=float(raw.get("max_height", b.max_height)),
            bumpiness=float(raw.get("bumpiness", b.bumpiness)),
            holes=float(raw.get("holes", b.holes)),
            well_depth=float(raw.get("well_depth", b.well_depth)),
            lines_cleared=float(raw.get("lines_cleared", b.lines_cleared)),
            finesse_beta=float(raw.get("finesse_beta", b.finesse_beta)),
            use_hold=bool(raw.get("use_hold", b.use_hold)),
        )


@dataclass(frozen=True)
class RolloutConfig:
    epsilon: float = 0.05
    depth: int = 1
    max_placements: int = 8
    max_evaluations: int = 256     # deterministic cap on simulated placements per rollout
    budget_ms: float = 5.0         # wall-clock cap, only with an injected rollout clock
    static_weight: float = 0.7
    illegal_score: float = -10.0
    no_placement_score: float = -5.0
    infeasible_score: float = -1.0

    @property
    def rollout_weight(self) -> float:
        return 1.0 - self.static_weight

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], base: Optional["RolloutConfig"] = None) -> "RolloutConfig":
        b = base or cls()
        _check_keys("rollout", raw, cls)
        return cls(
            epsilon=float(raw.get("epsilon", b.epsilon)),
            depth=int(raw.get("depth", b.depth)),
            max_placements=int(raw.get("max_placements", b.max_placements)),
            max_evaluations=int(raw.get("max_evaluations", b.max_evaluations)),
            budget_ms=float(raw.get("budget_ms", b.budget_ms)),
            static_weight=float(raw.get("static_weight", b.static_weight)),
            illegal_score=float(raw.get("illegal_score", b.illegal_score)),
            no_placement_score=float(raw.get("no_placement_score", b.no_placement_score)),
            infeasible_score=float(raw.get("infeasible_score", b.infeasible_score)),
        )


@dataclass(frozen=True)
class CacheConfig:
    features: int = 100
    preconditions: int = 300
    previews: int = 200
    hazards: int = 300
    placements: int = 200
    thread_safe: bool = False

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], base: Optional["CacheConfig"] = None) -> "CacheConfig":
        b = base or cls()
        _check_keys("cache", raw, cls)
        return cls(
            features=int(raw.get("features", b.features)),
            preconditions=int(raw.get("preconditions", b.preconditions)),
            previews=int(raw.get("previews", b.previews)),
            hazards=int(raw.get("hazards", b.hazards)),
            placements=int(raw.get("placements", b.placements)),
            thread_safe=bool(raw.get("thread_safe", b.thread_safe)),
        )


_GROUPS = {
    "hysteresis": HysteresisConfig,
    "confidence": ConfidenceConfig,
    "scoring": ScoringConfig,
    "search": SearchConfig,
    "rollout": RolloutConfig,
    "cache": CacheConfig,
}


@dataclass(frozen=True)
class PolicyConfig:
    hysteresis: HysteresisConfig = field(default_factory=HysteresisConfig)
    confidence: ConfidenceConfig = field(default_factory=ConfidenceConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    rollout: RolloutConfig = field(default_factory=RolloutConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)

    # --------- factory & helpers ---------
    @classmethod
    def from_dict(cls, cfg: Dict[str, Any], base: Optional["PolicyConfig"] = None) -> "PolicyConfig":
        """
        Build a PolicyConfig from a nested dict like configs/policy.json.
        Groups and keys that are absent keep the value from `base` (or the defaults).
        """
        b = base or cls()
        cfg = cfg or {}
        unknown = sorted(set(cfg) - set(_GROUPS))
        if unknown:
            raise _invalid(f"unknown config groups: {unknown}", groups=unknown)
        try:
            out = cls(
                hysteresis=HysteresisConfig.from_dict(dict(cfg.get("hysteresis", {})), b.hysteresis),
                confidence=ConfidenceConfig.from_dict(dict(cfg.get("confidence", {})), b.confidence),
                scoring=ScoringConfig.from_dict(dict(cfg.get("scoring", {})), b.scoring),
                search=SearchConfig.from_dict(dict(cfg.get("search", {})), b.search),
                rollout=RolloutConfig.from_dict(dict(cfg.get("rollout", {})), b.rollout),
                cache=CacheConfig.from_dict(dict(cfg.get("cache", {})), b.cache),
            )
        except (TypeError, ValueError) as e:
            raise _invalid(f"malformed config value: {e}") from e
        out.validate()
        return out

    def merged(self, patch: Dict[str, Any]) -> "PolicyConfig":
        return PolicyConfig.from_dict(patch, base=self)

    def replace_group(self, **groups: Any) -> "PolicyConfig":
        out = replace(self, **groups)
        out.validate()
        return out

    def to_dict(self) -> Dict[str, Any]:
        """Round-trip to a plain dict (useful for logging/debug)."""
        return asdict(self)

    def validate(self) -> None:
        h, c, r, s = self.hysteresis, self.confidence, self.rollout, self.scoring
        if h.switch_margin < 0 or h.min_plan_age < 0 or h.max_plan_history < 1:
            raise _invalid("hysteresis margins/ages must be non-negative and history >= 1")
        if not 0.0 <= h.low_confidence <= 1.0:
            raise _invalid("low_confidence must be in [0, 1]", value=h.low_confidence)
        if not 0.0 < c.floor < 1.0:
            raise _invalid("confidence floor must be in (0, 1)", value=c.floor)
        if c.steepness <= 0 or not 0.0 <= c.fragility_weight <= 1.0:
            raise _invalid("steepness must be positive and fragility_weight in [0, 1]")
        if not 0.0 < c.progress_decay <= 1.0 or c.planning_horizon < 0:
            raise _invalid("progress_decay must be in (0, 1] and planning_horizon >= 0")
        if not 0.0 <= r.static_weight <= 1.0:
            raise _invalid("rollout static_weight must be in [0, 1]", value=r.static_weight)
        if (r.epsilon < 0 or r.depth not in (1, 2) or r.max_placements < 1
                or r.max_evaluations < 1 or r.budget_ms < 0):
            raise _invalid("rollout epsilon/budget must be >= 0, depth 1 or 2, max_placements and max_evaluations >= 1")
        if s.infeasible_penalty < 0 or s.rationale_max_len < 4:
            raise _invalid("infeasible_penalty must be >= 0 and rationale_max_len >= 4")
        for name in ("features", "preconditions", "previews", "hazards", "placements"):
            if getattr(self.cache, name) <= 0:
                raise _invalid(f"cache size '{name}' must be positive", value=getattr(self.cache, name))
        for f in fields(self.search):
            v = getattr(self.search, f.name)
            if isinstance(v, float) and not math.isfinite(v):
                raise _invalid(f"search weight '{f.name}' must be finite")


def load_policy_config(path: Optional[str] = None) -> PolicyConfig:
    src = Path(path) if path else _default_json_path()
    try:
        raw = load_json(str(src))
    except (OSError, ValueError) as e:
        raise _invalid(f"cannot read policy config {src}: {e}", path=str(src)) from e
    return PolicyConfig.from_dict(raw)


DEFAULT_CONFIG = PolicyConfig()
SWITCH_MARGIN = DEFAULT_CONFIG.hysteresis.switch_margin
MIN_PLAN_AGE = DEFAULT_CONFIG.hysteresis.min_plan_age
LOW_CONFIDENCE = DEFAULT_CONFIG.hysteresis.low_confidence
ROLLOUT_EPSILON = DEFAULT_CONFIG.rollout.epsilon
