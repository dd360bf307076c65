# coach/policy/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from coach.engine.state import GameState

from .features import BoardFeatures


class Intent(str, Enum):
    """Opener families a template can pursue."""
    TKI = "TKI"
    PCO = "PCO"
    NEITHER = "Neither"


@dataclass(frozen=True)
class Placement:
    """Target column of the rotation anchor, target rotation, and whether hold is used first."""
    x: int
    rot: str
    use_hold: bool = False
    piece: Optional[str] = None


DEFAULT_PLACEMENT = Placement(x=4, rot="spawn", use_hold=False)


@dataclass(frozen=True)
class Preconditions:
    feasible: bool
    notes: Tuple[str, ...] = ()
    score_delta: Optional[float] = None


@dataclass(frozen=True)
class StepCandidate:
    """One concrete next action of a template: gate, proposals and per-placement utility."""
    name: str
    when: Callable[[GameState], bool]
    propose: Callable[[GameState], List[Placement]]
    utility: Callable[[Placement, GameState, BoardFeatures], float]


@dataclass(frozen=True)
class Hazard:
    id: str
    reason: str
    penalty: float
    detect: Callable[[GameState, BoardFeatures], bool]
    applies_to: Optional[Tuple[Intent, ...]] = None  # None = every intent

    def __post_init__(self) -> None:
        if not self.penalty < 0:
            raise ValueError(f"hazard {self.id!r} penalty must be negative, got {self.penalty}")

    def applies(self, intent: Intent) -> bool:
        return self.applies_to is None or intent in self.applies_to


@dataclass(frozen=True)
class ScoredPlacement:
    placement: Placement
    utility: float
    cost: float


@dataclass(frozen=True)
class PlacementGroup:
    rot: str
    xs: Tuple[int, ...]
    primary: Placement
    alts: Tuple[Placement, ...]


@dataclass(frozen=True)
class Guidance:
    label: str
    target_x: int
    target_rot: str
    highlight_target: bool = True
    show_path: bool = False


@dataclass(frozen=True)
class Suggestion:
    intent: Intent
    placement: Placement
    confidence: float
    rationale: str
    plan_id: str
    groups: Tuple[PlacementGroup, ...] = ()
    guidance: Optional[Guidance] = None


@dataclass(frozen=True)
class PolicyContext:
    """Carried by the caller between calls; replaced, never mutated."""
    last_plan_id: Optional[str] = None
    last_best_score: Optional[float] = None
    last_second_score: Optional[float] = None
    plan_age: int = 0
    last_update: Optional[float] = None
    plan_history: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PolicyOutput:
    suggestion: Suggestion
    next_context: PolicyContext
    diagnostics: Dict[str, Any] = field(default_factory=dict, compare=False)
