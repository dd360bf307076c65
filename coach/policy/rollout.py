# coach/policy/rollout.py
"""
Micro-rollout: a shallow, bounded look one or two pieces ahead, used only to
separate near-tied scores. The budget is a fixed number of simulated
placements, plus a wall-clock limit when a rollout clock is injected. Running
out of budget is not an error: the result is flagged as exhausted and callers
keep their static scores.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from coach.engine.board import Board
from coach.engine.errors import ErrorCode, PolicyError
from coach.engine.physics import apply_placement, enumerate_landings
from coach.engine.state import ActivePiece, GameState
from coach.utils.timers import Budget, Clock

from .config import RolloutConfig
from .scoring import PlanScorer
from .templates.base import Template
from .types import Placement

logger = logging.getLogger(__name__)

BoardEval = Callable[[Board, int], float]


@dataclass(frozen=True)
class RolloutResult:
    value: Optional[float]   # None when nothing could be evaluated
    evaluated: int
    planned: int
    exhausted: bool


def advance_state(state: GameState, p: Placement) -> GameState:
    """State after locking `p`: next preview piece becomes active, hold updated if used."""
    if state.active is None:
        raise PolicyError(ErrorCode.ERR_ILLEGAL_PLACEMENT, "no active piece to place")
    queue = state.next_queue
    hold = state.hold
    piece = state.active.id
    if p.use_hold:
        if hold is None:
            if not queue:
                raise PolicyError(ErrorCode.ERR_ILLEGAL_PLACEMENT, "hold needs a preview piece")
            piece, queue = queue[0], queue[1:]
        else:
            piece = hold
        hold = state.active.id
    board, _ = apply_placement(state.board, piece, p.rot, p.x)
    nxt = ActivePiece.spawn(queue[0]) if queue else None
    return GameState(board=board, active=nxt, hold=hold, can_hold=True, next_queue=queue[1:])


class MicroRollout:
    def __init__(self, cfg: Optional[RolloutConfig] = None, clock: Optional[Clock] = None):
        self.cfg = cfg or RolloutConfig()
        self.clock = clock

    def budget(self) -> Budget:
        return Budget(self.cfg.budget_ms, self.clock, self.cfg.max_evaluations).start()

    def blend(self, static: float, rollout: Optional[float]) -> float:
        if rollout is None:
            return static
        return self.cfg.static_weight * static + self.cfg.rollout_weight * rollout

    def near_tie(self, a: float, b: float) -> bool:
        return abs(a - b) <= self.cfg.epsilon

    # --------- template-level rollout ---------
    def _template_value(self, template: Template, state: GameState, scorer: PlanScorer, depth: int) -> float:
        pre = scorer.preconditions(template, state)
        if not pre.feasible:
            return self.cfg.infeasible_score
        best_p, best_u = self._template_pick(template, state, scorer)
        value = (pre.score_delta or 0.0) + (best_u if best_p is not None else 0.0)
        if depth > 1 and best_p is not None:
            try:
                nxt = advance_state(state, best_p)
            except PolicyError:
                return self.cfg.illegal_score
            value = 0.5 * value + 0.5 * self._template_value(template, nxt, scorer, depth - 1)
        return value

    @staticmethod
    def _template_pick(template: Template, state: GameState, scorer: PlanScorer
                       ) -> Tuple[Optional[Placement], float]:
        feats = scorer.features(state)
        for step in template.next_step(state):
            if not step.when(state):
                continue
            best: Tuple[Optional[Placement], float] = (None, 0.0)
            for p in step.propose(state):
                u = step.utility(p, state, feats)
                if best[0] is None or u > best[1]:
                    best = (p, u)
            if best[0] is not None:
                return best
        return None, 0.0

    def _ranked_placements(self, template: Template, state: GameState, scorer: PlanScorer) -> List[Placement]:
        feats = scorer.features(state)
        for step in template.next_step(state):
            if not step.when(state):
                continue
            props = list(step.propose(state))
            if props:
                ranked = sorted(enumerate(props), key=lambda ip: (-step.utility(ip[1], state, feats), ip[0]))
                return [p for _, p in ranked[: self.cfg.max_placements]]
        return []

    def evaluate_template(self, template: Template, state: GameState, scorer: PlanScorer) -> RolloutResult:
        placements = self._ranked_placements(template, state, scorer)
        if not placements:
            return RolloutResult(self.cfg.no_placement_score, 0, 0, False)
        budget = self.budget()
        total, n, exhausted = 0.0, 0, False
        for p in placements:
            if budget.expired():
                exhausted = True
                break
            budget.tick()
            try:
                future = advance_state(state, p)
            except PolicyError:
                total += self.cfg.illegal_score
                n += 1
                continue
            total += self._template_value(template, future, scorer, self.cfg.depth)
            n += 1
        if exhausted:
            logger.debug("rollout budget exhausted for %s after %d/%d", template.id, n, len(placements))
        return RolloutResult(total / n if n else None, n, len(placements), exhausted)

    # --------- placement-level rollout ---------
    def evaluate_board(self, board: Board, queue: Sequence[str], board_eval: BoardEval,
                       budget: Optional[Budget] = None, depth: Optional[int] = None) -> Optional[float]:
        """
        Best follow-up score over every landing of the next queued piece.
        None without a next piece, or when the budget ran out before every
        landing was scored.
        """
        depth = self.cfg.depth if depth is None else depth
        if not queue or depth <= 0:
            return None
        piece = queue[0]
        landings = enumerate_landings(board, piece)
        if not landings:
            return self.cfg.no_placement_score
        best: Optional[float] = None
        for rot, x, _ in landings:
            if budget is not None:
                if budget.expired():
                    return None
                budget.tick()
            try:
                after, lines = apply_placement(board, piece, rot, x)
            except PolicyError:
                score = self.cfg.illegal_score
            else:
                score = board_eval(after, lines)
                if depth > 1:
                    deeper = self.evaluate_board(after, queue[1:], board_eval, budget, depth - 1)
                    if deeper is None and budget is not None and budget.expired():
                        return None
                    if deeper is not None:
                        score = 0.5 * score + 0.5 * deeper
            if best is None or score > best:
                best = score
        return best
