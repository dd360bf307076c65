# coach/policy/search.py
"""
Fallback after-state search used when no structured opener is pursued.

Each root placement is simulated (drop, lock, line clears) and the resulting
board is scored with a weighted sum of its features, minus a small finesse
penalty. Near-tied leaders are separated by the micro-rollout.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from coach.engine.board import Board
from coach.engine.errors import PolicyError
from coach.engine.finesse import FinesseCalculator
from coach.engine.physics import apply_placement, enumerate_landings
from coach.engine.state import GameState

from .cache import PolicyCaches
from .config import SearchConfig
from .executor import cluster_placements, pareto_filter
from .rollout import MicroRollout
from .types import DEFAULT_PLACEMENT, Placement, PlacementGroup, ScoredPlacement

logger = logging.getLogger(__name__)

MAX_FINESSE_PENALTY_INPUTS = 20


@dataclass(frozen=True)
class SearchResult:
    best: Placement
    best_score: float
    second_score: float
    candidates: Tuple[ScoredPlacement, ...] = ()
    groups: Tuple[PlacementGroup, ...] = ()
    diagnostics: Dict[str, float] = field(default_factory=dict, compare=False)

    @property
    def inert(self) -> bool:
        return not self.candidates


class AfterStateSearch:
    def __init__(self, cfg: SearchConfig, rollout: MicroRollout, finesse: FinesseCalculator,
                 caches: PolicyCaches):
        self.cfg = cfg
        self.rollout = rollout
        self.finesse = finesse
        self.caches = caches

    def score_board(self, board: Board, lines_cleared: int) -> float:
        f = self.caches.board_features(board)
        c = self.cfg
        return (c.aggregate_height * f.aggregate_height
                + c.max_height * f.max_height
                + c.bumpiness * f.bumpiness
                + c.holes * f.holes
                + c.well_depth * f.well_depth
                + c.lines_cleared * lines_cleared)

    def _roots(self, state: GameState) -> List[Tuple[Placement, str, Tuple[str, ...]]]:
        """(placement, piece that moves, preview left afterwards) for every root move."""
        roots = []
        active = state.active
        for rot, x, _ in enumerate_landings(state.board, active.id):
            roots.append((Placement(x, rot, False, active.id), active.id, state.next_queue))
        if self.cfg.use_hold and state.can_hold:
            if state.hold is not None:
                swap, rest = state.hold, state.next_queue
            elif state.next_queue:
                swap, rest = state.next_queue[0], state.next_queue[1:]
            else:
                swap, rest = None, ()
            if swap is not None:
                for rot, x, _ in enumerate_landings(state.board, swap):
                    roots.append((Placement(x, rot, True, swap), swap, rest))
        return roots

    def search(self, state: GameState) -> SearchResult:
        if state.active is None:
            return SearchResult(DEFAULT_PLACEMENT, 0.0, 0.0, diagnostics={"explored": 0})

        scored: List[ScoredPlacement] = []
        boards: List[Tuple[Optional[Board], Tuple[str, ...]]] = []
        for p, piece, rest in self._roots(state):
            cost = self.finesse.cost(piece, p.x, p.rot, p.use_hold)
            try:
                after, lines = apply_placement(state.board, piece, p.rot, p.x)
            except PolicyError:
                scored.append(ScoredPlacement(p, self.rollout.cfg.illegal_score, cost))
                boards.append((None, rest))
                continue
            s = self.score_board(after, lines) - self.cfg.finesse_beta * min(cost, MAX_FINESSE_PENALTY_INPUTS)
            scored.append(ScoredPlacement(p, s, cost))
            boards.append((after, rest))

        if not scored:
            return SearchResult(DEFAULT_PLACEMENT, 0.0, 0.0, diagnostics={"explored": 0})

        scores = [c.utility for c in scored]
        rolled = 0
        exhausted = False
        top = max(scores)
        contenders = [i for i, s in enumerate(scores) if self.rollout.near_tie(s, top) and boards[i][0] is not None]
        if len(contenders) > 1:
            # blended only when every contender has a follow-up value
            budget = self.rollout.budget()
            follows: List[Optional[float]] = []
            for i in contenders:
                board, rest = boards[i]
                follow = self.rollout.evaluate_board(board, rest, self.score_board, budget)
                if follow is None:
                    exhausted = budget.expired()
                    break
                follows.append(follow)
            if len(follows) == len(contenders):
                for i, follow in zip(contenders, follows):
                    scores[i] = self.rollout.blend(scores[i], follow)
                rolled = len(follows)
            logger.debug("search rollout over %d/%d near-tied placements (exhausted=%s)",
                         rolled, len(contenders), exhausted)

        order = sorted(range(len(scored)), key=lambda i: (-scores[i], i))
        best_i = order[0]
        second = scores[order[1]] if len(order) > 1 else -math.inf
        final = tuple(ScoredPlacement(c.placement, scores[i], c.cost) for i, c in enumerate(scored))
        groups = tuple(cluster_placements(pareto_filter(final)))
        return SearchResult(
            best=scored[best_i].placement,
            best_score=scores[best_i],
            second_score=second,
            candidates=final,
            groups=groups,
            diagnostics={"explored": len(scored), "rolled_out": rolled, "rollout_exhausted": exhausted},
        )
