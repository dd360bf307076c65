# coach/policy/executor.py
"""
Turns a chosen template into concrete placements: candidate collection,
Pareto filtering on (utility up, finesse cost down) and clustering into
UI-sized placement groups.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from coach.engine.finesse import FinesseCalculator
from coach.engine.pieces import ROTATIONS
from coach.engine.state import GameState

from .cache import PolicyCaches
from .features import BoardFeatures
from .templates.base import Template
from .templates.utilities import resolve_piece
from .types import Placement, PlacementGroup, ScoredPlacement


def placement_cost(p: Placement, state: GameState, finesse: FinesseCalculator) -> float:
    pid = resolve_piece(p, state)
    if pid is None:
        return float("inf")
    return finesse.cost(pid, p.x, p.rot, p.use_hold)


def collect_candidates(template: Template, state: GameState, feats: BoardFeatures,
                       caches: PolicyCaches, finesse: FinesseCalculator
                       ) -> Tuple[List[ScoredPlacement], Optional[Placement]]:
    """
    All (placement, utility, cost) from every applicable step, keeping the best
    utility when two steps propose the same placement. Also returns the
    template's own pick: the highest-utility placement of the first applicable
    step that proposes anything.
    """
    utilities: Dict[Placement, float] = {}
    order: List[Placement] = []
    chosen: Optional[Placement] = None

    for step in template.next_step(state):
        if not step.when(state):
            continue
        key = caches.state_key("plc", template.id, step.name, state=state)
        proposals = caches.placements.get_or_compute(key, lambda: tuple(step.propose(state)))
        best_here: Optional[Tuple[float, Placement]] = None
        for p in proposals:
            u = step.utility(p, state, feats)
            if p not in utilities:
                order.append(p)
                utilities[p] = u
            elif u > utilities[p]:
                utilities[p] = u
            if best_here is None or u > best_here[0]:
                best_here = (u, p)
        if chosen is None and best_here is not None:
            chosen = best_here[1]

    cands = [ScoredPlacement(p, utilities[p], placement_cost(p, state, finesse)) for p in order]
    return cands, chosen


def dominates(a: ScoredPlacement, b: ScoredPlacement) -> bool:
    return (a.utility >= b.utility and a.cost <= b.cost
            and (a.utility > b.utility or a.cost < b.cost))


def pareto_filter(cands: Sequence[ScoredPlacement]) -> List[ScoredPlacement]:
    """Non-dominated subset, input order preserved. Quadratic; candidate lists are small."""
    return [c for c in cands if not any(dominates(o, c) for o in cands if o is not c)]


def _primary_key(c: ScoredPlacement):
    return (-c.utility, c.cost, c.placement.x)


def cluster_placements(cands: Sequence[ScoredPlacement]) -> List[PlacementGroup]:
    """
    Group by (hold, rotation), split each group into runs of consecutive
    columns, and pick the highest-utility (then cheapest) member of each run
    as the primary.
    """
    buckets: Dict[Tuple[bool, str], List[ScoredPlacement]] = {}
    for c in cands:
        buckets.setdefault((c.placement.use_hold, c.placement.rot), []).append(c)

    groups: List[PlacementGroup] = []
    for use_hold in (False, True):
        for rot in ROTATIONS:
            members = sorted(buckets.get((use_hold, rot), []), key=lambda c: c.placement.x)
            run: List[ScoredPlacement] = []
            for c in members:
                if run and c.placement.x != run[-1].placement.x + 1:
                    groups.append(_make_group(rot, run))
                    run = []
                run.append(c)
            if run:
                groups.append(_make_group(rot, run))
    return groups


def _make_group(rot: str, run: List[ScoredPlacement]) -> PlacementGroup:
    primary = min(run, key=_primary_key)
    return PlacementGroup(
        rot=rot,
        xs=tuple(c.placement.x for c in run),
        primary=primary.placement,
        alts=tuple(c.placement for c in run if c is not primary),
    )
