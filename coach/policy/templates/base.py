# coach/policy/templates/base.py
from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from overrides import overrides

from coach.engine.physics import enumerate_landings
from coach.engine.state import GameState

from ..features import BoardFeatures
from ..types import Intent, Placement, Preconditions, StepCandidate

PreconditionFn = Callable[[GameState, BoardFeatures], Preconditions]


class Template:
    """
    Superclass for opener strategies.
    Override: preconditions(state, feats) -> Preconditions, next_step(state) -> steps.

    Branching and graceful exit are declared as data (`branch_ids`, `exit_id`)
    and resolved by id through the registry; a template with no branch ids
    simply cannot branch.
    """
    id: str = ""
    intent: Intent = Intent.NEITHER
    branch_ids: Tuple[str, ...] = ()
    exit_id: Optional[str] = None

    def preconditions(self, state: GameState, feats: BoardFeatures) -> Preconditions:
        raise NotImplementedError

    def next_step(self, state: GameState) -> List[StepCandidate]:
        raise NotImplementedError

    @property
    def can_branch(self) -> bool:
        return bool(self.branch_ids)

    @property
    def has_exit(self) -> bool:
        return self.exit_id is not None

    def branch_candidates(self, state: GameState) -> Tuple[str, ...]:
        return self.branch_ids

    def graceful_exit(self, state: GameState) -> Optional[str]:
        return self.exit_id

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id!r})"


class ExtendedTemplate(Template):
    """
    A variant derived from `base`: feasibility is the AND of both precondition
    results, notes are concatenated and score deltas added. Steps are the base
    steps followed by any extra steps.
    """
    def __init__(self, base: Template, id: str, extra: Optional[PreconditionFn] = None,
                 extra_steps: Optional[Callable[[GameState], List[StepCandidate]]] = None,
                 branch_ids: Optional[Tuple[str, ...]] = None, exit_id: Optional[str] = None):
        self.base = base
        self.id = id
        self.intent = base.intent
        self._extra = extra
        self._extra_steps = extra_steps
        self.branch_ids = base.branch_ids if branch_ids is None else tuple(branch_ids)
        self.exit_id = base.exit_id if exit_id is None else exit_id

    @overrides
    def preconditions(self, state: GameState, feats: BoardFeatures) -> Preconditions:
        b = self.base.preconditions(state, feats)
        if self._extra is None:
            return b
        e = self._extra(state, feats)
        return Preconditions(
            feasible=b.feasible and e.feasible,
            notes=b.notes + e.notes,
            score_delta=(b.score_delta or 0.0) + (e.score_delta or 0.0),
        )

    @overrides
    def next_step(self, state: GameState) -> List[StepCandidate]:
        steps = list(self.base.next_step(state))
        if self._extra_steps is not None:
            steps.extend(self._extra_steps(state))
        return steps


def extend_template(base: Template, id: str, **patch) -> Template:
    return ExtendedTemplate(base, id, **patch)


def legal_placements(state: GameState, piece_id: str, include_hold: bool = False) -> List[Placement]:
    """
    Every distinct (x, rot) the piece can hard-drop to, in rotation-then-column order.
    With `include_hold`, also the placements of the piece that holding would bring in.
    """
    out: List[Placement] = []
    seen = set()
    for rot, x, _ in enumerate_landings(state.board, piece_id):
        p = Placement(x=x, rot=rot, use_hold=False, piece=piece_id)
        if p not in seen:
            seen.add(p)
            out.append(p)

    if include_hold and state.can_hold and state.active is not None:
        swap_in = state.hold if state.hold is not None else (state.next_queue[0] if state.next_queue else None)
        if swap_in is not None:
            for rot, x, _ in enumerate_landings(state.board, swap_in):
                p = Placement(x=x, rot=rot, use_hold=True, piece=swap_in)
                if p not in seen:
                    seen.add(p)
                    out.append(p)
    return out
