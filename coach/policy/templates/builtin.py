# coach/policy/templates/builtin.py
"""
The built-in opener catalogue: TKI and PCO families plus the safe fallback.
"""
from __future__ import annotations

from typing import List

import numpy as np
from overrides import overrides

from coach.engine.state import GameState

from ..features import BoardFeatures, bottom_rows, is_flat_field
from ..types import Intent, Preconditions, StepCandidate
from .base import Template, extend_template, legal_placements
from .utilities import pco_utility, safe_utility, tki_utility

EARLY_WINDOW = 3


def has_available_i(s: GameState) -> bool:
    return s.piece_available("I", EARLY_WINDOW)


def _has_active(s: GameState) -> bool:
    return s.active is not None


TKI_STEP = StepCandidate(
    name="tki-setup",
    when=_has_active,
    propose=lambda s: legal_placements(s, s.active.id, include_hold=True) if s.active else [],
    utility=tki_utility,
)

PCO_STEP = StepCandidate(
    name="pco-build",
    when=_has_active,
    propose=lambda s: legal_placements(s, s.active.id, include_hold=True) if s.active else [],
    utility=pco_utility,
)

SAFE_STEP = StepCandidate(
    name="safe-stack",
    when=_has_active,
    propose=lambda s: legal_placements(s, s.active.id, include_hold=False) if s.active else [],
    utility=safe_utility,
)


class TkiBaseTemplate(Template):
    id = "TKI/base"
    intent = Intent.TKI
    branch_ids = ("TKI/flatTop",)
    exit_id = "Neither/safe"

    @overrides
    def preconditions(self, state: GameState, feats: BoardFeatures) -> Preconditions:
        has_i = has_available_i(state)
        if not has_i:
            note = "No I piece available for TKI"
        elif state.active_id == "I":
            note = "I is active piece"
        elif "I" in state.next_queue[:EARLY_WINDOW]:
            note = "I in early preview"
        else:
            note = "I in hold"
        return Preconditions(feasible=has_i, notes=(note,), score_delta=0.3 if has_i else -0.5)

    @overrides
    def next_step(self, state: GameState) -> List[StepCandidate]:
        return [TKI_STEP] if state.active is not None else []


class PcoStandardTemplate(Template):
    id = "PCO/standard"
    intent = Intent.PCO
    branch_ids = ("PCO/edge", "PCO/transition")
    exit_id = "Neither/safe"

    @overrides
    def preconditions(self, state: GameState, feats: BoardFeatures) -> Preconditions:
        flat = is_flat_field(feats)
        ok = flat and has_available_i(state)
        note = "flat field" if flat else "Field not flat for PCO"
        return Preconditions(feasible=ok, notes=(note,), score_delta=0.2 if ok else -0.3)

    @overrides
    def next_step(self, state: GameState) -> List[StepCandidate]:
        return [PCO_STEP] if state.active is not None else []


class NeitherSafeTemplate(Template):
    id = "Neither/safe"
    intent = Intent.NEITHER

    @overrides
    def preconditions(self, state: GameState, feats: BoardFeatures) -> Preconditions:
        return Preconditions(feasible=True, notes=("safe stacking",), score_delta=0.0)

    @overrides
    def next_step(self, state: GameState) -> List[StepCandidate]:
        return [SAFE_STEP] if state.active is not None else []


# --------- variant preconditions ---------
def _flat_top(state: GameState, feats: BoardFeatures) -> Preconditions:
    flat = is_flat_field(feats)
    return Preconditions(True, ("flat field optimal",) if flat else ("field has height",), 0.2 if flat else 0.0)


def _clean_edges(state: GameState, feats: BoardFeatures) -> Preconditions:
    rows = bottom_rows(state.board, 3)
    w = state.board.width
    clean = not bool(np.any(rows[:, :3]) or np.any(rows[:, w - 3:]))
    return Preconditions(True, ("clean edges for edge play",) if clean else ("edges have height",),
                         0.15 if clean else -0.1)


def _pc_zone_broken(state: GameState, feats: BoardFeatures) -> bool:
    if feats.max_height > 4:
        return True
    zone = bottom_rows(state.board, 4)
    covered = np.maximum.accumulate(zone, axis=0)
    return bool(np.any(covered & ~zone))


def _transition(state: GameState, feats: BoardFeatures) -> Preconditions:
    broken = _pc_zone_broken(state, feats)
    return Preconditions(True, ("PC unviable, transition to safe stacking",) if broken else ("PC still viable",),
                         -0.2 if broken else 0.1)


def build_builtin_templates() -> List[Template]:
    tki = TkiBaseTemplate()
    pco = PcoStandardTemplate()
    return [
        tki,
        extend_template(tki, "TKI/flatTop", extra=_flat_top, branch_ids=("TKI/base",)),
        pco,
        extend_template(pco, "PCO/edge", extra=_clean_edges, branch_ids=("PCO/standard",)),
        extend_template(pco, "PCO/transition", extra=_transition, branch_ids=("PCO/standard",)),
        NeitherSafeTemplate(),
    ]
