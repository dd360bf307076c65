# coach/policy/hazards.py
"""
Fixed hazard table: board/queue conditions that threaten an opener.
Detectors are pure predicates over (state, features); penalties are negative.
"""
from __future__ import annotations

from typing import List, Tuple

import numpy as np

from coach.engine.state import GameState

from .features import BoardFeatures, bottom_rows
from .types import Hazard, Intent

EARLY_WINDOW = 3
TALL_STACK = 8


def _no_early_i(s: GameState, f: BoardFeatures) -> bool:
    return not s.piece_available("I", EARLY_WINDOW)


def _overhang_without_t(s: GameState, f: BoardFeatures) -> bool:
    return f.holes > 0 and not s.piece_available("T", EARLY_WINDOW)


def _has_wide_gap(rows: np.ndarray, width: int = 4) -> bool:
    for row in rows:
        run = 0
        for cell in row:
            run = 0 if cell else run + 1
            if run >= width:
                return True
    return False


def _split_needs_i(s: GameState, f: BoardFeatures) -> bool:
    if s.piece_available("I", EARLY_WINDOW):
        return False
    return _has_wide_gap(bottom_rows(s.board, 3))


def _holes_block_pc(s: GameState, f: BoardFeatures) -> bool:
    return f.holes > 0


def _stack_too_tall(s: GameState, f: BoardFeatures) -> bool:
    return f.max_height > TALL_STACK


HAZARDS: Tuple[Hazard, ...] = (
    Hazard("tki-no-early-i", "No I piece available for TKI", -1.5, _no_early_i, (Intent.TKI,)),
    Hazard("overhang-without-t", "Overhang without T piece support", -1.2, _overhang_without_t,
           (Intent.TKI, Intent.PCO)),
    Hazard("split-needs-i", "Split formation needs I piece", -0.8, _split_needs_i, (Intent.TKI, Intent.PCO)),
    Hazard("holes-block-perfect-clear", "Holes block a perfect clear", -1.0, _holes_block_pc, (Intent.PCO,)),
    Hazard("stack-too-tall", "Stack too tall for an opener", -0.6, _stack_too_tall, (Intent.TKI, Intent.PCO)),
)


def detect_hazards(intent: Intent, state: GameState, feats: BoardFeatures,
                   table: Tuple[Hazard, ...] = HAZARDS) -> List[Hazard]:
    """Hazards that apply to `intent` and trigger on the state, in table order."""
    return [h for h in table if h.applies(intent) and h.detect(state, feats)]
