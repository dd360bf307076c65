# coach/policy/features.py
"""
Board feature extraction over the visible rows.

All counts are computed with numpy on the boolean occupancy grid; boards that
are empty or have completely filled columns are ordinary inputs.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from coach.engine.board import Board


@dataclass(frozen=True)
class BoardFeatures:
    heights: Tuple[int, ...]
    holes: int
    overhangs: int
    wells: Tuple[Tuple[int, int], ...]   # (column, depth)
    aggregate_height: int
    max_height: int
    min_height: int
    bumpiness: int

    @property
    def well_depth(self) -> int:
        return sum(d for _, d in self.wells)

    @property
    def deepest_well(self) -> int:
        return max((d for _, d in self.wells), default=0)


def column_heights(board: Board) -> np.ndarray:
    filled = board.visible != 0
    any_filled = filled.any(axis=0)
    first = np.argmax(filled, axis=0)
    return np.where(any_filled, board.height - first, 0).astype(np.int64)


def count_holes(board: Board) -> int:
    """Empty cells with a filled cell somewhere above them in the same column."""
    filled = board.visible != 0
    covered = np.maximum.accumulate(filled, axis=0)
    return int(np.count_nonzero(covered & ~filled))


def count_overhangs(board: Board) -> int:
    """Filled cells whose diagonal neighbour below (left or right) is empty and on the board."""
    filled = board.visible != 0
    empty = ~filled
    below_left = np.zeros_like(filled)
    below_right = np.zeros_like(filled)
    below_left[:-1, 1:] = empty[1:, :-1]
    below_right[:-1, :-1] = empty[1:, 1:]
    return int(np.count_nonzero(filled & (below_left | below_right)))


def find_wells(heights: np.ndarray, wall_height: int) -> Tuple[Tuple[int, int], ...]:
    """Columns lower than both neighbours; the walls count as full-height neighbours."""
    padded = np.concatenate(([wall_height], heights, [wall_height]))
    left, mid, right = padded[:-2], padded[1:-1], padded[2:]
    depth = np.minimum(left, right) - mid
    mask = (left > mid) & (right > mid)
    return tuple((int(x), int(depth[x])) for x in np.flatnonzero(mask))


def extract_features(board: Board) -> BoardFeatures:
    heights = column_heights(board)
    return BoardFeatures(
        heights=tuple(int(h) for h in heights),
        holes=count_holes(board),
        overhangs=count_overhangs(board),
        wells=find_wells(heights, board.height),
        aggregate_height=int(heights.sum()),
        max_height=int(heights.max()) if heights.size else 0,
        min_height=int(heights.min()) if heights.size else 0,
        bumpiness=int(np.abs(np.diff(heights)).sum()),
    )


def is_flat_field(f: BoardFeatures, max_height: int = 4, max_bumpiness: int = 4) -> bool:
    """No holes, a low stack and a near-level surface."""
    return f.holes == 0 and f.max_height <= max_height and f.bumpiness <= max_bumpiness


def bottom_rows(board: Board, rows: int) -> np.ndarray:
    return board.visible[board.height - rows:] != 0
