# coach/policy/templates/utilities.py
"""
Per-placement utility heuristics for opener steps.

Every utility starts from `base_utility` (stack danger, valley filling, local
evenness) and adds intent-specific terms computed from the columns the
placement covers.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from coach.engine.pieces import SHAPES
from coach.engine.state import GameState

from ..features import BoardFeatures
from ..types import Placement


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def resolve_piece(p: Placement, s: GameState) -> Optional[str]:
    """The piece a placement would move: explicit, else hold/preview for hold moves, else active."""
    if p.piece is not None:
        return p.piece
    if p.use_hold:
        if s.hold is not None:
            return s.hold
        if s.next_queue:
            return s.next_queue[0]
    return s.active_id


def columns_spanned(p: Placement, s: GameState) -> List[int]:
    width = s.board.width
    pid = resolve_piece(p, s)
    if pid is None:
        return [int(_clamp(p.x, 0, width - 1))]
    cols = sorted({p.x + dx for dx, _ in SHAPES[pid][p.rot] if 0 <= p.x + dx < width})
    return cols or [int(_clamp(p.x, 0, width - 1))]


@dataclass(frozen=True)
class Local:
    x_start: int
    x_end: int
    target_heights: Tuple[int, ...]
    left: int
    right: int

    @property
    def min_target(self) -> int:
        return min(self.target_heights)

    @property
    def max_target(self) -> int:
        return max(self.target_heights)

    @property
    def mean_target(self) -> float:
        return sum(self.target_heights) / len(self.target_heights)


def local_topology(p: Placement, s: GameState, f: BoardFeatures) -> Local:
    cols = columns_spanned(p, s)
    th = tuple(f.heights[c] for c in cols)
    xs, xe = cols[0], cols[-1]
    left = f.heights[xs - 1] if xs > 0 else th[0]
    right = f.heights[xe + 1] if xe < len(f.heights) - 1 else th[-1]
    return Local(xs, xe, th, left, right)


def _mean_height(f: BoardFeatures) -> float:
    return f.aggregate_height / len(f.heights) if f.heights else 0.0


def base_utility(p: Placement, s: GameState, f: BoardFeatures) -> float:
    loc = local_topology(p, s, f)
    u = 1.0

    if f.max_height >= 18:
        u -= 1.2
    elif f.max_height >= 16:
        u -= 0.8
    elif f.max_height >= 14:
        u -= 0.4

    if loc.x_start == 0 or loc.x_end == s.board.width - 1:
        u -= _lerp(0.05, 0.2, _clamp(f.max_height / 18, 0, 1))

    u += (0.15 if loc.min_target < loc.left else 0) + (0.15 if loc.min_target < loc.right else 0)
    u -= (0.2 if loc.max_target > loc.left + 2 else 0) + (0.2 if loc.max_target > loc.right + 2 else 0)

    evenness = 1 - _clamp(abs(loc.mean_target - _mean_height(f)) / 6, 0, 1)
    u += 0.1 * evenness
    if p.use_hold:
        u -= 0.05
    return u


def tki_utility(p: Placement, s: GameState, f: BoardFeatures) -> float:
    loc = local_topology(p, s, f)
    u = base_utility(p, s, f)

    # centre band: the T-spin slot lives around columns 3-6
    mid = (s.board.width - 1) / 2
    u += _clamp(0.6 - 0.12 * abs((loc.x_start + loc.x_end) / 2 - mid), 0, 0.6)

    centre = [f.heights[x] for x in (3, 4, 5, 6) if x < len(f.heights)]
    centre_max = max(centre) if centre else f.max_height
    if centre_max <= 6:
        u += 0.15
    elif centre_max >= 9:
        u -= 0.25

    pid = resolve_piece(p, s)
    if pid == "T" and loc.x_start <= 4 <= loc.x_end:
        u += 0.2
    if s.hold == "I" or "I" in s.next_queue[:3] or pid == "I":
        u += 0.1
    u -= (0.15 if loc.max_target > loc.left + 2 else 0) + (0.15 if loc.max_target > loc.right + 2 else 0)
    if p.use_hold and s.active_id not in (None, "T", "I"):
        u += 0.1
    return u


def pco_utility(p: Placement, s: GameState, f: BoardFeatures) -> float:
    loc = local_topology(p, s, f)
    u = base_utility(p, s, f)

    if f.max_height > 4:
        u -= 0.5 + 0.1 * (f.max_height - 4)
    else:
        u += 0.25
    u += 0.4 * _clamp(1 - f.bumpiness / 20, 0, 1)
    if loc.x_start >= 1 and loc.x_end <= 5:
        u += 0.15
    if loc.max_target > loc.left + 1:
        u -= 0.15
    if loc.max_target > loc.right + 1:
        u -= 0.15
    u += 0.2 * (1 - _clamp(abs(loc.mean_target - _mean_height(f)) / 3, 0, 1))
    if p.rot == "spawn":
        u += 0.05
    if p.use_hold:
        u -= 0.05
    return u


def safe_utility(p: Placement, s: GameState, f: BoardFeatures) -> float:
    loc = local_topology(p, s, f)
    width = s.board.width
    u = base_utility(p, s, f)
    inner = loc.x_start >= 2 and loc.x_end <= width - 3
    on_edge = loc.x_start == 0 or loc.x_end == width - 1

    if f.max_height <= 3 and f.aggregate_height <= 6:
        # opening: keep the middle, stay off the walls
        u += 0.25 if inner else 0.0
        u -= 0.2 if on_edge else 0.0
    else:
        if f.max_height > 15:
            u -= 0.8
        elif f.max_height > 12:
            u -= 0.4
        u += 0.1 if inner else 0.0

    if loc.min_target < min(loc.left, loc.right):
        u += 0.2
    if loc.max_target > max(loc.left, loc.right) + 1:
        u -= 0.2
    if on_edge:
        u -= 0.1
    if p.use_hold:
        u -= 0.1
    return u
