# coach/engine/finesse.py
"""
Minimum input count to reach a target column/rotation from the spawn pose.
Breadth-first search over moves, DAS shifts and rotations on an empty board,
terminated by a hard drop.
"""
from __future__ import annotations

import math
from collections import deque
from typing import Dict, List, Optional, Tuple

from .board import Board
from .physics import try_move, try_rotate
from .state import ActivePiece

ACTIONS: Tuple[str, ...] = ("MoveLeft", "MoveRight", "DASLeft", "DASRight", "RotateCW", "RotateCCW")


def _apply(board: Board, piece: ActivePiece, action: str) -> Optional[ActivePiece]:
    if action == "MoveLeft":
        return try_move(board, piece, -1)
    if action == "MoveRight":
        return try_move(board, piece, 1)
    if action in ("DASLeft", "DASRight"):
        step = -1 if action == "DASLeft" else 1
        cur = piece
        while True:
            nxt = try_move(board, cur, step)
            if nxt is None:
                break
            cur = nxt
        return None if cur == piece else cur
    if action == "RotateCW":
        return try_rotate(board, piece, "CW")
    if action == "RotateCCW":
        return try_rotate(board, piece, "CCW")
    raise ValueError(f"unknown finesse action {action!r}")


class FinesseCalculator:
    """
    Memoised path-cost oracle. Costs depend only on (piece, x, rot) because the
    search runs on an empty board, so the memo never needs invalidating for
    correctness; `clear()` exists for memory control.
    """
    def __init__(self, width: int = 10, height: int = 20, vanish_rows: int = 3):
        self._board = Board.empty(width, height, vanish_rows)
        self._memo: Dict[Tuple[str, int, str], List[str]] = {}
        self._unreachable: set = set()

    def path(self, piece_id: str, x: int, rot: str) -> Optional[List[str]]:
        """Shortest action list ending with HardDrop, or None when unreachable."""
        key = (piece_id, x, rot)
        if key in self._memo:
            return list(self._memo[key])
        if key in self._unreachable:
            return None
        found = self._search(piece_id, x, rot)
        if found is None:
            self._unreachable.add(key)
            return None
        self._memo[key] = found
        return list(found)

    def cost(self, piece_id: str, x: int, rot: str, use_hold: bool = False) -> float:
        p = self.path(piece_id, x, rot)
        if p is None:
            return math.inf
        return float(len(p) + (1 if use_hold else 0))

    def clear(self) -> None:
        self._memo.clear()
        self._unreachable.clear()

    def __len__(self) -> int:
        return len(self._memo) + len(self._unreachable)

    def _search(self, piece_id: str, x: int, rot: str) -> Optional[List[str]]:
        start = ActivePiece.spawn(piece_id)
        queue = deque([(start, [])])
        seen = {(start.x, start.y, start.rot)}
        while queue:
            cur, path = queue.popleft()
            if cur.x == x and cur.rot == rot:
                return path + ["HardDrop"]
            for action in ACTIONS:
                nxt = _apply(self._board, cur, action)
                if nxt is None:
                    continue
                k = (nxt.x, nxt.y, nxt.rot)
                if k in seen:
                    continue
                seen.add(k)
                queue.append((nxt, path + [action]))
        return None
