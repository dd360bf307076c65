# coach/engine/physics.py
"""
Collision, movement, SRS rotation, drop, lock and line-clear simulation.
All functions are pure: boards and pieces are returned, never mutated.
"""
from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np

from .board import Board
from .errors import ErrorCode, PolicyError
from .pieces import DISTINCT_ROTATIONS, kick_offsets, piece_cells, rotate_ccw, rotate_cw
from .state import ActivePiece

PIECE_COLORS = {"I": 1, "O": 2, "T": 3, "S": 4, "Z": 5, "J": 6, "L": 7}


def can_place(board: Board, piece: ActivePiece) -> bool:
    for x, y in piece_cells(piece.id, piece.rot, piece.x, piece.y):
        if x < 0 or x >= board.width or y >= board.height or y < -board.vanish_rows:
            return False
        if board.cells[board.storage_row(y), x]:
            return False
    return True


def try_move(board: Board, piece: ActivePiece, dx: int, dy: int = 0) -> Optional[ActivePiece]:
    moved = piece.moved(dx, dy)
    return moved if can_place(board, moved) else None


def try_rotate(board: Board, piece: ActivePiece, direction: str) -> Optional[ActivePiece]:
    """Rotate 90 degrees ("CW" or "CCW") using the first SRS kick that fits."""
    target = rotate_cw(piece.rot) if direction == "CW" else rotate_ccw(piece.rot)
    for dx, dy in kick_offsets(piece.id, piece.rot, target):
        cand = ActivePiece(piece.id, target, piece.x + dx, piece.y + dy)
        if can_place(board, cand):
            return cand
    return None


def drop_to_bottom(board: Board, piece: ActivePiece) -> ActivePiece:
    cur = piece
    while True:
        nxt = try_move(board, cur, 0, 1)
        if nxt is None:
            return cur
        cur = nxt


def lock_piece(board: Board, piece: ActivePiece) -> Board:
    """Write the piece into the grid; cells outside storage are dropped."""
    return board.with_filled(piece_cells(piece.id, piece.rot, piece.x, piece.y),
                             color=PIECE_COLORS.get(piece.id, 8))


def completed_lines(board: Board) -> List[int]:
    """Logical row indices that are completely filled (vanish rows included)."""
    full = np.flatnonzero(np.all(board.cells != 0, axis=1))
    return [int(r) - board.vanish_rows for r in full]


def clear_lines(board: Board) -> Tuple[Board, int]:
    full = np.all(board.cells != 0, axis=1)
    n = int(np.count_nonzero(full))
    if n == 0:
        return board, 0
    kept = board.cells[~full]
    fresh = np.zeros((n, board.width), dtype=np.uint8)
    return board.with_cells(np.vstack([fresh, kept])), n


def landing_piece(board: Board, piece_id: str, rot: str, x: int) -> Optional[ActivePiece]:
    """
    Hard-drop projection of (rot, x) from the spawn row.
    Returns None when the pose does not fit at spawn height.
    """
    start = ActivePiece.spawn(piece_id)
    cand = ActivePiece(piece_id, rot, x, start.y)
    if not can_place(board, cand):
        return None
    return drop_to_bottom(board, cand)


def apply_placement(board: Board, piece_id: str, rot: str, x: int) -> Tuple[Board, int]:
    """Drop, lock and clear. Raises PolicyError(ERR_ILLEGAL_PLACEMENT) when the pose collides."""
    landed = landing_piece(board, piece_id, rot, x)
    if landed is None:
        raise PolicyError(ErrorCode.ERR_ILLEGAL_PLACEMENT,
                          f"{piece_id} cannot be placed at x={x} rot={rot}",
                          {"piece": piece_id, "x": x, "rot": rot})
    return clear_lines(lock_piece(board, landed))


def enumerate_landings(board: Board, piece_id: str) -> List[Tuple[str, int, ActivePiece]]:
    """Every (rot, x) whose hard drop is legal, in rotation-then-column order."""
    out: List[Tuple[str, int, ActivePiece]] = []
    for rot in DISTINCT_ROTATIONS[piece_id]:
        for x in range(-3, board.width):
            landed = landing_piece(board, piece_id, rot, x)
            if landed is not None:
                out.append((rot, x, landed))
    return out
