# coach/engine/pieces.py
"""
Static piece tables: SRS cell offsets per rotation, spawn poses and wall kicks.
Offsets are (dx, dy) inside the bounding box, x to the right, y downward.
"""
from __future__ import annotations

from typing import Dict, List, Tuple

from .errors import ErrorCode, PolicyError

__all__ = [
    "PIECE_IDS", "ROTATIONS", "SHAPES", "DISTINCT_ROTATIONS",
    "spawn_position", "piece_cells", "rotate_cw", "rotate_ccw", "kick_offsets",
]

Offsets = Tuple[Tuple[int, int], ...]

PIECE_IDS: Tuple[str, ...] = ("I", "O", "T", "S", "Z", "J", "L")
ROTATIONS: Tuple[str, ...] = ("spawn", "right", "two", "left")

SHAPES: Dict[str, Dict[str, Offsets]] = {
    "I": {
        "spawn": ((0, 1), (1, 1), (2, 1), (3, 1)),
        "right": ((2, 0), (2, 1), (2, 2), (2, 3)),
        "two": ((0, 2), (1, 2), (2, 2), (3, 2)),
        "left": ((1, 0), (1, 1), (1, 2), (1, 3)),
    },
    "O": {
        "spawn": ((1, 0), (2, 0), (1, 1), (2, 1)),
        "right": ((1, 0), (2, 0), (1, 1), (2, 1)),
        "two": ((1, 0), (2, 0), (1, 1), (2, 1)),
        "left": ((1, 0), (2, 0), (1, 1), (2, 1)),
    },
    "T": {
        "spawn": ((1, 0), (0, 1), (1, 1), (2, 1)),
        "right": ((1, 0), (1, 1), (2, 1), (1, 2)),
        "two": ((0, 1), (1, 1), (2, 1), (1, 2)),
        "left": ((1, 0), (0, 1), (1, 1), (1, 2)),
    },
    "S": {
        "spawn": ((1, 0), (2, 0), (0, 1), (1, 1)),
        "right": ((1, 0), (1, 1), (2, 1), (2, 2)),
        "two": ((1, 1), (2, 1), (0, 2), (1, 2)),
        "left": ((0, 0), (0, 1), (1, 1), (1, 2)),
    },
    "Z": {
        "spawn": ((0, 0), (1, 0), (1, 1), (2, 1)),
        "right": ((2, 0), (1, 1), (2, 1), (1, 2)),
        "two": ((0, 1), (1, 1), (1, 2), (2, 2)),
        "left": ((1, 0), (0, 1), (1, 1), (0, 2)),
    },
    "J": {
        "spawn": ((0, 0), (0, 1), (1, 1), (2, 1)),
        "right": ((1, 0), (2, 0), (1, 1), (1, 2)),
        "two": ((0, 1), (1, 1), (2, 1), (2, 2)),
        "left": ((1, 0), (1, 1), (0, 2), (1, 2)),
    },
    "L": {
        "spawn": ((2, 0), (0, 1), (1, 1), (2, 1)),
        "right": ((1, 0), (1, 1), (1, 2), (2, 2)),
        "two": ((0, 1), (1, 1), (2, 1), (0, 2)),
        "left": ((0, 0), (1, 0), (1, 1), (1, 2)),
    },
}

# O looks the same in every rotation; enumerating it once avoids 4x duplicate placements.
DISTINCT_ROTATIONS: Dict[str, Tuple[str, ...]] = {
    pid: (("spawn",) if pid == "O" else ROTATIONS) for pid in PIECE_IDS
}

# Standard SRS kick data, written with y pointing up as published.
_KICKS_JLSTZ: Dict[Tuple[str, str], List[Tuple[int, int]]] = {
    ("spawn", "right"): [(0, 0), (-1, 0), (-1, 1), (0, -2), (-1, -2)],
    ("right", "spawn"): [(0, 0), (1, 0), (1, -1), (0, 2), (1, 2)],
    ("right", "two"): [(0, 0), (1, 0), (1, -1), (0, 2), (1, 2)],
    ("two", "right"): [(0, 0), (-1, 0), (-1, 1), (0, -2), (-1, -2)],
    ("two", "left"): [(0, 0), (1, 0), (1, 1), (0, -2), (1, -2)],
    ("left", "two"): [(0, 0), (-1, 0), (-1, -1), (0, 2), (-1, 2)],
    ("left", "spawn"): [(0, 0), (-1, 0), (-1, -1), (0, 2), (-1, 2)],
    ("spawn", "left"): [(0, 0), (1, 0), (1, 1), (0, -2), (1, -2)],
}

_KICKS_I: Dict[Tuple[str, str], List[Tuple[int, int]]] = {
    ("spawn", "right"): [(0, 0), (-2, 0), (1, 0), (-2, -1), (1, 2)],
    ("right", "spawn"): [(0, 0), (2, 0), (-1, 0), (2, 1), (-1, -2)],
    ("right", "two"): [(0, 0), (-1, 0), (2, 0), (-1, 2), (2, -1)],
    ("two", "right"): [(0, 0), (1, 0), (-2, 0), (1, -2), (-2, 1)],
    ("two", "left"): [(0, 0), (2, 0), (-1, 0), (2, 1), (-1, -2)],
    ("left", "two"): [(0, 0), (-2, 0), (1, 0), (-2, -1), (1, 2)],
    ("left", "spawn"): [(0, 0), (1, 0), (-2, 0), (1, -2), (-2, 1)],
    ("spawn", "left"): [(0, 0), (-1, 0), (2, 0), (-1, 2), (2, -1)],
}


def _check_piece(piece_id: str) -> None:
    if piece_id not in SHAPES:
        raise PolicyError(ErrorCode.ERR_UNKNOWN_PIECE, f"unknown piece id {piece_id!r}")


def spawn_position(piece_id: str) -> Tuple[int, int]:
    """Top-left corner of the bounding box at spawn, in logical (x, y) coordinates."""
    _check_piece(piece_id)
    return (3, -1) if piece_id == "I" else (3, -2)


def piece_cells(piece_id: str, rot: str, x: int, y: int) -> List[Tuple[int, int]]:
    _check_piece(piece_id)
    return [(x + dx, y + dy) for dx, dy in SHAPES[piece_id][rot]]


def rotate_cw(rot: str) -> str:
    return ROTATIONS[(ROTATIONS.index(rot) + 1) % 4]


def rotate_ccw(rot: str) -> str:
    return ROTATIONS[(ROTATIONS.index(rot) + 3) % 4]


def kick_offsets(piece_id: str, from_rot: str, to_rot: str) -> List[Tuple[int, int]]:
    """Kick tests for a 90 degree turn, converted to the y-down grid."""
    if piece_id == "O":
        return [(0, 0)]
    table = _KICKS_I if piece_id == "I" else _KICKS_JLSTZ
    return [(dx, -dy) for dx, dy in table[(from_rot, to_rot)]]
