# coach/engine/state.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from .board import Board
from .pieces import ROTATIONS, SHAPES, spawn_position


@dataclass(frozen=True)
class ActivePiece:
    """The falling piece: id, rotation state and top-left anchor of its bounding box."""
    id: str
    rot: str = "spawn"
    x: int = 3
    y: int = -2

    @classmethod
    def spawn(cls, piece_id: str) -> "ActivePiece":
        x, y = spawn_position(piece_id)
        return cls(piece_id, "spawn", x, y)

    def moved(self, dx: int = 0, dy: int = 0) -> "ActivePiece":
        return replace(self, x=self.x + dx, y=self.y + dy)


@dataclass(frozen=True)
class GameState:
    """
    Read-only snapshot handed to the policy on every call.

    `next_queue` is the preview (upcoming pieces, nearest first); `hold` is the
    held piece id or None; `can_hold` is False after a hold was used this turn.
    """
    board: Board = field(default_factory=Board.empty)
    active: Optional[ActivePiece] = None
    hold: Optional[str] = None
    can_hold: bool = True
    next_queue: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "next_queue", tuple(self.next_queue))
        for pid in self.next_queue:
            if pid not in SHAPES:
                raise ValueError(f"unknown piece id in queue: {pid!r}")
        if self.hold is not None and self.hold not in SHAPES:
            raise ValueError(f"unknown hold piece id: {self.hold!r}")
        if self.active is not None and self.active.id not in SHAPES:
            raise ValueError(f"unknown active piece id: {self.active.id!r}")
        if self.active is not None and self.active.rot not in ROTATIONS:
            raise ValueError(f"unknown rotation: {self.active.rot!r}")

    # --------- factory & helpers ---------
    @classmethod
    def from_queue(cls, queue, board: Optional[Board] = None, hold: Optional[str] = None,
                   can_hold: bool = True) -> "GameState":
        """First queue entry becomes the active piece at its spawn pose; the rest is the preview."""
        queue = tuple(queue)
        active = ActivePiece.spawn(queue[0]) if queue else None
        return cls(board=board if board is not None else Board.empty(), active=active,
                   hold=hold, can_hold=can_hold, next_queue=queue[1:])

    @property
    def active_id(self) -> Optional[str]:
        return None if self.active is None else self.active.id

    def piece_available(self, piece_id: str, lookahead: int) -> bool:
        """True when `piece_id` is active, held, or within the first `lookahead` preview slots."""
        return (self.active_id == piece_id
                or self.hold == piece_id
                or piece_id in self.next_queue[:lookahead])

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict for traces; the board is reduced to its filled cell count."""
        return {
            "active": None if self.active is None else
            {"id": self.active.id, "rot": self.active.rot, "x": self.active.x, "y": self.active.y},
            "hold": self.hold,
            "can_hold": self.can_hold,
            "next_queue": list(self.next_queue),
            "filled": self.board.filled_count(),
        }
