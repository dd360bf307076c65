# coach/engine/board.py
"""
Immutable board snapshot backed by a read-only numpy array.

Storage row 0 is the top vanish row; logical row y maps to storage row
y + vanish_rows, so visible rows are 0..height-1 and the vanish zone is
-vanish_rows..-1.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np

__all__ = ["Board", "BOARD_WIDTH", "BOARD_HEIGHT", "VANISH_ROWS"]

BOARD_WIDTH = 10
BOARD_HEIGHT = 20
VANISH_ROWS = 3


@dataclass(frozen=True, eq=False)
class Board:
    cells: np.ndarray
    width: int = BOARD_WIDTH
    height: int = BOARD_HEIGHT
    vanish_rows: int = VANISH_ROWS

    def __post_init__(self) -> None:
        arr = np.array(self.cells, dtype=np.uint8)
        expected = (self.height + self.vanish_rows, self.width)
        if arr.shape != expected:
            raise ValueError(f"board cells must have shape {expected}, got {arr.shape}")
        arr.setflags(write=False)
        object.__setattr__(self, "cells", arr)

    # --------- constructors ---------
    @classmethod
    def empty(cls, width: int = BOARD_WIDTH, height: int = BOARD_HEIGHT,
              vanish_rows: int = VANISH_ROWS) -> "Board":
        return cls(np.zeros((height + vanish_rows, width), dtype=np.uint8), width, height, vanish_rows)

    @classmethod
    def from_rows(cls, rows: Sequence[str], width: int = BOARD_WIDTH, height: int = BOARD_HEIGHT,
                  vanish_rows: int = VANISH_ROWS, color: int = 8) -> "Board":
        """
        Build a board from text rows describing the bottom of the field, top to bottom.
        '.' or ' ' is empty, anything else is filled. E.g. ["X.........", "XXXXXXXXX."].
        """
        if len(rows) > height:
            raise ValueError(f"got {len(rows)} rows for a board of height {height}")
        arr = np.zeros((height + vanish_rows, width), dtype=np.uint8)
        start = height + vanish_rows - len(rows)
        for i, row in enumerate(rows):
            if len(row) != width:
                raise ValueError(f"row {i} has width {len(row)}, expected {width}")
            for x, ch in enumerate(row):
                if ch not in ". ":
                    arr[start + i, x] = color
        return cls(arr, width, height, vanish_rows)

    # --------- views & helpers ---------
    @property
    def visible(self) -> np.ndarray:
        return self.cells[self.vanish_rows:]

    def storage_row(self, y: int) -> int:
        return y + self.vanish_rows

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and -self.vanish_rows <= y < self.height

    def is_filled(self, x: int, y: int) -> bool:
        """Out-of-bounds cells read as empty."""
        if not self.in_bounds(x, y):
            return False
        return bool(self.cells[self.storage_row(y), x])

    def with_cells(self, cells: np.ndarray) -> "Board":
        return Board(cells, self.width, self.height, self.vanish_rows)

    def with_filled(self, coords: Iterable, color: int = 8) -> "Board":
        arr = self.cells.copy()
        for x, y in coords:
            if self.in_bounds(x, y):
                arr[self.storage_row(y), x] = color
        return self.with_cells(arr)

    def filled_count(self) -> int:
        return int(np.count_nonzero(self.visible))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Board):
            return NotImplemented
        return (self.width, self.height, self.vanish_rows) == (other.width, other.height, other.vanish_rows) \
            and bool(np.array_equal(self.cells, other.cells))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Board({self.width}x{self.height}+{self.vanish_rows}, filled={self.filled_count()})"
