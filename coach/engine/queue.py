"""
Seeded 7-bag piece randomizer.
"""
from typing import List, Optional
import random

from .pieces import PIECE_IDS

class SevenBagQueue:
    """Each bag holds one of every piece, shuffled; bags are dealt back to back."""
    def __init__(self, seed: Optional[int] = None):
        self.rng = random.Random()
        self.pending: List[str] = []
        self.bags_dealt = 0
        self.seed(seed)

    def seed(self, seed: Optional[int] = None) -> None:
        self.rng.seed(seed)
        self.pending.clear()
        self.bags_dealt = 0

    def _refill(self) -> None:
        bag = list(PIECE_IDS)
        self.rng.shuffle(bag)
        self.pending.extend(bag)
        self.bags_dealt += 1

    def peek(self, n: int) -> List[str]:
        while len(self.pending) < n:
            self._refill()
        return list(self.pending[:n])

    def next(self) -> str:
        if not self.pending:
            self._refill()
        return self.pending.pop(0)
