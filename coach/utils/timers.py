# coach/utils/timers.py
from __future__ import annotations
import time
from typing import Callable, Optional

Clock = Callable[[], float]


class Timer:
    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or time.perf_counter
        self._t0 = None

    def start(self) -> "Timer":
        self._t0 = self._clock()
        return self

    def elapsed(self) -> float:
        return 0.0 if self._t0 is None else (self._clock() - self._t0)

    def elapsed_ms(self) -> float:
        return self.elapsed() * 1000.0


class Budget(Timer):
    """
    Soft deadline for lookahead work.

    Always capped at `max_steps` evaluations (counted with `tick()`), which
    keeps the outcome a function of the inputs alone. A wall-clock limit of
    `budget_ms` applies only when a clock is passed in explicitly.
    """
    def __init__(self, budget_ms: float, clock: Optional[Clock] = None, max_steps: Optional[int] = None):
        super().__init__(clock)
        self.timed = clock is not None
        self.budget_ms = float(budget_ms)
        self.max_steps = max_steps
        self.steps = 0

    def tick(self) -> None:
        self.steps += 1

    def expired(self) -> bool:
        if self.max_steps is not None and self.steps >= self.max_steps:
            return True
        return self.timed and self._t0 is not None and self.elapsed_ms() >= self.budget_ms
