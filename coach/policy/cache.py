# coach/policy/cache.py
"""
Bounded LRU caches used by the policy, grouped in one injectable object.

Caches only memoise pure functions of their key, so clearing them at any time
has no effect on outputs.
"""
from __future__ import annotations

import hashlib
import threading
from contextlib import nullcontext
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from coach.engine.board import Board
from coach.engine.errors import ErrorCode, PolicyError
from coach.engine.state import GameState

from .config import CacheConfig
from .features import BoardFeatures, extract_features


class LRUCache:
    """
    Bounded memo with least-recently-used eviction. `data` is a plain dict kept
    in recency order, oldest entry first.
    """
    def __init__(self, maxsize: int, thread_safe: bool = False):
        if maxsize <= 0:
            raise PolicyError(ErrorCode.ERR_INVALID_CONFIG, "cache maxsize must be positive", {"maxsize": maxsize})
        self.maxsize = maxsize
        self.data: Dict[Hashable, Any] = {}
        self.counts = {"hits": 0, "misses": 0, "evictions": 0}
        self._lock = threading.Lock() if thread_safe else nullcontext()

    @property
    def hits(self) -> int:
        return self.counts["hits"]

    @property
    def misses(self) -> int:
        return self.counts["misses"]

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            if key not in self.data:
                self.counts["misses"] += 1
                return None
            self.counts["hits"] += 1
            value = self.data.pop(key)
            self.data[key] = value
            return value

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self.data.pop(key, None)
            self.data[key] = value
            if len(self.data) > self.maxsize:
                del self.data[next(iter(self.data))]
                self.counts["evictions"] += 1

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        # None is never stored, so None from get() always means a miss
        value = self.get(key)
        if value is None:
            value = compute()
            if value is not None:
                self.put(key, value)
        return value

    def __contains__(self, key: Hashable) -> bool:
        return key in self.data

    def __len__(self) -> int:
        return len(self.data)

    def clear(self) -> None:
        with self._lock:
            self.data.clear()
            self.counts = dict.fromkeys(self.counts, 0)

    def stats(self) -> Dict[str, float]:
        looked_up = self.counts["hits"] + self.counts["misses"]
        return {"entries": len(self.data), "maxsize": self.maxsize, **self.counts,
                "hit_rate": self.counts["hits"] / looked_up if looked_up else 0.0}


def make_cache_key(*parts: Any) -> str:
    """Join key parts with '|'; empty or blank parts are programming errors."""
    if not parts:
        raise PolicyError(ErrorCode.ERR_INVALID_CACHE_KEY, "cache key needs at least one part")
    out = []
    for i, p in enumerate(parts):
        s = "" if p is None else str(p)
        if not s.strip():
            raise PolicyError(ErrorCode.ERR_INVALID_CACHE_KEY, f"empty cache key part at index {i}",
                              {"parts": [str(x) for x in parts]})
        out.append(s)
    return "|".join(out)


def board_signature(board: Board) -> str:
    digest = hashlib.blake2b(board.cells.tobytes(), digest_size=16).hexdigest()
    return f"{board.width}x{board.height}+{board.vanish_rows}:{digest}"


def _preview_string(active: Optional[str], hold: Optional[str], can_hold: bool, queue: Tuple[str, ...]) -> str:
    return f"a:{active or '-'}/h:{hold or '-'}/c:{int(can_hold)}/q:{''.join(queue) or '-'}"


class PolicyCaches:
    """Feature, precondition, preview-signature, hazard and placement caches."""

    def __init__(self, cfg: Optional[CacheConfig] = None) -> None:
        cfg = cfg or CacheConfig()
        self.features = LRUCache(cfg.features, cfg.thread_safe)
        self.preconditions = LRUCache(cfg.preconditions, cfg.thread_safe)
        self.previews = LRUCache(cfg.previews, cfg.thread_safe)
        self.hazards = LRUCache(cfg.hazards, cfg.thread_safe)
        self.placements = LRUCache(cfg.placements, cfg.thread_safe)

    def _all(self) -> Dict[str, LRUCache]:
        return {
            "features": self.features,
            "preconditions": self.preconditions,
            "previews": self.previews,
            "hazards": self.hazards,
            "placements": self.placements,
        }

    def board_features(self, board: Board) -> BoardFeatures:
        return self.features.get_or_compute(board_signature(board), lambda: extract_features(board))

    def preview_signature(self, state: GameState) -> str:
        key = (state.active_id, state.hold, state.can_hold, state.next_queue)
        return self.previews.get_or_compute(key, lambda: _preview_string(*key))

    def state_key(self, *prefix: Any, state: GameState) -> str:
        return make_cache_key(*prefix, board_signature(state.board), self.preview_signature(state))

    def clear(self) -> None:
        for c in self._all().values():
            c.clear()

    def stats(self) -> Dict[str, Dict[str, float]]:
        return {name: c.stats() for name, c in self._all().items()}
