# coach/utils/logging.py
"""
Append-only trace files for tooling (benchmark runs, replays).
The policy itself never writes files; it only uses the stdlib `logging` module.
"""
from __future__ import annotations
import os, csv, json, time
from typing import Any, Callable, Dict, List, Optional


def _ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


class CSVLogger:
    """
    One row per step. Columns are fixed by the first record; later records
    may omit columns (written empty) but may not add new ones.
    """
    def __init__(self, path: str, clock: Optional[Callable[[], float]] = None):
        self.path = path
        self._clock = clock or time.time
        _ensure_parent(self.path)
        self._fh = open(self.path, "a", newline="", encoding="utf-8")
        self._w: Optional[csv.DictWriter] = None
        self.columns: List[str] = []

    def log(self, step: int, metrics: Dict[str, Any]) -> None:
        row = {"step": int(step), **metrics, "timestamp": int(self._clock())}
        if self._w is None:
            self.columns = list(row)
            self._w = csv.DictWriter(self._fh, fieldnames=self.columns)
            if self._fh.tell() == 0:
                self._w.writeheader()
        extra = sorted(set(row) - set(self.columns))
        if extra:
            raise ValueError(f"unexpected CSV columns {extra}; header is {self.columns}")
        self._w.writerow(row)
        self._fh.flush()

    def close(self) -> None:
        self._fh.close()


class JSONLLogger:
    def __init__(self, path: str, clock: Optional[Callable[[], float]] = None):
        self.path = path
        self._clock = clock or time.time
        _ensure_parent(self.path)
        self._fh = open(self.path, "a", encoding="utf-8")

    def log(self, step: int, payload: Dict[str, Any]) -> None:
        out = {"step": int(step), "ts": int(self._clock()), **payload}
        self._fh.write(json.dumps(out, ensure_ascii=False) + "\n")
        self._fh.flush()

    def close(self) -> None:
        self._fh.close()


class TraceMux:
    """
    Fan one decision record out to the enabled trace files.

    The full record goes to JSONL; only the numeric fields named in
    `csv_fields` go to CSV.
    """
    def __init__(self, jsonl_path: Optional[str] = None, csv_path: Optional[str] = None,
                 csv_fields: tuple = ("latency_ms", "confidence"),
                 clock: Optional[Callable[[], float]] = None):
        self.jsonl = JSONLLogger(jsonl_path, clock) if jsonl_path else None
        self.csv = CSVLogger(csv_path, clock) if csv_path else None
        self.csv_fields = tuple(csv_fields)
        self.records = 0

    @property
    def enabled(self) -> bool:
        return self.jsonl is not None or self.csv is not None

    def record(self, step: int, payload: Dict[str, Any]) -> None:
        if self.jsonl is not None:
            self.jsonl.log(step, payload)
        if self.csv is not None:
            self.csv.log(step, {k: float(payload[k]) for k in self.csv_fields if k in payload})
        self.records += 1

    def close(self) -> None:
        if self.jsonl is not None:
            self.jsonl.close()
        if self.csv is not None:
            self.csv.close()

    def __enter__(self) -> "TraceMux":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
