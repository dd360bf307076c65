# coach/scripts/benchmark.py
"""
Latency harness: feeds consecutive 7-bag states through the policy, applying
each suggestion to the board, and reports per-call latency.

    python -m coach.scripts.benchmark --calls 2000 --seed 7 --trace runs/bench/trace.jsonl
"""
from __future__ import annotations

import argparse
import logging
import statistics
from typing import List, Optional

from coach.engine.board import Board
from coach.engine.errors import PolicyError
from coach.engine.queue import SevenBagQueue
from coach.engine.state import ActivePiece, GameState
from coach.policy.features import column_heights
from coach.policy.recommender import OpenerPolicy, create_default_policy
from coach.policy.rollout import advance_state
from coach.policy.types import PolicyContext
from coach.utils.jsonio import save_json
from coach.utils.logging import TraceMux
from coach.utils.timers import Timer

PREVIEW = 5

logger = logging.getLogger("coach.benchmark")


def initial_state(bag: SevenBagQueue) -> GameState:
    return GameState(board=Board.empty(), active=ActivePiece.spawn(bag.next()), next_queue=tuple(bag.peek(PREVIEW)))


def step_state(state: GameState, placement, bag: SevenBagQueue) -> GameState:
    """Apply the suggestion and top the preview back up from the bag."""
    after = advance_state(state, placement)
    consumed = len(state.next_queue) - len(after.next_queue)
    for _ in range(consumed):
        bag.next()
    active = after.active if after.active is not None else ActivePiece.spawn(bag.next())
    return GameState(after.board, active, after.hold, True, tuple(bag.peek(PREVIEW)))


def run(policy: OpenerPolicy, calls: int, seed: int, trace: Optional[str] = None,
        csv_path: Optional[str] = None) -> List[float]:
    bag = SevenBagQueue(seed)
    state = initial_state(bag)
    ctx = PolicyContext()
    timer = Timer()
    latencies: List[float] = []
    resets = 0
    with TraceMux(trace, csv_path) as traces:
        for i in range(calls):
            timer.start()
            out = policy.recommend(state, ctx)
            ms = timer.elapsed_ms()
            latencies.append(ms)
            ctx = out.next_context
            s = out.suggestion
            if traces.enabled:
                traces.record(i, {"latency_ms": ms, "plan": s.plan_id, "intent": s.intent.value,
                                "x": s.placement.x, "rot": s.placement.rot, "hold": s.placement.use_hold,
                                "confidence": s.confidence, "decision": out.diagnostics.get("decision")})
            try:
                state = step_state(state, s.placement, bag)
            except PolicyError as e:
                logger.info("call %d: %s; resetting board", i, e)
                state, ctx, resets = initial_state(bag), PolicyContext(), resets + 1
                continue
            if int(column_heights(state.board).max()) > state.board.height // 2:
                state, ctx, resets = initial_state(bag), PolicyContext(), resets + 1
    logger.info("board resets: %d", resets)
    return latencies


def main(argv: Optional[List[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Opener policy latency benchmark")
    ap.add_argument("--calls", type=int, default=1000)
    ap.add_argument("--seed", type=int, default=0)
    ap.add_argument("--config", type=str, default=None, help="policy JSON (defaults to coach/configs/policy.json)")
    ap.add_argument("--trace", type=str, default=None, help="optional JSONL decision trace path")
    ap.add_argument("--csv", type=str, default=None, help="optional CSV metrics path")
    ap.add_argument("--summary", type=str, default=None, help="optional JSON summary path")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    policy = create_default_policy(args.config)
    lat = run(policy, args.calls, args.seed, args.trace, args.csv)
    lat_sorted = sorted(lat)
    p95 = lat_sorted[int(0.95 * (len(lat_sorted) - 1))] if lat_sorted else 0.0
    summary = {
        "calls": len(lat),
        "seed": args.seed,
        "mean_ms": statistics.fmean(lat) if lat else 0.0,
        "p95_ms": p95,
        "max_ms": max(lat, default=0.0),
        "cache": policy.cache_stats(),
        "config": policy.config.to_dict(),
    }
    print(f"calls={summary['calls']} mean={summary['mean_ms']:.3f}ms "
          f"p95={p95:.3f}ms max={summary['max_ms']:.3f}ms")
    print(f"cache: {summary['cache']}")
    if args.summary:
        save_json(args.summary, summary)


if __name__ == "__main__":
    main()
