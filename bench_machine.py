"""Deterministic statistics and throughput harness for the bean counter machine."""

from __future__ import annotations

import argparse
import gc
import math
import platform
import statistics
import sys
import time
from typing import Dict, List, Optional, Sequence

from bean import make_beans
from bean_counter import BeanCounterLogic


def expected_mean(slots: int) -> float:
    """Mean slot index of an unbiased machine: Binomial(slots - 1, 0.5)."""
    return (slots - 1) * 0.5


def expected_stdev(slots: int) -> float:
    return math.sqrt((slots - 1) * 0.25)


def _percentile(values: Sequence[float], q: float) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    if len(ordered) == 1:
        return float(ordered[0])
    pos = (len(ordered) - 1) * q
    lo = int(math.floor(pos))
    hi = int(math.ceil(pos))
    if lo == hi:
        return float(ordered[lo])
    frac = pos - lo
    return float(ordered[lo] + (ordered[hi] - ordered[lo]) * frac)


def run_single(
    *,
    slots: int,
    beans: int,
    luck: bool,
    seed: int,
    check_invariants: bool = False,
    replays: int = 0,
) -> Dict[str, object]:
    logic = BeanCounterLogic(slots)
    logic.reset(make_beans(slots, beans, luck, seed=seed))

    on_step = None
    if check_invariants:
        def on_step(current: BeanCounterLogic) -> None:
            current.check_invariants(expected_total=beans)

    start_ns = time.perf_counter_ns()
    ticks = logic.run_to_completion(on_step)
    first_counts = logic.slot_counts()
    replay_match = True
    for _ in range(replays):
        logic.repeat()
        ticks += logic.run_to_completion(on_step)
        replay_match = replay_match and logic.slot_counts() == first_counts
    elapsed_ns = time.perf_counter_ns() - start_ns

    return {
        "ticks": ticks,
        "elapsed_ms": elapsed_ns / 1_000_000,
        "average_slot": logic.average_slot_index(),
        "slot_counts": list(first_counts),
        "replay_match": replay_match,
    }


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Deterministic bean counter benchmark")
    parser.add_argument("--slots", type=int, default=10, help="slots per machine (default: 10)")
    parser.add_argument("--beans", type=int, default=400, help="beans per run (default: 400)")
    parser.add_argument("--runs", type=int, default=20, help="experiments per repeat (default: 20)")
    parser.add_argument("--mode", choices=["luck", "skill"], default="luck", help="bean mode (default: luck)")
    parser.add_argument("--seed", type=int, default=12345, help="base random seed")
    parser.add_argument("--replays", type=int, default=0, help="repeat() each run N times and compare counts")
    parser.add_argument("--check-invariants", action="store_true", help="verify pool invariants after every tick")
    parser.add_argument("--repeat", type=int, default=1, help="benchmark repeats for p50/p95 summaries")
    parser.add_argument("--no-gc", action="store_true", help="disable GC during benchmark loop")
    args = parser.parse_args(argv)

    if args.slots <= 0:
        print("--slots must be > 0")
        return 2
    if args.beans < 0:
        print("--beans must be >= 0")
        return 2
    if args.runs <= 0:
        print("--runs must be > 0")
        return 2
    if args.replays < 0:
        print("--replays must be >= 0")
        return 2
    if args.repeat <= 0:
        print("--repeat must be > 0")
        return 2

    luck = args.mode == "luck"
    print(
        f"python={sys.version.split()[0]} platform={platform.platform()} "
        f"mode={args.mode} slots={args.slots} beans={args.beans} runs={args.runs} repeats={args.repeat}"
    )
    print("rep idx ticks elapsed_ms avg_slot replay")

    gc_was_enabled = gc.isenabled()
    repeat_summaries: List[Dict[str, float]] = []
    mismatches = 0
    if args.no_gc and gc_was_enabled:
        gc.disable()
    try:
        for rep in range(1, args.repeat + 1):
            total_ticks = 0
            averages: List[float] = []
            wall_start_ns = time.perf_counter_ns()
            for idx in range(1, args.runs + 1):
                result = run_single(
                    slots=args.slots,
                    beans=args.beans,
                    luck=luck,
                    seed=args.seed + idx,
                    check_invariants=args.check_invariants,
                    replays=args.replays,
                )
                total_ticks += int(result["ticks"])
                averages.append(float(result["average_slot"]))
                if not result["replay_match"]:
                    mismatches += 1
                print(
                    f"{rep:>3d} {idx:03d} {int(result['ticks']):>5d} {float(result['elapsed_ms']):>10.2f} "
                    f"{float(result['average_slot']):>8.3f} {'same' if result['replay_match'] else 'diff'}"
                )

            total_wall_ms = max(1, (time.perf_counter_ns() - wall_start_ns) // 1_000_000)
            ticks_per_sec = int(total_ticks * 1000 / total_wall_ms)
            mean_avg = statistics.fmean(averages)
            repeat_summaries.append(
                {
                    "ticks_per_sec": float(ticks_per_sec),
                    "mean_avg_slot": mean_avg,
                    "total_wall_ms": float(total_wall_ms),
                }
            )
            print(
                "summary "
                f"rep={rep} runs={args.runs} total_ticks={total_ticks} total_wall_ms={total_wall_ms} "
                f"ticks_per_sec={ticks_per_sec} mean_avg_slot={mean_avg:.3f} "
                f"expected={expected_mean(args.slots):.3f} stdev={expected_stdev(args.slots):.3f}"
            )
    finally:
        if args.no_gc and gc_was_enabled:
            gc.enable()

    if args.repeat > 1:
        def _print_dist(name: str, key: str, as_int: bool = False) -> None:
            values = [summary[key] for summary in repeat_summaries]
            p50 = _percentile(values, 0.50)
            p95 = _percentile(values, 0.95)
            mean = statistics.fmean(values)
            if as_int:
                print(
                    f"dist {name} min={int(min(values))} p50={int(round(p50))} "
                    f"p95={int(round(p95))} max={int(max(values))} mean={int(round(mean))}"
                )
            else:
                print(
                    f"dist {name} min={min(values):.3f} p50={p50:.3f} "
                    f"p95={p95:.3f} max={max(values):.3f} mean={mean:.3f}"
                )

        _print_dist("ticks_per_sec", "ticks_per_sec", as_int=True)
        _print_dist("mean_avg_slot", "mean_avg_slot")

    if args.replays and not luck and mismatches:
        print(f"skill replays diverged in {mismatches} run(s)")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
