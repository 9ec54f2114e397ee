"""Text-mode driver for the bean counter machine."""

from __future__ import annotations

import argparse
from typing import List, NoReturn, Optional

from bean import make_beans
from bean_counter import BeanCounterLogic, LOWER, UPPER, pretty_print, slot_string
from bean_telemetry import CallbackTelemetrySink, TelemetryEnvelope, format_envelope

LUCK = "luck"
SKILL = "skill"


def show_usage() -> None:
    print("Usage: python cli.py slot_count bean_count <luck | skill> [debug]")
    print("Example: python cli.py 10 400 luck")
    print("Example: python cli.py 20 1000 skill debug")


def run_experiment(logic: BeanCounterLogic, debug: bool) -> int:
    if debug:
        print(pretty_print(logic))
        print()

    def _show(current: BeanCounterLogic) -> None:
        print(pretty_print(current))
        print()

    return logic.run_to_completion(_show if debug else None)


def print_results(logic: BeanCounterLogic, stats: bool) -> None:
    print("Slot bean counts:")
    print(slot_string(logic))
    if stats:
        print(f"Average slot: {logic.average_slot_index():.3f} (beans={logic.settled_count()})")


class UsageArgumentParser(argparse.ArgumentParser):
    """Reports bad arguments as ``ValueError`` so ``main`` can print the usage lines."""

    def error(self, message: str) -> NoReturn:
        raise ValueError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = UsageArgumentParser(description="Bean counter (Galton box) simulator")
    parser.add_argument("slot_count", type=int, help="number of slots at the bottom of the machine")
    parser.add_argument("bean_count", type=int, help="number of beans to drop")
    parser.add_argument("mode", choices=[LUCK, SKILL], help="luck = coin flip per peg, skill = fixed per-bean bias")
    parser.add_argument("debug", nargs="?", default=None, help="'debug' prints the board after every step")
    parser.add_argument("--seed", type=int, default=None, help="seed for reproducible beans")
    parser.add_argument("--half", choices=[LOWER, UPPER], default=None, help="keep only the lower or upper half")
    parser.add_argument("--repeat", type=int, default=0, help="rerun the experiment N more times with the same beans")
    parser.add_argument("--stats", action="store_true", help="print the average slot index")
    parser.add_argument("--trace", action="store_true", help="print telemetry events as they happen")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except ValueError as exc:
        print(str(exc))
        show_usage()
        return 2

    if args.slot_count <= 0 or args.bean_count < 0 or args.repeat < 0:
        show_usage()
        return 2

    sink = None
    if args.trace:
        def _print_event(envelope: TelemetryEnvelope) -> None:
            print(format_envelope(envelope))

        sink = CallbackTelemetrySink(_print_event)

    logic = BeanCounterLogic(args.slot_count, telemetry_sink=sink)
    beans = make_beans(args.slot_count, args.bean_count, luck=args.mode == LUCK, seed=args.seed)
    logic.reset(beans)
    debug = args.debug == "debug"
    for run in range(args.repeat + 1):
        if run > 0:
            logic.repeat()
            print()
            print(f"Run {run + 1}:")
        run_experiment(logic, debug)
        if args.half == LOWER:
            logic.lower_half()
        elif args.half == UPPER:
            logic.upper_half()
        print_results(logic, args.stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
