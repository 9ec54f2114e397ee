"""Core stepping logic for the bean counter (Galton box / quincunx) machine.

In-flight beans are tracked in a logical triangular coordinate system. Row
``y`` has ``y + 1`` peg positions, and the bottom row maps one-to-one onto
the slots. For a 4-slot machine::

                     (0, 0)
              (0, 1)        (1, 1)
       (0, 2)        (1, 2)        (2, 2)
 (0, 3)       (1, 3)        (2, 3)       (3, 3)
[Slot0]       [Slot1]       [Slot2]      [Slot3]
"""

from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Iterable, List, Optional, Tuple

from bean import Bean, BeanCounterError, InvalidConfiguration
from bean_telemetry import (
    RepeatEvent,
    ResetEvent,
    RunEndEvent,
    StepEvent,
    TelemetrySink,
    TruncateEvent,
    emit_dataclass_event,
)

NO_BEAN_IN_YPOS = None
DEFAULT_XSPACING = 3
LOWER = "lower"
UPPER = "upper"

__all__ = [
    "BeanCounterLogic",
    "BeanCounterError",
    "InvalidConfiguration",
    "InvariantViolation",
    "UseBeforeReset",
    "NO_BEAN_IN_YPOS",
    "pretty_print",
    "slot_string",
]


class UseBeforeReset(BeanCounterError, RuntimeError):
    """Raised when the machine is driven or queried before its first reset."""


class InvariantViolation(BeanCounterError, RuntimeError):
    """Raised by ``check_invariants`` when the pools are inconsistent."""


class BeanCounterLogic:
    """Three disjoint bean pools (waiting, in-flight, settled) on a triangular board.

    Row occupancy is a fixed-size list, so "at most one bean per row" holds
    structurally. A bean lives in exactly one pool at a time.
    """

    def __init__(self, slot_count: int, telemetry_sink: Optional[TelemetrySink] = None) -> None:
        if isinstance(slot_count, bool) or not isinstance(slot_count, int) or slot_count <= 0:
            raise InvalidConfiguration(f"slot count must be a positive integer, got {slot_count!r}")
        self._slots = slot_count
        self._waiting: Optional[Deque[Bean]] = None
        self._in_flight: List[Optional[Bean]] = [None] * slot_count
        self._settled: List[List[Bean]] = [[] for _ in range(slot_count)]
        self._bean_total = 0
        self._ticks = 0
        self._telemetry = telemetry_sink

    # ----- lifecycle -------------------------------------------------------

    def reset(self, beans: Iterable[Bean]) -> None:
        """Hard reset: adopt ``beans`` as the waiting pool and drop one at the top."""
        new_beans = list(beans)
        seen = set()
        for bean in new_beans:
            if id(bean) in seen:
                raise InvalidConfiguration("the same bean instance was supplied twice")
            seen.add(id(bean))
            width = getattr(bean, "width", None)
            if width is not None and width != self._slots:
                raise InvalidConfiguration(f"bean built for {width} slots cannot run on a {self._slots}-slot machine")

        for bean in new_beans:
            bean.reset()
        self._waiting = deque(new_beans)
        self._in_flight = [None] * self._slots
        self._settled = [[] for _ in range(self._slots)]
        self._bean_total = len(new_beans)
        self._ticks = 0
        self._insert_top()

        if self._telemetry is not None:
            emit_dataclass_event(
                self._telemetry,
                "reset",
                ResetEvent(slot_count=self._slots, bean_count=self._bean_total, remaining=len(self._waiting)),
            )

    def repeat(self) -> None:
        """Soft reset: scoop in-flight then settled beans back into the waiting pool.

        Beans are appended behind any still waiting, in-flight rows first in
        ascending row order, then each slot in ascending order and arrival
        order within the slot.
        """
        waiting = self._require_reset()
        scooped: List[Bean] = []
        for row in range(self._slots):
            bean = self._in_flight[row]
            if bean is not None:
                scooped.append(bean)
                self._in_flight[row] = None
        for slot in self._settled:
            scooped.extend(slot)
            slot.clear()

        for bean in scooped:
            bean.reset()
        waiting.extend(scooped)
        self._bean_total = len(waiting)
        self._ticks = 0
        self._insert_top()

        if self._telemetry is not None:
            emit_dataclass_event(
                self._telemetry,
                "repeat",
                RepeatEvent(scooped=len(scooped), remaining=len(waiting)),
            )

    def advance_step(self) -> bool:
        """Advance every in-flight bean by one row and refill the top.

        Rows are processed bottom-up so a bean moved into row ``y + 1`` is
        not touched again in the same tick. Returns False once the waiting
        and in-flight pools are both empty.
        """
        waiting = self._require_reset()
        if not waiting and self.in_flight_count() == 0:
            return False

        bottom = self._slots - 1
        settled_slot: Optional[int] = None
        landing = self._in_flight[bottom]
        if landing is not None:
            settled_slot = landing.current_x()
            if not 0 <= settled_slot < self._slots:
                raise InvariantViolation(f"bean at x={settled_slot} cannot settle in a {self._slots}-slot machine")
            self._in_flight[bottom] = None
            self._settled[settled_slot].append(landing)

        for row in range(bottom - 1, -1, -1):
            bean = self._in_flight[row]
            if bean is None:
                continue
            self._in_flight[row] = None
            bean.advance_choice()
            self._in_flight[row + 1] = bean

        inserted = self._insert_top()
        self._ticks += 1

        if self._telemetry is not None:
            emit_dataclass_event(
                self._telemetry,
                "step",
                StepEvent(
                    tick=self._ticks,
                    settled_slot=settled_slot,
                    inserted=inserted,
                    remaining=len(waiting),
                    in_flight=self.in_flight_count(),
                    settled=self.settled_count(),
                ),
            )
            if self.is_terminal():
                emit_dataclass_event(
                    self._telemetry,
                    "run_end",
                    RunEndEvent(
                        ticks=self._ticks,
                        settled=self.settled_count(),
                        average_slot=self.average_slot_index(),
                        slot_counts=list(self.slot_counts()),
                    ),
                )
        return True

    def run_to_completion(self, on_step: Optional[Callable[["BeanCounterLogic"], None]] = None) -> int:
        """Step until the machine is terminal. Returns the number of ticks taken."""
        ticks = 0
        while self.advance_step():
            ticks += 1
            if on_step is not None:
                on_step(self)
        return ticks

    def _insert_top(self) -> bool:
        if self._waiting:
            self._in_flight[0] = self._waiting.popleft()
            return True
        return False

    def _require_reset(self) -> Deque[Bean]:
        if self._waiting is None:
            raise UseBeforeReset("reset() must be called before the machine is used")
        return self._waiting

    # ----- queries ---------------------------------------------------------

    def slot_count_total(self) -> int:
        return self._slots

    def remaining_count(self) -> int:
        return len(self._require_reset())

    def in_flight_x(self, row: int) -> Optional[int]:
        """x-coordinate of the in-flight bean at ``row``, or ``NO_BEAN_IN_YPOS``."""
        self._require_reset()
        if not 0 <= row < self._slots:
            return NO_BEAN_IN_YPOS
        bean = self._in_flight[row]
        if bean is None:
            return NO_BEAN_IN_YPOS
        return bean.current_x()

    def in_flight_positions(self) -> List[Tuple[int, int]]:
        """``(x, row)`` for every occupied row, top row first."""
        self._require_reset()
        return [(bean.current_x(), row) for row, bean in enumerate(self._in_flight) if bean is not None]

    def in_flight_count(self) -> int:
        self._require_reset()
        return sum(1 for bean in self._in_flight if bean is not None)

    def slot_count(self, i: int) -> int:
        self._require_reset()
        if not 0 <= i < self._slots:
            return 0
        return len(self._settled[i])

    def slot_counts(self) -> Tuple[int, ...]:
        self._require_reset()
        return tuple(len(slot) for slot in self._settled)

    def settled_count(self) -> int:
        self._require_reset()
        return sum(len(slot) for slot in self._settled)

    def total_count(self) -> int:
        return self.remaining_count() + self.in_flight_count() + self.settled_count()

    def is_terminal(self) -> bool:
        return not self._require_reset() and self.in_flight_count() == 0

    def average_slot_index(self) -> float:
        """Mean slot index weighted by occupancy; 0.0 when nothing has settled."""
        counts = self.slot_counts()
        total = sum(counts)
        if total == 0:
            return 0.0
        return sum(i * n for i, n in enumerate(counts)) / total

    # ----- transforms ------------------------------------------------------

    def lower_half(self) -> None:
        """Keep the ceil(N/2) settled beans in the lowest-indexed slots, drop the rest."""
        self._truncate(LOWER, range(self._slots))

    def upper_half(self) -> None:
        """Keep the ceil(N/2) settled beans in the highest-indexed slots, drop the rest."""
        self._truncate(UPPER, range(self._slots - 1, -1, -1))

    def _truncate(self, half: str, order: Iterable[int]) -> None:
        # Dropped beans leave the machine for good; repeat() will not see them.
        self._require_reset()
        before = self.settled_count()
        keep = (before + 1) // 2
        for index in order:
            slot = self._settled[index]
            if keep >= len(slot):
                keep -= len(slot)
                continue
            # earliest arrivals go first when a slot is split
            del slot[: len(slot) - keep]
            keep = 0
        kept = self.settled_count()
        self._bean_total -= before - kept

        if self._telemetry is not None:
            emit_dataclass_event(
                self._telemetry,
                "truncate",
                TruncateEvent(half=half, before=before, kept=kept, slot_counts=list(self.slot_counts())),
            )

    # ----- checks ----------------------------------------------------------

    def check_invariants(self, expected_total: Optional[int] = None) -> None:
        waiting = self._require_reset()
        expected = self._bean_total if expected_total is None else expected_total
        total = self.total_count()
        if total != expected:
            raise InvariantViolation(f"bean count not conserved: {total} accounted for, expected {expected}")

        seen = set()

        def claim(bean: Bean, where: str) -> None:
            if id(bean) in seen:
                raise InvariantViolation(f"bean {bean!r} appears in more than one place ({where})")
            seen.add(id(bean))

        for bean in waiting:
            claim(bean, "waiting")
        for row, bean in enumerate(self._in_flight):
            if bean is None:
                continue
            claim(bean, f"row {row}")
            x = bean.current_x()
            if not 0 <= x <= row:
                raise InvariantViolation(f"in-flight bean at row {row} has illegal x={x}")
        for index, slot in enumerate(self._settled):
            for bean in slot:
                claim(bean, f"slot {index}")

    def __str__(self) -> str:
        return pretty_print(self)


def _check_spacing(xspacing: int) -> None:
    if xspacing <= 0 or xspacing % 2 == 0:
        raise InvalidConfiguration("xspacing must be a positive odd number")


def slot_string(logic: BeanCounterLogic, xspacing: int = DEFAULT_XSPACING) -> str:
    _check_spacing(xspacing)
    width = xspacing + 1
    return "".join(f"{count:>{width}d}" for count in logic.slot_counts())


def pretty_print(logic: BeanCounterLogic, xspacing: int = DEFAULT_XSPACING) -> str:
    """
    Text dump of the board: one line per peg row, ``1`` where an in-flight
    bean sits and ``0`` elsewhere, with the slot counts underneath.

    For 4 slots with a bean at (1, 2)::

                 0
               0   0
             0   1   0
           0   0   0   0
           0   0   0   0
    """
    _check_spacing(xspacing)
    slots = logic.slot_count_total()
    step = xspacing + 1
    root_indent = (slots - 1) * step // 2 + step

    lines = []
    for row in range(slots):
        bean_x = logic.in_flight_x(row)
        cells = []
        for x in range(row + 1):
            width = root_indent - step // 2 * row if x == 0 else step
            cells.append(f"{1 if x == bean_x else 0:>{width}d}")
        lines.append("".join(cells))
    lines.append(slot_string(logic, xspacing))
    return "\n".join(lines)
