"""Telemetry schema and sinks for bean counter instrumentation."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from queue import Queue
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol
import time


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TelemetryEnvelope:
    event: str
    ts_ms: int
    data: Dict[str, Any]


@dataclass(frozen=True)
class ResetEvent:
    slot_count: int
    bean_count: int
    remaining: int


@dataclass(frozen=True)
class StepEvent:
    tick: int
    settled_slot: Optional[int]
    inserted: bool
    remaining: int
    in_flight: int
    settled: int


@dataclass(frozen=True)
class RepeatEvent:
    scooped: int
    remaining: int


@dataclass(frozen=True)
class TruncateEvent:
    half: str
    before: int
    kept: int
    slot_counts: List[int]


@dataclass(frozen=True)
class RunEndEvent:
    ticks: int
    settled: int
    average_slot: float
    slot_counts: List[int]


class TelemetrySink(Protocol):
    def emit(self, envelope: TelemetryEnvelope) -> None:
        ...

    def close(self) -> None:
        ...


class NullTelemetrySink:
    def emit(self, envelope: TelemetryEnvelope) -> None:
        _ = envelope

    def close(self) -> None:
        return


class CallbackTelemetrySink:
    def __init__(self, callback: Callable[[TelemetryEnvelope], None]) -> None:
        self._callback = callback

    def emit(self, envelope: TelemetryEnvelope) -> None:
        self._callback(envelope)

    def close(self) -> None:
        return


class QueueTelemetrySink:
    def __init__(self, queue: "Queue[TelemetryEnvelope]") -> None:
        self._queue = queue

    def emit(self, envelope: TelemetryEnvelope) -> None:
        self._queue.put(envelope)

    def close(self) -> None:
        return


def emit_event(sink: Optional[TelemetrySink], event: str, payload: Mapping[str, Any]) -> None:
    """Wrap ``payload`` in an envelope and hand it to ``sink``. Sink failures never reach the engine."""
    if sink is None:
        return
    envelope = TelemetryEnvelope(event=event, ts_ms=now_ms(), data=dict(payload))
    try:
        sink.emit(envelope)
    except Exception:
        return


def emit_dataclass_event(sink: Optional[TelemetrySink], event: str, payload_obj: object) -> None:
    """Emit a machine event dataclass (``ResetEvent``, ``StepEvent`` and so on) as a flat payload."""
    if sink is None:
        return
    emit_event(sink, event, asdict(payload_obj))


def format_envelope(envelope: TelemetryEnvelope) -> str:
    """One-line ``event key=value ...`` rendering used by the CLI trace output."""
    fields = " ".join(f"{key}={value}" for key, value in envelope.data.items())
    return f"{envelope.event} {fields}".rstrip()
