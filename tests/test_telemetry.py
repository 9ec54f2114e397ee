import unittest
from queue import Queue

from bean import Bean, Skill
from bean_counter import BeanCounterLogic
from bean_telemetry import (
    CallbackTelemetrySink,
    NullTelemetrySink,
    QueueTelemetrySink,
    TelemetryEnvelope,
    TruncateEvent,
    emit_dataclass_event,
    emit_event,
    format_envelope,
)


class _CollectSink:
    def __init__(self) -> None:
        self.events: list[TelemetryEnvelope] = []

    def emit(self, envelope: TelemetryEnvelope) -> None:
        self.events.append(envelope)

    def close(self) -> None:
        return


class _BrokenSink:
    def emit(self, envelope: TelemetryEnvelope) -> None:
        raise RuntimeError("sink down")

    def close(self) -> None:
        return


def skill_beans(slots, thresholds):
    return [Bean.with_mode(slots, Skill(t)) for t in thresholds]


class TestTelemetry(unittest.TestCase):
    def test_run_emits_lifecycle_events(self):
        sink = _CollectSink()
        logic = BeanCounterLogic(3, telemetry_sink=sink)
        logic.reset(skill_beans(3, [0, 2]))
        ticks = logic.run_to_completion()
        logic.lower_half()
        logic.repeat()

        names = [event.event for event in sink.events]
        self.assertEqual(names[0], "reset")
        self.assertEqual(names.count("step"), ticks)
        self.assertEqual(names.count("run_end"), 1)
        self.assertEqual(names[-2:], ["truncate", "repeat"])

        reset = sink.events[0].data
        self.assertEqual(reset, {"slot_count": 3, "bean_count": 2, "remaining": 1})

        run_end = next(event for event in sink.events if event.event == "run_end")
        self.assertEqual(run_end.data["ticks"], ticks)
        self.assertEqual(run_end.data["slot_counts"], [1, 0, 1])
        self.assertAlmostEqual(run_end.data["average_slot"], 1.0)

        truncate = sink.events[-2].data
        self.assertEqual(truncate["half"], "lower")
        self.assertEqual((truncate["before"], truncate["kept"]), (2, 1))

        self.assertEqual(sink.events[-1].data, {"scooped": 1, "remaining": 0})

    def test_step_event_reports_settled_slot(self):
        sink = _CollectSink()
        logic = BeanCounterLogic(2, telemetry_sink=sink)
        logic.reset(skill_beans(2, [1]))
        logic.advance_step()
        logic.advance_step()
        steps = [event.data for event in sink.events if event.event == "step"]
        self.assertEqual(steps[0]["settled_slot"], None)
        self.assertEqual(steps[1]["settled_slot"], 1)
        self.assertFalse(steps[1]["inserted"])
        self.assertEqual(steps[1]["settled"], 1)

    def test_no_events_once_terminal(self):
        sink = _CollectSink()
        logic = BeanCounterLogic(2, telemetry_sink=sink)
        logic.reset([])
        self.assertFalse(logic.advance_step())
        self.assertEqual([event.event for event in sink.events], ["reset"])

    def test_broken_sink_does_not_break_engine(self):
        logic = BeanCounterLogic(3, telemetry_sink=_BrokenSink())
        logic.reset(skill_beans(3, [1, 1]))
        logic.run_to_completion()
        self.assertEqual(logic.slot_counts(), (0, 2, 0))

    def test_sinks(self):
        received = []
        emit_event(CallbackTelemetrySink(received.append), "ping", {"n": 1})
        self.assertEqual(received[0].event, "ping")
        self.assertEqual(received[0].data, {"n": 1})

        queue: "Queue[TelemetryEnvelope]" = Queue()
        emit_event(QueueTelemetrySink(queue), "pong", {})
        self.assertEqual(queue.get_nowait().event, "pong")

        emit_event(NullTelemetrySink(), "noop", {"n": 2})
        emit_event(None, "noop", {"n": 3})

    def test_emit_dataclass_event_flattens_fields(self):
        sink = _CollectSink()
        emit_dataclass_event(sink, "truncate", TruncateEvent(half="lower", before=5, kept=3, slot_counts=[0, 1, 2]))
        emit_dataclass_event(None, "truncate", TruncateEvent(half="upper", before=0, kept=0, slot_counts=[]))
        self.assertEqual(len(sink.events), 1)
        self.assertEqual(sink.events[0].event, "truncate")
        self.assertEqual(sink.events[0].data, {"half": "lower", "before": 5, "kept": 3, "slot_counts": [0, 1, 2]})

    def test_format_envelope(self):
        envelope = TelemetryEnvelope(event="step", ts_ms=0, data={"tick": 3, "remaining": 0})
        self.assertEqual(format_envelope(envelope), "step tick=3 remaining=0")
        self.assertEqual(format_envelope(TelemetryEnvelope("repeat", 0, {})), "repeat")


if __name__ == "__main__":
    unittest.main()
