from __future__ import annotations

import io
import json
import logging

from orchestra_planner.app.events import (
    JsonLineFormatter,
    LoggingEventSink,
    MemoryEventSink,
    PlanContext,
    PlanEvent,
    configure_logging,
    emit_event,
)


def test_emit_event_adds_trace_and_event_name() -> None:
    sink = MemoryEventSink()

    emit_event(sink, PlanEvent.TASKS_VALIDATED, {"count": 2}, context=PlanContext(trace_id="t-9"))

    assert sink.events == [
        {
            "level": "info",
            "message": "tasks_validated",
            "payload": {"event": "tasks_validated", "trace_id": "t-9", "count": 2},
            "component": "L2",
            "task_id": None,
        }
    ]


def test_emit_event_without_sink_is_a_no_op() -> None:
    emit_event(None, PlanEvent.PLAN_SORTED, {}, context=PlanContext.new())


def test_plan_context_new_generates_unique_ids() -> None:
    assert PlanContext.new().trace_id != PlanContext.new().trace_id


def test_logging_sink_renders_as_json_line() -> None:
    stream = io.StringIO()
    log = logging.getLogger("orchestra_planner.test_events")
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonLineFormatter())
    log.addHandler(handler)
    log.setLevel(logging.INFO)
    try:
        sink = LoggingEventSink(PlanContext(trace_id="trace-7"), log=log)
        sink.emit("warn", "whitelist_passed", {"whitelist": ["ls"]}, "L2", task_id="A")
    finally:
        log.removeHandler(handler)

    entry = json.loads(stream.getvalue())
    assert entry["level"] == "warning"
    assert entry["trace_id"] == "trace-7"
    assert entry["task_id"] == "A"
    assert entry["component"] == "L2"
    assert entry["message"] == "whitelist_passed"
    assert entry["payload"] == {"whitelist": ["ls"]}
    assert entry["timestamp"]


def test_configure_logging_replaces_previous_handler() -> None:
    package_logger = logging.getLogger("orchestra_planner")
    first = io.StringIO()
    second = io.StringIO()
    try:
        configure_logging("debug", stream=first)
        handler = configure_logging("info", stream=second)

        json_handlers = [
            h for h in package_logger.handlers if isinstance(h.formatter, JsonLineFormatter)
        ]
        assert json_handlers == [handler]
        assert package_logger.level == logging.INFO

        logging.getLogger("orchestra_planner.app.planner").info("plan event=start")
    finally:
        for h in list(package_logger.handlers):
            package_logger.removeHandler(h)
        package_logger.setLevel(logging.NOTSET)

    assert first.getvalue() == ""
    assert json.loads(second.getvalue())["trace_id"] == "unknown"

