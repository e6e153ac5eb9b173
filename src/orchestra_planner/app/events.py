"""Trace context, planning events, and log sinks.

The trace id travels as an explicit PlanContext argument instead of living
in call-stack storage. Sinks receive a closed set of PlanEvent values.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import IO, Any, Literal, Protocol

logger = logging.getLogger(__name__)

EventLevel = Literal["debug", "info", "warn", "error"]
Component = Literal["L1", "L2", "L3"]

_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class PlanEvent(str, Enum):
    PROMPT_BUILT = "prompt_built"
    RESPONSE_RECEIVED = "response_received"
    TASKS_EXTRACTED = "tasks_extracted"
    TASKS_VALIDATED = "tasks_validated"
    WHITELIST_PASSED = "whitelist_passed"
    PLAN_SORTED = "plan_sorted"
    PLAN_FAILED = "plan_failed"


@dataclass(frozen=True)
class PlanContext:
    """Correlation data threaded through one create_plan call."""

    trace_id: str

    @classmethod
    def new(cls) -> PlanContext:
        return cls(trace_id=str(uuid.uuid4()))


class EventSink(Protocol):
    def emit(
        self,
        level: EventLevel,
        message: str,
        payload: dict[str, Any],
        component: Component,
        task_id: str | None = None,
    ) -> None: ...


class LoggingEventSink:
    """Forward planning events to stdlib logging with structured extras."""

    def __init__(self, context: PlanContext, *, log: logging.Logger | None = None) -> None:
        self.context = context
        self.log = log or logging.getLogger("orchestra_planner.events")

    def emit(
        self,
        level: EventLevel,
        message: str,
        payload: dict[str, Any],
        component: Component,
        task_id: str | None = None,
    ) -> None:
        self.log.log(
            _LEVELS.get(level, logging.INFO),
            message,
            extra={
                "trace_id": self.context.trace_id,
                "component": component,
                "task_id": task_id,
                "payload": payload,
            },
        )


class MemoryEventSink:
    """Collects events in a list; used by tests and the HTTP layer."""

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    def emit(
        self,
        level: EventLevel,
        message: str,
        payload: dict[str, Any],
        component: Component,
        task_id: str | None = None,
    ) -> None:
        self.events.append(
            {
                "level": level,
                "message": message,
                "payload": dict(payload),
                "component": component,
                "task_id": task_id,
            }
        )


def emit_event(
    sink: EventSink | None,
    event: PlanEvent,
    payload: dict[str, Any],
    *,
    context: PlanContext,
    level: EventLevel = "info",
    task_id: str | None = None,
) -> None:
    """Send one event to the sink; a broken sink never breaks planning."""
    if sink is None:
        return
    body = {"event": event.value, "trace_id": context.trace_id, **payload}
    try:
        sink.emit(level, event.value, body, "L2", task_id)
    except Exception as exc:  # noqa: BLE001
        logger.warning("event sink failed event=%s reason=%s", event.value, exc)


class JsonLineFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname.lower(),
            "trace_id": getattr(record, "trace_id", "unknown"),
            "task_id": getattr(record, "task_id", None),
            "component": getattr(record, "component", "L1"),
            "message": record.getMessage(),
            "payload": getattr(record, "payload", {}),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str = "info", *, stream: IO[str] | None = None) -> logging.Handler:
    """Install a JSONL handler on the package logger (stderr by default)."""
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonLineFormatter())
    package_logger = logging.getLogger("orchestra_planner")
    for existing in list(package_logger.handlers):
        if isinstance(existing.formatter, JsonLineFormatter):
            package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(_LEVELS.get(level.lower(), logging.INFO))
    return handler
