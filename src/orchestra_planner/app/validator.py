"""Validate raw task records and enrich them with policy defaults.

Model output is never trusted directly. Each record is checked for the
required fields, then filled in from the run policy and stamped as a
freshly planned Task.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from .config import OrchestraConfig
from .errors import TaskValidationError, WhitelistViolationError
from .models import Task, TaskConstraints, TaskInputs, TaskTimestamps

logger = logging.getLogger(__name__)


def validate_tasks(raw_records: Any, config: OrchestraConfig) -> list[Task]:
    if not isinstance(raw_records, list):
        raise TaskValidationError(
            index=None,
            task_id=None,
            field="<root>",
            reason=f"tasks must be a JSON array, got {type(raw_records).__name__}",
        )

    created_at = datetime.now(UTC)
    tasks = [
        _validate_record(index, raw, config, created_at=created_at)
        for index, raw in enumerate(raw_records)
    ]
    logger.info("Tasks validated count=%d", len(tasks))
    return tasks


def validate_whitelist(tasks: Sequence[Task], whitelist: Sequence[str]) -> None:
    """All-or-nothing: the first disallowed tool rejects the whole plan."""
    allowed = set(whitelist)
    for task in tasks:
        for tool in task.tools:
            if tool not in allowed:
                raise WhitelistViolationError(task_id=task.task_id, tool=tool, allowed=whitelist)
    logger.info("Whitelist validation passed tasks=%d", len(tasks))


def validate_references(tasks: Sequence[Task]) -> None:
    """Task ids must be unique and every parent_id must name a task in the plan."""
    seen: set[str] = set()
    for index, task in enumerate(tasks):
        if task.task_id in seen:
            raise TaskValidationError(
                index=index, task_id=task.task_id, field="task_id", reason="duplicate task_id"
            )
        seen.add(task.task_id)

    for index, task in enumerate(tasks):
        if task.parent_id is not None and task.parent_id not in seen:
            raise TaskValidationError(
                index=index,
                task_id=task.task_id,
                field="parent_id",
                reason=f"unknown parent task: {task.parent_id}",
            )


def default_constraints(config: OrchestraConfig) -> dict[str, Any]:
    policies = config.policies
    return {
        "max_duration_sec": policies.max_task_duration_sec,
        "max_retries": config.retries.max,
        "concurrency": 1,
        "sandbox": {
            "fs": policies.default_fs_mode,
            "net": "allow" if policies.allow_network else "deny",
        },
    }


def _validate_record(
    index: int,
    raw: Any,
    config: OrchestraConfig,
    *,
    created_at: datetime,
) -> Task:
    if not isinstance(raw, dict):
        raise TaskValidationError(
            index=index, task_id=None, field="<record>", reason="task must be a JSON object"
        )

    task_id = raw.get("task_id")
    if not isinstance(task_id, str) or not task_id.strip():
        raise TaskValidationError(
            index=index, task_id=None, field="task_id", reason="missing task_id"
        )
    task_id = task_id.strip()

    def fail(field: str, reason: str) -> TaskValidationError:
        return TaskValidationError(index=index, task_id=task_id, field=field, reason=reason)

    intent = raw.get("intent")
    if not isinstance(intent, str) or not intent.strip():
        raise fail("intent", "missing intent")

    tools = raw.get("tools")
    if not isinstance(tools, list) or not tools:
        raise fail("tools", "missing or invalid tools")
    if not all(isinstance(tool, str) and tool for tool in tools):
        raise fail("tools", "tools must be non-empty strings")

    parent_id = raw.get("parent_id")
    if isinstance(parent_id, str):
        parent_id = parent_id.strip()
    parent_id = parent_id or None
    if parent_id is not None and not isinstance(parent_id, str):
        raise fail("parent_id", "parent_id must be a string or null")

    level = raw.get("level") or 3
    if isinstance(level, bool) or not isinstance(level, int) or not 1 <= level <= 3:
        raise fail("level", "level must be an integer between 1 and 3")

    try:
        inputs = TaskInputs.model_validate(raw.get("inputs") or {})
    except ValidationError as exc:
        raise fail("inputs", _first_error(exc)) from exc

    try:
        constraints = _build_constraints(raw.get("constraints"), config)
    except ValidationError as exc:
        raise fail("constraints", _first_error(exc)) from exc

    return Task(
        task_id=task_id,
        parent_id=parent_id,
        level=level,
        intent=intent.strip(),
        tools=_dedupe_keep_order(tools),
        inputs=inputs,
        constraints=constraints,
        state="planned",
        retries=0,
        timestamps=TaskTimestamps(created_at=created_at),
    )


def _build_constraints(raw_constraints: Any, config: OrchestraConfig) -> TaskConstraints:
    defaults = default_constraints(config)
    if not raw_constraints:
        return TaskConstraints.model_validate(defaults)
    if not isinstance(raw_constraints, dict):
        return TaskConstraints.model_validate(raw_constraints)

    # Task-supplied values win; anything missing falls back to policy.
    merged = {**defaults, **raw_constraints}
    raw_sandbox = raw_constraints.get("sandbox")
    if isinstance(raw_sandbox, dict):
        merged["sandbox"] = {**defaults["sandbox"], **raw_sandbox}
    return TaskConstraints.model_validate(merged)


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


def _dedupe_keep_order(values: list[str]) -> list[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result
