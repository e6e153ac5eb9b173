"""Error taxonomy for plan synthesis.

Every planning error is fatal to the current create_plan call. The caller
decides whether to re-prompt, abort the run, or surface the error.
"""

from __future__ import annotations

from collections.abc import Sequence

EXCERPT_LIMIT = 200


class PlanningError(Exception):
    """Base class for errors raised by the planning pipeline."""

    stage = "planning"


class ConfigError(PlanningError):
    stage = "config"


class GenerationError(PlanningError):
    """The text-generation backend could not produce a response."""

    stage = "generation"


class ExtractionError(PlanningError):
    """No parseable structured value was found in the generation output."""

    stage = "extraction"

    def __init__(self, response_text: str) -> None:
        # Only a bounded excerpt is kept so secrets or huge outputs never reach logs.
        self.excerpt = response_text[:EXCERPT_LIMIT]
        super().__init__(f"Unable to extract valid JSON from response: {self.excerpt!r}")


class TaskValidationError(PlanningError):
    """A raw task record is missing a required field or has a malformed one."""

    stage = "validation"

    def __init__(self, *, index: int | None, task_id: str | None, field: str, reason: str) -> None:
        self.index = index
        self.task_id = task_id
        self.field = field
        self.reason = reason
        label = task_id if task_id else f"#{index}"
        super().__init__(f"Task {label} invalid field '{field}': {reason}")


class WhitelistViolationError(PlanningError):
    stage = "whitelist"

    def __init__(self, *, task_id: str, tool: str, allowed: Sequence[str]) -> None:
        self.task_id = task_id
        self.tool = tool
        self.allowed = list(allowed)
        super().__init__(
            f"Task {task_id} uses non-whitelisted tool: {tool}. "
            f"Allowed: {', '.join(self.allowed)}"
        )


class CycleDetectedError(PlanningError):
    stage = "graph"

    def __init__(self, task_ids: Sequence[str]) -> None:
        self.task_ids = list(task_ids)
        super().__init__(
            "Cycle detected in task dependencies. Unable to sort: " + ", ".join(self.task_ids)
        )


class ConsistencyError(PlanningError):
    """Batch derivation hit a state a correct topological sort cannot produce."""

    stage = "graph"
