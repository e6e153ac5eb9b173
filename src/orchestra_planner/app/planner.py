"""Planning layer: turn one free-form intent into an ordered, batched plan.

Beginner terms:
- Plan: ordered list of Task objects plus batches of task ids.
- Whitelist: the only tool names a planned task may use.
- Batch: tasks with no ordering between them; safe to run concurrently.

Pipeline stages, in order (the first failure aborts the call):
1) build prompt
2) call the injected text generator
3) extract JSON from the raw text
4) validate and enrich task records
5) whitelist check
6) id/parent reference check
7) cycle check
8) topological sort

The planner never executes tasks; it only decides what should run and in
which order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from . import graph
from .config import OrchestraConfig
from .errors import GenerationError, PlanningError, TaskValidationError
from .events import EventSink, PlanContext, PlanEvent, emit_event
from .extractor import extract_structured
from .models import Plan, Task
from .prompts import build_planner_prompt
from .validator import validate_references, validate_tasks, validate_whitelist

logger = logging.getLogger(__name__)

TextGenerate = Callable[[str], str]


def create_plan(
    intent: str,
    whitelist: Sequence[str],
    config: OrchestraConfig,
    text_generate: TextGenerate,
    *,
    context: PlanContext | None = None,
    sink: EventSink | None = None,
) -> list[Task]:
    """Run the full planning pipeline and return tasks in execution order."""
    context = context or PlanContext.new()
    logger.info("plan event=start trace_id=%s", context.trace_id)
    try:
        prompt = build_planner_prompt(intent, whitelist, config.policy_constraints())
        emit_event(sink, PlanEvent.PROMPT_BUILT, {"prompt_length": len(prompt)}, context=context)

        # Only suspension point: everything else is in-memory.
        response = text_generate(prompt)
        if not isinstance(response, str):
            raise GenerationError(
                f"text generator returned {type(response).__name__}, expected str"
            )
        emit_event(
            sink,
            PlanEvent.RESPONSE_RECEIVED,
            {"response_length": len(response)},
            context=context,
        )

        raw_records = extract_structured(response)
        emit_event(
            sink,
            PlanEvent.TASKS_EXTRACTED,
            {"count": len(raw_records) if isinstance(raw_records, list) else 1},
            context=context,
        )

        tasks = validate_tasks(raw_records, config)
        emit_event(sink, PlanEvent.TASKS_VALIDATED, {"count": len(tasks)}, context=context)

        validate_whitelist(tasks, whitelist)
        emit_event(
            sink, PlanEvent.WHITELIST_PASSED, {"whitelist": list(whitelist)}, context=context
        )

        validate_references(tasks)
        # Cycle check and ordering share one pass; a cycle raises CycleDetectedError.
        sorted_tasks = graph.topological_sort(tasks)
        emit_event(
            sink,
            PlanEvent.PLAN_SORTED,
            {"task_count": len(sorted_tasks), "order": [task.task_id for task in sorted_tasks]},
            context=context,
        )
    except PlanningError as exc:
        emit_event(
            sink,
            PlanEvent.PLAN_FAILED,
            {"stage": exc.stage, "error": str(exc), "error_type": type(exc).__name__},
            context=context,
            level="error",
            task_id=getattr(exc, "task_id", None),
        )
        logger.warning(
            "plan event=failed trace_id=%s stage=%s reason=%s", context.trace_id, exc.stage, exc
        )
        raise

    logger.info(
        "plan event=completed trace_id=%s task_count=%d", context.trace_id, len(sorted_tasks)
    )
    return sorted_tasks


def get_parallel_batches(tasks: Sequence[Task]) -> list[list[Task]]:
    return graph.get_parallel_batches(tasks)


class PlanCoordinator:
    """Public planner entrypoint binding a run policy and a text generator.

    Holds no per-call state: every create_plan call is independent.
    """

    def __init__(
        self,
        *,
        config: OrchestraConfig,
        text_generate: TextGenerate,
        sink_factory: Callable[[PlanContext], EventSink | None] | None = None,
    ) -> None:
        self.config = config
        self.text_generate = text_generate
        self.sink_factory = sink_factory

    def create_plan(
        self,
        intent: str,
        *,
        whitelist: Sequence[str] | None = None,
        context: PlanContext | None = None,
    ) -> list[Task]:
        context = context or PlanContext.new()
        sink = self.sink_factory(context) if self.sink_factory else None
        return create_plan(
            intent,
            list(whitelist) if whitelist is not None else self.config.whitelist_tools,
            self.config,
            self.text_generate,
            context=context,
            sink=sink,
        )

    def build_plan(
        self,
        intent: str,
        *,
        whitelist: Sequence[str] | None = None,
        context: PlanContext | None = None,
    ) -> Plan:
        """Create a plan and attach its batch partition (as task ids)."""
        if not intent.strip():
            raise TaskValidationError(
                index=None, task_id=None, field="intent", reason="intent must be non-empty"
            )
        context = context or PlanContext.new()
        tasks = self.create_plan(intent, whitelist=whitelist, context=context)
        batches = self.get_parallel_batches(tasks)
        return Plan(
            trace_id=context.trace_id,
            intent=intent,
            tasks=tasks,
            batches=[[task.task_id for task in batch] for batch in batches],
        )

    @staticmethod
    def get_parallel_batches(tasks: Sequence[Task]) -> list[list[Task]]:
        return graph.get_parallel_batches(tasks)
