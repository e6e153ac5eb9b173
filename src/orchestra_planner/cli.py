"""Command line entrypoint: ``orchestra plan "<task>"``.

Only planning happens here. The saved plan.json is what an external
executor consumes.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from collections.abc import Sequence
from pathlib import Path

import yaml

from .app.config import (
    DEFAULT_CONFIG_PATH,
    OrchestraConfig,
    Settings,
    get_settings,
    load_config_or_default,
)
from .app.errors import PlanningError
from .app.events import LoggingEventSink, PlanContext, configure_logging
from .app.llm import KeywordPlanGenerator, TextGenerator, build_text_generator
from .app.planner import PlanCoordinator
from .app.runs import RunManager

logger = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="orchestra",
        description="Decompose a task into an ordered, batched execution plan.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    plan_parser = subparsers.add_parser("plan", help="Generate a plan for a task.")
    plan_parser.add_argument("task", help="Free-form task description.")
    plan_parser.add_argument("--config", default=None, help="Run policy YAML file.")
    plan_parser.add_argument("--out", default=None, help="Base directory for run folders.")
    plan_parser.add_argument(
        "--batches",
        action="store_true",
        help="Print parallel batches instead of the full plan JSON.",
    )
    plan_parser.add_argument(
        "--offline",
        action="store_true",
        help="Use the keyword plan generator instead of the configured LLM.",
    )
    plan_parser.add_argument(
        "--no-save",
        action="store_true",
        help="Do not write a run directory.",
    )

    tools_parser = subparsers.add_parser("tools", help="List whitelisted tools.")
    tools_parser.add_argument("--config", default=None, help="Run policy YAML file.")
    return parser.parse_args(argv)


def main(
    argv: Sequence[str] | None = None,
    *,
    settings: Settings | None = None,
    text_generator: TextGenerator | None = None,
) -> int:
    args = _parse_args(argv)
    settings = settings or get_settings()
    config_path = Path(args.config or settings.config_path or DEFAULT_CONFIG_PATH)

    try:
        config = load_config_or_default(config_path)
    except PlanningError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.command == "tools":
        for tool in config.whitelist_tools:
            print(tool)
        return 0

    configure_logging(config.telemetry.level)
    return _run_plan(
        args,
        config=config,
        config_path=config_path,
        settings=settings,
        text_generator=text_generator,
    )


def _run_plan(
    args: argparse.Namespace,
    *,
    config: OrchestraConfig,
    config_path: Path,
    settings: Settings,
    text_generator: TextGenerator | None,
) -> int:
    run_id = str(uuid.uuid4())
    context = PlanContext(trace_id=run_id)
    logger.info(
        "Orchestra plan started",
        extra={"trace_id": run_id, "component": "L1", "payload": {"task": args.task}},
    )

    try:
        if text_generator is None:
            text_generator = (
                KeywordPlanGenerator() if args.offline else build_text_generator(settings)
            )
        coordinator = PlanCoordinator(
            config=config,
            text_generate=text_generator.generate,
            sink_factory=LoggingEventSink,
        )
        plan = coordinator.build_plan(args.task, context=context)
    except PlanningError as exc:
        logger.error(
            "Orchestra plan failed",
            extra={"trace_id": run_id, "component": "L1", "payload": {"error": str(exc)}},
        )
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if not args.no_save:
        manager = RunManager(args.out or config.paths.runs)
        run_dir = manager.create_run_directory(run_id)
        config_text = (
            config_path.read_text(encoding="utf-8")
            if config_path.exists()
            else yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False)
        )
        manager.save_config(run_dir, config_text)
        manager.save_plan(run_dir, plan)
        manager.save_tasks(run_dir, plan.tasks)
        print(f"Run directory: {run_dir.paths.root}", file=sys.stderr)

    if args.batches:
        print(json.dumps(plan.batches, indent=2))
    else:
        print(plan.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
