"""Run directory layout and plan/config snapshots."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunPaths:
    root: Path
    config: Path
    plan: Path
    tasks: Path
    artifacts: Path
    report: Path


@dataclass(frozen=True)
class RunDirectory:
    run_id: str
    base_path: Path
    paths: RunPaths


class RunManager:
    """Create one timestamped directory per run under ``base_path``."""

    def __init__(self, base_path: str | Path = "./runs") -> None:
        self.base_path = Path(base_path).resolve()

    def create_run_directory(self, run_id: str, *, now: datetime | None = None) -> RunDirectory:
        stamp = (now or datetime.now(UTC)).strftime("%Y-%m-%d_%H-%M-%S")
        root = self.base_path / stamp
        # Two runs in the same second must not share a directory.
        if root.exists():
            root = self.base_path / f"{stamp}_{run_id[:8]}"
        try:
            (root / "artifacts").mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.error("Failed to create run directory run_dir=%s", root)
            raise
        logger.info("Run directory created run_dir=%s run_id=%s", root, run_id)

        return RunDirectory(
            run_id=run_id,
            base_path=self.base_path,
            paths=RunPaths(
                root=root,
                config=root / "config.yaml",
                plan=root / "plan.json",
                tasks=root / "tasks.jsonl",
                artifacts=root / "artifacts",
                report=root / "report.md",
            ),
        )

    def save_plan(self, run_dir: RunDirectory, plan: BaseModel) -> Path:
        path = run_dir.paths.plan
        path.write_text(
            json.dumps(plan.model_dump(mode="json"), indent=2) + "\n", encoding="utf-8"
        )
        logger.info("Plan saved path=%s", path)
        return path

    def save_tasks(self, run_dir: RunDirectory, tasks: list[BaseModel]) -> Path:
        """Write one JSON line per task for executors that stream tasks."""
        path = run_dir.paths.tasks
        with path.open("w", encoding="utf-8") as handle:
            for task in tasks:
                handle.write(task.model_dump_json() + "\n")
        logger.info("Tasks saved path=%s count=%d", path, len(tasks))
        return path

    def save_config(self, run_dir: RunDirectory, config_text: str) -> Path:
        path = run_dir.paths.config
        path.write_text(config_text, encoding="utf-8")
        logger.info("Config snapshot saved path=%s", path)
        return path
