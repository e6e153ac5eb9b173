from __future__ import annotations

import json
from collections.abc import Iterator
from datetime import UTC, datetime
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from orchestra_planner.app.config import OrchestraConfig, PoliciesConfig, RetriesConfig, Settings
from orchestra_planner.app.models import Task, TaskConstraints, TaskTimestamps


class ScriptedGenerator:
    """Test-only text generator returning a fixed response and recording prompts."""

    def __init__(self, response: str) -> None:
        self.response = response
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.response


@pytest.fixture
def config() -> OrchestraConfig:
    return OrchestraConfig(
        policies=PoliciesConfig(
            allow_network=False,
            default_fs_mode="read-only",
            max_task_duration_sec=120,
        ),
        retries=RetriesConfig(max=4),
        whitelist_tools=["echo", "ls", "git", "pnpm"],
    )


@pytest.fixture
def make_task() -> Callable[..., Task]:
    """Build a planned Task directly, bypassing the validator."""

    def _make(task_id: str, parent_id: str | None = None, tools: list[str] | None = None) -> Task:
        return Task(
            task_id=task_id,
            parent_id=parent_id,
            intent=f"step {task_id}",
            tools=tools or ["echo"],
            constraints=TaskConstraints(max_duration_sec=60, max_retries=1),
            timestamps=TaskTimestamps(created_at=datetime.now(UTC)),
        )

    return _make


@pytest.fixture
def chain_records() -> list[dict[str, Any]]:
    return [
        {"task_id": "A", "parent_id": None, "intent": "list files", "tools": ["ls"]},
        {"task_id": "B", "parent_id": "A", "intent": "show status", "tools": ["git"]},
        {"task_id": "C", "parent_id": "B", "intent": "run tests", "tools": ["pnpm"]},
    ]


@pytest.fixture
def scripted_generator() -> Callable[[str], ScriptedGenerator]:
    return ScriptedGenerator


@pytest.fixture
def client(
    config: OrchestraConfig, chain_records: list[dict[str, Any]]
) -> Iterator[TestClient]:
    from orchestra_planner.main import create_app

    app = create_app(
        config=config,
        text_generator=ScriptedGenerator(json.dumps(chain_records)),
        settings=Settings(llm_provider="offline"),
    )
    with TestClient(app) as test_client:
        yield test_client
