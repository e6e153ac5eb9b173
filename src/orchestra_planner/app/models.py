"""Pydantic models shared by the prompt, validator, graph, planner, and API layers.

Beginner terms used in this file:
- Task: one unit of planned work emitted by the planner.
- Plan: ordered tasks plus the batch partition derived from them.
- Literal: restricts a field to a fixed set of allowed string values.
- Field(default_factory=...): creates a fresh default object per instance.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# Lifecycle states. The planner only ever produces "planned".
TaskState = Literal["planned", "running", "blocked", "done", "failed"]
FsMode = Literal["read-only", "rw"]
NetMode = Literal["allow", "deny"]


class TaskFile(BaseModel):
    """File payload handed to the executor alongside a task."""

    model_config = ConfigDict(extra="allow")

    path: str
    content: str


class TaskInputs(BaseModel):
    """Arguments, environment, and files for a task (opaque to the planner)."""

    # Unknown keys are kept so the executor receives the payload unchanged.
    model_config = ConfigDict(extra="allow")

    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    files: list[TaskFile] = Field(default_factory=list)


class Sandbox(BaseModel):
    fs: FsMode = "read-only"
    net: NetMode = "deny"


class TaskConstraints(BaseModel):
    """Per-task limits, defaulted from the run policy when omitted."""

    max_duration_sec: int = Field(ge=1)
    max_retries: int = Field(ge=0)
    concurrency: int = Field(default=1, ge=1)
    sandbox: Sandbox = Field(default_factory=Sandbox)


class TaskLogEntry(BaseModel):
    timestamp: datetime
    level: str
    message: str
    payload: dict[str, object] = Field(default_factory=dict)


class Artifact(BaseModel):
    path: str
    size_bytes: int
    checksum: str


class TaskMetrics(BaseModel):
    duration_ms: int | None = None
    exit_code: int | None = None
    tokens_used: int | None = None


class TaskTimestamps(BaseModel):
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None


class Task(BaseModel):
    """Canonical task record handed to the external executor."""

    # Assigned by the text-generation response, never by the planner.
    task_id: str
    # Single predecessor; None marks a root task.
    parent_id: str | None = None
    level: int = Field(default=3, ge=1, le=3)
    intent: str
    tools: list[str]
    inputs: TaskInputs = Field(default_factory=TaskInputs)
    constraints: TaskConstraints
    state: TaskState = "planned"
    retries: int = 0
    # Populated later by the executor.
    logs: list[TaskLogEntry] = Field(default_factory=list)
    artifacts: list[Artifact] = Field(default_factory=list)
    metrics: TaskMetrics = Field(default_factory=TaskMetrics)
    timestamps: TaskTimestamps

    @property
    def depends_on(self) -> list[str]:
        return [self.parent_id] if self.parent_id else []


class GraphNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    task_id: str
    depends_on: list[str] = Field(default_factory=list)


class TaskGraph(BaseModel):
    """Dependency graph derived from parent links (edges are parent -> child)."""

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[tuple[str, str]] = Field(default_factory=list)


class Plan(BaseModel):
    """Ordered tasks plus batches of task ids that may run concurrently."""

    trace_id: str
    intent: str
    tasks: list[Task] = Field(default_factory=list)
    batches: list[list[str]] = Field(default_factory=list)


class CreatePlanRequest(BaseModel):
    """Request body for POST /plans."""

    # min_length enforces non-empty intent text at API boundary.
    intent: str = Field(min_length=1)
    # Overrides the configured whitelist for this request only.
    whitelist: list[str] | None = None
