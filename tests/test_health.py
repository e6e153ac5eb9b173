from __future__ import annotations

import json
from typing import Callable

from fastapi.testclient import TestClient

from orchestra_planner.app.config import OrchestraConfig, Settings
from orchestra_planner.main import create_app


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_tools_endpoint_lists_whitelist(client: TestClient) -> None:
    response = client.get("/tools")

    assert response.status_code == 200
    assert response.json() == {"tools": ["echo", "ls", "git", "pnpm"]}


def test_create_plan_returns_tasks_and_batches(client: TestClient) -> None:
    response = client.post("/plans", json={"intent": "list, status, test"})

    assert response.status_code == 200
    body = response.json()
    assert body["intent"] == "list, status, test"
    assert body["trace_id"]
    assert [task["task_id"] for task in body["tasks"]] == ["A", "B", "C"]
    assert body["batches"] == [["A"], ["B"], ["C"]]
    assert body["tasks"][0]["constraints"]["max_duration_sec"] == 120


def test_create_plan_rejects_empty_intent(client: TestClient) -> None:
    response = client.post("/plans", json={"intent": ""})

    assert response.status_code == 422


def test_whitelist_violation_maps_to_422(client: TestClient) -> None:
    response = client.post("/plans", json={"intent": "x", "whitelist": ["ls"]})

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["error"] == "WhitelistViolationError"
    assert detail["stage"] == "whitelist"
    assert detail["trace_id"]


def test_unparseable_model_output_maps_to_502(
    config: OrchestraConfig, scripted_generator: Callable
) -> None:
    app = create_app(
        config=config,
        text_generator=scripted_generator("I cannot help with that."),
        settings=Settings(llm_provider="offline"),
    )

    with TestClient(app) as test_client:
        response = test_client.post("/plans", json={"intent": "anything"})

    assert response.status_code == 502
    assert response.json()["detail"]["stage"] == "extraction"


def test_cyclic_plan_maps_to_422(
    config: OrchestraConfig, scripted_generator: Callable
) -> None:
    records = [
        {"task_id": "A", "parent_id": "B", "intent": "x", "tools": ["ls"]},
        {"task_id": "B", "parent_id": "A", "intent": "y", "tools": ["ls"]},
    ]
    app = create_app(
        config=config,
        text_generator=scripted_generator(json.dumps(records)),
        settings=Settings(llm_provider="offline"),
    )

    with TestClient(app) as test_client:
        response = test_client.post("/plans", json={"intent": "loop"})

    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "CycleDetectedError"
