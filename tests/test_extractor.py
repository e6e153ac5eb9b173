from __future__ import annotations

import json

import pytest

from orchestra_planner.app.errors import ExtractionError
from orchestra_planner.app.extractor import extract_structured

RECORDS = [
    {"task_id": "task-001", "parent_id": None, "intent": "List files", "tools": ["ls"]},
    {"task_id": "task-002", "parent_id": "task-001", "intent": "Git status", "tools": ["git"]},
]


def test_same_records_recovered_from_every_response_shape() -> None:
    raw = json.dumps(RECORDS)
    direct = f"  {raw}\n"
    fenced = f"Here is the plan:\n```json\n{json.dumps(RECORDS, indent=2)}\n```\nDone."
    prose_array = f"Sure! The tasks are {raw} and nothing else."

    assert extract_structured(direct) == RECORDS
    assert extract_structured(fenced) == RECORDS
    assert extract_structured(prose_array) == RECORDS


def test_prose_wrapped_object_yields_embedded_array() -> None:
    # The array search runs before the object search, so the records win.
    text = f"I decided on: {json.dumps({'tasks': RECORDS})} -- hope that helps"

    assert extract_structured(text) == RECORDS


def test_single_object_is_accepted_without_shape_check() -> None:
    record = {"task_id": "solo", "intent": "List files", "tools": ["ls"]}
    text = f"Plan: {json.dumps(record)} (one step only)"

    assert extract_structured(text) == record


def test_fenced_block_without_language_tag() -> None:
    text = "```\n" + json.dumps(RECORDS) + "\n```"

    assert extract_structured(text) == RECORDS


def test_direct_parse_wins_over_later_attempts() -> None:
    # A bare JSON string is valid structured data; nothing else is tried.
    assert extract_structured('"just a string"') == "just a string"


def test_broken_fence_falls_through_to_array_search() -> None:
    text = "```json\n{not json}\n```\n" + json.dumps(RECORDS)

    assert extract_structured(text) == RECORDS


def test_no_json_raises_extraction_error() -> None:
    with pytest.raises(ExtractionError):
        extract_structured("no json here at all")


def test_extraction_error_excerpt_is_bounded() -> None:
    text = "secret-" + "x" * 1000

    with pytest.raises(ExtractionError) as exc_info:
        extract_structured(text)

    assert len(exc_info.value.excerpt) == 200
    assert exc_info.value.excerpt == text[:200]
