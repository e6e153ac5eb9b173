"""Recover a JSON value from free-form model output.

Attempts, in order (first that parses wins):
1) the whole trimmed response,
2) the first fenced code block,
3) the first greedy ``[ { ... } ]`` span,
4) the first greedy ``{ ... }`` span.

Shape is not checked here; the validator rejects objects where an array
was expected.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from .errors import ExtractionError

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```[\w-]*[ \t]*\n?(.*?)```", re.DOTALL)
_ARRAY_OF_OBJECTS = re.compile(r"\[\s*\{.*\}\s*\]", re.DOTALL)
_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def extract_structured(response_text: str) -> Any:
    text = response_text.strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    for label, pattern, group in (
        ("code block", _FENCED_BLOCK, 1),
        ("array", _ARRAY_OF_OBJECTS, 0),
        ("object", _OBJECT, 0),
    ):
        match = pattern.search(text)
        if match is None:
            continue
        candidate = match.group(group).strip()
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as exc:
            logger.warning("Failed to parse JSON from %s reason=%s", label, exc)

    logger.error("No valid JSON found in model response excerpt=%r", text[:200])
    raise ExtractionError(response_text)
