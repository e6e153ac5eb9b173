"""Planner prompt construction.

The prompt pins the model to the whitelist, asks for parent_id links, and
demands a bare JSON array. Two fixed few-shot examples show the shape.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

PLANNER_TEMPLATE = """You are the L2 Coordinator in Orchestra, a 3-depth agent orchestration system.

Your task is to decompose a high-level user intent into a sequence of executable tasks.

## Input
**User Intent**: {intent}

**Available Tools** (whitelist): {whitelist}

**Constraints**: {constraints}

## Instructions
1. Break down the intent into concrete, executable steps
2. Give every task a unique "task_id"
3. Each task MUST use only tools from the whitelist
4. Declare dependencies using "parent_id" (null for tasks that can start immediately)
5. Keep tasks atomic and focused
6. Output ONLY a single valid JSON array, no explanation or surrounding prose

## Output Format
Each element of the array follows this schema:

```json
{schema}
```

## Few-Shot Examples

{examples}

## Now generate the plan

User Intent: {intent}

Output (JSON array only):"""

TASK_SCHEMA_EXAMPLE: dict[str, Any] = {
    "task_id": "task-001",
    "parent_id": None,
    "level": 3,
    "intent": "Create a new file called README.md",
    "tools": ["echo"],
    "inputs": {"args": ["echo", '"# Project"', ">", "README.md"], "env": {}, "files": []},
}

FEW_SHOT_EXAMPLES: list[tuple[str, list[dict[str, Any]]]] = [
    (
        "Create a README file and run tests",
        [
            {
                "task_id": "task-001",
                "parent_id": None,
                "level": 3,
                "intent": "Create README.md with project title",
                "tools": ["echo"],
                "inputs": {
                    "args": ["echo", '"# My Project"', ">", "README.md"],
                    "env": {},
                    "files": [],
                },
            },
            {
                "task_id": "task-002",
                "parent_id": "task-001",
                "level": 3,
                "intent": "Run project tests",
                "tools": ["pnpm"],
                "inputs": {"args": ["pnpm", "test"], "env": {}, "files": []},
            },
        ],
    ),
    (
        "List files and show git status",
        [
            {
                "task_id": "task-001",
                "parent_id": None,
                "level": 3,
                "intent": "List all files in current directory",
                "tools": ["ls"],
                "inputs": {"args": ["ls", "-la"], "env": {}, "files": []},
            },
            {
                "task_id": "task-002",
                "parent_id": "task-001",
                "level": 3,
                "intent": "Show git repository status",
                "tools": ["git"],
                "inputs": {"args": ["git", "status"], "env": {}, "files": []},
            },
        ],
    ),
]


def render(template: str, variables: Mapping[str, Any]) -> str:
    """Replace every literal {key}; unknown placeholders stay as-is.

    str.format is not used because JSON braces in the template would break it.
    """
    result = template
    for key, value in variables.items():
        replacement = value if isinstance(value, str) else json.dumps(value)
        result = result.replace("{" + key + "}", replacement)
    return result


def format_few_shot_examples() -> str:
    blocks: list[str] = []
    for number, (example_input, example_output) in enumerate(FEW_SHOT_EXAMPLES, start=1):
        blocks.append(
            f"### Example {number}\n"
            f'**Input**: "{example_input}"\n'
            "**Output**:\n"
            f"```json\n{json.dumps(example_output, indent=2)}\n```"
        )
    return "\n\n".join(blocks)


def build_planner_prompt(
    intent: str,
    whitelist: Sequence[str],
    constraints: Mapping[str, Any],
) -> str:
    return render(
        PLANNER_TEMPLATE,
        {
            # Structured values are pre-serialized so indentation is stable.
            "whitelist": json.dumps(list(whitelist)),
            "constraints": json.dumps(dict(constraints), indent=2, sort_keys=True),
            "schema": json.dumps(TASK_SCHEMA_EXAMPLE, indent=2),
            "examples": format_few_shot_examples(),
            # Substituted last so braces inside user text are never re-expanded.
            "intent": intent,
        },
    )
