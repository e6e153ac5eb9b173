"""Dependency graph, topological order, and parallel batches for a plan.

Edges come from parent_id only, so a plan is a forest of chains. The
algorithms below walk ``depends_on`` lists and do not rely on that
restriction.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from collections.abc import Sequence

from .errors import ConsistencyError, CycleDetectedError
from .models import GraphNode, Task, TaskGraph

logger = logging.getLogger(__name__)


def build_graph(tasks: Sequence[Task]) -> TaskGraph:
    nodes = [GraphNode(task_id=task.task_id, depends_on=task.depends_on) for task in tasks]
    edges = [(parent, task.task_id) for task in tasks for parent in task.depends_on]
    logger.debug("Task graph built nodes=%d edges=%d", len(nodes), len(edges))
    return TaskGraph(nodes=nodes, edges=edges)


def topological_sort(tasks: Sequence[Task]) -> list[Task]:
    """Kahn's algorithm; ties resolve by original task order.

    A dependency on an id outside ``tasks`` keeps its dependant unsortable,
    so it is reported together with genuine cycles.
    """
    graph = build_graph(tasks)

    adjacency: dict[str, list[str]] = {node.task_id: [] for node in graph.nodes}
    in_degree: dict[str, int] = {node.task_id: 0 for node in graph.nodes}
    for parent, child in graph.edges:
        in_degree[child] += 1
        if parent in adjacency:
            adjacency[parent].append(child)

    queue = deque(node_id for node_id, degree in in_degree.items() if degree == 0)
    order: list[str] = []
    while queue:
        current = queue.popleft()
        order.append(current)
        for child in adjacency[current]:
            in_degree[child] -= 1
            if in_degree[child] == 0:
                queue.append(child)

    if len(order) != len(tasks):
        # Counted per occurrence so a duplicated id is still reported.
        placed = Counter(order)
        missing: list[str] = []
        for task in tasks:
            if placed[task.task_id] > 0:
                placed[task.task_id] -= 1
            else:
                missing.append(task.task_id)
        logger.error("Cycle detected in task graph missing_tasks=%s", missing)
        raise CycleDetectedError(missing)

    by_id = {task.task_id: task for task in tasks}
    logger.info("Topological sort completed order=%s", order)
    return [by_id[task_id] for task_id in order]


def validate_no_cycles(tasks: Sequence[Task]) -> bool:
    try:
        topological_sort(tasks)
    except CycleDetectedError:
        return False
    return True


def get_parallel_batches(tasks: Sequence[Task]) -> list[list[Task]]:
    """Group tasks by forest depth; batch k holds every task at depth k."""
    ordered = topological_sort(tasks)
    completed: set[str] = set()
    batches: list[list[Task]] = []

    while len(completed) < len(ordered):
        batch = [
            task
            for task in ordered
            if task.task_id not in completed
            and all(parent in completed for parent in task.depends_on)
        ]
        if not batch:
            raise ConsistencyError("Unable to find runnable tasks while building batches")
        batches.append(batch)
        completed.update(task.task_id for task in batch)

    logger.info("Parallel batches created batch_count=%d", len(batches))
    return batches
