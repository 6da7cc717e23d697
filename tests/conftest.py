"""Shared fixtures for the dependency graph tests."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Callable, Dict, Sequence, Tuple

import pytest

from todo_dag.dag import TaskGraph
from todo_dag.types import Task

GraphSpec = Dict[int, Tuple[int, Sequence[int]]]

NOW = datetime(2024, 3, 1, 9, 0, 0)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def build_graph() -> Callable[[GraphSpec], TaskGraph]:
    """Build a snapshot from ``{id: (duration, [dependency ids])}``.

    Due dates increase with the id so that dependencies on lower ids pass the
    date-order rule.
    """

    def _build(layout: GraphSpec) -> TaskGraph:
        tasks = [
            Task(
                id=task_id,
                title=f"Task {task_id}",
                due_date=date(2024, 3, 1) + timedelta(days=task_id),
                duration=duration,
            )
            for task_id, (duration, _) in layout.items()
        ]
        edges = [(task_id, dep) for task_id, (_, deps) in layout.items() for dep in deps]
        return TaskGraph.from_tasks(tasks, edges)

    return _build


@pytest.fixture
def records() -> list:
    return [
        {
            "id": 1,
            "title": "Buy paint",
            "dueDate": "2024-03-05T00:00:00.000Z",
            "duration": 1,
            "imageUrl": None,
            "dependencies": [],
            "dependents": [{"dependentId": 2}],
        },
        {
            "id": 2,
            "title": "Paint fence",
            "dueDate": "2024-03-10T00:00:00.000Z",
            "duration": 2,
            "dependencies": [{"dependencyId": 1, "dependency": {"id": 1, "title": "Buy paint"}}],
            "dependents": [],
        },
        {
            "id": 3,
            "title": "Clean brushes",
            "due_date": "2024-03-12",
            "dependency_ids": [2],
        },
    ]
