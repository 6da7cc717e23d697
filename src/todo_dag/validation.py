"""Edge-validation workflow run before a dependency set is persisted."""
from __future__ import annotations

from datetime import date, datetime
from typing import Callable, Iterable, List, Optional, Union

from .dag import TaskGraph, is_cyclic
from .interfaces import ValidationRequest
from .types import NEW_TASK_ID, ErrorKind, ValidationResult

LogFn = Callable[[str, Optional[dict]], None]


def _as_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


def _describe_task(todo_id: int) -> str:
    return "the new task" if todo_id == NEW_TASK_ID else f"task {todo_id}"


def validate_dependencies(
    graph: TaskGraph,
    todo_id: Optional[int],
    dependency_ids: Iterable[int],
    due_date: Optional[Union[date, datetime]] = None,
    log: LogFn | None = None,
) -> ValidationResult:
    """Check a proposed dependency set for ``todo_id``.

    Rules run in order and the first failure wins:

    * referential: every id must name a task in the snapshot;
    * structural: the set must not close a cycle through ``todo_id``;
    * temporal: with ``due_date`` given, each dependency must be due
      strictly before it.

    ``todo_id`` of ``None`` or ``NEW_TASK_ID`` validates a task that does not
    exist yet.
    """

    candidate_id = NEW_TASK_ID if todo_id is None else todo_id
    dep_ids: List[int] = list(dict.fromkeys(dependency_ids))

    def _log(message: str, details: dict | None = None) -> None:
        if log:
            log(message, details or {})

    def _reject(kind: ErrorKind, error: str, offending: List[int]) -> ValidationResult:
        _log(
            "validation.rejected",
            {"todo_id": candidate_id, "kind": kind.value, "offending": offending},
        )
        return ValidationResult(valid=False, error=error, kind=kind, offending_ids=offending)

    _log("validation.start", {"todo_id": candidate_id, "dependency_ids": dep_ids})

    unknown = [dep_id for dep_id in dep_ids if dep_id not in graph.nodes]
    if unknown:
        return _reject(
            ErrorKind.REFERENTIAL,
            "Unknown dependency id(s): " + ", ".join(str(dep_id) for dep_id in unknown),
            unknown,
        )

    if is_cyclic(candidate_id, dep_ids, graph):
        return _reject(
            ErrorKind.STRUCTURAL,
            "Circular dependency detected: {} cannot depend on {}".format(
                _describe_task(candidate_id), ", ".join(str(dep_id) for dep_id in dep_ids)
            ),
            dep_ids,
        )

    if due_date is not None and dep_ids:
        current_due = _as_date(due_date)
        for dep_id in dep_ids:
            dependency = graph.nodes[dep_id]
            if dependency.due_date >= current_due:
                return _reject(
                    ErrorKind.TEMPORAL,
                    f'"{dependency.title}" is due {dependency.due_date.isoformat()} '
                    f"which is not before this task's due date {current_due.isoformat()}",
                    [dep_id],
                )

    _log("validation.accepted", {"todo_id": candidate_id, "dependencies": len(dep_ids)})
    return ValidationResult(valid=True)


def validate_request(
    graph: TaskGraph, request: ValidationRequest, log: LogFn | None = None
) -> ValidationResult:
    return validate_dependencies(
        graph, request.todo_id, request.dependency_ids, due_date=request.due_date, log=log
    )
