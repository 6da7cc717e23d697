"""DAG utilities over a snapshot of todos and their dependency edges."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .types import DependencyEdge, SnapshotError, Task, VisitState


@dataclass
class TaskGraph:
    """Read-only snapshot of tasks plus forward and reverse adjacency.

    ``dependencies`` maps a task id to the ids it depends on, ``dependents``
    maps a task id to the ids depending on it. Both are built once from
    ``edges`` and keep the order the edges were supplied in. Edges may
    reference ids outside ``nodes``; lookups treat those as absent.
    """

    nodes: Dict[int, Task]
    edges: Tuple[DependencyEdge, ...] = ()
    dependencies: Dict[int, List[int]] = field(init=False, repr=False)
    dependents: Dict[int, List[int]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.edges = tuple(self.edges)
        self.dependencies = {node_id: [] for node_id in self.nodes}
        self.dependents = {node_id: [] for node_id in self.nodes}
        seen = set()
        for edge in self.edges:
            key = (edge.dependent_id, edge.dependency_id)
            if key in seen:
                continue
            seen.add(key)
            self.dependencies.setdefault(edge.dependent_id, []).append(edge.dependency_id)
            self.dependents.setdefault(edge.dependency_id, []).append(edge.dependent_id)

    @classmethod
    def from_tasks(
        cls, tasks: Iterable[Task], edges: Iterable[Tuple[int, int]] = ()
    ) -> "TaskGraph":
        nodes = {task.id: task for task in tasks}
        return cls(
            nodes=nodes,
            edges=tuple(DependencyEdge(dependent, dependency) for dependent, dependency in edges),
        )

    @classmethod
    def from_records(
        cls, records: Sequence[Mapping[str, Any]], default_duration: int = 1
    ) -> "TaskGraph":
        """Build a snapshot from todo records as a store would return them.

        Accepts both the camelCase shape (``dueDate``, ``dependencies`` as
        ``[{"dependencyId": 1}]``, ``dependents``) and a snake_case shape
        (``due_date``, ``dependency_ids``).
        """

        nodes: Dict[int, Task] = {}
        edges: List[DependencyEdge] = []
        seen_edges = set()

        def _add_edge(dependent_id: int, dependency_id: int) -> None:
            if dependent_id == dependency_id:
                raise SnapshotError(f"Task {dependent_id} cannot depend on itself")
            key = (dependent_id, dependency_id)
            if key not in seen_edges:
                seen_edges.add(key)
                edges.append(DependencyEdge(dependent_id, dependency_id))

        for record in records:
            task = _task_from_record(record, default_duration)
            if task.id in nodes:
                raise SnapshotError(f"Duplicate task id {task.id}")
            nodes[task.id] = task

            for dependency_id in _linked_ids(record, "dependencies", "dependency_ids", "dependencyId"):
                _add_edge(task.id, dependency_id)
            for dependent_id in _linked_ids(record, "dependents", "dependent_ids", "dependentId"):
                _add_edge(dependent_id, task.id)

        return cls(nodes=nodes, edges=tuple(edges))

    def get(self, task_id: int) -> Optional[Task]:
        return self.nodes.get(task_id)

    def dependencies_of(self, task_id: int) -> List[int]:
        return list(self.dependencies.get(task_id, ()))

    def dependents_of(self, task_id: int) -> List[int]:
        return list(self.dependents.get(task_id, ()))

    def is_cyclic(self, candidate_id: int, candidate_dependency_ids: Iterable[int]) -> bool:
        return is_cyclic(candidate_id, candidate_dependency_ids, self)

    def topological_order(self) -> List[int]:
        return topological_order(self)

    def to_records(self) -> List[Dict[str, Any]]:
        records: List[Dict[str, Any]] = []
        for task_id, task in self.nodes.items():
            record = task.to_dict()
            record["dependencies"] = [{"dependencyId": dep} for dep in self.dependencies_of(task_id)]
            record["dependents"] = [{"dependentId": dep} for dep in self.dependents_of(task_id)]
            records.append(record)
        return records


def is_cyclic(
    candidate_id: int, candidate_dependency_ids: Iterable[int], graph: TaskGraph
) -> bool:
    """Return True if giving ``candidate_id`` these dependencies closes a cycle.

    The candidate's stored edges are replaced by ``candidate_dependency_ids``;
    every other task keeps its stored edges. ``candidate_id`` may be an id
    not present in the snapshot (a task that does not exist yet).
    """

    candidate_deps = list(candidate_dependency_ids)
    state: Dict[int, VisitState] = {}

    def _neighbors(node_id: int) -> List[int]:
        if node_id == candidate_id:
            return candidate_deps
        if node_id not in graph.nodes:
            return []
        return graph.dependencies.get(node_id, [])

    state[candidate_id] = VisitState.IN_PROGRESS
    stack: List[Tuple[int, int]] = [(candidate_id, 0)]
    while stack:
        node_id, index = stack[-1]
        neighbors = _neighbors(node_id)
        if index >= len(neighbors):
            state[node_id] = VisitState.DONE
            stack.pop()
            continue
        stack[-1] = (node_id, index + 1)
        neighbor = neighbors[index]
        neighbor_state = state.get(neighbor, VisitState.UNVISITED)
        if neighbor_state is VisitState.IN_PROGRESS:
            return True
        if neighbor_state is VisitState.UNVISITED:
            state[neighbor] = VisitState.IN_PROGRESS
            stack.append((neighbor, 0))
    return False


def topological_order(graph: TaskGraph) -> List[int]:
    """Order task ids so every dependency precedes the tasks depending on it.

    Depth-first post-order started from each unvisited task in snapshot
    order. Dangling dependency ids are skipped. On cyclic input each task is
    still emitted exactly once, but the order is not meaningful.
    """

    visited = set()
    result: List[int] = []

    for root in graph.nodes:
        if root in visited:
            continue
        visited.add(root)
        stack: List[Tuple[int, int]] = [(root, 0)]
        while stack:
            node_id, index = stack[-1]
            deps = graph.dependencies.get(node_id, [])
            if index >= len(deps):
                stack.pop()
                result.append(node_id)
                continue
            stack[-1] = (node_id, index + 1)
            dep = deps[index]
            if dep in visited or dep not in graph.nodes:
                continue
            visited.add(dep)
            stack.append((dep, 0))

    return result


def resolved_dependencies(graph: TaskGraph, task_id: int) -> List[int]:
    return [dep for dep in graph.dependencies.get(task_id, []) if dep in graph.nodes]


def resolved_dependents(graph: TaskGraph, task_id: int) -> List[int]:
    return [dep for dep in graph.dependents.get(task_id, []) if dep in graph.nodes]


def dependency_depths(graph: TaskGraph, roots: Optional[Iterable[int]] = None) -> Dict[int, int]:
    """Longest dependency chain below each task reachable from ``roots``.

    One traversal shared by every root, so the whole snapshot costs
    O(tasks + edges). ``roots`` defaults to every task.
    """

    depths: Dict[int, int] = {}
    state: Dict[int, VisitState] = {}

    for root in graph.nodes if roots is None else roots:
        if root in depths or root not in graph.nodes:
            continue
        state[root] = VisitState.IN_PROGRESS
        stack: List[Tuple[int, int, List[int]]] = [(root, 0, resolved_dependencies(graph, root))]
        while stack:
            node_id, index, deps = stack[-1]
            if index >= len(deps):
                # A dependency still in progress lies on a cycle and counts as 0.
                depths[node_id] = max((depths.get(dep, 0) + 1 for dep in deps), default=0)
                state[node_id] = VisitState.DONE
                stack.pop()
                continue
            stack[-1] = (node_id, index + 1, deps)
            dep = deps[index]
            if state.get(dep, VisitState.UNVISITED) is VisitState.UNVISITED:
                state[dep] = VisitState.IN_PROGRESS
                stack.append((dep, 0, resolved_dependencies(graph, dep)))

    return depths


def dependency_depth(task_id: int, graph: TaskGraph) -> int:
    """Length of the longest dependency chain below ``task_id``."""

    return dependency_depths(graph, [task_id]).get(task_id, 0)


def available_dependencies(graph: TaskGraph, exclude_id: Optional[int] = None) -> List[Task]:
    """Tasks that may be offered as dependencies, excluding ``exclude_id``."""

    return [task for task_id, task in graph.nodes.items() if task_id != exclude_id]


def _parse_date(raw: Any, task_id: Any) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not raw:
        raise SnapshotError(f"Task {task_id} is missing a due date")
    text = str(raw).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError as exc:
        raise SnapshotError(f"Task {task_id} has an invalid due date {raw!r}") from exc


def _parse_duration(raw: Any, task_id: int) -> int:
    # Whole days only: reject bools and fractional floats.
    if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
        raise SnapshotError(f"Task {task_id} has an invalid duration {raw!r}")
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise SnapshotError(f"Task {task_id} has an invalid duration {raw!r}") from exc


def _task_from_record(record: Mapping[str, Any], default_duration: int) -> Task:
    raw_id = record.get("id")
    try:
        task_id = int(raw_id)
    except (TypeError, ValueError) as exc:
        raise SnapshotError(f"Invalid task id {raw_id!r}") from exc

    raw_due = record.get("dueDate", record.get("due_date"))
    raw_duration = record.get("duration")
    duration = default_duration if raw_duration is None else _parse_duration(raw_duration, task_id)

    return Task(
        id=task_id,
        title=str(record.get("title") or ""),
        due_date=_parse_date(raw_due, task_id),
        duration=duration,
        image_url=record.get("imageUrl", record.get("image_url")),
    )


def _as_id(value: Any, task_id: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise SnapshotError(f"Task {task_id} links to invalid id {value!r}") from exc


def _linked_ids(record: Mapping[str, Any], nested_key: str, flat_key: str, id_key: str) -> List[int]:
    task_id = record.get("id")
    ids: List[int] = []
    for item in record.get(flat_key) or []:
        ids.append(_as_id(item, task_id))
    for item in record.get(nested_key) or []:
        if isinstance(item, Mapping):
            value = item.get(id_key)
            if value is None:
                # Prisma-style include: {"dependency": {"id": 3, ...}}
                linked = item.get(id_key[: -len("Id")]) or {}
                value = linked.get("id")
            if value is not None:
                ids.append(_as_id(value, task_id))
        else:
            ids.append(_as_id(item, task_id))
    return ids
