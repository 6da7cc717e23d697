"""Scheduling engine: earliest-start forward pass and critical-path analysis."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .dag import (
    TaskGraph,
    dependency_depths,
    resolved_dependencies,
    resolved_dependents,
    topological_order,
)
from .types import GraphConfig, ScheduleReport, Task, TaskTimes, VisitState

LogFn = Callable[[str, Optional[dict]], None]


def _duration(task: Task) -> timedelta:
    return timedelta(days=task.duration)


def _forward_pass(
    graph: TaskGraph, anchor: datetime, roots: Iterable[int]
) -> Dict[int, datetime]:
    """Earliest start of every task reachable from ``roots`` through dependencies.

    A task with no resolvable dependencies starts at ``anchor``; otherwise at
    the latest finish among its dependencies. Dependencies still in progress
    (a cycle) are ignored so the pass always terminates.
    """

    starts: Dict[int, datetime] = {}
    state: Dict[int, VisitState] = {}

    for root in roots:
        if root in starts or root not in graph.nodes:
            continue
        state[root] = VisitState.IN_PROGRESS
        stack: List[Tuple[int, int, List[int]]] = [(root, 0, resolved_dependencies(graph, root))]
        while stack:
            node_id, index, deps = stack[-1]
            if index < len(deps):
                stack[-1] = (node_id, index + 1, deps)
                dep = deps[index]
                if state.get(dep, VisitState.UNVISITED) is VisitState.UNVISITED:
                    state[dep] = VisitState.IN_PROGRESS
                    stack.append((dep, 0, resolved_dependencies(graph, dep)))
                continue

            finishes = [
                starts[dep] + _duration(graph.nodes[dep]) for dep in deps if dep in starts
            ]
            starts[node_id] = max(finishes) if finishes else anchor
            state[node_id] = VisitState.DONE
            stack.pop()

    return starts


def _backward_pass(
    graph: TaskGraph, project_finish: datetime
) -> Tuple[Dict[int, datetime], Dict[int, datetime]]:
    """Latest start and finish of every task, walking dependents."""

    latest_start: Dict[int, datetime] = {}
    latest_finish: Dict[int, datetime] = {}
    state: Dict[int, VisitState] = {}

    for root in graph.nodes:
        if root in latest_start:
            continue
        state[root] = VisitState.IN_PROGRESS
        stack: List[Tuple[int, int, List[int]]] = [(root, 0, resolved_dependents(graph, root))]
        while stack:
            node_id, index, dependents = stack[-1]
            if index < len(dependents):
                stack[-1] = (node_id, index + 1, dependents)
                dependent = dependents[index]
                if state.get(dependent, VisitState.UNVISITED) is VisitState.UNVISITED:
                    state[dependent] = VisitState.IN_PROGRESS
                    stack.append((dependent, 0, resolved_dependents(graph, dependent)))
                continue

            resolved = [latest_start[d] for d in dependents if d in latest_start]
            finish = min(resolved) if resolved else project_finish
            latest_finish[node_id] = finish
            latest_start[node_id] = finish - _duration(graph.nodes[node_id])
            state[node_id] = VisitState.DONE
            stack.pop()

    return latest_start, latest_finish


def earliest_start(task: Task, graph: TaskGraph, now: Optional[datetime] = None) -> datetime:
    """Earliest datetime ``task`` can begin given its dependencies' finishes.

    Root tasks start at ``now``, which defaults to the wall clock at call
    time, so results are advisory and drift between calls.
    """

    anchor = now or datetime.now()
    if task.id not in graph.nodes:
        # Evaluate a task outside the snapshot against the snapshot's edges.
        graph = TaskGraph(nodes={**graph.nodes, task.id: task}, edges=graph.edges)
    return _forward_pass(graph, anchor, [task.id])[task.id]


def critical_path(
    graph: TaskGraph, now: Optional[datetime] = None, tolerance_seconds: float = 1.0
) -> List[int]:
    """Ids of tasks with zero slack, in snapshot order."""

    engine = ScheduleEngine(config=GraphConfig(critical_tolerance_seconds=tolerance_seconds))
    return engine.analyze(graph, now=now).critical_path


@dataclass
class ScheduleEngine:
    config: GraphConfig = field(default_factory=GraphConfig)

    def analyze(
        self,
        graph: TaskGraph,
        now: Optional[datetime] = None,
        log: LogFn | None = None,
    ) -> ScheduleReport:
        cfg = self.config
        anchor = now or cfg.anchor or datetime.now()

        def _log(message: str, details: dict | None = None) -> None:
            if log:
                log(message, details or {})

        _log("engine.analyze.start", {"tasks": len(graph.nodes), "edges": len(graph.edges)})

        order = topological_order(graph)
        report = ScheduleReport(anchor=anchor, order=order, tolerance_seconds=cfg.critical_tolerance_seconds)
        if not graph.nodes:
            _log("engine.analyze.empty")
            return report

        starts = _forward_pass(graph, anchor, graph.nodes)
        finishes = {
            task_id: start + _duration(graph.nodes[task_id]) for task_id, start in starts.items()
        }
        project_finish = max(finishes.values())
        _log(
            "engine.forward_pass.complete",
            {"project_finish": project_finish.isoformat(), "anchor": anchor.isoformat()},
        )

        latest_start, latest_finish = _backward_pass(graph, project_finish)
        _log("engine.backward_pass.complete", {"tasks": len(latest_start)})

        depths = dependency_depths(graph)
        for task_id in graph.nodes:
            report.times[task_id] = TaskTimes(
                task_id=task_id,
                earliest_start=starts[task_id],
                earliest_finish=finishes[task_id],
                latest_start=latest_start[task_id],
                latest_finish=latest_finish[task_id],
                depth=depths[task_id],
            )

        report.project_finish = project_finish
        report.critical_path = [
            task_id
            for task_id, times in report.times.items()
            if times.is_critical(cfg.critical_tolerance_seconds)
        ]
        _log(
            "engine.critical_path.result",
            {"critical": list(report.critical_path), "count": len(report.critical_path)},
        )
        return report

    def earliest_start(self, task: Task, graph: TaskGraph, now: Optional[datetime] = None) -> datetime:
        return earliest_start(task, graph, now=now or self.config.anchor)
