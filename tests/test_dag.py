"""Tests for the graph snapshot, cycle detection, ordering and depth."""

from __future__ import annotations

from datetime import date

import pytest

from todo_dag.dag import (
    TaskGraph,
    available_dependencies,
    dependency_depth,
    dependency_depths,
    is_cyclic,
    topological_order,
)
from todo_dag.types import NEW_TASK_ID, DependencyEdge, SnapshotError, Task


def test_adjacency_is_indexed_both_ways(build_graph) -> None:
    graph = build_graph({1: (1, []), 2: (1, [1]), 3: (1, [1, 2])})

    assert graph.dependencies_of(3) == [1, 2]
    assert graph.dependents_of(1) == [2, 3]
    assert graph.dependents_of(3) == []
    assert graph.dependencies_of(99) == []


def test_chain_proposal_back_to_head_is_cyclic(build_graph) -> None:
    # A=1 depends on B=2, B depends on C=3
    graph = build_graph({1: (2, [2]), 2: (3, [3]), 3: (1, [])})

    assert is_cyclic(3, [1], graph) is True
    assert is_cyclic(3, [], graph) is False


def test_candidate_edges_override_stored_edges(build_graph) -> None:
    graph = build_graph({1: (1, [2]), 2: (1, [])})

    # Task 1 drops its stored edge to 2, so 2 may now depend on 1.
    assert is_cyclic(1, [], graph) is False
    assert is_cyclic(2, [1], graph) is True
    assert graph.is_cyclic(1, []) is False


def test_self_dependency_is_cyclic(build_graph) -> None:
    graph = build_graph({1: (1, [])})

    assert is_cyclic(1, [1], graph) is True


def test_new_task_cannot_close_a_cycle(build_graph) -> None:
    graph = build_graph({1: (1, []), 2: (1, [1])})

    assert is_cyclic(NEW_TASK_ID, [1, 2], graph) is False


def test_diamond_is_not_cyclic(build_graph) -> None:
    graph = build_graph({1: (1, []), 2: (1, [1]), 3: (1, [1]), 4: (1, [2, 3])})

    assert is_cyclic(4, [2, 3], graph) is False


def test_cycle_not_reachable_from_candidate_is_ignored(build_graph) -> None:
    graph = build_graph({1: (1, [2]), 2: (1, [1]), 3: (1, [])})

    assert is_cyclic(3, [], graph) is False
    assert is_cyclic(1, [2], graph) is True


def test_dangling_dependency_is_a_leaf(build_graph) -> None:
    graph = build_graph({1: (1, [42]), 2: (1, [])})

    assert is_cyclic(2, [1], graph) is False
    assert is_cyclic(2, [42], graph) is False


def test_deep_chain_does_not_hit_recursion_limit(build_graph) -> None:
    size = 5000
    graph = build_graph({i: (1, [i - 1] if i > 1 else []) for i in range(1, size + 1)})

    assert is_cyclic(1, [size], graph) is True
    order = topological_order(graph)
    assert order == list(range(1, size + 1))
    assert dependency_depth(size, graph) == size - 1


def test_topological_order_respects_every_edge(build_graph) -> None:
    graph = build_graph(
        {
            5: (1, [3, 4]),
            4: (1, [2]),
            3: (1, [1, 2]),
            2: (1, [1]),
            1: (1, []),
            6: (1, []),
        }
    )

    order = topological_order(graph)
    position = {task_id: index for index, task_id in enumerate(order)}

    assert sorted(order) == [1, 2, 3, 4, 5, 6]
    for edge in graph.edges:
        assert position[edge.dependency_id] < position[edge.dependent_id]


def test_topological_order_is_deterministic(build_graph) -> None:
    graph = build_graph({3: (1, [1]), 1: (1, []), 2: (1, [1])})

    assert topological_order(graph) == [1, 3, 2]
    assert topological_order(graph) == topological_order(graph)
    assert graph.topological_order() == [1, 3, 2]


def test_topological_order_terminates_on_cycle(build_graph) -> None:
    graph = build_graph({1: (1, [2]), 2: (1, [3]), 3: (1, [1])})

    order = topological_order(graph)

    assert sorted(order) == [1, 2, 3]


def test_topological_order_skips_dangling_ids(build_graph) -> None:
    graph = build_graph({1: (1, [7]), 2: (1, [1])})

    assert topological_order(graph) == [1, 2]


def test_dependency_depth(build_graph) -> None:
    graph = build_graph({1: (1, []), 2: (1, [1]), 3: (1, [1]), 4: (1, [2, 3]), 5: (1, [1, 4])})

    assert dependency_depth(1, graph) == 0
    assert dependency_depth(2, graph) == 1
    assert dependency_depth(4, graph) == 2
    assert dependency_depth(5, graph) == 3
    assert dependency_depth(99, graph) == 0


def test_dependency_depths_for_whole_snapshot(build_graph) -> None:
    graph = build_graph({5: (1, [1, 4]), 4: (1, [2, 3]), 3: (1, [1]), 2: (1, [1]), 1: (1, [9])})

    assert dependency_depths(graph) == {1: 0, 2: 1, 3: 1, 4: 2, 5: 3}
    assert dependency_depths(graph, [3]) == {1: 0, 3: 1}


def test_duplicate_edges_are_indexed_once() -> None:
    task = Task(id=1, title="a", due_date=date(2024, 3, 1))
    other = Task(id=2, title="b", due_date=date(2024, 3, 2))

    graph = TaskGraph.from_tasks([task, other], [(2, 1), (2, 1)])

    assert graph.dependencies_of(2) == [1]
    assert graph.dependents_of(1) == [2]


def test_dependency_depth_terminates_on_cycle(build_graph) -> None:
    graph = build_graph({1: (1, [2]), 2: (1, [1])})

    assert dependency_depth(1, graph) == 2


def test_available_dependencies_excludes_task(build_graph) -> None:
    graph = build_graph({1: (1, []), 2: (1, [1]), 3: (1, [])})

    assert [task.id for task in available_dependencies(graph, exclude_id=2)] == [1, 3]
    assert [task.id for task in available_dependencies(graph)] == [1, 2, 3]


def test_from_records_accepts_both_shapes(records) -> None:
    graph = TaskGraph.from_records(records)

    assert list(graph.nodes) == [1, 2, 3]
    assert graph.nodes[1].due_date == date(2024, 3, 5)
    assert graph.nodes[3].duration == 1
    assert graph.edges == (DependencyEdge(2, 1), DependencyEdge(3, 2))
    assert graph.dependents_of(2) == [3]


def test_from_records_round_trips_through_to_records(records) -> None:
    graph = TaskGraph.from_records(records)

    rebuilt = TaskGraph.from_records(graph.to_records())

    assert rebuilt.nodes == graph.nodes
    assert set(rebuilt.edges) == set(graph.edges)


def test_from_records_applies_default_duration(records) -> None:
    graph = TaskGraph.from_records(records, default_duration=3)

    assert graph.nodes[3].duration == 3
    assert graph.nodes[1].duration == 1


@pytest.mark.parametrize(
    "record, message",
    [
        ({"id": 1, "title": "", "dueDate": "2024-03-01"}, "empty title"),
        ({"id": 1, "title": "x"}, "missing a due date"),
        ({"id": 1, "title": "x", "dueDate": "soon"}, "invalid due date"),
        ({"id": 1, "title": "x", "dueDate": "2024-03-01", "duration": 0}, "non-positive"),
        ({"id": 1, "title": "x", "dueDate": "2024-03-01", "duration": 1.5}, "invalid duration"),
        ({"id": 1, "title": "x", "dueDate": "2024-03-01", "duration": True}, "invalid duration"),
        ({"id": 1, "title": "x", "dueDate": "2024-03-01", "duration": "two"}, "invalid duration"),
        ({"id": 1, "title": "x", "dueDate": "2024-03-01", "dependency_ids": [1]}, "itself"),
        ({"id": "abc", "title": "x", "dueDate": "2024-03-01"}, "Invalid task id"),
        ({"id": 1, "title": "x", "dueDate": "2024-03-01", "dependency_ids": ["y"]}, "invalid id"),
    ],
)
def test_from_records_rejects_malformed_records(record, message) -> None:
    with pytest.raises(SnapshotError, match=message):
        TaskGraph.from_records([record])


def test_from_records_accepts_integral_float_duration() -> None:
    graph = TaskGraph.from_records([{"id": 1, "title": "x", "dueDate": "2024-03-01", "duration": 2.0}])

    assert graph.nodes[1].duration == 2


def test_from_records_rejects_duplicate_ids() -> None:
    record = {"id": 1, "title": "x", "dueDate": "2024-03-01"}

    with pytest.raises(SnapshotError, match="Duplicate"):
        TaskGraph.from_records([record, dict(record)])


def test_task_overdue_flag(now) -> None:
    task = Task(id=1, title="Late", due_date=date(2024, 2, 29))

    assert task.is_overdue(now) is True
    assert Task(id=2, title="Today", due_date=date(2024, 3, 1)).is_overdue(now) is False
