"""Collaborator interfaces: where snapshots come from and what callers submit."""
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .dag import TaskGraph
from .types import NEW_TASK_ID, GraphConfig, SnapshotError


@dataclass
class ValidationRequest:
    todo_id: int
    dependency_ids: List[int]
    due_date: Optional[date] = None

    @property
    def is_new_task(self) -> bool:
        return self.todo_id == NEW_TASK_ID


class SnapshotSource(ABC):
    @abstractmethod
    def load(self) -> TaskGraph:
        """Return a fresh snapshot of every task and dependency edge."""
        ...


@dataclass
class RecordSnapshotSource(SnapshotSource):
    """Snapshot source over records already in memory (e.g. a request body)."""

    records: Sequence[Mapping[str, Any]]
    config: GraphConfig = field(default_factory=GraphConfig)

    def load(self) -> TaskGraph:
        return TaskGraph.from_records(self.records, default_duration=self.config.default_duration)


@dataclass
class JsonSnapshotSource(SnapshotSource):
    """Read todo records from a JSON file.

    The file holds either a list of records or an object with a ``todos`` list.
    """

    path: Path
    config: GraphConfig = field(default_factory=GraphConfig)

    def load(self) -> TaskGraph:
        try:
            raw = json.loads(Path(self.path).read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise SnapshotError(f"Invalid JSON in {self.path}: {exc}") from exc
        return RecordSnapshotSource(extract_records(raw), config=self.config).load()


def extract_records(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, Mapping):
        payload = payload.get("todos", [])
    if not isinstance(payload, list):
        raise SnapshotError("todos must be a list of task records")
    for item in payload:
        if not isinstance(item, Mapping):
            raise SnapshotError("Each todo must be an object")
    return list(payload)
