"""Core types and enums for the todo dependency graph engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

# Sentinel id for a task that has not been created yet.
NEW_TASK_ID = -1


class SnapshotError(ValueError):
    """Raised when task records cannot be turned into a graph snapshot."""


class DependencyError(ValueError):
    """Base class for rejected dependency edge sets."""


class CycleError(DependencyError):
    """Raised when a dependency set would close a cycle."""


class DateOrderError(DependencyError):
    """Raised when a dependency is not due before its dependent."""


class UnknownDependencyError(DependencyError):
    """Raised when a dependency id names no task in the snapshot."""


class VisitState(Enum):
    UNVISITED = "unvisited"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class ErrorKind(Enum):
    STRUCTURAL = "structural"
    TEMPORAL = "temporal"
    REFERENTIAL = "referential"


@dataclass(frozen=True)
class Task:
    id: int
    title: str
    due_date: date
    duration: int = 1
    image_url: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise SnapshotError(f"Task {self.id} has an empty title")
        if self.duration < 1:
            raise SnapshotError(
                f"Task {self.id} has non-positive duration {self.duration}"
            )

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        today = (now or datetime.now()).date()
        return self.due_date < today

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "dueDate": self.due_date.isoformat(),
            "duration": self.duration,
            "imageUrl": self.image_url,
        }


@dataclass(frozen=True)
class DependencyEdge:
    """``dependent_id`` cannot start until ``dependency_id`` is finished."""

    dependent_id: int
    dependency_id: int


@dataclass
class GraphConfig:
    critical_tolerance_seconds: float = 1.0
    default_duration: int = 1
    anchor: Optional[datetime] = None


@dataclass
class TaskTimes:
    task_id: int
    earliest_start: datetime
    earliest_finish: datetime
    latest_start: datetime
    latest_finish: datetime
    depth: int = 0

    @property
    def slack_days(self) -> float:
        return (self.latest_start - self.earliest_start).total_seconds() / 86400.0

    def is_critical(self, tolerance_seconds: float = 1.0) -> bool:
        delta = abs((self.earliest_start - self.latest_start).total_seconds())
        return delta < tolerance_seconds

    def to_dict(self, tolerance_seconds: float = 1.0) -> Dict[str, Any]:
        return {
            "id": self.task_id,
            "earliestStart": self.earliest_start.isoformat(),
            "earliestFinish": self.earliest_finish.isoformat(),
            "latestStart": self.latest_start.isoformat(),
            "latestFinish": self.latest_finish.isoformat(),
            "slackDays": round(self.slack_days, 6),
            "critical": self.is_critical(tolerance_seconds),
            "depth": self.depth,
        }


@dataclass
class ScheduleReport:
    anchor: datetime
    order: List[int] = field(default_factory=list)
    critical_path: List[int] = field(default_factory=list)
    times: Dict[int, TaskTimes] = field(default_factory=dict)
    project_finish: Optional[datetime] = None
    tolerance_seconds: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "anchor": self.anchor.isoformat(),
            "order": list(self.order),
            "criticalPath": list(self.critical_path),
            "projectFinish": self.project_finish.isoformat() if self.project_finish else None,
            "tasks": [
                self.times[task_id].to_dict(self.tolerance_seconds)
                for task_id in self.order
                if task_id in self.times
            ],
        }


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None
    offending_ids: List[int] = field(default_factory=list)

    def raise_for_error(self) -> None:
        if self.valid:
            return
        exc_type = {
            ErrorKind.STRUCTURAL: CycleError,
            ErrorKind.TEMPORAL: DateOrderError,
            ErrorKind.REFERENTIAL: UnknownDependencyError,
        }.get(self.kind, DependencyError)
        raise exc_type(self.error or "Invalid dependencies")

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "error": self.error}

