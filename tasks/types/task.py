"""Task payload models shared by the planner, the store and the CLI."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


class TaskStatus:
    """Lifecycle states a task moves through."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    COMPLETED = "completed"


class TaskPriority:
    """Priority levels, highest first."""

    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


VALID_STATUSES = (
    TaskStatus.TODO,
    TaskStatus.IN_PROGRESS,
    TaskStatus.REVIEW,
    TaskStatus.COMPLETED,
)
VALID_PRIORITIES = (
    TaskPriority.URGENT,
    TaskPriority.HIGH,
    TaskPriority.MEDIUM,
    TaskPriority.LOW,
)

_STATUS_ALIASES = {
    "not_started": TaskStatus.TODO,
    "not-started": TaskStatus.TODO,
    "in-progress": TaskStatus.IN_PROGRESS,
    "in_review": TaskStatus.REVIEW,
    "in-review": TaskStatus.REVIEW,
    "done": TaskStatus.COMPLETED,
}


def normalize_status(status: Any) -> str:
    """Map a status string onto a known lifecycle state.

    Unknown values fall back to ``todo`` so they never count as completed.
    """
    if not status:
        return TaskStatus.TODO
    status_norm = str(status).strip().lower().replace(" ", "_")
    status_norm = _STATUS_ALIASES.get(status_norm, status_norm)
    if status_norm in VALID_STATUSES:
        return status_norm
    return TaskStatus.TODO


def normalize_priority(priority: Any) -> str:
    """Normalize priority levels to supported values."""
    if not priority:
        return TaskPriority.MEDIUM
    priority_norm = str(priority).strip().lower()
    if priority_norm in VALID_PRIORITIES:
        return priority_norm
    return TaskPriority.MEDIUM


def _coerce_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return value.split("T", 1)[0]
    return value


class Task(BaseModel):
    """Unit of work and the ids of the tasks it depends on."""

    id: str
    title: str = ""
    description: str = ""
    project_id: str | None = None
    status: str = TaskStatus.TODO
    priority: str = TaskPriority.MEDIUM
    start_date: date | None = None
    due_date: date | None = None
    estimated_hours: float | None = None
    dependencies: list[str] = Field(default_factory=list)

    @field_validator("id", "project_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("dependencies", mode="before")
    @classmethod
    def _stringify_dependencies(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, (str, int)):
            return [str(value)]
        if not isinstance(value, (list, tuple, set, frozenset)):
            raise ValueError("dependencies must be a list of task ids")
        return [str(item) for item in value]

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> str:
        return normalize_status(value)

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value: Any) -> str:
        return normalize_priority(value)

    @field_validator("start_date", "due_date", mode="before")
    @classmethod
    def _date_only(cls, value: Any) -> Any:
        return _coerce_date(value)

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED
