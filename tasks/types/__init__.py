"""Typed task payload models."""

from tasks.types.task import (
    VALID_PRIORITIES,
    VALID_STATUSES,
    Task,
    TaskPriority,
    TaskStatus,
    normalize_priority,
    normalize_status,
)

__all__ = [
    "Task",
    "TaskPriority",
    "TaskStatus",
    "VALID_PRIORITIES",
    "VALID_STATUSES",
    "normalize_priority",
    "normalize_status",
]
