"""Per-task blocking signals used to rank open work."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from planner.dependency_graph import DependencyGraph, is_task_startable
from planner.timeline import is_overdue
from tasks.types import Task, TaskPriority

PRIORITY_RANK = {
    TaskPriority.URGENT: 0,
    TaskPriority.HIGH: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 3,
}


@dataclass
class TaskSignals:
    """Dependency and deadline facts about one open task."""

    task_id: str
    title: str
    status: str
    priority: str
    due_date: date | None
    has_dependencies: bool
    blocked_by_count: int
    blocking_count: int
    is_overdue: bool
    startable: bool


def compute_signals(all_tasks: Sequence[Task], today: date) -> list[TaskSignals]:
    """Build signals for every task that is not completed yet.

    Counts only look at open tasks: a completed prerequisite does not block,
    and a completed dependent is not waiting.
    """
    open_tasks = [task for task in all_tasks if not task.is_completed]
    open_graph = DependencyGraph.from_tasks(open_tasks)
    signals: list[TaskSignals] = []
    for task in open_tasks:
        blocked_by = [
            dep for dep in open_graph.prerequisites_of(task.id) if dep in open_graph.prerequisites
        ]
        blocking = open_graph.dependents_of(task.id)
        signals.append(
            TaskSignals(
                task_id=task.id,
                title=task.title,
                status=task.status,
                priority=task.priority,
                due_date=task.due_date,
                has_dependencies=bool(task.dependencies),
                blocked_by_count=len(blocked_by),
                blocking_count=len(blocking),
                is_overdue=is_overdue(task, today),
                startable=is_task_startable(task, all_tasks),
            )
        )
    return signals


def rank_tasks(signals: Sequence[TaskSignals]) -> list[TaskSignals]:
    """Order signals so startable work that unblocks the most comes first."""

    def sort_key(item: TaskSignals) -> tuple[object, ...]:
        return (
            not item.startable,
            -item.blocking_count,
            not item.is_overdue,
            PRIORITY_RANK.get(item.priority, PRIORITY_RANK[TaskPriority.MEDIUM]),
            item.due_date or date.max,
            item.task_id,
        )

    return sorted(signals, key=sort_key)
