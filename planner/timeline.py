"""Gantt timeline geometry for dated tasks."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta

from tasks.types import Task

DEFAULT_EMPTY_WINDOW_DAYS = 30
DEFAULT_END_BUFFER_DAYS = 7
HEADER_STEP_DAYS = 7


@dataclass
class TaskBar:
    """Horizontal placement of one task, in percent of the timeline width."""

    task_id: str
    title: str
    start: date
    end: date
    left_pct: float
    width_pct: float
    overdue: bool


@dataclass
class Timeline:
    """Everything needed to draw the Gantt view."""

    start: date
    end: date
    headers: list[date] = field(default_factory=list)
    bars: list[TaskBar] = field(default_factory=list)
    links: list[tuple[str, str]] = field(default_factory=list)

    @property
    def total_days(self) -> int:
        return (self.end - self.start).days


def is_overdue(task: Task, today: date) -> bool:
    """Due before today and not completed."""
    return task.due_date is not None and task.due_date < today and not task.is_completed


def timeline_bounds(
    tasks: Sequence[Task],
    today: date,
    empty_window_days: int = DEFAULT_EMPTY_WINDOW_DAYS,
    end_buffer_days: int = DEFAULT_END_BUFFER_DAYS,
) -> tuple[date, date]:
    dates = [d for task in tasks for d in (task.start_date, task.due_date) if d is not None]
    if not dates:
        return today, today + timedelta(days=empty_window_days)
    return min(dates), max(dates) + timedelta(days=end_buffer_days)


def week_headers(start: date, end: date) -> list[date]:
    total_days = (end - start).days
    return [start + timedelta(days=offset) for offset in range(0, total_days + 1, HEADER_STEP_DAYS)]


def task_bar(task: Task, start: date, total_days: int, today: date) -> TaskBar:
    """Place one task; tasks without a start date begin on their due date."""
    bar_start = task.start_date or task.due_date
    bar_end = task.due_date or bar_start
    if bar_start is None or bar_end is None:
        raise ValueError(f"Task {task.id} has no start or due date.")
    offset = (bar_start - start).days
    duration = max(1, (bar_end - bar_start).days)
    return TaskBar(
        task_id=task.id,
        title=task.title,
        start=bar_start,
        end=bar_end,
        left_pct=offset / total_days * 100,
        width_pct=duration / total_days * 100,
        overdue=is_overdue(task, today),
    )


def build_timeline(
    all_tasks: Sequence[Task],
    today: date,
    empty_window_days: int = DEFAULT_EMPTY_WINDOW_DAYS,
    end_buffer_days: int = DEFAULT_END_BUFFER_DAYS,
) -> Timeline:
    """Lay out every task that has a start or due date."""
    dated = [task for task in all_tasks if task.start_date or task.due_date]
    start, end = timeline_bounds(dated, today, empty_window_days, end_buffer_days)
    timeline = Timeline(start=start, end=end, headers=week_headers(start, end))
    total_days = max(1, timeline.total_days)
    timeline.bars = [task_bar(task, start, total_days, today) for task in dated]

    on_timeline = {task.id for task in dated}
    for task in dated:
        for dep in task.dependencies:
            if dep in on_timeline:
                timeline.links.append((dep, task.id))
    return timeline
