"""Execution plan, blocking signal and timeline tests."""

from __future__ import annotations

from datetime import date

import pytest

from planner.execution_plan import build_execution_plan
from planner.priority_signals import compute_signals, rank_tasks
from planner.timeline import build_timeline, is_overdue, week_headers
from tasks.types import Task

TODAY = date(2024, 3, 15)


def test_plan_layers_tasks_into_stages() -> None:
    tasks = [
        Task(id="C", dependencies=["A", "B"]),
        Task(id="A", status="completed"),
        Task(id="B"),
        Task(id="D", dependencies=["C"]),
    ]
    plan = build_execution_plan(tasks)
    assert plan.stages == [["A", "B"], ["C"], ["D"]]
    assert plan.order == ["A", "B", "C", "D"]
    assert plan.is_feasible
    assert plan.ready == ["B"]


def test_plan_marks_cycles_and_dangling_as_unschedulable() -> None:
    tasks = [
        Task(id="A"),
        Task(id="X", dependencies=["Y"]),
        Task(id="Y", dependencies=["X"]),
        Task(id="Z", dependencies=["X"]),
        Task(id="W", dependencies=["missing"]),
    ]
    plan = build_execution_plan(tasks)
    assert plan.stages == [["A"]]
    assert set(plan.unschedulable) == {"X", "Y", "Z", "W"}
    assert not plan.is_feasible
    assert plan.ready == ["A"]


def test_signals_count_only_open_tasks() -> None:
    tasks = [
        Task(id="A", status="completed"),
        Task(id="B"),
        Task(id="C", dependencies=["A", "B"]),
        Task(id="D", dependencies=["B"], status="completed"),
    ]
    signals = {s.task_id: s for s in compute_signals(tasks, TODAY)}
    assert set(signals) == {"B", "C"}
    assert signals["C"].has_dependencies
    assert signals["C"].blocked_by_count == 1
    assert signals["C"].startable is False
    assert signals["B"].blocking_count == 1
    assert signals["B"].startable is True


def test_rank_puts_startable_unblocking_work_first() -> None:
    tasks = [
        Task(id="low", priority="low"),
        Task(id="hub", priority="low"),
        Task(id="urgent", priority="urgent"),
        Task(id="late", priority="low", due_date=date(2024, 3, 1)),
        Task(id="waiting", priority="urgent", dependencies=["hub"]),
    ]
    ranked = [s.task_id for s in rank_tasks(compute_signals(tasks, TODAY))]
    assert ranked == ["hub", "late", "urgent", "low", "waiting"]


def test_timeline_bounds_and_bars() -> None:
    tasks = [
        Task(id="A", start_date=date(2024, 3, 1), due_date=date(2024, 3, 8)),
        Task(id="B", due_date=date(2024, 3, 15), dependencies=["A"]),
        Task(id="C", title="undated", dependencies=["A"]),
    ]
    timeline = build_timeline(tasks, today=TODAY)
    assert timeline.start == date(2024, 3, 1)
    assert timeline.end == date(2024, 3, 22)
    assert timeline.total_days == 21
    assert timeline.headers == [date(2024, 3, 1), date(2024, 3, 8), date(2024, 3, 15), date(2024, 3, 22)]

    bars = {bar.task_id: bar for bar in timeline.bars}
    assert set(bars) == {"A", "B"}
    assert bars["A"].left_pct == pytest.approx(0.0)
    assert bars["A"].width_pct == pytest.approx(7 / 21 * 100)
    assert bars["B"].left_pct == pytest.approx(14 / 21 * 100)
    assert bars["B"].width_pct == pytest.approx(1 / 21 * 100)
    assert timeline.links == [("A", "B")]


def test_timeline_without_dates_uses_default_window() -> None:
    timeline = build_timeline([Task(id="A")], today=TODAY)
    assert timeline.start == TODAY
    assert timeline.total_days == 30
    assert timeline.bars == []
    assert len(week_headers(timeline.start, timeline.end)) == 5


def test_overdue_ignores_completed_tasks() -> None:
    late = Task(id="A", due_date=date(2024, 3, 14))
    assert is_overdue(late, TODAY) is True
    assert is_overdue(late.model_copy(update={"status": "completed"}), TODAY) is False
    assert is_overdue(Task(id="B", due_date=TODAY), TODAY) is False


def test_task_dates_accept_timestamps() -> None:
    task = Task(id="A", due_date="2024-03-15T09:30:00Z")
    assert task.due_date == date(2024, 3, 15)
