"""Execution plan models."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from planner.dependency_graph import DependencyGraph, is_task_startable
from tasks.types import Task


@dataclass
class ExecutionPlan:
    """Tasks layered into stages; each stage only needs earlier stages done."""

    stages: list[list[str]] = field(default_factory=list)
    unschedulable: list[str] = field(default_factory=list)
    ready: list[str] = field(default_factory=list)

    @property
    def order(self) -> list[str]:
        return [task_id for stage in self.stages for task_id in stage]

    @property
    def is_feasible(self) -> bool:
        return not self.unschedulable


def build_execution_plan(all_tasks: Sequence[Task]) -> ExecutionPlan:
    """Layer a snapshot into stages, Kahn style.

    Tasks on a cycle, behind a cycle, or waiting on a task missing from the
    snapshot never resolve and end up in ``unschedulable``.
    """
    graph = DependencyGraph.from_tasks(all_tasks)
    placed: set[str] = set()
    pending = graph.nodes
    stages: list[list[str]] = []
    while pending:
        stage = [
            task_id
            for task_id in pending
            if all(dep in placed for dep in graph.prerequisites[task_id])
        ]
        if not stage:
            break
        stages.append(stage)
        placed.update(stage)
        pending = [task_id for task_id in pending if task_id not in placed]

    ready: list[str] = []
    for task in all_tasks:
        if task.id in ready or task.is_completed:
            continue
        if is_task_startable(task, all_tasks):
            ready.append(task.id)

    return ExecutionPlan(stages=stages, unschedulable=pending, ready=ready)
