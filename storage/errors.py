"""Outcomes of dependency mutations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class DependencyDecision:
    """Represents accept/reject decision for a dependency change."""

    allowed: bool
    reason: str


class DependencyRejected(ValueError):
    """A proposed dependency was refused; ``decision.reason`` says why."""

    def __init__(self, task_id: str, decision: DependencyDecision) -> None:
        super().__init__(f"Dependency change for task {task_id} rejected: {decision.reason}")
        self.task_id = task_id
        self.decision = decision


class StaleSnapshotError(RuntimeError):
    """The project graph changed since the caller read its snapshot."""

    def __init__(self, project_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Project {project_id} graph is at version {actual}, caller expected {expected}."
        )
        self.project_id = project_id
        self.expected = expected
        self.actual = actual
