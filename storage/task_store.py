"""Task persistence and the accept-or-reject protocol for dependency edits."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from governance.audit_logger import AuditLogger
from planner.dependency_graph import would_create_cycle
from storage.errors import DependencyDecision, DependencyRejected, StaleSnapshotError
from storage.schemas import ProjectRecord, TaskRecord
from storage.sql_store import SQLStore
from tasks.types import Task, normalize_priority, normalize_status

logger = logging.getLogger("tg.task_store")


@dataclass
class ProjectSnapshot:
    """All tasks of one project, read in a single transaction."""

    project_id: str
    version: int
    tasks: list[Task] = field(default_factory=list)


def _dedupe(ids: Iterable[Any]) -> list[str]:
    seen: list[str] = []
    for item in ids:
        item_s = str(item)
        if item_s not in seen:
            seen.append(item_s)
    return seen


class TaskStore:
    """Stores projects and tasks and serializes dependency edits per project.

    Every dependency change is revalidated against the stored graph inside
    the transaction that writes it, and the project's ``graph_version`` is
    bumped with a compare-and-swap. A writer that read an older version loses.
    """

    def __init__(self, sql_store: SQLStore, audit_logger: AuditLogger | None = None) -> None:
        self.sql_store = sql_store
        self.sql_store.create_all()
        self.audit_logger = audit_logger

    # Projects

    def add_project(self, name: str, project_id: str | None = None) -> dict[str, Any]:
        record = ProjectRecord(
            project_id=project_id or uuid.uuid4().hex,
            name=name,
            graph_version=0,
        )
        with self.sql_store.session() as sess:
            existing = sess.scalar(
                select(ProjectRecord).where(ProjectRecord.project_id == record.project_id)
            )
            if existing is not None:
                raise ValueError(f"Project id already exists: {record.project_id}")
            sess.add(record)
            sess.flush()
            return self._project_to_dict(record)

    def get_project(self, project_id: str) -> dict[str, Any]:
        with self.sql_store.session() as sess:
            return self._project_to_dict(self._project_row(sess, project_id))

    def list_projects(self) -> list[dict[str, Any]]:
        with self.sql_store.session() as sess:
            rows = sess.scalars(select(ProjectRecord).order_by(ProjectRecord.id)).all()
            return [self._project_to_dict(row) for row in rows]

    # Tasks

    def add_task(
        self,
        project_id: str,
        title: str,
        description: str = "",
        status: str = "todo",
        priority: str = "medium",
        start_date: date | None = None,
        due_date: date | None = None,
        estimated_hours: float | None = None,
        dependencies: Iterable[str] | None = None,
        task_id: str | None = None,
    ) -> Task:
        """Insert a task; initial dependencies go through the same checks as edits."""
        new_id = str(task_id) if task_id is not None else uuid.uuid4().hex
        deps = _dedupe(dependencies or [])
        with self.sql_store.session() as sess:
            project = self._project_row(sess, project_id)
            existing = sess.scalar(select(TaskRecord).where(TaskRecord.task_id == new_id))
            if existing is not None:
                raise ValueError(f"Task id already exists: {new_id}")
            if deps:
                decision = self._evaluate(self._load_tasks(sess, project_id), new_id, deps)
                if not decision.allowed:
                    self._reject("add_task", new_id, deps, decision, project_id)
                self._bump_version(sess, project)
            record = TaskRecord(
                task_id=new_id,
                project_id=project_id,
                title=title,
                description=description,
                status=normalize_status(status),
                priority=normalize_priority(priority),
                start_date=start_date,
                due_date=due_date,
                estimated_hours=estimated_hours,
                dependencies=deps,
            )
            sess.add(record)
            sess.flush()
            task = self._task_from_row(record)
        if deps:
            self._audit("add_task", new_id, deps, DependencyDecision(True, "Accepted."), project_id)
        return task

    def get_task(self, task_id: str) -> Task:
        with self.sql_store.session() as sess:
            return self._task_from_row(self._task_row(sess, task_id))

    def list_tasks(self, project_id: str) -> list[Task]:
        with self.sql_store.session() as sess:
            self._project_row(sess, project_id)
            return self._load_tasks(sess, project_id)

    def snapshot(self, project_id: str) -> ProjectSnapshot:
        """Fresh read of a project's tasks together with its graph version."""
        with self.sql_store.session() as sess:
            project = self._project_row(sess, project_id)
            return ProjectSnapshot(
                project_id=project_id,
                version=project.graph_version,
                tasks=self._load_tasks(sess, project_id),
            )

    def update_status(self, task_id: str, status: str) -> Task:
        with self.sql_store.session() as sess:
            row = self._task_row(sess, task_id)
            row.status = normalize_status(status)
            sess.flush()
            return self._task_from_row(row)

    def delete_task(self, task_id: str) -> None:
        """Delete a task and strip every edge that points at it."""
        with self.sql_store.session() as sess:
            row = self._task_row(sess, task_id)
            project = self._project_row(sess, row.project_id)
            project_id = project.project_id
            self._bump_version(sess, project)
            others = sess.scalars(
                select(TaskRecord).where(
                    TaskRecord.project_id == row.project_id,
                    TaskRecord.task_id != task_id,
                )
            ).all()
            for other in others:
                if task_id in (other.dependencies or []):
                    other.dependencies = [dep for dep in other.dependencies if dep != task_id]
            sess.delete(row)
        self._audit("delete_task", task_id, [], DependencyDecision(True, "Task deleted."), project_id)
        logger.info("deleted task %s from project %s", task_id, project_id)

    # Dependencies

    def set_dependencies(
        self,
        task_id: str,
        dependency_ids: Iterable[str],
        expected_version: int | None = None,
    ) -> Task:
        """Replace the dependency list of a task, or reject the whole change."""
        proposed = list(dependency_ids)
        return self._apply(
            "set_dependencies", task_id, lambda _current: proposed, expected_version
        )

    def add_dependency(
        self,
        task_id: str,
        prerequisite_id: str,
        expected_version: int | None = None,
    ) -> Task:
        prerequisite_id = str(prerequisite_id)
        return self._apply(
            "add_dependency",
            task_id,
            lambda current: [*current, prerequisite_id],
            expected_version,
        )

    def remove_dependency(
        self,
        task_id: str,
        prerequisite_id: str,
        expected_version: int | None = None,
    ) -> Task:
        prerequisite_id = str(prerequisite_id)
        return self._apply(
            "remove_dependency",
            task_id,
            lambda current: [dep for dep in current if dep != prerequisite_id],
            expected_version,
        )

    def _apply(
        self,
        action: str,
        task_id: str,
        change: Callable[[list[str]], list[str]],
        expected_version: int | None,
    ) -> Task:
        task_id = str(task_id)
        with self.sql_store.session() as sess:
            row = self._task_row(sess, task_id)
            project = self._project_row(sess, row.project_id)
            project_id = project.project_id
            deps = _dedupe(change(list(row.dependencies or [])))

            if expected_version is not None and project.graph_version != expected_version:
                stale = StaleSnapshotError(project_id, expected_version, project.graph_version)
                self._reject_stale(action, task_id, deps, stale)

            decision = self._evaluate(self._load_tasks(sess, project_id), task_id, deps)
            if not decision.allowed:
                self._reject(action, task_id, deps, decision, project_id)

            try:
                version = self._bump_version(sess, project)
            except StaleSnapshotError as exc:
                self._reject_stale(action, task_id, deps, exc)

            row.dependencies = deps
            sess.flush()
            task = self._task_from_row(row)

        self._audit(action, task_id, deps, decision, project_id)
        logger.info(
            "%s accepted for task %s: %s (graph version %d)", action, task_id, deps, version
        )
        return task

    @staticmethod
    def _evaluate(tasks: list[Task], task_id: str, dependency_ids: list[str]) -> DependencyDecision:
        """Check a full replacement dependency list for ``task_id``.

        Outgoing edges of the task are dropped before checking, so every
        proposed edge is tested against the graph it will actually join.
        """
        known = {task.id for task in tasks}
        graph = [
            task.model_copy(update={"dependencies": []}) if task.id == task_id else task
            for task in tasks
        ]
        for dep in dependency_ids:
            if dep == task_id:
                return DependencyDecision(False, "A task cannot depend on itself.")
            if dep not in known:
                return DependencyDecision(False, f"Task {dep} is not part of this project.")
            if would_create_cycle(graph, task_id, dep):
                return DependencyDecision(False, f"Depending on task {dep} would create a cycle.")
        return DependencyDecision(True, "No cycle introduced.")

    def _reject(
        self,
        action: str,
        task_id: str,
        dependency_ids: list[str],
        decision: DependencyDecision,
        project_id: str,
    ) -> None:
        self._audit(action, task_id, dependency_ids, decision, project_id)
        logger.info("%s rejected for task %s: %s", action, task_id, decision.reason)
        raise DependencyRejected(task_id, decision)

    def _reject_stale(
        self,
        action: str,
        task_id: str,
        dependency_ids: list[str],
        error: StaleSnapshotError,
    ) -> None:
        decision = DependencyDecision(
            False, f"Graph changed: version {error.actual}, expected {error.expected}."
        )
        self._audit(action, task_id, dependency_ids, decision, error.project_id)
        logger.info("%s lost a concurrent write for task %s: %s", action, task_id, error)
        raise error

    def _audit(
        self,
        action: str,
        task_id: str,
        dependency_ids: list[str],
        decision: DependencyDecision,
        project_id: str,
    ) -> None:
        if self.audit_logger is None:
            return
        self.audit_logger.log(
            action=action,
            task_id=task_id,
            dependency_ids=dependency_ids,
            outcome="accepted" if decision.allowed else "rejected",
            allowed=decision.allowed,
            reason=decision.reason,
            project_id=project_id,
        )

    @staticmethod
    def _bump_version(sess: Session, project: ProjectRecord) -> int:
        """Compare-and-swap the project's graph version."""
        seen = project.graph_version
        result = sess.execute(
            update(ProjectRecord)
            .where(ProjectRecord.id == project.id, ProjectRecord.graph_version == seen)
            .values(graph_version=seen + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            actual = sess.scalar(
                select(ProjectRecord.graph_version).where(ProjectRecord.id == project.id)
            )
            raise StaleSnapshotError(project.project_id, seen, int(actual or 0))
        return seen + 1

    @staticmethod
    def _project_row(sess: Session, project_id: str) -> ProjectRecord:
        row = sess.scalar(select(ProjectRecord).where(ProjectRecord.project_id == str(project_id)))
        if row is None:
            raise KeyError(f"Unknown project: {project_id}")
        return row

    @staticmethod
    def _task_row(sess: Session, task_id: str) -> TaskRecord:
        row = sess.scalar(select(TaskRecord).where(TaskRecord.task_id == str(task_id)))
        if row is None:
            raise KeyError(f"Unknown task: {task_id}")
        return row

    def _load_tasks(self, sess: Session, project_id: str) -> list[Task]:
        rows = sess.scalars(
            select(TaskRecord).where(TaskRecord.project_id == project_id).order_by(TaskRecord.id)
        ).all()
        return [self._task_from_row(row) for row in rows]

    @staticmethod
    def _task_from_row(row: TaskRecord) -> Task:
        return Task(
            id=row.task_id,
            title=row.title,
            description=row.description or "",
            project_id=row.project_id,
            status=row.status,
            priority=row.priority,
            start_date=row.start_date,
            due_date=row.due_date,
            estimated_hours=row.estimated_hours,
            dependencies=list(row.dependencies or []),
        )

    @staticmethod
    def _project_to_dict(row: ProjectRecord) -> dict[str, Any]:
        return {
            "project_id": row.project_id,
            "name": row.name,
            "graph_version": row.graph_version,
            "created_at": row.created_at,
        }
