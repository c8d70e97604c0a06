"""Typer command handlers."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from pathlib import Path

import typer
import yaml

from core.orchestrator import Orchestrator, RuntimeBundle
from planner.dependency_graph import (
    dangling_dependencies,
    find_cycle,
    is_task_startable,
    list_blocked_tasks,
    list_eligible_dependencies,
    would_create_cycle,
)
from planner.execution_plan import build_execution_plan
from planner.priority_signals import compute_signals, rank_tasks
from planner.timeline import build_timeline
from storage.errors import DependencyRejected, StaleSnapshotError
from tasks.types import Task


def _runtime(root: Path | None = None) -> RuntimeBundle:
    return Orchestrator(root=root).build()


@contextmanager
def _handled() -> Iterator[None]:
    """Turn store errors into a one-line message and exit code 1."""
    try:
        yield
    except DependencyRejected as exc:
        typer.echo(f"rejected: {exc.decision.reason}", err=True)
        raise typer.Exit(code=1) from exc
    except StaleSnapshotError as exc:
        typer.echo(f"conflict: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    except KeyError as exc:
        typer.echo(f"not found: {exc.args[0]}", err=True)
        raise typer.Exit(code=1) from exc
    except ValueError as exc:
        typer.echo(f"invalid: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _echo_json(payload: object) -> None:
    typer.echo(json.dumps(_json_safe(payload), indent=2))


def _task_line(task: Task) -> str:
    deps = ", ".join(task.dependencies) if task.dependencies else "-"
    return f"{task.id}  [{task.status}]  {task.title}  deps: {deps}"


def project_add(root: Path | None, name: str, project_id: str | None) -> None:
    bundle = _runtime(root)
    with _handled():
        project = bundle.store.add_project(name=name, project_id=project_id)
    typer.echo(f"Added project {project['project_id']}: {name}")


def project_list(root: Path | None) -> None:
    bundle = _runtime(root)
    _echo_json(bundle.store.list_projects())


def task_add(
    root: Path | None,
    project_id: str,
    title: str,
    status: str,
    priority: str,
    start: date | None,
    due: date | None,
    depends_on: list[str],
    task_id: str | None,
) -> None:
    bundle = _runtime(root)
    with _handled():
        task = bundle.store.add_task(
            project_id=project_id,
            title=title,
            status=status,
            priority=priority,
            start_date=start,
            due_date=due,
            dependencies=depends_on,
            task_id=task_id,
        )
    typer.echo(f"Added task {task.id}: {task.title}")


def task_list(root: Path | None, project_id: str) -> None:
    bundle = _runtime(root)
    with _handled():
        snapshot = bundle.store.snapshot(project_id)
    typer.echo(f"Project {project_id} (graph version {snapshot.version})")
    for task in snapshot.tasks:
        typer.echo(_task_line(task))


def task_status(root: Path | None, task_id: str, status: str) -> None:
    bundle = _runtime(root)
    with _handled():
        task = bundle.store.update_status(task_id, status)
    typer.echo(f"Task {task.id} is now {task.status}")


def task_delete(root: Path | None, task_id: str) -> None:
    bundle = _runtime(root)
    with _handled():
        bundle.store.delete_task(task_id)
    typer.echo(f"Deleted task {task_id}")


def deps_add(
    root: Path | None, task_id: str, prerequisite_id: str, expected_version: int | None
) -> None:
    bundle = _runtime(root)
    with _handled():
        task = bundle.store.add_dependency(task_id, prerequisite_id, expected_version)
    typer.echo(f"Task {task.id} now depends on: {', '.join(task.dependencies)}")


def deps_remove(root: Path | None, task_id: str, prerequisite_id: str) -> None:
    bundle = _runtime(root)
    with _handled():
        task = bundle.store.remove_dependency(task_id, prerequisite_id)
    remaining = ", ".join(task.dependencies) if task.dependencies else "nothing"
    typer.echo(f"Task {task.id} now depends on: {remaining}")


def _task_snapshot(bundle: RuntimeBundle, task_id: str) -> tuple[Task, list[Task]]:
    task = bundle.store.get_task(task_id)
    snapshot = bundle.store.snapshot(task.project_id or "")
    return task, snapshot.tasks


def deps_eligible(root: Path | None, task_id: str) -> None:
    bundle = _runtime(root)
    with _handled():
        task, all_tasks = _task_snapshot(bundle, task_id)
    eligible = list_eligible_dependencies(
        all_tasks, task.id, task.dependencies, closure_threshold=bundle.closure_threshold
    )
    if not eligible:
        typer.echo("No tasks can be added as a dependency.")
    for candidate in eligible:
        marker = " (completed)" if candidate.is_completed else ""
        typer.echo(f"{candidate.id}  {candidate.title}{marker}")


def deps_blocked(root: Path | None, task_id: str) -> None:
    bundle = _runtime(root)
    with _handled():
        task, all_tasks = _task_snapshot(bundle, task_id)
    blocked = list_blocked_tasks(all_tasks, task.id)
    typer.echo(f"Tasks blocked by {task.id} ({len(blocked)}):")
    for blocked_task in blocked:
        typer.echo(f"{blocked_task.id}  {blocked_task.title}")


def deps_startable(root: Path | None, task_id: str) -> None:
    bundle = _runtime(root)
    with _handled():
        task, all_tasks = _task_snapshot(bundle, task_id)
    startable = is_task_startable(task, all_tasks)
    typer.echo(f"{task.id}: {'startable' if startable else 'blocked'}")


def plan(root: Path | None, project_id: str) -> None:
    bundle = _runtime(root)
    with _handled():
        snapshot = bundle.store.snapshot(project_id)
    result = build_execution_plan(snapshot.tasks)
    _echo_json(
        {
            "stages": result.stages,
            "ready": result.ready,
            "unschedulable": result.unschedulable,
            "feasible": result.is_feasible,
        }
    )


def timeline(root: Path | None, project_id: str) -> None:
    bundle = _runtime(root)
    with _handled():
        snapshot = bundle.store.snapshot(project_id)
    timeline_cfg = bundle.config.get("timeline", {})
    result = build_timeline(
        snapshot.tasks,
        today=date.today(),
        empty_window_days=int(timeline_cfg.get("empty_window_days", 30)),
        end_buffer_days=int(timeline_cfg.get("end_buffer_days", 7)),
    )
    typer.echo(f"Timeline {result.start} .. {result.end} ({result.total_days} days)")
    for bar in result.bars:
        flag = "  OVERDUE" if bar.overdue else ""
        typer.echo(
            f"{bar.task_id}  {bar.start} -> {bar.end}  "
            f"left={bar.left_pct:.1f}% width={bar.width_pct:.1f}%{flag}"
        )
    for prerequisite, dependent in result.links:
        typer.echo(f"link {prerequisite} -> {dependent}")


def priorities(root: Path | None, project_id: str) -> None:
    bundle = _runtime(root)
    with _handled():
        snapshot = bundle.store.snapshot(project_id)
    ranked = rank_tasks(compute_signals(snapshot.tasks, today=date.today()))
    for position, item in enumerate(ranked, start=1):
        state = "ready" if item.startable else f"blocked by {item.blocked_by_count}"
        typer.echo(
            f"{position}. {item.task_id}  {item.title}  [{item.priority}]  {state}, "
            f"unblocks {item.blocking_count}"
        )


def load_snapshot_file(path: Path) -> list[Task]:
    """Read tasks from a YAML or JSON file: a list, or a mapping with ``tasks``."""
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or []
    if isinstance(data, dict):
        data = data.get("tasks", [])
    if not isinstance(data, list):
        raise ValueError(f"Snapshot file must contain a list of tasks: {path}")
    return [Task.model_validate(item) for item in data]


def check(path: Path, edge: tuple[str, str] | None) -> None:
    """Validate a snapshot file offline; exit 1 on any integrity problem."""
    try:
        all_tasks = load_snapshot_file(path)
    except (ValueError, yaml.YAMLError) as exc:
        typer.echo(f"invalid snapshot: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    problems = 0

    cycle = find_cycle(all_tasks)
    if cycle:
        problems += 1
        typer.echo(f"cycle: {' -> '.join(cycle)}")

    for task_id, missing in dangling_dependencies(all_tasks).items():
        problems += 1
        typer.echo(f"dangling: {task_id} depends on unknown {', '.join(missing)}")

    result = build_execution_plan(all_tasks)
    typer.echo(f"tasks: {len(all_tasks)}  stages: {len(result.stages)}  ready: {len(result.ready)}")
    if result.unschedulable:
        typer.echo(f"unschedulable: {', '.join(result.unschedulable)}")

    if edge and all(edge):
        dependent_id, prerequisite_id = edge
        if would_create_cycle(all_tasks, dependent_id, prerequisite_id):
            problems += 1
            typer.echo(f"edge {dependent_id} -> {prerequisite_id}: would create a cycle")
        else:
            typer.echo(f"edge {dependent_id} -> {prerequisite_id}: ok")

    if problems:
        raise typer.Exit(code=1)
    typer.echo("ok")


def config_show(root: Path | None) -> None:
    bundle = _runtime(root)
    _echo_json(bundle.config)


def _json_safe(payload: object) -> object:
    """Convert dates to strings for JSON output."""
    if isinstance(payload, dict):
        return {k: _json_safe(v) for k, v in payload.items()}
    if isinstance(payload, (list, tuple)):
        return [_json_safe(v) for v in payload]
    if hasattr(payload, "isoformat"):
        return payload.isoformat()
    return payload
