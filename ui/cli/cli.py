"""CLI entrypoint for taskgraph."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import typer

from ui.cli import commands

app = typer.Typer(help="Task dependency graph toolkit")
project_app = typer.Typer(help="Project commands")
task_app = typer.Typer(help="Task commands")
deps_app = typer.Typer(help="Dependency commands")
config_app = typer.Typer(help="Configuration commands")

_DATE_FORMATS = ["%Y-%m-%d"]


def _root(ctx: typer.Context) -> Path | None:
    return (ctx.obj or {}).get("root")


@app.callback()
def main_callback(
    ctx: typer.Context,
    root: Path = typer.Option(
        None,
        "--root",
        envvar="TASKGRAPH_HOME",
        help="Directory holding config/, the database and logs (default: cwd)",
    ),
) -> None:
    ctx.obj = {"root": root}


@project_app.command("add")
def project_add_cmd(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project name"),
    project_id: str = typer.Option(None, "--id", help="Explicit project id"),
) -> None:
    """Create a project."""
    commands.project_add(_root(ctx), name=name, project_id=project_id)


@project_app.command("list")
def project_list_cmd(ctx: typer.Context) -> None:
    """List projects and their graph versions."""
    commands.project_list(_root(ctx))


@task_app.command("add")
def task_add_cmd(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project id"),
    title: str = typer.Argument(..., help="Task title"),
    status: str = typer.Option("todo", help="todo, in_progress, review or completed"),
    priority: str = typer.Option("medium", help="low, medium, high or urgent"),
    start: datetime = typer.Option(None, formats=_DATE_FORMATS, help="Start date"),
    due: datetime = typer.Option(None, formats=_DATE_FORMATS, help="Due date"),
    depends_on: list[str] = typer.Option(None, "--depends-on", help="Prerequisite task id"),
    task_id: str = typer.Option(None, "--id", help="Explicit task id"),
) -> None:
    """Add a task, optionally with prerequisites."""
    commands.task_add(
        _root(ctx),
        project_id=project_id,
        title=title,
        status=status,
        priority=priority,
        start=start.date() if start else None,
        due=due.date() if due else None,
        depends_on=depends_on or [],
        task_id=task_id,
    )


@task_app.command("list")
def task_list_cmd(ctx: typer.Context, project_id: str) -> None:
    """List the tasks of a project."""
    commands.task_list(_root(ctx), project_id=project_id)


@task_app.command("status")
def task_status_cmd(ctx: typer.Context, task_id: str, status: str) -> None:
    """Change a task's status."""
    commands.task_status(_root(ctx), task_id=task_id, status=status)


@task_app.command("delete")
def task_delete_cmd(ctx: typer.Context, task_id: str) -> None:
    """Delete a task and every edge pointing at it."""
    commands.task_delete(_root(ctx), task_id=task_id)


@deps_app.command("add")
def deps_add_cmd(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Dependent task"),
    prerequisite_id: str = typer.Argument(..., help="Task that must complete first"),
    expected_version: int = typer.Option(
        None, "--expected-version", help="Reject if the project graph moved past this version"
    ),
) -> None:
    """Add a dependency; rejected if it would create a cycle."""
    commands.deps_add(
        _root(ctx),
        task_id=task_id,
        prerequisite_id=prerequisite_id,
        expected_version=expected_version,
    )


@deps_app.command("remove")
def deps_remove_cmd(ctx: typer.Context, task_id: str, prerequisite_id: str) -> None:
    """Remove a dependency."""
    commands.deps_remove(_root(ctx), task_id=task_id, prerequisite_id=prerequisite_id)


@deps_app.command("eligible")
def deps_eligible_cmd(ctx: typer.Context, task_id: str) -> None:
    """List tasks that can be added as a dependency without a cycle."""
    commands.deps_eligible(_root(ctx), task_id=task_id)


@deps_app.command("blocked")
def deps_blocked_cmd(ctx: typer.Context, task_id: str) -> None:
    """List tasks that directly depend on this task."""
    commands.deps_blocked(_root(ctx), task_id=task_id)


@deps_app.command("startable")
def deps_startable_cmd(ctx: typer.Context, task_id: str) -> None:
    """Tell whether all prerequisites of a task are completed."""
    commands.deps_startable(_root(ctx), task_id=task_id)


@app.command("plan")
def plan_cmd(ctx: typer.Context, project_id: str) -> None:
    """Show the staged execution plan of a project."""
    commands.plan(_root(ctx), project_id=project_id)


@app.command("timeline")
def timeline_cmd(ctx: typer.Context, project_id: str) -> None:
    """Show Gantt bar positions for dated tasks."""
    commands.timeline(_root(ctx), project_id=project_id)


@app.command("priorities")
def priorities_cmd(ctx: typer.Context, project_id: str) -> None:
    """Rank open tasks by readiness and how much they unblock."""
    commands.priorities(_root(ctx), project_id=project_id)


@app.command("check")
def check_cmd(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML or JSON task list"),
    edge: tuple[str, str] = typer.Option(
        None, "--edge", help="Also test a proposed DEPENDENT PREREQUISITE edge"
    ),
) -> None:
    """Validate a snapshot file: cycles, dangling references, feasibility."""
    commands.check(path=path, edge=edge)


@config_app.command("show")
def config_show_cmd(ctx: typer.Context) -> None:
    """Show effective configuration."""
    commands.config_show(_root(ctx))


app.add_typer(project_app, name="project")
app.add_typer(task_app, name="task")
app.add_typer(deps_app, name="deps")
app.add_typer(config_app, name="config")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
