"""Configuration loading and CLI smoke tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from core.orchestrator import Orchestrator
from core.policy_runtime import load_effective_config, load_yaml, merge_dicts
from ui.cli.cli import app

runner = CliRunner()


def write_config(root: Path) -> None:
    config_dir = root / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "default.yaml").write_text(
        "paths:\n  db_path: data/tg.db\nlogging:\n  level: WARNING\n", encoding="utf-8"
    )


def invoke(root: Path, *args: str):
    return runner.invoke(app, ["--root", str(root), *args])


def test_merge_dicts_is_recursive() -> None:
    merged = merge_dicts({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}, "c": 4})
    assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}


def test_load_yaml_missing_and_invalid(tmp_path: Path) -> None:
    assert load_yaml(tmp_path / "missing.yaml") == {}
    bad = tmp_path / "bad.yaml"
    bad.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_yaml(bad)


def test_effective_config_layers_local_over_default(tmp_path: Path) -> None:
    write_config(tmp_path)
    (tmp_path / "config" / "local.yaml").write_text(
        "validator:\n  closure_threshold: 5\n", encoding="utf-8"
    )
    config = load_effective_config(tmp_path)
    assert config["paths"]["db_path"] == "data/tg.db"
    assert config["paths"]["audit_log_path"] == "logs/dependency_audit.jsonl"
    assert config["validator"]["closure_threshold"] == 5
    assert config["timeline"]["end_buffer_days"] == 7


def test_orchestrator_builds_runtime(tmp_path: Path) -> None:
    write_config(tmp_path)
    bundle = Orchestrator(root=tmp_path).build()
    assert bundle.paths["db_path"] == (tmp_path / "data" / "tg.db").resolve()
    assert bundle.paths["db_path"].exists()
    assert bundle.closure_threshold == 200


def test_cli_dependency_workflow(tmp_path: Path) -> None:
    write_config(tmp_path)
    assert invoke(tmp_path, "project", "add", "Bathroom", "--id", "p1").exit_code == 0
    assert invoke(tmp_path, "task", "add", "p1", "Tile", "--id", "A").exit_code == 0
    result = invoke(
        tmp_path, "task", "add", "p1", "Grout", "--id", "B", "--depends-on", "A",
        "--due", "2024-06-01",
    )
    assert result.exit_code == 0, result.output

    result = invoke(tmp_path, "deps", "add", "A", "B")
    assert result.exit_code == 1
    assert "cycle" in result.output

    result = invoke(tmp_path, "deps", "blocked", "A")
    assert result.exit_code == 0
    assert "B  Grout" in result.output

    result = invoke(tmp_path, "deps", "startable", "B")
    assert "B: blocked" in result.output
    assert invoke(tmp_path, "task", "status", "A", "completed").exit_code == 0
    result = invoke(tmp_path, "deps", "startable", "B")
    assert "B: startable" in result.output

    result = invoke(tmp_path, "deps", "eligible", "A")
    assert "No tasks can be added" in result.output

    result = invoke(tmp_path, "plan", "p1")
    assert result.exit_code == 0
    assert json.loads(result.output)["stages"] == [["A"], ["B"]]

    result = invoke(tmp_path, "deps", "add", "A", "B", "--expected-version", "0")
    assert result.exit_code == 1
    assert "conflict" in result.output

    result = invoke(tmp_path, "task", "delete", "missing")
    assert result.exit_code == 1
    assert "not found" in result.output


def test_cli_check_snapshot_file(tmp_path: Path) -> None:
    snapshot = tmp_path / "tasks.yaml"
    snapshot.write_text(
        "tasks:\n"
        "  - {id: A}\n"
        "  - {id: B, dependencies: [A]}\n"
        "  - {id: C, dependencies: [B]}\n",
        encoding="utf-8",
    )
    result = runner.invoke(app, ["check", str(snapshot)])
    assert result.exit_code == 0, result.output
    assert "ok" in result.output

    result = runner.invoke(app, ["check", str(snapshot), "--edge", "A", "C"])
    assert result.exit_code == 1
    assert "would create a cycle" in result.output

    broken = tmp_path / "broken.json"
    broken.write_text(
        json.dumps([{"id": 1, "dependencies": [2]}, {"id": 2, "dependencies": [1, 9]}]),
        encoding="utf-8",
    )
    result = runner.invoke(app, ["check", str(broken)])
    assert result.exit_code == 1
    assert "cycle:" in result.output
    assert "dangling: 2 depends on unknown 9" in result.output


def test_cli_check_coerces_scalar_fields(tmp_path: Path) -> None:
    snapshot = tmp_path / "scalar.yaml"
    snapshot.write_text(
        "- id: A1\n"
        "  status: 1\n"
        "  priority: 2\n"
        "- id: B\n"
        "  dependencies: A1\n",
        encoding="utf-8",
    )
    result = runner.invoke(app, ["check", str(snapshot)])
    assert result.exit_code == 0, result.output
    assert "dangling" not in result.output
    assert "stages: 2" in result.output
    assert "ok" in result.output


@pytest.mark.parametrize(
    "content",
    [
        "- title: no id here\n",
        "- id: A\n  dependencies: {B: 1}\n",
        "tasks: 5\n",
        "- id: [unclosed\n",
    ],
)
def test_cli_check_rejects_malformed_snapshot(tmp_path: Path, content: str) -> None:
    snapshot = tmp_path / "bad.yaml"
    snapshot.write_text(content, encoding="utf-8")
    result = runner.invoke(app, ["check", str(snapshot)])
    assert result.exit_code == 1
    assert "invalid snapshot:" in result.output
    assert "Traceback" not in result.output


def test_cli_duplicate_project_id(tmp_path: Path) -> None:
    write_config(tmp_path)
    assert invoke(tmp_path, "project", "add", "Attic", "--id", "p1").exit_code == 0
    result = invoke(tmp_path, "project", "add", "Basement", "--id", "p1")
    assert result.exit_code == 1
    assert "invalid: Project id already exists: p1" in result.output
    assert isinstance(result.exception, SystemExit)
