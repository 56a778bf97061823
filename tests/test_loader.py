"""Tests for task validation and corpus loading."""

import json
from pathlib import Path

import pytest

from mode_bench.benchmark.loader import load_tasks, resolve_task_paths, validate_task
from mode_bench.config import BenchmarkMode, TaskCategory, VerifyType
from mode_bench.errors import TaskLoadError

REPO_ROOT = Path(__file__).resolve().parent.parent


def _task_data(**overrides):
    data = {
        "id": "sample-task",
        "title": "Sample task",
        "category": "bugfix",
        "repo_fixture": "fixtures/minimal",
        "prompt": "Do work",
        "mode_cmds": {
            "baseline": ["codex", "--version"],
            "candidate": ["python", "-c", "pass"],
        },
        "verify": {"type": "command", "target": ["python", "-c", "pass"]},
        "timeout_seconds": 30,
    }
    data.update(overrides)
    return data


def _write_task(directory: Path, name: str, **overrides) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(json.dumps(_task_data(**overrides)))
    return path


def test_validate_task_with_mode_commands():
    result = validate_task(_task_data())
    assert result.valid is True
    task = result.value
    assert task.category == TaskCategory.BUGFIX
    assert task.verify.type == VerifyType.COMMAND
    assert task.resolve_command(BenchmarkMode.BASELINE) == ["codex", "--version"]


def test_validate_task_trims_strings():
    result = validate_task(_task_data(title="  Padded  "))
    assert result.value.title == "Padded"


def test_validate_task_rejects_empty_verify_target():
    result = validate_task(_task_data(verify={"type": "command", "target": []}))
    assert result.valid is False
    assert "verify.target" in " ".join(result.errors)


def test_validate_task_reports_every_error_together():
    data = _task_data(title="   ", category="cooking", timeout_seconds=0, mode_cmds=None)
    del data["prompt"]
    result = validate_task(data)
    assert result.valid is False
    joined = " ".join(result.errors)
    assert "title" in joined
    assert "category" in joined
    assert "timeout_seconds" in joined
    assert "prompt" in joined
    assert "Task must define run_cmd or mode_cmds." in joined


def test_validate_task_requires_a_run_command():
    data = _task_data()
    del data["mode_cmds"]
    result = validate_task(data)
    assert result.valid is False
    assert result.errors == ["Task must define run_cmd or mode_cmds."]


def test_validate_task_rejects_blank_command_entries():
    result = validate_task(_task_data(run_cmd=["python", "  "]))
    assert result.valid is False
    assert "run_cmd" in " ".join(result.errors)

    result = validate_task(_task_data(setup_cmds=[["git", "init"], []]))
    assert result.valid is False
    assert "setup_cmds.1" in " ".join(result.errors)


def test_validate_task_rejects_unknown_mode_key():
    result = validate_task(_task_data(mode_cmds={"turbo": ["x"]}))
    assert result.valid is False
    assert "mode_cmds" in " ".join(result.errors)


def test_validate_task_rejects_unknown_verify_type_and_risk():
    result = validate_task(_task_data(verify={"type": "snapshot", "target": "x"}, risk_level="extreme"))
    assert result.valid is False
    joined = " ".join(result.errors)
    assert "verify.type" in joined
    assert "risk_level" in joined


def test_validate_task_must_be_object():
    result = validate_task("task")
    assert result.errors == ["Task must be an object."]


def test_command_arguments_kept_verbatim():
    result = validate_task(_task_data(run_cmd=["python", "-c", " print(1) "]))
    assert result.value.run_cmd == ["python", "-c", " print(1) "]


def test_resolve_command_falls_back_to_run_cmd():
    data = _task_data(run_cmd=["make", "test"], mode_cmds={"candidate": ["make", "fast"]})
    task = validate_task(data).value
    assert task.resolve_command(BenchmarkMode.BASELINE) == ["make", "test"]
    assert task.resolve_command(BenchmarkMode.CANDIDATE) == ["make", "fast"]

    only_candidate = validate_task(_task_data(mode_cmds={"candidate": ["x"]})).value
    assert only_candidate.resolve_command(BenchmarkMode.BASELINE) is None


def test_load_tasks_sorted_by_id(tmp_path):
    tasks_dir = tmp_path / "tasks"
    _write_task(tasks_dir, "a.json", id="task-z")
    _write_task(tasks_dir, "b.json", id="task-a")
    _write_task(tasks_dir, "c.json", id="task-m")

    tasks = load_tasks("tasks/*.json", tmp_path)
    assert [t.id for t in tasks] == ["task-a", "task-m", "task-z"]


def test_load_tasks_from_directory_and_file(tmp_path):
    tasks_dir = tmp_path / "tasks"
    _write_task(tasks_dir, "one.json", id="one")
    _write_task(tasks_dir, "two.json", id="two")
    (tasks_dir / "notes.txt").write_text("ignored")

    assert [t.id for t in load_tasks("tasks", tmp_path)] == ["one", "two"]
    assert [t.id for t in load_tasks("tasks/two.json", tmp_path)] == ["two"]


def test_load_tasks_recursive_glob(tmp_path):
    _write_task(tmp_path / "tasks" / "nested" / "deeper", "deep.json", id="deep")
    _write_task(tmp_path / "tasks", "top.json", id="top")

    paths = resolve_task_paths("tasks/**/*.json", tmp_path)
    assert [p.name for p in paths] == ["deep.json", "top.json"]
    assert [t.id for t in load_tasks("tasks/**/*.json", tmp_path)] == ["deep", "top"]


def test_recursive_glob_skips_non_json_files(tmp_path):
    _write_task(tmp_path / "tasks" / "nested", "a.json", id="nested-a")
    (tmp_path / "tasks" / "README.md").write_text("# Tasks")
    (tmp_path / "tasks" / "nested" / "notes.txt").write_text("notes")

    assert [p.name for p in resolve_task_paths("tasks/**", tmp_path)] == ["a.json"]
    assert [t.id for t in load_tasks("tasks/**", tmp_path)] == ["nested-a"]


def test_load_tasks_rejects_duplicate_ids(tmp_path):
    _write_task(tmp_path / "tasks", "a.json", id="same")
    _write_task(tmp_path / "tasks", "b.json", id="same")
    with pytest.raises(TaskLoadError, match="Duplicate benchmark task id"):
        load_tasks("tasks/*.json", tmp_path)


def test_load_tasks_rejects_invalid_file(tmp_path):
    _write_task(tmp_path / "tasks", "good.json", id="good")
    _write_task(tmp_path / "tasks", "bad.json", id="bad", category="cooking")
    with pytest.raises(TaskLoadError, match="bad.json"):
        load_tasks("tasks/*.json", tmp_path)


def test_load_tasks_rejects_malformed_json(tmp_path):
    tasks_dir = tmp_path / "tasks"
    tasks_dir.mkdir()
    (tasks_dir / "broken.json").write_text("{")
    with pytest.raises(TaskLoadError, match="Could not read"):
        load_tasks("tasks/*.json", tmp_path)


def test_load_tasks_no_matches(tmp_path):
    with pytest.raises(TaskLoadError, match="No benchmark task files matched"):
        load_tasks("tasks/*.json", tmp_path)


def test_shipped_starter_tasks_are_valid():
    tasks = load_tasks("benchmarks/tasks/*.json", REPO_ROOT)
    assert len(tasks) >= 3
    for task in tasks:
        assert (REPO_ROOT / task.repo_fixture).is_dir()
