"""Task corpus loader and validator."""

from __future__ import annotations

import glob
import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from mode_bench.artifacts import read_json
from mode_bench.config import Validated, format_validation_errors
from mode_bench.errors import TaskLoadError

from .base import BenchmarkTask

_WILDCARDS = ("*", "?", "[")


def validate_task(value: Any) -> Validated[BenchmarkTask]:
    """Validate raw task data, reporting every violation at once."""
    if not isinstance(value, dict):
        return Validated(valid=False, errors=["Task must be an object."])

    errors: list[str] = []
    task = None
    try:
        task = BenchmarkTask.model_validate(value)
    except ValidationError as e:
        errors.extend(format_validation_errors(e))

    if value.get("run_cmd") is None and not value.get("mode_cmds"):
        errors.append("Task must define run_cmd or mode_cmds.")

    if errors:
        return Validated(valid=False, errors=errors)
    return Validated(valid=True, value=task)


def resolve_task_paths(task_glob: str, root_dir: str | Path) -> list[Path]:
    """Resolve a file, directory or glob pattern to a sorted list of task files.

    A directory contributes the ``*.json`` files directly inside it. Patterns
    are resolved relative to ``root_dir``, ``**`` recurses, and only ``.json``
    matches are kept.
    """
    pattern = Path(task_glob.replace("\\", "/"))
    if not pattern.is_absolute():
        pattern = Path(root_dir) / pattern

    if not any(ch in str(pattern) for ch in _WILDCARDS):
        if pattern.is_dir():
            return sorted(p for p in pattern.glob("*.json") if p.is_file())
        return [pattern]

    matches = glob.glob(str(pattern), recursive=True)
    return sorted(
        Path(m) for m in matches
        if Path(m).suffix == ".json" and Path(m).is_file()
    )


def load_tasks(task_glob: str, root_dir: str | Path) -> list[BenchmarkTask]:
    """Load and validate every task matched by ``task_glob``.

    Any unreadable or invalid file, or a duplicate id, fails the whole load.

    Returns:
        Tasks sorted by id.
    """
    task_paths = resolve_task_paths(task_glob, root_dir)
    if not task_paths:
        raise TaskLoadError(f'No benchmark task files matched "{task_glob}".')

    tasks: list[BenchmarkTask] = []
    seen: set[str] = set()
    for task_path in task_paths:
        try:
            raw = read_json(task_path)
        except (OSError, json.JSONDecodeError) as e:
            raise TaskLoadError(f'Could not read task file "{task_path}": {e}') from e

        validation = validate_task(raw)
        if not validation.valid or validation.value is None:
            raise TaskLoadError(f'Invalid task file "{task_path}": {" ".join(validation.errors)}')

        task = validation.value
        if task.id in seen:
            raise TaskLoadError(f'Duplicate benchmark task id "{task.id}" in "{task_path}".')
        seen.add(task.id)
        tasks.append(task)

    return sorted(tasks, key=lambda t: t.id)
