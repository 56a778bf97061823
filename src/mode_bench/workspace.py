"""Per-job workspace provisioning and cleanup."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path

from mode_bench.config import BenchmarkMode
from mode_bench.errors import WorkspaceError

WORKSPACES_DIRNAME = "workspaces"


def prepare_workspace(
    fixture_path: str | Path,
    workspaces_root: str | Path,
    task_id: str,
    mode: BenchmarkMode,
) -> Path:
    """Copy a fixture directory into a fresh, uniquely named workspace.

    Args:
        fixture_path: Template directory for the task.
        workspaces_root: Directory the workspace is created under.
        task_id: Filesystem-safe task id, used as the name prefix.
        mode: Mode the workspace is for, also part of the prefix.

    Returns:
        Path to the new workspace.

    Raises:
        WorkspaceError: If the fixture is missing, is not a directory, or
            cannot be copied.
    """
    fixture = Path(fixture_path)
    if not fixture.exists():
        raise WorkspaceError(f"Fixture path not found: {fixture}")
    if not fixture.is_dir():
        raise WorkspaceError(f"Fixture path must be a directory: {fixture}")

    try:
        workspace = Path(tempfile.mkdtemp(
            prefix=f"{task_id}-{mode.value}-",
            dir=workspaces_root,
        ))
    except OSError as e:
        raise WorkspaceError(f"Failed to create workspace under {workspaces_root}: {e}") from e

    try:
        shutil.copytree(fixture, workspace, dirs_exist_ok=True)
    except OSError as e:
        shutil.rmtree(workspace, ignore_errors=True)
        raise WorkspaceError(f"Failed to copy fixture {fixture}: {e}") from e
    return workspace


def is_cleanup_allowed(path: str | Path) -> bool:
    """True if ``path`` lies strictly inside the temp dir or below a ``workspaces`` dir."""
    resolved = Path(path).resolve()
    temp_root = Path(tempfile.gettempdir()).resolve()
    if resolved != temp_root and resolved.is_relative_to(temp_root):
        return True
    return WORKSPACES_DIRNAME in resolved.parts[:-1]


def safe_cleanup(path: str | Path) -> bool:
    """Recursively delete a workspace, refusing anything outside the sandboxed area.

    Returns:
        True if something was deleted.
    """
    if not is_cleanup_allowed(path):
        return False
    path = Path(path)
    if not path.exists():
        return False
    shutil.rmtree(path)
    return True
