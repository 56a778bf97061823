"""Placeholder expansion for task commands and verification targets."""

from __future__ import annotations

import re
import sys
from collections.abc import Callable
from pathlib import Path

# {PYTHON_PATH} is the interpreter running the harness, so tasks can invoke it portably.
TOKEN_PATTERN = re.compile(r"\{(REPO_ROOT|WORKSPACE|TASK_PROMPT|PYTHON_PATH)\}")

Expander = Callable[[str], str]


def make_expander(repo_root: str | Path, workspace: str | Path, prompt: str) -> Expander:
    """Build a function that substitutes every placeholder in a single pass.

    Substituted text is never scanned again, so a prompt containing
    ``{WORKSPACE}`` stays literal.
    """
    values = {
        "REPO_ROOT": str(repo_root),
        "WORKSPACE": str(workspace),
        "TASK_PROMPT": prompt,
        "PYTHON_PATH": sys.executable,
    }

    def expand(value: str) -> str:
        return TOKEN_PATTERN.sub(lambda match: values[match.group(1)], value)

    return expand


def identity(value: str) -> str:
    return value
