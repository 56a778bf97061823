"""Verification strategies, selected by a task's ``verify.type``."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from mode_bench.config import VerifyType
from mode_bench.executor import CommandRunner, run_command
from mode_bench.tokens import Expander, identity

from .base import VerificationResult, Verifier
from .command import CommandVerifier
from .file_assert import FileAssertVerifier

if TYPE_CHECKING:
    from mode_bench.benchmark.base import BenchmarkTask


def create_verifier(verify_type: VerifyType, runner: CommandRunner = run_command) -> Verifier | None:
    """Factory for the verifier of ``verify_type``, or None if the type is unsupported."""
    mapping: dict[VerifyType, Verifier] = {
        VerifyType.FILE_ASSERT: FileAssertVerifier(),
        VerifyType.COMMAND: CommandVerifier(runner, method="command"),
        VerifyType.TESTS: CommandVerifier(runner, method="tests"),
    }
    return mapping.get(verify_type)


def verify_task(
    task: BenchmarkTask,
    workspace: str | Path,
    timeout_seconds: float,
    expand: Expander = identity,
    runner: CommandRunner = run_command,
) -> VerificationResult:
    """Decide pass/fail for a completed run. Unknown verify types always fail."""
    verify_type = task.verify.type
    verifier = create_verifier(verify_type, runner)
    if verifier is None:
        name = getattr(verify_type, "value", verify_type)
        return VerificationResult(
            passed=False,
            messages=[f'Unsupported verification type "{name}".'],
            method=str(name),
        )
    result = verifier.verify(task, Path(workspace), timeout_seconds, expand)
    return replace(result, method=verifier.method_name)
