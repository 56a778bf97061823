"""command / tests: run the target inside the workspace and require exit code 0."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from mode_bench.executor import CommandRunner, run_command

from .base import VerificationResult, Verifier

if TYPE_CHECKING:
    from mode_bench.benchmark.base import BenchmarkTask
    from mode_bench.tokens import Expander


class CommandVerifier(Verifier):
    """Run the verify target as a command, with the job's timeout."""

    def __init__(self, runner: CommandRunner = run_command, method: str = "command"):
        self.runner = runner
        self.method = method

    @property
    def method_name(self) -> str:
        return self.method

    def verify(
        self,
        task: BenchmarkTask,
        workspace: Path,
        timeout_seconds: float,
        expand: Expander,
    ) -> VerificationResult:
        command = [expand(part) for part in task.verify.targets]
        result = self.runner(command, cwd=workspace, timeout_seconds=timeout_seconds)

        if result.timed_out:
            return VerificationResult(passed=False, messages=["Verification command timed out."])
        if result.ok:
            return VerificationResult(passed=True, messages=["Verification command passed."])

        messages = [f"Verification command failed with exit code {result.exit_code}."]
        detail = (result.error_message or result.stderr).strip()
        if detail:
            messages.append(detail)
        return VerificationResult(passed=False, messages=messages)
