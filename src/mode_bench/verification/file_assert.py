"""file_assert: every target path must exist in the workspace."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from .base import VerificationResult, Verifier

if TYPE_CHECKING:
    from mode_bench.benchmark.base import BenchmarkTask
    from mode_bench.tokens import Expander


class FileAssertVerifier(Verifier):
    """Pass when all target paths exist. Relative targets resolve against the workspace."""

    @property
    def method_name(self) -> str:
        return "file_assert"

    def verify(
        self,
        task: BenchmarkTask,
        workspace: Path,
        timeout_seconds: float,
        expand: Expander,
    ) -> VerificationResult:
        missing = []
        for target in (expand(t) for t in task.verify.targets):
            path = Path(target)
            if not path.is_absolute():
                path = Path(workspace) / path
            if not path.exists():
                missing.append(target)

        if missing:
            return VerificationResult(
                passed=False,
                messages=[f"Missing files: {', '.join(missing)}"],
            )
        return VerificationResult(passed=True, messages=["All file assertions passed."])
