"""Base verification classes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mode_bench.benchmark.base import BenchmarkTask
    from mode_bench.tokens import Expander


@dataclass
class VerificationResult:
    """Result of a verification check."""
    passed: bool
    messages: list[str] = field(default_factory=list)
    method: str = ""


class Verifier(ABC):
    """Abstract base class for verification strategies."""

    @abstractmethod
    def verify(
        self,
        task: BenchmarkTask,
        workspace: Path,
        timeout_seconds: float,
        expand: Expander,
    ) -> VerificationResult:
        """Check the workspace after the task's main command has run."""
        ...

    @property
    @abstractmethod
    def method_name(self) -> str:
        ...
