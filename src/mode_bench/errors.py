"""Exceptions raised by the benchmark harness."""

from __future__ import annotations


class BenchmarkError(RuntimeError):
    """Base class for errors that abort a benchmark command."""


class ConfigError(BenchmarkError):
    """Raised when a run config or thresholds file is missing or invalid."""


class TaskLoadError(BenchmarkError):
    """Raised when the task corpus cannot be loaded."""


class WorkspaceError(BenchmarkError):
    """Raised when an isolated workspace cannot be prepared for a job."""


class TuningError(BenchmarkError):
    """Raised when there is no scorecard history to tune from."""
