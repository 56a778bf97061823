"""Benchmark task and run result data models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from mode_bench.config import (
    BenchmarkMode,
    ErrorClass,
    NonEmptyStr,
    PositiveInt,
    RiskLevel,
    TaskCategory,
    VerifyType,
)


def _require_text(value: str) -> str:
    if not value.strip():
        raise ValueError("must be a non-empty string")
    return value


# Command arguments are checked for content but passed through verbatim.
CommandArg = Annotated[str, AfterValidator(_require_text)]
Command = Annotated[list[CommandArg], Field(min_length=1)]


class VerifySpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: VerifyType
    target: CommandArg | Command

    @property
    def targets(self) -> list[str]:
        if isinstance(self.target, str):
            return [self.target]
        return list(self.target)


class BenchmarkTask(BaseModel):
    """A single benchmark task, loaded from one JSON file."""
    model_config = ConfigDict(frozen=True)

    id: NonEmptyStr
    title: NonEmptyStr
    category: TaskCategory
    repo_fixture: NonEmptyStr
    prompt: NonEmptyStr
    setup_cmds: list[Command] = Field(default_factory=list)
    run_cmd: Command | None = None
    mode_cmds: dict[BenchmarkMode, Command] = Field(default_factory=dict)
    verify: VerifySpec
    timeout_seconds: PositiveInt
    tags: list[NonEmptyStr] = Field(default_factory=list)
    risk_level: RiskLevel | None = None

    def resolve_command(self, mode: BenchmarkMode) -> list[str] | None:
        """Command for ``mode``: the per-mode entry wins, ``run_cmd`` is the fallback."""
        command = self.mode_cmds.get(mode)
        if command:
            return list(command)
        if self.run_cmd:
            return list(self.run_cmd)
        return None


@dataclass(frozen=True)
class Job:
    """One (task, mode) pair: the unit of scheduling."""
    task: BenchmarkTask
    mode: BenchmarkMode


class JobArtifacts(BaseModel):
    logs_path: str


class TaskRunResult(BaseModel):
    """Persisted record of one job."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    task_id: str
    mode: BenchmarkMode
    started_at: str
    ended_at: str
    duration_ms: int
    exit_code: int | None
    passed: bool = Field(alias="pass")
    verification_pass: bool
    artifacts: JobArtifacts
    error_class: ErrorClass | None = None
    command: list[str] = Field(default_factory=list)


class ModeSummary(BaseModel):
    total: int = 0
    passed: int = 0
    failed: int = 0


class RunSummary(BaseModel):
    total: int
    passed: int
    failed: int
    by_mode: dict[BenchmarkMode, ModeSummary]


class Preflight(BaseModel):
    toolchain: Literal["available", "missing", "not_required"]
    toolchain_binary: str
    warnings: list[str] = Field(default_factory=list)


class RunResult(BaseModel):
    """The canonical artifact of a benchmark run."""
    run_id: str
    seed: str
    started_at: str
    ended_at: str
    preflight: Preflight
    results: list[TaskRunResult]
    summary: RunSummary
