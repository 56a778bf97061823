"""Benchmark harness: runs every task under every mode and records the outcome."""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from mode_bench.artifacts import ensure_dir, write_json_stable, write_text
from mode_bench.benchmark.base import (
    BenchmarkTask,
    Job,
    JobArtifacts,
    ModeSummary,
    Preflight,
    RunResult,
    RunSummary,
    TaskRunResult,
)
from mode_bench.benchmark.loader import load_tasks
from mode_bench.config import BenchmarkMode, ErrorClass, RunConfig, load_run_config
from mode_bench.errors import WorkspaceError
from mode_bench.executor import CommandRunner, ExecutionResult, run_command
from mode_bench.logging.logger import RunLogger
from mode_bench.scheduler import build_jobs, run_jobs
from mode_bench.tokens import make_expander
from mode_bench.verification import verify_task
from mode_bench.workspace import WORKSPACES_DIRNAME, prepare_workspace, safe_cleanup

DEFAULT_CONFIG_PATH = Path("benchmarks") / "run-config.json"
LATEST_RUN_FILENAME = "latest-run.json"
PREFLIGHT_TIMEOUT_SECONDS = 15

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def sanitize_name(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def create_run_id(seed: str, moment: datetime) -> str:
    timestamp = isoformat(moment).replace(":", "").replace("-", "").replace(".", "")
    return f"{timestamp}-{sanitize_name(seed)}"


def classify_failure(result: ExecutionResult) -> ErrorClass:
    """Map a failed execution to its error class."""
    if result.timed_out:
        return ErrorClass.TIMEOUT
    if result.error_message:
        return ErrorClass.INFRA_ERROR
    return ErrorClass.CLI_ERROR


def sort_results(results: Sequence[TaskRunResult]) -> list[TaskRunResult]:
    return sorted(results, key=lambda r: (r.task_id, r.mode.value))


def build_summary(results: Sequence[TaskRunResult]) -> RunSummary:
    by_mode = {mode: ModeSummary() for mode in BenchmarkMode}
    for result in results:
        bucket = by_mode[result.mode]
        bucket.total += 1
        if result.passed:
            bucket.passed += 1
        else:
            bucket.failed += 1

    passed = sum(1 for r in results if r.passed)
    return RunSummary(
        total=len(results),
        passed=passed,
        failed=len(results) - passed,
        by_mode=by_mode,
    )


def run_preflight(
    tasks: Sequence[BenchmarkTask],
    config: RunConfig,
    root_dir: Path,
    runner: CommandRunner = run_command,
) -> Preflight:
    """Probe the toolchain binary once if any job will invoke it.

    A missing toolchain is only a warning: the affected jobs report their own
    infra_error.
    """
    binary = config.toolchain_binary
    required = any(
        _invokes_binary(task.resolve_command(mode), binary)
        for task in tasks
        for mode in config.modes
    )
    if not required:
        return Preflight(toolchain="not_required", toolchain_binary=binary)

    probe = runner([binary, "--version"], cwd=root_dir, timeout_seconds=PREFLIGHT_TIMEOUT_SECONDS)
    if probe.ok:
        return Preflight(toolchain="available", toolchain_binary=binary)

    return Preflight(
        toolchain="missing",
        toolchain_binary=binary,
        warnings=[
            f"{binary} was not available during preflight. "
            f"Jobs that invoke it may report infra_error."
        ],
    )


def _invokes_binary(command: list[str] | None, binary: str) -> bool:
    return bool(command) and command[0].strip().lower() == binary.lower()


@dataclass
class _RunContext:
    run_dir: Path
    artifacts_dir: Path
    workspaces_root: Path
    logger: RunLogger


class _JobRecord:
    """Collects the log of one job and builds its result at whichever point it stops."""

    def __init__(self, job: Job, artifact_dir: Path, clock: Clock):
        self.job = job
        self.clock = clock
        self.started_at = clock()
        self.artifact_dir = Path(artifact_dir)
        self.log_path = self.artifact_dir / "run.log"
        self.result_path = self.artifact_dir / "result.json"
        self.lines: list[str] = []

    def log(self, *lines: str) -> None:
        self.lines.extend(lines)

    def log_output(self, result: ExecutionResult) -> None:
        self.log(result.stdout, result.stderr)
        if result.error_message:
            self.log(f"Error: {result.error_message}")

    def finish(
        self,
        *,
        error_class: ErrorClass | None,
        exit_code: int | None = None,
        passed: bool = False,
        verification_pass: bool = False,
        command: Sequence[str] = (),
    ) -> TaskRunResult:
        ended_at = self.clock()
        return TaskRunResult(
            task_id=self.job.task.id,
            mode=self.job.mode,
            started_at=isoformat(self.started_at),
            ended_at=isoformat(ended_at),
            duration_ms=int((ended_at - self.started_at).total_seconds() * 1000),
            exit_code=exit_code,
            passed=passed,
            verification_pass=verification_pass,
            artifacts=JobArtifacts(logs_path=str(self.log_path)),
            error_class=error_class,
            command=list(command),
        )

    def write(self, result: TaskRunResult) -> None:
        text = "\n".join(line for line in self.lines if line.strip())
        write_text(self.log_path, text + "\n")
        write_json_stable(self.result_path, result)


class BenchmarkHarness:
    """Runs a task corpus under each configured mode and persists the results."""

    def __init__(
        self,
        config: RunConfig,
        root_dir: str | Path,
        runner: CommandRunner = run_command,
        clock: Clock = utc_now,
    ):
        self.config = config
        self.root_dir = Path(root_dir).resolve()
        self.runner = runner
        self.clock = clock

    def run(self, run_id: str | None = None) -> RunResult:
        """Run every job and write preflight, results and the latest-run pointer."""
        tasks = load_tasks(self.config.task_glob, self.root_dir)
        preflight = run_preflight(tasks, self.config, self.root_dir, self.runner)
        run_id = run_id or create_run_id(self.config.seed, self.clock())

        output_root = self.root_dir / self.config.output_dir
        run_dir = output_root / run_id
        context = _RunContext(
            run_dir=run_dir,
            artifacts_dir=ensure_dir(run_dir / "artifacts"),
            workspaces_root=ensure_dir(run_dir / WORKSPACES_DIRNAME),
            logger=RunLogger(run_id, run_dir),
        )

        jobs = build_jobs(tasks, self.config.modes)
        context.logger.log_run_start(self.config.seed, self.config.modes, len(tasks), len(jobs))
        context.logger.log_preflight(preflight)

        started_at = self.clock()
        results = run_jobs(
            jobs,
            lambda job: self.run_job(job, context),
            max_parallel=self.config.max_parallel,
            fail_fast=self.config.fail_fast,
        )
        results = sort_results(results)
        ended_at = self.clock()
        summary = build_summary(results)

        run_result = RunResult(
            run_id=run_id,
            seed=self.config.seed,
            started_at=isoformat(started_at),
            ended_at=isoformat(ended_at),
            preflight=preflight,
            results=results,
            summary=summary,
        )

        results_path = run_dir / "results.json"
        write_json_stable(run_dir / "preflight.json", preflight)
        write_json_stable(results_path, run_result)
        write_json_stable(output_root / LATEST_RUN_FILENAME, {
            "run_id": run_id,
            "results_path": str(results_path),
            "updated_at": isoformat(ended_at),
        })
        context.logger.log_run_end(summary)
        return run_result

    def run_job(self, job: Job, context: _RunContext) -> TaskRunResult:
        """Run one job end to end. Never raises for job-level failures."""
        safe_task_id = sanitize_name(job.task.id)
        record = _JobRecord(job, context.artifacts_dir / safe_task_id / job.mode.value, self.clock)
        context.logger.log_job_start(job.task.id, job.mode)

        workspace: Path | None = None
        try:
            workspace = prepare_workspace(
                self.root_dir / job.task.repo_fixture,
                context.workspaces_root,
                safe_task_id,
                job.mode,
            )
            result = self._run_in_workspace(job, workspace, record, context.logger)
        except WorkspaceError as e:
            record.log(str(e))
            result = record.finish(error_class=ErrorClass.INFRA_ERROR)
        except Exception as e:
            record.log(f"Unexpected error: {e!r}")
            result = record.finish(error_class=ErrorClass.INFRA_ERROR)

        if workspace is not None:
            try:
                safe_cleanup(workspace)
            except OSError as e:
                record.log(f"Workspace cleanup failed: {e}")

        try:
            record.write(result)
        except OSError as e:
            context.logger.log_artifact_error(job.task.id, job.mode, str(e))
        context.logger.log_job_end(result)
        return result

    def _run_in_workspace(
        self,
        job: Job,
        workspace: Path,
        record: _JobRecord,
        logger: RunLogger,
    ) -> TaskRunResult:
        task = job.task
        expand = make_expander(self.root_dir, workspace, task.prompt)
        record.log(f"Task: {task.id}", f"Mode: {job.mode.value}", f"Workspace: {workspace}")

        for setup_cmd in task.setup_cmds:
            command = [expand(part) for part in setup_cmd]
            record.log(f"Setup: {' '.join(command)}")
            setup = self.runner(command, cwd=workspace, timeout_seconds=task.timeout_seconds)
            record.log_output(setup)
            if not setup.ok:
                return record.finish(
                    error_class=classify_failure(setup),
                    exit_code=setup.exit_code,
                    command=command,
                )

        run_cmd = task.resolve_command(job.mode)
        if run_cmd is None:
            record.log("No run command configured for mode.")
            return record.finish(error_class=ErrorClass.INFRA_ERROR)

        command = [expand(part) for part in run_cmd]
        record.log(f"Run: {' '.join(command)}")
        execution = self.runner(command, cwd=workspace, timeout_seconds=task.timeout_seconds)
        record.log_output(execution)
        if not execution.ok:
            return record.finish(
                error_class=classify_failure(execution),
                exit_code=execution.exit_code,
                command=command,
            )

        verification = verify_task(task, workspace, task.timeout_seconds, expand, self.runner)
        logger.log_verification(task.id, job.mode, verification, verification.method)
        record.log(f"Verification: {'pass' if verification.passed else 'fail'}", *verification.messages)
        return record.finish(
            error_class=None if verification.passed else ErrorClass.VERIFY_FAIL,
            exit_code=execution.exit_code,
            passed=verification.passed,
            verification_pass=verification.passed,
            command=command,
        )


def run_benchmark(
    config_path: str | Path | None = None,
    root_dir: str | Path | None = None,
    run_id: str | None = None,
    clock: Clock | None = None,
    runner: CommandRunner | None = None,
) -> RunResult:
    """Load the run config and run the benchmark.

    Args:
        config_path: Run config file. Defaults to ``benchmarks/run-config.json``
            under ``root_dir``.
        root_dir: Directory task globs, fixtures and output paths are relative
            to. Defaults to the current directory.
        run_id: Fixed run id instead of one derived from the seed and time.
        clock: Time source, for deterministic timestamps in tests.
        runner: Command runner, for substituting process execution.
    """
    root = Path(root_dir or Path.cwd()).resolve()
    config = load_run_config(Path(config_path) if config_path else root / DEFAULT_CONFIG_PATH)
    harness = BenchmarkHarness(
        config=config,
        root_dir=root,
        runner=runner or run_command,
        clock=clock or utc_now,
    )
    return harness.run(run_id=run_id)
