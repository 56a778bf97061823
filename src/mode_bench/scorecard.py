"""Scorecard: compares the candidate mode against the baseline for one run."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, ValidationError

from mode_bench.artifacts import ensure_dir, read_json, write_json_stable, write_text
from mode_bench.benchmark.base import Preflight, RunResult, TaskRunResult
from mode_bench.config import DEFAULT_THRESHOLDS, BenchmarkMode, Thresholds
from mode_bench.errors import BenchmarkError
from mode_bench.harness import LATEST_RUN_FILENAME, isoformat, utc_now
from mode_bench.stats import median, ratio

SCORECARD_FILENAME = "scorecard.json"
LATEST_SCORECARD_FILENAME = "latest-scorecard.json"
LATEST_MARKDOWN_FILENAME = "latest.md"


class ThresholdVerdicts(BaseModel):
    success_rate_delta: bool
    median_time_delta: bool
    regression_rate: bool
    overall: bool


class Scorecard(BaseModel):
    success_rate: dict[BenchmarkMode, float]
    success_rate_delta: float
    median_duration_ms: dict[BenchmarkMode, float]
    median_time_delta_pct: float
    regression_rate: float
    paired_tasks: int
    thresholds: Thresholds
    thresholds_met: ThresholdVerdicts


class ScorecardReport(BaseModel):
    run_id: str
    created_at: str
    preflight: Preflight | None = None
    scorecard: Scorecard


def compute_scorecard(run_result: RunResult, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> Scorecard:
    """Compute comparison metrics and threshold verdicts. Pure and deterministic.

    A paired task is one with results in both modes. It counts as a
    regression only when the baseline passed and the candidate failed.
    """
    baseline, candidate = BenchmarkMode.BASELINE, BenchmarkMode.CANDIDATE

    success_rate: dict[BenchmarkMode, float] = {}
    median_duration_ms: dict[BenchmarkMode, float] = {}
    for mode in BenchmarkMode:
        mode_results = [r for r in run_result.results if r.mode == mode]
        passed = sum(1 for r in mode_results if r.passed)
        success_rate[mode] = ratio(passed, len(mode_results))
        median_duration_ms[mode] = median([r.duration_ms for r in mode_results])

    pairs = _paired_results(run_result.results)
    regressions = sum(1 for base, cand in pairs if base.passed and not cand.passed)

    success_rate_delta = success_rate[candidate] - success_rate[baseline]
    base_median = median_duration_ms[baseline]
    median_time_delta_pct = (
        (median_duration_ms[candidate] - base_median) / base_median * 100
        if base_median > 0
        else 0.0
    )
    regression_rate = ratio(regressions, len(pairs))

    success_ok = success_rate_delta >= thresholds.success_rate_delta_min
    time_ok = median_time_delta_pct <= thresholds.median_time_delta_pct_max
    regression_ok = regression_rate <= thresholds.regression_rate_max

    return Scorecard(
        success_rate=success_rate,
        success_rate_delta=success_rate_delta,
        median_duration_ms=median_duration_ms,
        median_time_delta_pct=median_time_delta_pct,
        regression_rate=regression_rate,
        paired_tasks=len(pairs),
        thresholds=thresholds,
        thresholds_met=ThresholdVerdicts(
            success_rate_delta=success_ok,
            median_time_delta=time_ok,
            regression_rate=regression_ok,
            overall=success_ok and time_ok and regression_ok,
        ),
    )


def _paired_results(results: Sequence[TaskRunResult]) -> list[tuple[TaskRunResult, TaskRunResult]]:
    by_task: dict[str, dict[BenchmarkMode, TaskRunResult]] = {}
    for result in results:
        by_task.setdefault(result.task_id, {})[result.mode] = result

    pairs = []
    for task_id in sorted(by_task):
        modes = by_task[task_id]
        if BenchmarkMode.BASELINE in modes and BenchmarkMode.CANDIDATE in modes:
            pairs.append((modes[BenchmarkMode.BASELINE], modes[BenchmarkMode.CANDIDATE]))
    return pairs


def build_scorecard_report(
    run_result: RunResult,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    created_at: str | None = None,
) -> ScorecardReport:
    return ScorecardReport(
        run_id=run_result.run_id,
        created_at=created_at or isoformat(utc_now()),
        preflight=run_result.preflight,
        scorecard=compute_scorecard(run_result, thresholds),
    )


def load_run_result(path: str | Path) -> RunResult:
    try:
        return RunResult.model_validate(read_json(path))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise BenchmarkError(f"Could not load run results from {path}: {e}") from e


def resolve_results_path(input_path: str | Path | None, results_dir: str | Path) -> Path:
    """Explicit results file if given, else the one the latest-run pointer names."""
    if input_path:
        return Path(input_path).resolve()

    latest_path = Path(results_dir) / LATEST_RUN_FILENAME
    try:
        latest = read_json(latest_path)
    except (OSError, json.JSONDecodeError) as e:
        raise BenchmarkError(f"Could not read latest-run metadata at {latest_path}: {e}") from e

    results_path = latest.get("results_path") if isinstance(latest, dict) else None
    if not isinstance(results_path, str) or not results_path:
        raise BenchmarkError(f"Invalid latest-run metadata at {latest_path}.")
    return Path(results_path).resolve()


def write_scorecard(report: ScorecardReport, results_path: str | Path) -> Path:
    """Write the report next to the run's results and refresh the latest copies.

    Returns:
        Path to the run's scorecard.json.
    """
    run_dir = Path(results_path).parent
    results_dir = ensure_dir(run_dir.parent)
    scorecard_path = run_dir / SCORECARD_FILENAME
    write_json_stable(scorecard_path, report)
    write_json_stable(results_dir / LATEST_SCORECARD_FILENAME, report)
    write_text(results_dir / LATEST_MARKDOWN_FILENAME, format_scorecard_markdown(report))
    return scorecard_path


def to_percent(value: float) -> str:
    return f"{value * 100:.2f}%"


def to_signed_percent(value: float) -> str:
    return f"{value:+.2f}%" if value != 0 else "0.00%"


def format_scorecard_markdown(report: ScorecardReport) -> str:
    score = report.scorecard
    met = score.thresholds_met
    base, cand = BenchmarkMode.BASELINE, BenchmarkMode.CANDIDATE

    def yes_no(value: bool) -> str:
        return "yes" if value else "no"

    lines = [
        "# Benchmark Scorecard",
        "",
        f"Run id: `{report.run_id}`",
        f"Generated: {report.created_at}",
        "",
        "| Metric | Value | Threshold | Pass |",
        "|---|---:|---:|:---:|",
        f"| Success rate ({base.value}) | {to_percent(score.success_rate[base])} | - | - |",
        f"| Success rate ({cand.value}) | {to_percent(score.success_rate[cand])} | - | - |",
        f"| Success rate delta | {to_percent(score.success_rate_delta)} "
        f"| >= {to_percent(score.thresholds.success_rate_delta_min)} | {yes_no(met.success_rate_delta)} |",
        f"| Median duration ({base.value}) | {score.median_duration_ms[base]:.0f} ms | - | - |",
        f"| Median duration ({cand.value}) | {score.median_duration_ms[cand]:.0f} ms | - | - |",
        f"| Median time delta | {to_signed_percent(score.median_time_delta_pct)} "
        f"| <= {score.thresholds.median_time_delta_pct_max:.2f}% | {yes_no(met.median_time_delta)} |",
        f"| Regression rate | {to_percent(score.regression_rate)} "
        f"| <= {to_percent(score.thresholds.regression_rate_max)} | {yes_no(met.regression_rate)} |",
        f"| Paired tasks | {score.paired_tasks} | - | - |",
        "",
        f"Overall: **{'PASS' if met.overall else 'FAIL'}**",
    ]
    if report.preflight is not None:
        lines += ["", f"Preflight {report.preflight.toolchain_binary}: `{report.preflight.toolchain}`"]
        lines += [f"- Warning: {warning}" for warning in report.preflight.warnings]
    return "\n".join(lines) + "\n"
