"""Tests for scorecard metrics and persistence."""

import json

import pytest

from mode_bench.benchmark.base import (
    JobArtifacts,
    ModeSummary,
    Preflight,
    RunResult,
    RunSummary,
    TaskRunResult,
)
from mode_bench.config import BenchmarkMode, ErrorClass, Thresholds
from mode_bench.errors import BenchmarkError
from mode_bench.scorecard import (
    build_scorecard_report,
    compute_scorecard,
    format_scorecard_markdown,
    load_run_result,
    resolve_results_path,
    write_scorecard,
)
from mode_bench.stats import median, quantile, ratio

BASE = BenchmarkMode.BASELINE
CAND = BenchmarkMode.CANDIDATE


def _result(task_id: str, mode: BenchmarkMode, passed: bool, duration_ms: int = 1000) -> TaskRunResult:
    return TaskRunResult(
        task_id=task_id,
        mode=mode,
        started_at="2024-01-01T00:00:00.000Z",
        ended_at="2024-01-01T00:00:01.000Z",
        duration_ms=duration_ms,
        exit_code=0 if passed else 1,
        passed=passed,
        verification_pass=passed,
        artifacts=JobArtifacts(logs_path=f"/tmp/{task_id}/{mode.value}/run.log"),
        error_class=None if passed else ErrorClass.VERIFY_FAIL,
    )


def _run_result(results: list[TaskRunResult], run_id: str = "run-1") -> RunResult:
    passed = sum(1 for r in results if r.passed)
    return RunResult(
        run_id=run_id,
        seed="seed",
        started_at="2024-01-01T00:00:00.000Z",
        ended_at="2024-01-01T00:01:00.000Z",
        preflight=Preflight(toolchain="not_required", toolchain_binary="codex"),
        results=results,
        summary=RunSummary(
            total=len(results),
            passed=passed,
            failed=len(results) - passed,
            by_mode={BASE: ModeSummary(), CAND: ModeSummary()},
        ),
    )


def test_median_and_ratio():
    assert median([1000, 1200]) == 1100
    assert median([1000]) == 1000
    assert median([3, 1, 2]) == 2
    assert median([]) == 0.0
    assert ratio(1, 0) == 0.0


def test_quantile_interpolates():
    assert quantile([0.1, 0.2, 0.3, 0.4], 0.25) == pytest.approx(0.175)
    assert quantile([5], 0.75) == 5
    assert quantile([], 0.5) == 0.0
    with pytest.raises(ValueError):
        quantile([1.0], 1.5)


def test_scorecard_for_mixed_run():
    run = _run_result([
        _result("t1", CAND, True, 700),
        _result("t1", BASE, True, 1000),
        _result("t2", BASE, True, 1000),
        _result("t2", CAND, False, 1300),
    ])
    score = compute_scorecard(run)
    assert score.success_rate == {BASE: 1.0, CAND: 0.5}
    assert score.success_rate_delta == pytest.approx(-0.5)
    assert score.median_duration_ms == {BASE: 1000, CAND: 1000}
    assert score.median_time_delta_pct == 0
    assert score.regression_rate == pytest.approx(0.5)
    assert score.paired_tasks == 2
    assert score.thresholds_met.success_rate_delta is False
    assert score.thresholds_met.median_time_delta is False
    assert score.thresholds_met.regression_rate is False
    assert score.thresholds_met.overall is False


def test_regression_counts_only_pass_to_fail():
    run = _run_result([
        _result("A", BASE, True), _result("A", CAND, True),
        _result("B", BASE, True), _result("B", CAND, False),
        _result("C", BASE, False), _result("C", CAND, True),
    ])
    assert compute_scorecard(run).regression_rate == pytest.approx(1 / 3)


def test_unpaired_tasks_and_empty_modes():
    run = _run_result([_result("only-base", BASE, True, 800)])
    score = compute_scorecard(run)
    assert score.success_rate[CAND] == 0
    assert score.median_duration_ms[CAND] == 0
    assert score.paired_tasks == 0
    assert score.regression_rate == 0

    empty = compute_scorecard(_run_result([]))
    assert empty.median_time_delta_pct == 0
    assert empty.success_rate == {BASE: 0, CAND: 0}


def test_scorecard_passes_when_candidate_improves():
    run = _run_result([
        _result("t1", BASE, False, 2000), _result("t1", CAND, True, 1000),
        _result("t2", BASE, True, 2000), _result("t2", CAND, True, 1000),
    ])
    score = compute_scorecard(run)
    assert score.success_rate_delta == pytest.approx(0.5)
    assert score.median_time_delta_pct == pytest.approx(-50)
    assert score.thresholds_met.overall is True


def test_threshold_boundaries_are_inclusive():
    run = _run_result([_result("t1", BASE, True, 1000), _result("t1", CAND, True, 1000)])
    thresholds = Thresholds(success_rate_delta_min=0, median_time_delta_pct_max=0, regression_rate_max=0)
    assert compute_scorecard(run, thresholds).thresholds_met.overall is True


def test_scorecard_is_deterministic():
    results = [_result("b", CAND, False, 900), _result("a", BASE, True, 1100), _result("b", BASE, True, 1000)]
    first = compute_scorecard(_run_result(results))
    second = compute_scorecard(_run_result(list(reversed(results))))
    assert first == second


def test_markdown_report():
    run = _run_result([_result("t1", BASE, True, 1000), _result("t1", CAND, True, 500)])
    report = build_scorecard_report(run, created_at="2024-01-02T00:00:00.000Z")
    markdown = format_scorecard_markdown(report)
    assert markdown.startswith("# Benchmark Scorecard\n")
    assert "Run id: `run-1`" in markdown
    assert "| Median time delta | -50.00% | <= -25.00% | yes |" in markdown
    assert "| Success rate delta | 0.00% | >= 15.00% | no |" in markdown
    assert "Overall: **FAIL**" in markdown
    assert "Preflight codex: `not_required`" in markdown


def test_write_scorecard_and_latest_copies(tmp_path):
    run_dir = tmp_path / "results" / "run-1"
    run_dir.mkdir(parents=True)
    results_path = run_dir / "results.json"
    report = build_scorecard_report(_run_result([_result("t1", BASE, True)]), created_at="now")

    scorecard_path = write_scorecard(report, results_path)
    assert scorecard_path == run_dir / "scorecard.json"
    saved = json.loads(scorecard_path.read_text())
    assert saved["run_id"] == "run-1"
    assert saved["scorecard"]["success_rate"] == {"baseline": 1.0, "candidate": 0.0}
    latest = json.loads((tmp_path / "results" / "latest-scorecard.json").read_text())
    assert latest == saved
    assert (tmp_path / "results" / "latest.md").read_text().startswith("# Benchmark Scorecard")


def test_resolve_results_path(tmp_path):
    explicit = tmp_path / "somewhere" / "results.json"
    assert resolve_results_path(explicit, tmp_path) == explicit.resolve()

    target = tmp_path / "run-9" / "results.json"
    (tmp_path / "latest-run.json").write_text(json.dumps({"run_id": "run-9", "results_path": str(target)}))
    assert resolve_results_path(None, tmp_path) == target.resolve()


def test_resolve_results_path_errors(tmp_path):
    with pytest.raises(BenchmarkError, match="latest-run"):
        resolve_results_path(None, tmp_path)

    (tmp_path / "latest-run.json").write_text(json.dumps({"run_id": "x"}))
    with pytest.raises(BenchmarkError, match="Invalid latest-run metadata"):
        resolve_results_path(None, tmp_path)


def test_load_run_result(tmp_path):
    path = tmp_path / "results.json"
    run = _run_result([_result("t1", BASE, True)])
    path.write_text(json.dumps(run.model_dump(mode="json", by_alias=True)))
    assert load_run_result(path) == run

    path.write_text(json.dumps({"run_id": "broken"}))
    with pytest.raises(BenchmarkError, match="Could not load run results"):
        load_run_result(path)
