"""Recommend thresholds from the scorecards of past runs."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from mode_bench.artifacts import read_json, write_json_stable
from mode_bench.config import Thresholds, load_thresholds
from mode_bench.errors import TuningError
from mode_bench.scorecard import SCORECARD_FILENAME, ScorecardReport
from mode_bench.stats import quantile

MIN_CONFIDENT_RUNS = 3


@dataclass
class TuningResult:
    recommended: Thresholds
    current: Thresholds
    based_on_runs: int
    warnings: list[str] = field(default_factory=list)


def load_scorecard_reports(results_dir: str | Path) -> tuple[list[ScorecardReport], list[str]]:
    """Load every run's scorecard, oldest run directory name first.

    Run directories without a scorecard are skipped silently; unreadable
    scorecards are skipped with a warning.
    """
    results_dir = Path(results_dir)
    if not results_dir.is_dir():
        return [], []

    reports: list[ScorecardReport] = []
    warnings: list[str] = []
    for run_dir in sorted(p for p in results_dir.iterdir() if p.is_dir()):
        score_path = run_dir / SCORECARD_FILENAME
        if not score_path.is_file():
            continue
        try:
            reports.append(ScorecardReport.model_validate(read_json(score_path)))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            warnings.append(f"Skipped unreadable scorecard {score_path}: {e}")
    return reports, warnings


def clamp_against_current(current: Thresholds, proposed: Thresholds) -> Thresholds:
    """Only allow tightening: the minimum may rise, the maxima may fall."""
    return Thresholds(
        success_rate_delta_min=max(current.success_rate_delta_min, proposed.success_rate_delta_min),
        median_time_delta_pct_max=min(current.median_time_delta_pct_max, proposed.median_time_delta_pct_max),
        regression_rate_max=min(current.regression_rate_max, proposed.regression_rate_max),
    )


def propose_thresholds(reports: list[ScorecardReport]) -> Thresholds:
    success = [r.scorecard.success_rate_delta for r in reports]
    timing = [r.scorecard.median_time_delta_pct for r in reports]
    regression = [r.scorecard.regression_rate for r in reports]
    return Thresholds(
        success_rate_delta_min=round(quantile(success, 0.25), 4),
        median_time_delta_pct_max=round(quantile(timing, 0.75), 2),
        regression_rate_max=round(quantile(regression, 0.75), 4),
    )


def tune_thresholds(
    results_dir: str | Path,
    thresholds_path: str | Path,
    write: bool = False,
    allow_loosen: bool = False,
    last: int | None = None,
) -> TuningResult:
    """Recommend new thresholds from historical scorecards.

    With fewer than three scorecards on record the current thresholds are
    returned unchanged, with a warning.

    Args:
        results_dir: Directory holding one subdirectory per run.
        thresholds_path: Current thresholds file; overwritten when ``write``.
        write: Persist the recommendation.
        allow_loosen: Skip clamping against the current thresholds.
        last: Only use the most recent ``last`` runs.

    Raises:
        TuningError: If no scorecard exists.
    """
    current = load_thresholds(thresholds_path)
    reports, warnings = load_scorecard_reports(results_dir)
    if not reports:
        raise TuningError(
            f"Need at least 1 benchmark scorecard to tune thresholds (found 0 in {results_dir})."
        )

    low_confidence = len(reports) < MIN_CONFIDENT_RUNS
    if low_confidence:
        warnings.append(
            f"Only {len(reports)} scorecard run(s) found. Threshold recommendations "
            f"are low-confidence until at least {MIN_CONFIDENT_RUNS} runs exist."
        )

    if last is not None and last > 0:
        reports = reports[-last:]

    if low_confidence:
        recommended = current.model_copy()
    else:
        recommended = propose_thresholds(reports)
        if not allow_loosen:
            recommended = clamp_against_current(current, recommended)

    if write:
        write_json_stable(thresholds_path, recommended)

    return TuningResult(
        recommended=recommended,
        current=current,
        based_on_runs=len(reports),
        warnings=warnings,
    )
