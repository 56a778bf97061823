"""Command line entry point: run, scorecard and tune."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from mode_bench.config import load_thresholds
from mode_bench.errors import BenchmarkError
from mode_bench.harness import run_benchmark
from mode_bench.scorecard import (
    build_scorecard_report,
    load_run_result,
    resolve_results_path,
    to_percent,
    to_signed_percent,
    write_scorecard,
)
from mode_bench.tuning import tune_thresholds

DEFAULT_RESULTS_DIR = Path("benchmarks") / "results"
DEFAULT_THRESHOLDS_PATH = Path("benchmarks") / "thresholds.json"


def _resolve(root: Path, path: str | None, default: Path) -> Path:
    return (root / (path or default)).resolve()


def cmd_run(args: argparse.Namespace) -> int:
    result = run_benchmark(config_path=args.config, root_dir=args.root, run_id=args.run_id)
    for warning in result.preflight.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    print(f"Run id: {result.run_id}")
    print(f"Total: {result.summary.total}")
    print(f"Passed: {result.summary.passed}")
    print(f"Failed: {result.summary.failed}")
    for mode, counts in result.summary.by_mode.items():
        if counts.total:
            print(f"  {mode.value}: {counts.passed}/{counts.total} passed")
    return 0


def cmd_scorecard(args: argparse.Namespace) -> int:
    root = Path(args.root or Path.cwd()).resolve()
    results_dir = _resolve(root, args.results_dir, DEFAULT_RESULTS_DIR)
    results_path = resolve_results_path(args.input and root / args.input, results_dir)
    run_result = load_run_result(results_path)
    thresholds = load_thresholds(_resolve(root, args.thresholds, DEFAULT_THRESHOLDS_PATH))

    report = build_scorecard_report(run_result, thresholds)
    write_scorecard(report, results_path)

    score = report.scorecard
    print(f"Run id: {report.run_id}")
    print(f"Success delta: {to_percent(score.success_rate_delta)}")
    print(f"Median time delta: {to_signed_percent(score.median_time_delta_pct)}")
    print(f"Regression rate: {to_percent(score.regression_rate)}")
    print(f"Overall thresholds: {'pass' if score.thresholds_met.overall else 'fail'}")

    if args.enforce_thresholds and not score.thresholds_met.overall:
        return 1
    return 0


def cmd_tune(args: argparse.Namespace) -> int:
    root = Path(args.root or Path.cwd()).resolve()
    tuned = tune_thresholds(
        results_dir=_resolve(root, args.results_dir, DEFAULT_RESULTS_DIR),
        thresholds_path=_resolve(root, args.thresholds, DEFAULT_THRESHOLDS_PATH),
        write=args.write,
        allow_loosen=args.allow_loosen,
        last=args.last,
    )

    print(f"Runs analyzed: {tuned.based_on_runs}")
    for warning in tuned.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    for name in ("success_rate_delta_min", "median_time_delta_pct_max", "regression_rate_max"):
        print(f"Current {name}: {getattr(tuned.current, name)}")
    for name in ("success_rate_delta_min", "median_time_delta_pct_max", "regression_rate_max"):
        print(f"Recommended {name}: {getattr(tuned.recommended, name)}")
    if args.write:
        print("Thresholds updated.")
    else:
        print("Dry run only. Use --write to persist.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mode-bench", description="Baseline vs candidate benchmark harness")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the task corpus under every configured mode")
    run.add_argument("--config", help="Run config file (default: <root>/benchmarks/run-config.json)")
    run.add_argument("--root", help="Root directory for task globs, fixtures and output")
    run.add_argument("--run-id", help="Use this run id instead of deriving one")
    run.set_defaults(func=cmd_run)

    score = subparsers.add_parser("scorecard", help="Compute the scorecard of a run")
    score.add_argument("--input", help="results.json to score (default: latest run)")
    score.add_argument("--results-dir", help="Results directory (default: benchmarks/results)")
    score.add_argument("--thresholds", help="Thresholds file (default: benchmarks/thresholds.json)")
    score.add_argument("--enforce-thresholds", action="store_true",
                       help="Exit non-zero when the overall verdict fails")
    score.add_argument("--root", help="Root directory for relative paths")
    score.set_defaults(func=cmd_scorecard)

    tune = subparsers.add_parser("tune", help="Recommend thresholds from past scorecards")
    tune.add_argument("--results-dir", help="Results directory (default: benchmarks/results)")
    tune.add_argument("--thresholds", help="Thresholds file (default: benchmarks/thresholds.json)")
    tune.add_argument("--write", action="store_true", help="Persist the recommendation")
    tune.add_argument("--allow-loosen", action="store_true", help="Allow thresholds to get looser")
    tune.add_argument("--last", type=int, help="Only use the most recent N runs")
    tune.add_argument("--root", help="Root directory for relative paths")
    tune.set_defaults(func=cmd_tune)

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except BenchmarkError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
