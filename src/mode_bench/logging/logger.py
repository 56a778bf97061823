"""Structured JSON run event logger."""

from __future__ import annotations

import json
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mode_bench.benchmark.base import Preflight, RunSummary, TaskRunResult
    from mode_bench.config import BenchmarkMode
    from mode_bench.verification.base import VerificationResult


class RunLogger:
    """Logs run events as JSON lines. Safe to call from worker threads."""

    def __init__(self, run_id: str, run_dir: str | Path):
        self.run_id = run_id
        self.run_dir = Path(run_dir)
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.log_path = self.run_dir / "events.jsonl"
        self._events: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    @property
    def events(self) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._events)

    def _write_event(self, event: dict[str, Any]) -> None:
        event["run_id"] = self.run_id
        event["timestamp"] = time.time()
        with self._lock:
            self._events.append(event)
            with open(self.log_path, "a") as f:
                f.write(json.dumps(event, default=str, sort_keys=True) + "\n")

    def log_run_start(self, seed: str, modes: list[BenchmarkMode], task_count: int, job_count: int) -> None:
        self._write_event({
            "event": "run_start",
            "seed": seed,
            "modes": [m.value for m in modes],
            "task_count": task_count,
            "job_count": job_count,
        })

    def log_preflight(self, preflight: Preflight) -> None:
        self._write_event({
            "event": "preflight",
            "toolchain": preflight.toolchain,
            "toolchain_binary": preflight.toolchain_binary,
            "warnings": preflight.warnings,
        })

    def log_job_start(self, task_id: str, mode: BenchmarkMode) -> None:
        self._write_event({
            "event": "job_start",
            "task_id": task_id,
            "mode": mode.value,
        })

    def log_verification(
        self,
        task_id: str,
        mode: BenchmarkMode,
        verification: VerificationResult,
        method: str,
    ) -> None:
        self._write_event({
            "event": "verification",
            "task_id": task_id,
            "mode": mode.value,
            "method": method,
            "passed": verification.passed,
            "message": "\n".join(verification.messages)[:1000],
        })

    def log_artifact_error(self, task_id: str, mode: BenchmarkMode, error: str) -> None:
        self._write_event({
            "event": "artifact_error",
            "task_id": task_id,
            "mode": mode.value,
            "error": error,
        })

    def log_job_end(self, result: TaskRunResult) -> None:
        self._write_event({
            "event": "job_end",
            "task_id": result.task_id,
            "mode": result.mode.value,
            "pass": result.passed,
            "error_class": result.error_class.value if result.error_class else None,
            "duration_ms": result.duration_ms,
        })

    def log_run_end(self, summary: RunSummary) -> None:
        self._write_event({
            "event": "run_end",
            "total": summary.total,
            "passed": summary.passed,
            "failed": summary.failed,
        })
