"""Bounded worker pool that drains a job list with optional fail-fast."""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from mode_bench.benchmark.base import BenchmarkTask, Job
from mode_bench.config import BenchmarkMode

J = TypeVar("J")
R = TypeVar("R")


def build_jobs(tasks: Sequence[BenchmarkTask], modes: Sequence[BenchmarkMode]) -> list[Job]:
    """Cross product of tasks and modes, task-major."""
    return [Job(task=task, mode=mode) for task in tasks for mode in modes]


@dataclass
class SchedulerState(Generic[R]):
    """The only state workers share: a job cursor, a failure flag and the results.

    Results are kept in completion order.
    """
    total_jobs: int
    results: list[R] = field(default_factory=list)
    _cursor: int = 0
    _failed: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def claim(self) -> int | None:
        """Claim the next job index, or None once every job has been handed out."""
        with self._lock:
            index = self._cursor
            self._cursor += 1
        return index if index < self.total_jobs else None

    def record(self, result: R, failed: bool) -> None:
        with self._lock:
            self.results.append(result)
            if failed:
                self._failed = True

    @property
    def failed(self) -> bool:
        return self._failed

    @property
    def claimed(self) -> int:
        return min(self._cursor, self.total_jobs)


def _worker(
    state: SchedulerState[R],
    jobs: Sequence[J],
    run_job: Callable[[J], R],
    is_failure: Callable[[R], bool],
    fail_fast: bool,
) -> None:
    while True:
        # Jobs already claimed by other workers still finish after a failure.
        if fail_fast and state.failed:
            return
        index = state.claim()
        if index is None:
            return
        result = run_job(jobs[index])
        state.record(result, failed=is_failure(result))


def run_jobs(
    jobs: Sequence[J],
    run_job: Callable[[J], R],
    max_parallel: int,
    fail_fast: bool = False,
    is_failure: Callable[[R], bool] = lambda result: not getattr(result, "passed", True),
) -> list[R]:
    """Run every job once with at most ``max_parallel`` in flight.

    With ``fail_fast`` no new job is claimed after the first failing result
    is recorded. There are no retries.

    Returns:
        Results in completion order. Callers sort them.
    """
    state: SchedulerState[R] = SchedulerState(total_jobs=len(jobs))
    worker_count = max(1, max_parallel)

    with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="bench-worker") as pool:
        futures = [
            pool.submit(_worker, state, jobs, run_job, is_failure, fail_fast)
            for _ in range(worker_count)
        ]
        for future in futures:
            future.result()

    return state.results
