"""
Module: batch.scheduler

Purpose:
    Bounded-concurrency worker pool over document jobs. A fixed number of
    worker threads pull jobs from one queue, so at most `concurrency`
    documents are in flight and a finished worker immediately takes the
    next pending job. Each job is retried with exponential backoff and
    every attempt outcome is persisted before the job counts as finished.

Key Classes:
    - BatchJob: One input document and its archive path
    - BatchReport: Outcome of one scheduler pass
    - BatchScheduler: The worker pool

Dependencies:
    - concurrent.futures: Worker threads
    - batch.state: Persisted attempt outcomes

Used By:
    - batch.rounds: One scheduler pass per round
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from examsplit.splitter.detection.client import RateLimitError

from .state import BatchStateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BatchJob:
    """One document to split."""
    source_path: Path
    output_path: Path

    @property
    def key(self) -> str:
        """Identifier used in the batch state file."""
        return str(self.source_path)

    @property
    def name(self) -> str:
        return self.source_path.name


JobRunner = Callable[[BatchJob], Any]


@dataclass
class BatchReport:
    """
    Result of one scheduler pass.

    Attributes:
        succeeded: Keys of jobs that completed, in completion order.
        failed: Key -> last error for jobs that exhausted their retries.
        not_started: Keys of jobs left in the queue after a stop request.
        peak_active: Highest number of jobs that ran at the same time.
    """
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    not_started: List[str] = field(default_factory=list)
    peak_active: int = 0


def is_rate_limited(error: BaseException) -> bool:
    """True if error, or anything in its cause chain, is a rate-limit signal."""
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, RateLimitError) or getattr(current, "rate_limited", False):
            return True
        current = current.__cause__ or current.__context__
    return False


class BatchScheduler:
    """
    Run document jobs through a bounded worker pool.

    Attributes:
        concurrency: Maximum jobs in flight.
        max_retries: Attempts per job.
        rate_limit_factor: Backoff multiplier for rate-limited failures.

    Example:
        >>> scheduler = BatchScheduler(runner, store, concurrency=2)
        >>> report = scheduler.run(jobs)
        >>> report.peak_active <= 2
        True
    """

    def __init__(
        self,
        runner: JobRunner,
        store: BatchStateStore,
        *,
        concurrency: int = 5,
        max_retries: int = 3,
        rate_limit_factor: float = 2.0,
        stop_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        if max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {max_retries}")
        self._runner = runner
        self._store = store
        self.concurrency = concurrency
        self.max_retries = max_retries
        self.rate_limit_factor = rate_limit_factor
        self._stop = stop_event or threading.Event()
        self._sleep = sleep
        self._lock = threading.Lock()
        self._active = 0

    def backoff(self, attempt: int, error: BaseException) -> float:
        """Seconds to wait after a failed attempt (1-indexed)."""
        delay = float(2 ** attempt)
        if is_rate_limited(error):
            delay *= self.rate_limit_factor
        return delay

    def run(self, jobs: Sequence[BatchJob]) -> BatchReport:
        """
        Process jobs with at most `concurrency` running at once.

        Jobs already dequeued when the stop event is set run to completion;
        the rest are reported as not started.

        Returns:
            BatchReport for this pass.
        """
        report = BatchReport()
        if not jobs:
            return report

        pending: "queue.Queue[BatchJob]" = queue.Queue()
        for job in jobs:
            pending.put(job)

        total = len(jobs)
        workers = min(self.concurrency, total)
        self._active = 0

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="batch") as pool:
            futures = [pool.submit(self._worker, pending, report, total) for _ in range(workers)]
            for future in futures:
                future.result()

        while True:
            try:
                report.not_started.append(pending.get_nowait().key)
            except queue.Empty:
                break

        if report.not_started:
            logger.warning(f"Stopped with {len(report.not_started)} document(s) not started")
        return report

    def _worker(self, pending: "queue.Queue[BatchJob]", report: BatchReport, total: int) -> None:
        while not self._stop.is_set():
            try:
                job = pending.get_nowait()
            except queue.Empty:
                return

            with self._lock:
                self._active += 1
                report.peak_active = max(report.peak_active, self._active)
                started = total - pending.qsize()
            logger.info(f"Starting [{started}/{total}]: {job.name}")

            try:
                error = self._run_with_retry(job)
            finally:
                with self._lock:
                    self._active -= 1

            with self._lock:
                if error is None:
                    report.succeeded.append(job.key)
                else:
                    report.failed[job.key] = error

            if error is None:
                logger.info(f"Completed: {job.name}")
            else:
                logger.error(f"Failed: {job.name}: {error}")

    def _run_with_retry(self, job: BatchJob) -> Optional[str]:
        """Attempt a job up to max_retries times; return the last error or None."""
        last_error = ""
        for attempt in range(1, self.max_retries + 1):
            logger.info(f"[{job.source_path.stem}] Attempt {attempt}/{self.max_retries}...")
            try:
                self._runner(job)
            except Exception as e:
                last_error = str(e) or type(e).__name__
                logger.warning(f"[{job.source_path.stem}] Attempt {attempt} failed: {last_error}")
                self._store.record_failure(job.key, attempt, last_error)
                if attempt < self.max_retries:
                    wait = self.backoff(attempt, e)
                    logger.info(f"[{job.source_path.stem}] Waiting {wait:g}s before retry...")
                    self._sleep(wait)
                continue

            self._store.record_success(job.key)
            return None
        return last_error
