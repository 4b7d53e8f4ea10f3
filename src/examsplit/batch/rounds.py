"""
Module: batch.rounds

Purpose:
    Round-based batch driver. Each round re-lists the input folder, skips
    documents whose archive already exists (unless forced), and runs one
    scheduler pass over the rest. Rounds repeat until nothing is pending,
    the failure count stops changing, the round limit is hit, or a stop is
    requested.

Key Functions:
    - discover_jobs(): List pending documents of an input folder

Key Classes:
    - StopReason: Why the run ended
    - BatchRunResult: Summary of a whole run
    - RoundController: The round loop

Dependencies:
    - batch.scheduler: One pass per round
    - batch.state: Resume information and cleanup

Used By:
    - cli: `examsplit batch`
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Collection, Dict, List, Optional

from .config import BatchConfig
from .scheduler import BatchJob, BatchScheduler, JobRunner
from .state import BatchStateStore

logger = logging.getLogger(__name__)


class StopReason(str, Enum):
    """Why a batch run ended."""
    COMPLETE = "complete"
    NO_PROGRESS = "no_progress"
    MAX_ROUNDS = "max_rounds"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


@dataclass
class BatchRunResult:
    """
    Summary of a batch run.

    Attributes:
        rounds: Number of scheduler passes that ran.
        stop_reason: Why the loop ended.
        succeeded: Keys of documents completed during this run.
        failed: Key -> last error, from the last round that ran.
    """
    rounds: int
    stop_reason: StopReason
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


def discover_jobs(
    input_dir: Path,
    output_dir: Path,
    force: bool = False,
    exclude: Collection[str] = (),
) -> List[BatchJob]:
    """
    List the documents of input_dir that still need processing.

    Args:
        input_dir: Folder scanned (non-recursively) for *.pdf, any case.
        output_dir: Folder holding {stem}.zip archives.
        force: Include documents whose archive already exists.
        exclude: Job keys to leave out.

    Returns:
        Jobs sorted by file name.

    Raises:
        FileNotFoundError: If input_dir does not exist.
    """
    if not input_dir.is_dir():
        raise FileNotFoundError(f"Input directory not found: {input_dir}")

    pdfs = sorted(
        (p for p in input_dir.iterdir() if p.is_file() and p.suffix.lower() == ".pdf"),
        key=lambda p: p.name,
    )

    jobs = []
    for pdf in pdfs:
        job = BatchJob(pdf, output_dir / f"{pdf.stem}.zip")
        if job.key in exclude:
            continue
        if not force and job.output_path.exists():
            logger.debug(f"Skipping (already exists): {pdf.name}")
            continue
        jobs.append(job)
    return jobs


class RoundController:
    """
    Repeat scheduler passes until the batch settles.

    Example:
        >>> controller = RoundController(BatchConfig(Path("exams"), Path("output")), runner)
        >>> result = controller.run()
        >>> result.stop_reason
        <StopReason.COMPLETE: 'complete'>
    """

    def __init__(
        self,
        config: BatchConfig,
        runner: JobRunner,
        *,
        store: Optional[BatchStateStore] = None,
        stop_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.store = store or BatchStateStore(config.state_path)
        self.stop_event = stop_event or threading.Event()
        self.scheduler = BatchScheduler(
            runner,
            self.store,
            concurrency=config.concurrency,
            max_retries=config.max_retries,
            rate_limit_factor=config.rate_limit_factor,
            stop_event=self.stop_event,
            sleep=sleep,
        )

    def run(self) -> BatchRunResult:
        """
        Run rounds until complete, stalled, exhausted or cancelled.

        The state file is deleted when the run ends with nothing pending.

        Raises:
            FileNotFoundError: If the input folder does not exist.
        """
        config = self.config
        config.output_dir.mkdir(parents=True, exist_ok=True)

        previous = self.store.load()
        if previous.failed:
            logger.info(f"Resuming: {len(previous.failed)} document(s) failed in an earlier run")

        succeeded: List[str] = []
        failed: Dict[str, str] = {}
        previous_failures: Optional[int] = None
        rounds = 0
        started = time.monotonic()

        while True:
            if self.stop_event.is_set():
                reason = StopReason.CANCELLED
                break
            if rounds >= config.max_rounds:
                reason = StopReason.MAX_ROUNDS
                break

            exclude = set(succeeded) if config.force else set()
            jobs = discover_jobs(config.input_dir, config.output_dir, config.force, exclude)
            if not jobs:
                reason = StopReason.COMPLETE
                break

            rounds += 1
            logger.info(f"Round {rounds}/{config.max_rounds}: {len(jobs)} document(s) to process")
            report = self.scheduler.run(jobs)
            succeeded.extend(report.succeeded)
            failed = dict(report.failed)

            logger.info(
                f"Round {rounds} finished: {len(report.succeeded)} succeeded, {len(report.failed)} failed",
                extra={"round": rounds, "succeeded": len(report.succeeded), "failed": len(report.failed)},
            )

            if report.not_started or self.stop_event.is_set():
                reason = StopReason.CANCELLED
                break
            if not report.failed:
                reason = StopReason.COMPLETE
                break
            if previous_failures is not None and len(report.failed) == previous_failures:
                logger.warning(
                    f"No progress: {len(report.failed)} document(s) failed again; stopping"
                )
                reason = StopReason.NO_PROGRESS
                break
            previous_failures = len(report.failed)

        if reason is StopReason.COMPLETE:
            failed = {}
            self.store.clear()

        duration = (time.monotonic() - started) / 60
        logger.info(
            f"Batch finished ({reason}) after {rounds} round(s) in {duration:.2f} minutes: "
            f"{len(succeeded)} succeeded, {len(failed)} failed",
            extra={"rounds": rounds, "stop_reason": str(reason)},
        )
        for key, error in failed.items():
            logger.info(f"  - {Path(key).name}: {error}")
        if failed:
            logger.info("Run the command again to retry failed files.")

        return BatchRunResult(rounds=rounds, stop_reason=reason, succeeded=succeeded, failed=failed)
