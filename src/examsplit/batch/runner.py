"""
Module: batch.runner

Purpose:
    Adapts the per-document pipeline to the scheduler's job interface.

Key Functions:
    - make_document_runner(): Build a job runner around process_document
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, Optional

from examsplit.splitter.config import SplitConfig
from examsplit.splitter.detection.client import DetectionClient
from examsplit.splitter.pipeline import DocumentResult, process_document

from .scheduler import BatchJob, JobRunner


def make_document_runner(
    detector: DetectionClient,
    config: Optional[SplitConfig] = None,
    *,
    call_log_path: Optional[Path] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> JobRunner:
    """
    Return a runner that splits job.source_path into job.output_path.

    The detector is shared by every worker thread.
    """
    config = config or SplitConfig()

    def run(job: BatchJob) -> DocumentResult:
        return process_document(
            job.source_path,
            job.output_path,
            detector,
            config=config,
            call_log_path=call_log_path,
            sleep=sleep,
        )

    return run
