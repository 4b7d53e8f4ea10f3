"""
Multi-document batch processing.

Exports:
    - BatchConfig: Batch settings
    - BatchStateStore, BatchState, FailureRecord: Persisted progress
    - BatchScheduler, BatchJob, BatchReport: Bounded worker pool
    - RoundController, BatchRunResult, StopReason, discover_jobs: Round loop
    - install_interrupt_handler: Two-stage Ctrl+C handling
    - make_document_runner: Pipeline adapter for the scheduler
"""

from .config import BatchConfig
from .interrupts import install_interrupt_handler, make_interrupt_handler
from .rounds import BatchRunResult, RoundController, StopReason, discover_jobs
from .runner import make_document_runner
from .scheduler import BatchJob, BatchReport, BatchScheduler, is_rate_limited
from .state import BatchState, BatchStateStore, FailureRecord

__all__ = [
    "BatchConfig",
    "BatchJob",
    "BatchReport",
    "BatchRunResult",
    "BatchScheduler",
    "BatchState",
    "BatchStateStore",
    "FailureRecord",
    "RoundController",
    "StopReason",
    "discover_jobs",
    "install_interrupt_handler",
    "is_rate_limited",
    "make_document_runner",
    "make_interrupt_handler",
]
