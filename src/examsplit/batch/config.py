"""
Module: batch.config

Purpose:
    Configuration for multi-document batch runs.

Key Classes:
    - BatchConfig: Folders, concurrency, retry and round limits

Used By:
    - batch.rounds: RoundController settings
    - cli: Built from command-line arguments
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class BatchConfig:
    """
    Settings for one batch run.

    Attributes:
        input_dir: Folder scanned for *.pdf files.
        output_dir: Folder receiving one {stem}.zip per document.
        concurrency: Maximum documents in flight at once.
        max_retries: Attempts per document per round.
        force: Reprocess documents whose archive already exists.
        max_rounds: Upper bound on scheduler passes.
        state_path: Persisted BatchState JSON file.
        rate_limit_factor: Backoff multiplier when a failure was rate limited.
    """
    input_dir: Path = Path("exams")
    output_dir: Path = Path("output")
    concurrency: int = 5
    max_retries: int = 3
    force: bool = False
    max_rounds: int = 5
    state_path: Path = Path(".batch-state.json")
    rate_limit_factor: float = 2.0

    def __post_init__(self):
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.max_rounds < 1:
            raise ValueError(f"max_rounds must be >= 1, got {self.max_rounds}")
