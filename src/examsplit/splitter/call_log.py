"""
Module: splitter.call_log

Purpose:
    Persistent record of every detection service call (one JSON line per
    attempt) so failure rates can be inspected after a batch run.

Key Classes:
    - DetectionCallLog: Appends success/failure entries under a file lock

Dependencies:
    - splitter.file_locking: Locked JSONL appends

Used By:
    - splitter.detection.client: Logs each attempt
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .file_locking import locked_append_jsonl

logger = logging.getLogger(__name__)

DEFAULT_CALL_LOG = Path("detection-calls.jsonl")


@dataclass(frozen=True)
class CallLogEntry:
    """One detection attempt."""
    timestamp: str
    pdf_file: str
    page_number: int
    success: bool
    attempt: int
    duration_ms: int
    questions_found: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


class DetectionCallLog:
    """
    JSONL log of detection calls for one PDF.

    Safe to share between concurrent jobs: every append takes an exclusive
    lock on the log file.
    """

    def __init__(self, path: Path, pdf_file: str):
        self.path = path
        self.pdf_file = pdf_file

    def _append(self, entry: CallLogEntry) -> None:
        try:
            locked_append_jsonl(self.path, entry.to_dict())
        except OSError as e:
            logger.warning(f"Could not write detection call log {self.path}: {e}")

    def record_success(self, page_number: int, questions_found: int, duration_ms: int, attempt: int) -> None:
        self._append(CallLogEntry(
            timestamp=_now(),
            pdf_file=self.pdf_file,
            page_number=page_number,
            success=True,
            attempt=attempt,
            duration_ms=duration_ms,
            questions_found=questions_found,
        ))

    def record_failure(self, page_number: int, error: str, duration_ms: int, attempt: int) -> None:
        self._append(CallLogEntry(
            timestamp=_now(),
            pdf_file=self.pdf_file,
            page_number=page_number,
            success=False,
            attempt=attempt,
            duration_ms=duration_ms,
            error=error,
        ))


def read_call_log(path: Path) -> List[CallLogEntry]:
    """Load all entries of a call log (missing file = no entries)."""
    if not path.exists():
        return []
    entries = []
    for line in path.read_text(encoding="utf-8").splitlines():
        if line.strip():
            entries.append(CallLogEntry(**json.loads(line)))
    return entries


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
