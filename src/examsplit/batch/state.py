"""
Module: batch.state

Purpose:
    Persisted progress of a batch run. The state file is the one resource
    shared by every concurrent document job, so each update is a full
    read-modify-write done under a process-wide mutex and an exclusive
    file lock, landing on disk through an atomic replace. A file that cannot
    be decoded (for example after a forced exit) counts as an empty state.

    File format:
        {
          "completed": ["exams/a.pdf"],
          "failed": {
            "exams/b.pdf": {"attempts": 3, "lastError": "...", "lastAttemptTime": "..."}
          }
        }

Key Classes:
    - FailureRecord: Last failure of one document
    - BatchState: Snapshot of the state file
    - BatchStateStore: Serialized writer for the state file

Dependencies:
    - splitter.file_locking: portalocker-backed JSON read-modify-write

Used By:
    - batch.scheduler: Records every attempt outcome
    - batch.rounds: Loads on start, clears on full success
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from examsplit.splitter.file_locking import (
    lock_path_for,
    locked_read_json,
    locked_read_modify_write_json,
)

logger = logging.getLogger(__name__)


def _empty_state() -> Dict[str, Any]:
    return {"completed": [], "failed": {}}


@dataclass(frozen=True, slots=True)
class FailureRecord:
    """Most recent failure of a document."""
    attempts: int
    last_error: str
    last_attempt_time: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempts": self.attempts,
            "lastError": self.last_error,
            "lastAttemptTime": self.last_attempt_time,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FailureRecord":
        return cls(
            attempts=int(data.get("attempts", 0)),
            last_error=str(data.get("lastError", "")),
            last_attempt_time=str(data.get("lastAttemptTime", "")),
        )


@dataclass
class BatchState:
    """
    Snapshot of the batch state file.

    Attributes:
        completed: Source paths that produced an archive, in completion order.
        failed: Source path -> latest failure, for documents not yet completed.
    """
    completed: List[str] = field(default_factory=list)
    failed: Dict[str, FailureRecord] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completed": list(self.completed),
            "failed": {path: record.to_dict() for path, record in self.failed.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BatchState":
        return cls(
            completed=[str(p) for p in data.get("completed", [])],
            failed={
                str(path): FailureRecord.from_dict(record)
                for path, record in data.get("failed", {}).items()
            },
        )


def _normalize(data: Any) -> Dict[str, Any]:
    """Coerce whatever was on disk into the expected shape."""
    if not isinstance(data, dict):
        data = {}
    if not isinstance(data.get("completed"), list):
        data["completed"] = []
    if not isinstance(data.get("failed"), dict):
        data["failed"] = {}
    return data


class BatchStateStore:
    """
    Single-writer handle on the batch state file.

    Every mutation re-reads the file, applies the change and writes it back
    while holding both an in-process lock and an exclusive file lock, so
    concurrent jobs never lose each other's updates.

    Example:
        >>> store = BatchStateStore(Path(".batch-state.json"))
        >>> store.record_failure("exams/b.pdf", 1, "timeout")
        >>> store.load().failed["exams/b.pdf"].attempts
        1
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> BatchState:
        """Read the current state; a missing or unreadable file is an empty state."""
        with self._lock:
            data = locked_read_json(self.path, _empty_state)
        return BatchState.from_dict(_normalize(data))

    def _update(self, modifier) -> BatchState:
        def apply(data: Dict[str, Any]) -> Dict[str, Any]:
            return modifier(_normalize(data))

        with self._lock:
            written = locked_read_modify_write_json(self.path, apply, _empty_state)
        return BatchState.from_dict(written)

    def record_success(self, source: str) -> BatchState:
        """Mark a document completed and drop any failure record for it."""
        def modify(data: Dict[str, Any]) -> Dict[str, Any]:
            if source not in data["completed"]:
                data["completed"].append(source)
            data["failed"].pop(source, None)
            return data

        logger.debug(f"State: completed {source}")
        return self._update(modify)

    def record_failure(
        self,
        source: str,
        attempts: int,
        error: str,
        when: Optional[datetime] = None,
    ) -> BatchState:
        """Record the latest failed attempt of a document."""
        when = when or datetime.now(timezone.utc)
        record = FailureRecord(attempts, error, when.isoformat())

        def modify(data: Dict[str, Any]) -> Dict[str, Any]:
            data["failed"][source] = record.to_dict()
            return data

        logger.debug(f"State: {source} failed attempt {attempts}")
        return self._update(modify)

    def clear(self) -> bool:
        """
        Delete the state file.

        Returns:
            True if a file was removed.
        """
        with self._lock:
            lock_path_for(self.path).unlink(missing_ok=True)
            if not self.path.exists():
                return False
            self.path.unlink()
        logger.info(f"Removed batch state file {self.path}")
        return True
