"""
Module: splitter.file_locking

Purpose:
    Cross-platform file locking utilities for state and log files shared by
    concurrent document jobs (threads in this process, or other processes
    working on the same folders). Uses portalocker for Mac, Windows, and
    Linux compatibility.

Key Functions:
    - locked_file: Context manager for locked file access
    - locked_append_jsonl: Append to JSONL with exclusive lock
    - locked_read_modify_write_json: Read-modify-write JSON with lock
    - locked_read_json: Read JSON under a shared lock
    - lock_path_for: Sidecar lock file for atomically replaced JSON

Dependencies:
    - portalocker: Cross-platform file locking

Used By:
    - splitter.call_log: Detection call log appends
    - batch.state: Batch state read-modify-write
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Generator

import portalocker

logger = logging.getLogger(__name__)


@contextmanager
def locked_file(
    path: Path,
    mode: str = 'r',
    lock_type: int = portalocker.LOCK_EX,
) -> Generator:
    """
    Context manager for cross-platform locked file access.

    Args:
        path: Path to file.
        mode: File open mode ('r', 'w', 'a', etc.).
        lock_type: Lock type (LOCK_EX for exclusive, LOCK_SH for shared).

    Yields:
        Open file handle with lock held.

    Example:
        >>> with locked_file(path, 'a') as f:
        ...     f.write('data')
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    # Ensure file exists for read modes
    if 'r' in mode and not path.exists():
        path.touch()

    with open(path, mode, encoding='utf-8') as f:
        portalocker.lock(f, lock_type)
        try:
            yield f
        finally:
            portalocker.unlock(f)


def locked_append_jsonl(path: Path, record: Dict[str, Any]) -> None:
    """
    Append a record to JSONL file with exclusive lock.

    Args:
        path: Path to JSONL file.
        record: Dictionary to append as JSON line.
    """
    with locked_file(path, 'a', portalocker.LOCK_EX) as f:
        f.write(json.dumps(record, ensure_ascii=False) + '\n')

    logger.debug(f"Appended record to {path.name}")


def lock_path_for(path: Path) -> Path:
    """Sidecar lock file guarding a JSON file that is replaced on write."""
    return path.with_name(path.name + '.lock')


def _decode_json(
    content: str,
    path: Path,
    default: Callable[[], Dict[str, Any]],
) -> Dict[str, Any]:
    if not content.strip():
        return default()
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring unreadable JSON in {path.name}: {e}")
        return default()


def _write_json_atomic(path: Path, data: Dict[str, Any]) -> None:
    """Write JSON to a temp file beside path, then replace path with it."""
    with tempfile.NamedTemporaryFile(
        mode='w',
        encoding='utf-8',
        prefix=f'.{path.name}.',
        suffix='.tmp',
        dir=path.parent,
        delete=False,
    ) as f:
        temp_path = Path(f.name)
        try:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        except Exception:
            f.close()
            temp_path.unlink(missing_ok=True)
            raise

    temp_path.replace(path)


def locked_read_json(
    path: Path,
    default: Callable[[], Dict[str, Any]] = dict,
) -> Dict[str, Any]:
    """
    Read a JSON file under a shared lock.

    A missing, empty or undecodable file yields default().
    """
    if not path.exists():
        return default()
    with locked_file(lock_path_for(path), 'a', portalocker.LOCK_SH):
        try:
            content = path.read_text(encoding='utf-8')
        except FileNotFoundError:
            return default()
    return _decode_json(content, path, default)


def locked_read_modify_write_json(
    path: Path,
    modifier: Callable[[Dict[str, Any]], Dict[str, Any]],
    default: Callable[[], Dict[str, Any]] = dict,
) -> Dict[str, Any]:
    """
    Read JSON, apply modifier, write back - all with exclusive lock.

    The new content is written to a temp file and moved over path, so the
    file on disk is always either the old or the new document. Content that
    cannot be decoded is treated as default().

    Args:
        path: Path to JSON file.
        modifier: Function that takes existing data, returns modified data.
        default: Factory for default data if file doesn't exist.

    Returns:
        The modified data that was written.

    Example:
        >>> def mark_done(state):
        ...     state['completed'].append('exams/a.pdf')
        ...     return state
        >>> locked_read_modify_write_json(state_path, mark_done)
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    with locked_file(lock_path_for(path), 'a', portalocker.LOCK_EX):
        content = path.read_text(encoding='utf-8') if path.exists() else ''
        existing = _decode_json(content, path, default)

        modified = modifier(existing)

        _write_json_atomic(path, modified)
        return modified
