"""Append-only run history persisted as JSON."""
from __future__ import annotations

import fcntl
import json
import os
import tempfile
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator

from pydantic import ValidationError

from ai_tdd.core.errors import PersistenceError
from ai_tdd.core.utils.logger import get_logger

from .results import RunHistory, TestResult

LOGGER = get_logger(__name__)

_PROCESS_LOCKS: Dict[Path, threading.Lock] = {}
_PROCESS_LOCKS_GUARD = threading.Lock()


def _process_lock(path: Path) -> threading.Lock:
    with _PROCESS_LOCKS_GUARD:
        return _PROCESS_LOCKS.setdefault(path, threading.Lock())


@contextmanager
def _file_lock(path: Path, timeout: float = 30.0, poll_interval: float = 0.05) -> Iterator[None]:
    """Hold an exclusive advisory lock on ``<path>.lock``."""
    lock_path = path.with_name(path.name + ".lock")
    fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
    try:
        start = time.monotonic()
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() - start >= timeout:
                    raise PersistenceError(f"Timeout waiting for lock on {lock_path} after {timeout}s") from None
                time.sleep(poll_interval)
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)


def write_json_atomic(path: Path, document: object) -> None:
    """Write ``document`` to ``path`` via a temp file and ``os.replace``."""
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(document, handle, indent=2)
        os.replace(temp_path, path)
    except BaseException:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


class RunHistoryStore:
    """Run history file shared by every session in a workspace.

    Appends are serialised with an in-process lock plus an ``fcntl`` lock so
    concurrent sessions (threads or processes) never lose an entry.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._history = RunHistory()

    @property
    def history(self) -> RunHistory:
        return self._history

    def load(self) -> RunHistory:
        """Read the history file; a missing file means an empty history."""
        LOGGER.debug("Loading test history from %s", self.path)
        self._history = self._read()
        LOGGER.debug("Loaded history with %d results", len(self._history.results))
        return self._history

    def append(self, result: TestResult) -> RunHistory:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with _process_lock(self.path.resolve()), _file_lock(self.path):
                current = self._read()
                updated = RunHistory(
                    run_count=current.run_count + 1,
                    results=[*current.results, result],
                )
                write_json_atomic(self.path, updated.to_document())
        except OSError as exc:
            raise PersistenceError(f"Failed to write test history {self.path}: {exc}") from exc
        self._history = updated
        LOGGER.info("Test run %d recorded. Success: %s", updated.run_count, result.success)
        return updated

    def _read(self) -> RunHistory:
        if not self.path.exists():
            return RunHistory()
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                return RunHistory.model_validate(json.load(handle))
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise PersistenceError(f"Failed to load test history {self.path}: {exc}") from exc


__all__ = ["RunHistoryStore", "write_json_atomic"]
