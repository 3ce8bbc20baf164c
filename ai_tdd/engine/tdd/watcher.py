"""Polling file watcher that reports saves of the test file."""
from __future__ import annotations

import contextvars
import threading
from pathlib import Path
from typing import Callable, Optional

from ai_tdd.core.utils.constants import DEFAULT_WATCH_INTERVAL
from ai_tdd.core.utils.logger import get_logger

LOGGER = get_logger(__name__)


def _signature(path: Path) -> Optional[tuple[int, int]]:
    try:
        stat = path.stat()
    except OSError:
        return None
    return stat.st_mtime_ns, stat.st_size


class FileWatcher:
    """Call ``on_save(path)`` whenever the watched file's mtime or size changes."""

    def __init__(
        self,
        path: Path,
        on_save: Callable[[Path], None],
        *,
        interval: float = DEFAULT_WATCH_INTERVAL,
    ) -> None:
        self.path = Path(path)
        self._on_save = on_save
        self._interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        # Run in a copy of the caller's context so log records keep its correlation id.
        context = contextvars.copy_context()
        self._thread = threading.Thread(
            target=context.run,
            args=(self._poll,),
            name=f"watch:{self.path.name}",
            daemon=True,
        )
        self._thread.start()
        LOGGER.debug("Watching %s every %.2fs", self.path, self._interval)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=self._interval * 4 + 1)
        self._thread = None

    def _poll(self) -> None:
        last = _signature(self.path)
        while not self._stop.wait(self._interval):
            current = _signature(self.path)
            if current is None or current == last:
                continue
            last = current
            LOGGER.debug("Detected save of %s", self.path)
            self._on_save(self.path)


__all__ = ["FileWatcher"]
