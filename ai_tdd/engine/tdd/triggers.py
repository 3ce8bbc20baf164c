"""Queue of external triggers awaited by the iteration controller."""
from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

_CLOSED = object()


@dataclass(frozen=True)
class Trigger:
    """A file-save event or an explicit run command."""

    source: str
    path: Optional[Path] = None
    received_at: float = field(default_factory=time.time)


class TriggerChannel:
    """Single-consumer channel; closing it releases a blocked :meth:`wait`."""

    def __init__(self) -> None:
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def push(self, trigger: Trigger) -> bool:
        if self._closed.is_set():
            return False
        self._queue.put(trigger)
        return True

    def wait(self, timeout: Optional[float] = None) -> Optional[Trigger]:
        """Block for the next trigger; ``None`` once closed or on timeout."""
        if self._closed.is_set():
            return None
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            return None
        return item  # type: ignore[return-value]

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        self._queue.put(_CLOSED)


__all__ = ["Trigger", "TriggerChannel"]
