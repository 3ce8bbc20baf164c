"""Outbound status events for UI front ends."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, List

from ai_tdd.core.utils.logger import get_logger

LOGGER = get_logger(__name__)


class EventType(str, Enum):
    CODE_GENERATION_STARTED = "code_generation_started"
    CODE_GENERATION_COMPLETED = "code_generation_completed"
    CODE_GENERATION_FAILED = "code_generation_failed"
    TEST_STARTED = "test_started"
    TEST_PASSED = "test_passed"
    TEST_FAILED = "test_failed"
    PAUSE_TOGGLED = "pause_toggled"
    CYCLE_ABORTED = "cycle_aborted"
    SESSION_PASSED = "session_passed"
    SESSION_EXHAUSTED = "session_exhausted"
    SESSION_STOPPED = "session_stopped"


@dataclass(frozen=True)
class StatusEvent:
    """Event carrying enough data (code, output, errors) to render history."""

    type: EventType
    session_id: str
    payload: Dict[str, Any] = field(default_factory=dict)


Listener = Callable[[StatusEvent], None]


class EventBus:
    """Synchronous fan-out of status events to registered listeners."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._lock = RLock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; the returned callable unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: StatusEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        LOGGER.debug("Publishing %s to %d listeners", event.type.value, len(listeners))
        for listener in listeners:
            listener(event)


__all__ = ["EventBus", "EventType", "Listener", "StatusEvent"]
