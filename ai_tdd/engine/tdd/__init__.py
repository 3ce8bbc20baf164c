"""Trigger-driven TDD loop."""
from .controller import CYCLE_ERRORS, CompletionProvider, CycleOutcome, CycleReport, IterationController, TestExecutor
from .events import EventBus, EventType, StatusEvent
from .triggers import Trigger, TriggerChannel
from .watcher import FileWatcher

__all__ = [
    "CYCLE_ERRORS",
    "CompletionProvider",
    "CycleOutcome",
    "CycleReport",
    "EventBus",
    "EventType",
    "FileWatcher",
    "IterationController",
    "StatusEvent",
    "TestExecutor",
    "Trigger",
    "TriggerChannel",
]
