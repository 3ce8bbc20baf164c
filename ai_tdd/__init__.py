"""Public package interface for the ai-tdd loop."""
from __future__ import annotations

from importlib import metadata as _metadata

try:
    __version__ = _metadata.version("ai-tdd")
except _metadata.PackageNotFoundError:  # pragma: no cover - running from a source checkout
    __version__ = "0.1.0"

from . import core, engine, providers, session, testing
from .core import (
    ConfigurationError,
    GenerationError,
    ImplementationFileError,
    PersistenceError,
    Settings,
    TddError,
    configure_logging,
    get_logger,
    load_settings,
)
from .engine.tdd import CycleOutcome, CycleReport, EventBus, EventType, IterationController, StatusEvent
from .providers.llm import Message, ProviderClient, ProviderConfig, RetryConfig
from .session import ConversationContext, MessageKind, Session, SessionState
from .testing import TestResult, TestRunner

__all__ = [
    "__version__",
    "ConfigurationError",
    "ConversationContext",
    "CycleOutcome",
    "CycleReport",
    "EventBus",
    "EventType",
    "GenerationError",
    "ImplementationFileError",
    "IterationController",
    "Message",
    "MessageKind",
    "PersistenceError",
    "ProviderClient",
    "ProviderConfig",
    "RetryConfig",
    "Session",
    "SessionState",
    "Settings",
    "StatusEvent",
    "TddError",
    "TestResult",
    "TestRunner",
    "configure_logging",
    "get_logger",
    "load_settings",
]
