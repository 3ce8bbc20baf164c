"""Core infrastructure for the TDD loop."""
from __future__ import annotations

from .errors import (
    ConfigurationError,
    GenerationError,
    ImplementationFileError,
    PersistenceError,
    TddError,
    TestRunnerNotFoundError,
    UnknownModelError,
    UnsupportedTestFileError,
)
from .utils import Settings, configure_logging, get_logger, load_settings

__all__ = [
    "ConfigurationError",
    "GenerationError",
    "ImplementationFileError",
    "PersistenceError",
    "Settings",
    "TddError",
    "TestRunnerNotFoundError",
    "UnknownModelError",
    "UnsupportedTestFileError",
    "configure_logging",
    "get_logger",
    "load_settings",
]
