"""Exception hierarchy shared by the TDD loop components."""
from __future__ import annotations


class TddError(RuntimeError):
    """Base class for errors surfaced by the TDD loop."""


class ConfigurationError(TddError):
    """Raised for setup problems that can never succeed on retry."""


class UnknownModelError(ConfigurationError):
    """Raised when no provider backend matches the configured model."""


class UnsupportedTestFileError(ConfigurationError):
    """Raised when a test file's extension has no registered test runner."""


class TestRunnerNotFoundError(ConfigurationError):
    """Raised when the test runner executable cannot be located."""

    __test__ = False


class GenerationError(TddError):
    """Raised when the provider fails to produce a completion."""


class TestFileError(TddError):
    """Raised when the test file vanished or cannot be read between cycles."""

    __test__ = False


class ImplementationFileError(TddError):
    """Raised when the implementation file is missing or unreadable."""

    def __init__(self, path: object) -> None:
        self.path = path
        super().__init__(f"Implementation file {path} does not exist or is not accessible")


class PersistenceError(TddError):
    """Raised when run history or a conversation cannot be written."""


__all__ = [
    "ConfigurationError",
    "GenerationError",
    "ImplementationFileError",
    "PersistenceError",
    "TddError",
    "TestFileError",
    "TestRunnerNotFoundError",
    "UnknownModelError",
    "UnsupportedTestFileError",
]
