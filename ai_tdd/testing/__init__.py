"""Test execution helpers."""
from __future__ import annotations

from .frameworks import LanguageProfile, profile_for
from .history import RunHistoryStore
from .local_tests import TestRunner, verify_implementation_file
from .results import RunHistory, TestResult

__all__ = [
    "LanguageProfile",
    "RunHistory",
    "RunHistoryStore",
    "TestResult",
    "TestRunner",
    "profile_for",
    "verify_implementation_file",
]
