"""CLI package exposing the ai-tdd command entry points."""
from __future__ import annotations

from .commands import cli, history, main, require, run, show_prompt
from .utils import get_provider_client, get_test_runner, render_event
from ai_tdd.core.utils.config import Settings, load_settings

__all__ = [
    "cli",
    "history",
    "main",
    "require",
    "run",
    "show_prompt",
    "get_provider_client",
    "get_test_runner",
    "render_event",
    "load_settings",
    "Settings",
]
