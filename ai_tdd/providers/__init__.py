"""External service provider integrations."""
from __future__ import annotations

from . import llm
from .llm import (
    LLMError,
    Message,
    ProviderClient,
    ProviderConfig,
    RetryConfig,
    create_backend,
)

__all__ = [
    "LLMError",
    "Message",
    "ProviderClient",
    "ProviderConfig",
    "RetryConfig",
    "create_backend",
    "llm",
]
