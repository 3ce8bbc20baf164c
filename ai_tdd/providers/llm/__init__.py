"""Factory helpers for LLM providers."""
from __future__ import annotations

from .anthropic import AnthropicMessagesClient
from .anthropic import DEFAULT_BASE_URL as ANTHROPIC_DEFAULT_BASE_URL
from .base import (
    HTTPChatLLMClient,
    LLMClient,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    LLMResponseError,
    LLMRetryExhaustedError,
    LLMTimeoutError,
    Message,
    RetryConfig,
)
from .client import ProviderClient, ProviderConfig, create_backend
from .openai import DEFAULT_BASE_URL as OPENAI_DEFAULT_BASE_URL
from .openai import OpenAIChatClient

__all__ = [
    "ANTHROPIC_DEFAULT_BASE_URL",
    "AnthropicMessagesClient",
    "HTTPChatLLMClient",
    "LLMClient",
    "LLMConnectionError",
    "LLMError",
    "LLMRateLimitError",
    "LLMResponseError",
    "LLMRetryExhaustedError",
    "LLMTimeoutError",
    "Message",
    "OPENAI_DEFAULT_BASE_URL",
    "OpenAIChatClient",
    "ProviderClient",
    "ProviderConfig",
    "RetryConfig",
    "create_backend",
]
