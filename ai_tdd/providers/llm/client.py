"""Backend-independent completion client used by the TDD loop."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional, Sequence

import requests

from ai_tdd.core.errors import GenerationError, UnknownModelError
from ai_tdd.core.utils.constants import DEFAULT_GENERATION_TIMEOUT, DEFAULT_MAX_TOKENS
from ai_tdd.core.utils.logger import get_logger

from .anthropic import AnthropicMessagesClient
from .anthropic import DEFAULT_BASE_URL as ANTHROPIC_DEFAULT_BASE_URL
from .anthropic import MODEL_PREFIXES as ANTHROPIC_PREFIXES
from .base import HTTPChatLLMClient, LLMError, Message, RetryConfig
from .openai import DEFAULT_BASE_URL as OPENAI_DEFAULT_BASE_URL
from .openai import MODEL_PREFIXES as OPENAI_PREFIXES
from .openai import OpenAIChatClient

LOGGER = get_logger(__name__)

_BACKENDS = (
    (OPENAI_PREFIXES, OpenAIChatClient, OPENAI_DEFAULT_BASE_URL),
    (ANTHROPIC_PREFIXES, AnthropicMessagesClient, ANTHROPIC_DEFAULT_BASE_URL),
)


@dataclass(frozen=True)
class ProviderConfig:
    """Model selection and credentials for the completion backend."""

    model: str
    temperature: float = 0.3
    api_key: str = ""

    def __post_init__(self) -> None:
        if not 0.0 <= self.temperature <= 1.0:
            raise ValueError(f"temperature must be between 0 and 1, got {self.temperature}")


def create_backend(
    config: ProviderConfig,
    *,
    timeout: float = DEFAULT_GENERATION_TIMEOUT,
    openai_base_url: str | None = None,
    anthropic_base_url: str | None = None,
    retry_config: RetryConfig | None = None,
) -> HTTPChatLLMClient:
    """Instantiate the backend whose model prefix matches ``config.model``."""
    model = config.model.lower()
    overrides = {
        OpenAIChatClient: openai_base_url,
        AnthropicMessagesClient: anthropic_base_url,
    }
    for prefixes, client_cls, default_base_url in _BACKENDS:
        if model.startswith(prefixes):
            return client_cls(
                api_key=config.api_key,
                model=config.model,
                base_url=overrides[client_cls] or default_base_url,
                timeout=timeout,
                retry_config=retry_config,
            )
    raise UnknownModelError(f"No provider backend for model '{config.model}'")


class ProviderClient:
    """Turn an ordered message sequence into one completion string.

    The backend is selected once per configuration; an unrecognised model is
    only a warning until :meth:`complete` is called.
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        timeout: float = DEFAULT_GENERATION_TIMEOUT,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        openai_base_url: str | None = None,
        anthropic_base_url: str | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._openai_base_url = openai_base_url
        self._anthropic_base_url = anthropic_base_url
        self._retry_config = retry_config
        self._config = config
        self._backend = self._select_backend(config)

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def backend(self) -> Optional[HTTPChatLLMClient]:
        return self._backend

    def configure(self, config: ProviderConfig) -> None:
        """Switch configuration; re-initialises the backend only on change."""
        if config == self._config:
            return
        LOGGER.info("Switching provider model from %s to %s", self._config.model, config.model)
        self._config = config
        self._backend = self._select_backend(config)

    def _select_backend(self, config: ProviderConfig) -> Optional[HTTPChatLLMClient]:
        LOGGER.info("Initializing provider backend for model %s", config.model)
        try:
            backend = create_backend(
                config,
                timeout=self.timeout,
                openai_base_url=self._openai_base_url,
                anthropic_base_url=self._anthropic_base_url,
                retry_config=self._retry_config,
            )
        except UnknownModelError:
            LOGGER.warning("Unknown model type %s; completions will fail until reconfigured", config.model)
            return None
        LOGGER.info("%s backend initialized", backend.provider_name)
        return backend

    def complete(self, messages: Sequence[Message]) -> str:
        if self._backend is None:
            raise GenerationError(f"No AI client initialized for model '{self.config.model}'")

        LOGGER.info(
            "Requesting completion from %s (%d messages, %d chars)",
            self._backend.provider_name,
            len(messages),
            sum(len(message.content) for message in messages),
        )
        started = time.perf_counter()
        try:
            text = self._backend.complete(
                messages,
                temperature=self.config.temperature,
                max_tokens=self.max_tokens,
            )
        except (LLMError, requests.RequestException) as exc:
            LOGGER.error("Completion from %s failed: %s", self._backend.provider_name, exc)
            raise GenerationError(f"Code generation failed: {exc}") from exc

        LOGGER.info(
            "Completion received in %.0fms (%d chars)",
            (time.perf_counter() - started) * 1000,
            len(text),
        )
        return text


__all__ = ["ProviderClient", "ProviderConfig", "create_backend"]
