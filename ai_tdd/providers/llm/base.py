"""Abstractions for LLM providers."""
from __future__ import annotations

import json
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Protocol, Sequence

import requests


@dataclass(frozen=True)
class Message:
    role: str
    content: str

    def to_payload(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 1
    initial_delay: float = 0.5
    max_delay: float = 5.0
    backoff_multiplier: float = 2.0
    jitter_ratio: float = 0.1
    retryable_status_codes: set[int] = field(default_factory=lambda: {429, 500, 502, 503, 504})


class LLMError(RuntimeError):
    """Raised when an LLM provider encounters an error."""


class LLMRateLimitError(LLMError):
    """Raised when the provider reports a rate limit condition."""


class LLMTimeoutError(LLMError):
    """Raised when a request times out before the provider responds."""


class LLMConnectionError(LLMError):
    """Raised when the client is unable to reach the provider."""


class LLMResponseError(LLMError):
    """Raised when the provider returns a malformed or error response."""


class LLMRetryExhaustedError(LLMError):
    """Raised when retry attempts are exhausted without success."""


class LLMClient(Protocol):
    """Protocol for chat-completion capable LLM clients."""

    model: str

    def complete(
        self,
        messages: Sequence[Message],
        temperature: float = 0.3,
        max_tokens: int | None = None,
    ) -> str:
        """Complete a chat conversation."""
        ...


class HTTPChatLLMClient(LLMClient, ABC):
    """Common HTTP/JSON client functionality shared by provider implementations."""

    _COMPLETIONS_PATH = "/chat/completions"

    def __init__(
        self,
        provider_name: str,
        api_key: str,
        model: str,
        *,
        base_url: str,
        timeout: float = 60.0,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._provider_name = provider_name
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()

    @property
    def provider_name(self) -> str:
        return self._provider_name

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------

    def _request_url(self) -> str:
        return f"{self.base_url}{self._COMPLETIONS_PATH}"

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _error_from_status(self, status_code: int, response_text: str) -> LLMError:
        message = f"{self._provider_name} API error {status_code}: {response_text}"
        if status_code == 429:
            return LLMRateLimitError(message)
        if status_code in {408, 504}:
            return LLMTimeoutError(message)
        if status_code in {502, 503}:
            return LLMConnectionError(message)
        return LLMResponseError(message)

    def _calculate_delay(self, attempt: int) -> float:
        base_delay = min(
            self.retry_config.max_delay,
            self.retry_config.initial_delay * (self.retry_config.backoff_multiplier ** (attempt - 1)),
        )
        if base_delay <= 0:
            return 0.0
        jitter_ratio = max(0.0, self.retry_config.jitter_ratio)
        if jitter_ratio == 0:
            return base_delay
        jitter_span = base_delay * jitter_ratio
        return random.uniform(max(0.0, base_delay - jitter_span), base_delay + jitter_span)

    def _wrap_transport_error(self, exc: Exception) -> LLMError:
        if isinstance(exc, requests.Timeout):
            return LLMTimeoutError(f"{self._provider_name} request timed out after {self.timeout}s: {exc}")
        return LLMConnectionError(f"{self._provider_name} connection failed: {exc}")

    def _decode_json(self, response: requests.Response) -> Dict[str, Any]:
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise LLMResponseError(f"Invalid JSON response from {self._provider_name} API") from exc

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = self._request_url()
        headers = self._build_headers()
        body = json.dumps(payload)
        last_error: LLMError | None = None

        for attempt in range(1, self.retry_config.max_retries + 1):
            try:
                response = requests.post(url, headers=headers, data=body, timeout=self.timeout)

                if response.status_code in self.retry_config.retryable_status_codes:
                    error = self._error_from_status(response.status_code, response.text)
                    last_error = error
                    if attempt == self.retry_config.max_retries:
                        raise LLMRetryExhaustedError(
                            f"{self._provider_name} request exhausted retries: {error}"
                        ) from error
                    time.sleep(self._calculate_delay(attempt))
                    continue

                if response.status_code >= 400:
                    raise self._error_from_status(response.status_code, response.text)

                return self._decode_json(response)

            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = self._wrap_transport_error(exc)
                if attempt == self.retry_config.max_retries:
                    raise last_error from exc
                time.sleep(self._calculate_delay(attempt))
            except requests.RequestException as exc:
                raise LLMResponseError(f"{self._provider_name} request failed: {exc}") from exc

        raise LLMRetryExhaustedError(
            f"{self._provider_name} request failed after {self.retry_config.max_retries} attempts: {last_error}"
        )

    # ------------------------------------------------------------------
    # High level API
    # ------------------------------------------------------------------

    @abstractmethod
    def _prepare_payload(
        self,
        messages: Sequence[Message],
        temperature: float,
        max_tokens: int | None,
    ) -> Dict[str, Any]:
        """Return the provider-specific request payload."""

    @abstractmethod
    def _extract_text(self, data: Dict[str, Any]) -> str:
        """Return the completion text from a decoded response body."""

    def complete(
        self,
        messages: Sequence[Message],
        temperature: float = 0.3,
        max_tokens: int | None = None,
    ) -> str:
        payload = self._prepare_payload(messages, temperature, max_tokens)
        data = self._post(payload)
        return self._extract_text(data).strip()


__all__ = [
    "Message",
    "LLMClient",
    "HTTPChatLLMClient",
    "LLMError",
    "LLMRateLimitError",
    "LLMTimeoutError",
    "LLMConnectionError",
    "LLMResponseError",
    "LLMRetryExhaustedError",
    "RetryConfig",
]
