"""Anthropic messages API client implementation."""
from __future__ import annotations

from typing import Any, Dict, List, Sequence

from .base import HTTPChatLLMClient, LLMError, Message, RetryConfig

DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
API_VERSION = "2023-06-01"
MODEL_PREFIXES: tuple[str, ...] = ("claude",)
DEFAULT_MAX_TOKENS = 4096


class AnthropicMessagesClient(HTTPChatLLMClient):
    """Messages-API client; the system prompt travels as a top-level field."""

    _COMPLETIONS_PATH = "/messages"

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        retry_config: RetryConfig | None = None,
        api_version: str = API_VERSION,
    ) -> None:
        super().__init__(
            "Anthropic",
            api_key,
            model,
            base_url=base_url,
            timeout=timeout,
            retry_config=retry_config,
        )
        self.api_version = api_version

    def _build_headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
            "Content-Type": "application/json",
        }

    @staticmethod
    def split_system(messages: Sequence[Message]) -> tuple[str, List[Message]]:
        """Separate system content from the conversation turns."""
        system_parts = [message.content for message in messages if message.role == "system"]
        if not system_parts:
            raise LLMError("Anthropic requests require a system message")
        conversation = [message for message in messages if message.role != "system"]
        return "\n\n".join(system_parts), conversation

    def _prepare_payload(
        self,
        messages: Sequence[Message],
        temperature: float,
        max_tokens: int | None,
    ) -> Dict[str, Any]:
        system, conversation = self.split_system(messages)
        return {
            "model": self.model,
            "system": system,
            "messages": [message.to_payload() for message in conversation],
            "temperature": temperature,
            "max_tokens": max_tokens if max_tokens is not None else DEFAULT_MAX_TOKENS,
        }

    def _extract_text(self, data: Dict[str, Any]) -> str:
        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise LLMError(f"Unexpected {self.provider_name} response structure for messages response")
        return "".join(
            str(block.get("text", ""))
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        )


__all__ = ["AnthropicMessagesClient", "DEFAULT_BASE_URL", "MODEL_PREFIXES", "API_VERSION"]
