"""OpenAI chat-completions client implementation."""
from __future__ import annotations

from typing import Any, Dict, Sequence

from .base import HTTPChatLLMClient, LLMError, Message, RetryConfig

DEFAULT_BASE_URL = "https://api.openai.com/v1"
MODEL_PREFIXES: tuple[str, ...] = ("gpt", "chatgpt", "o1", "o3", "o4")

# Reasoning model families reject the "system" role and expect "developer" instead.
DEVELOPER_ROLE_PREFIXES: tuple[str, ...] = ("o1", "o3", "o4")


class OpenAIChatClient(HTTPChatLLMClient):
    """Chat-completions client sending a flat list of role-tagged messages."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        retry_config: RetryConfig | None = None,
    ) -> None:
        super().__init__(
            "OpenAI",
            api_key,
            model,
            base_url=base_url,
            timeout=timeout,
            retry_config=retry_config,
        )

    @property
    def is_reasoning_model(self) -> bool:
        return self.model.lower().startswith(DEVELOPER_ROLE_PREFIXES)

    @property
    def system_role(self) -> str:
        return "developer" if self.is_reasoning_model else "system"

    def _prepare_payload(
        self,
        messages: Sequence[Message],
        temperature: float,
        max_tokens: int | None,
    ) -> Dict[str, Any]:
        system_role = self.system_role
        wire_messages = []
        for message in messages:
            entry = message.to_payload()
            if message.role == "system":
                entry["role"] = system_role
            wire_messages.append(entry)

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": wire_messages,
        }
        # Reasoning models reject temperature and take max_completion_tokens.
        if self.is_reasoning_model:
            if max_tokens is not None:
                payload["max_completion_tokens"] = max_tokens
            return payload
        payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        return payload

    def _extract_text(self, data: Dict[str, Any]) -> str:
        try:
            content = data["choices"][0]["message"].get("content")
        except (KeyError, IndexError, AttributeError) as exc:
            raise LLMError(f"Unexpected {self.provider_name} response structure for chat response") from exc
        if not content:
            return ""
        return content if isinstance(content, str) else str(content)


__all__ = ["OpenAIChatClient", "DEFAULT_BASE_URL", "MODEL_PREFIXES"]
