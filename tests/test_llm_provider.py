import logging

import pytest
import requests

from ai_tdd.core.errors import GenerationError, UnknownModelError
from ai_tdd.providers.llm import ProviderClient, ProviderConfig, create_backend
from ai_tdd.providers.llm.anthropic import AnthropicMessagesClient
from ai_tdd.providers.llm.base import (
    LLMError,
    LLMRateLimitError,
    LLMResponseError,
    LLMRetryExhaustedError,
    Message,
    RetryConfig,
)
from ai_tdd.providers.llm.openai import OpenAIChatClient


CONVERSATION = [
    Message(role="system", content="You only write code."),
    Message(role="user", content="This is the test file content"),
    Message(role="assistant", content="export const a = 1;"),
]


class _FakeResponse:
    def __init__(self, status_code, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        return self._body


def test_openai_payload_keeps_system_role_for_gpt(monkeypatch):
    client = OpenAIChatClient(api_key="key", model="gpt-4")
    captured = {}

    def fake_post(payload):
        captured.update(payload)
        return {"choices": [{"message": {"content": "  const x = 1;\n"}}]}

    monkeypatch.setattr(client, "_post", fake_post)

    text = client.complete(CONVERSATION, temperature=0.2, max_tokens=100)

    assert text == "const x = 1;"
    assert captured["model"] == "gpt-4"
    assert captured["temperature"] == 0.2
    assert captured["max_tokens"] == 100
    assert [m["role"] for m in captured["messages"]] == ["system", "user", "assistant"]


@pytest.mark.parametrize("model", ["o1-mini", "o3", "o4-mini"])
def test_openai_reasoning_models_use_developer_role(monkeypatch, model):
    client = OpenAIChatClient(api_key="key", model=model)
    captured = {}

    def fake_post(payload):
        captured.update(payload)
        return {"choices": [{"message": {"content": "ok"}}]}

    monkeypatch.setattr(client, "_post", fake_post)
    client.complete(CONVERSATION, temperature=0.3, max_tokens=4096)

    assert captured["messages"][0] == {"role": "developer", "content": "You only write code."}
    assert captured["messages"][1]["role"] == "user"
    assert "temperature" not in captured
    assert "max_tokens" not in captured
    assert captured["max_completion_tokens"] == 4096


def test_openai_rejects_unexpected_response_shape(monkeypatch):
    client = OpenAIChatClient(api_key="key", model="gpt-4o")
    monkeypatch.setattr(client, "_post", lambda payload: {"unexpected": True})

    with pytest.raises(LLMError):
        client.complete(CONVERSATION)


def test_anthropic_moves_system_prompt_to_top_level(monkeypatch):
    client = AnthropicMessagesClient(api_key="key", model="claude-3-5-sonnet")
    captured = {}

    def fake_post(payload):
        captured.update(payload)
        return {"content": [{"type": "text", "text": "const a = "}, {"type": "text", "text": "2;"}]}

    monkeypatch.setattr(client, "_post", fake_post)

    text = client.complete(CONVERSATION, temperature=0.1)

    assert text == "const a = 2;"
    assert captured["system"] == "You only write code."
    assert [m["role"] for m in captured["messages"]] == ["user", "assistant"]
    assert captured["max_tokens"] == 4096


def test_anthropic_requires_system_message(monkeypatch):
    client = AnthropicMessagesClient(api_key="key", model="claude-3-opus")
    monkeypatch.setattr(client, "_post", lambda payload: pytest.fail("request must not be sent"))

    with pytest.raises(LLMError):
        client.complete([Message(role="user", content="hi")])


def test_anthropic_headers():
    client = AnthropicMessagesClient(api_key="secret", model="claude-3-haiku")
    headers = client._build_headers()

    assert headers["x-api-key"] == "secret"
    assert headers["anthropic-version"] == "2023-06-01"
    assert "Authorization" not in headers
    assert client._request_url().endswith("/v1/messages")


def test_error_mapping():
    client = OpenAIChatClient(api_key="key", model="gpt-4")

    assert isinstance(client._error_from_status(429, "slow down"), LLMRateLimitError)
    assert isinstance(client._error_from_status(400, "bad request"), LLMResponseError)


def test_post_retries_retryable_status(monkeypatch):
    client = OpenAIChatClient(
        api_key="key",
        model="gpt-4",
        retry_config=RetryConfig(max_retries=2, initial_delay=0.0),
    )
    responses = [
        _FakeResponse(503, text="unavailable"),
        _FakeResponse(200, body={"choices": [{"message": {"content": "done"}}]}),
    ]
    monkeypatch.setattr("ai_tdd.providers.llm.base.requests.post", lambda *a, **kw: responses.pop(0))

    assert client.complete(CONVERSATION) == "done"
    assert responses == []


def test_post_single_attempt_by_default(monkeypatch):
    client = OpenAIChatClient(api_key="key", model="gpt-4")
    calls = []

    def fake_post(*args, **kwargs):
        calls.append(kwargs)
        return _FakeResponse(500, text="boom")

    monkeypatch.setattr("ai_tdd.providers.llm.base.requests.post", fake_post)

    with pytest.raises(LLMRetryExhaustedError):
        client.complete(CONVERSATION)
    assert len(calls) == 1


def test_create_backend_routes_by_model_prefix():
    assert isinstance(create_backend(ProviderConfig(model="gpt-4")), OpenAIChatClient)
    assert isinstance(create_backend(ProviderConfig(model="chatgpt-4o-latest")), OpenAIChatClient)
    assert isinstance(create_backend(ProviderConfig(model="o3-mini")), OpenAIChatClient)
    assert isinstance(create_backend(ProviderConfig(model="claude-3-opus")), AnthropicMessagesClient)
    with pytest.raises(UnknownModelError):
        create_backend(ProviderConfig(model="llama-3"))


def test_create_backend_applies_base_url_override():
    backend = create_backend(ProviderConfig(model="gpt-4"), openai_base_url="http://localhost:8080/v1/")
    assert backend._request_url() == "http://localhost:8080/v1/chat/completions"


def test_provider_config_validates_temperature():
    with pytest.raises(ValueError):
        ProviderConfig(model="gpt-4", temperature=1.5)


def test_unknown_model_warns_until_complete(caplog):
    with caplog.at_level(logging.WARNING):
        client = ProviderClient(ProviderConfig(model="mistral-large"))

    assert client.backend is None
    assert "Unknown model type mistral-large" in caplog.text
    assert client.config.model == "mistral-large"
    with pytest.raises(GenerationError, match="No AI client initialized"):
        client.complete(CONVERSATION)


def test_configure_is_idempotent_for_equal_config():
    config = ProviderConfig(model="gpt-4", api_key="key")
    client = ProviderClient(config)
    backend = client.backend

    client.configure(ProviderConfig(model="gpt-4", api_key="key"))
    assert client.backend is backend

    client.configure(ProviderConfig(model="claude-3-haiku", api_key="key"))
    assert isinstance(client.backend, AnthropicMessagesClient)
    assert client.config.model == "claude-3-haiku"


def test_complete_passes_settings_and_wraps_errors(monkeypatch):
    client = ProviderClient(ProviderConfig(model="gpt-4", temperature=0.7), max_tokens=512)
    captured = {}

    def fake_complete(messages, temperature, max_tokens):
        captured.update(temperature=temperature, max_tokens=max_tokens, count=len(messages))
        return "code"

    monkeypatch.setattr(client.backend, "complete", fake_complete)
    assert client.complete(CONVERSATION) == "code"
    assert captured == {"temperature": 0.7, "max_tokens": 512, "count": 3}

    def failing_complete(messages, temperature, max_tokens):
        raise requests.ConnectionError("network down")

    monkeypatch.setattr(client.backend, "complete", failing_complete)
    with pytest.raises(GenerationError, match="Code generation failed: network down"):
        client.complete(CONVERSATION)
