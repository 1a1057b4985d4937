"""Tests for the classification oracles."""

from types import SimpleNamespace

import httpx
import pytest
from openai import APIConnectionError

from homeledger.errors import OracleUnavailable
from homeledger.integrations.oracle import AnthropicOracle, OpenAIOracle, get_default_oracle


class _Completions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        usage = SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


def _openai_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_openai_oracle_returns_message_content():
    completions = _Completions(content='  [{"index":1,"category":"Gas","confidence":0.9}]\n')
    oracle = OpenAIOracle(client=_openai_client(completions))

    text = oracle.complete("prompt")

    assert text == '[{"index":1,"category":"Gas","confidence":0.9}]'
    assert completions.calls[0]["messages"][1] == {"role": "user", "content": "prompt"}


def test_openai_oracle_wraps_sdk_errors():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    completions = _Completions(error=APIConnectionError(request=request))
    oracle = OpenAIOracle(client=_openai_client(completions))

    with pytest.raises(OracleUnavailable):
        oracle.complete("prompt")


def test_openai_oracle_without_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(OracleUnavailable):
        OpenAIOracle().complete("prompt")


def test_anthropic_oracle_joins_text_blocks():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"content": [{"type": "text", "text": "[]"}]})

    oracle = AnthropicOracle(api_key="test-key", transport=httpx.MockTransport(handler))

    assert oracle.complete("prompt") == "[]"
    assert seen[0].headers["x-api-key"] == "test-key"


def test_anthropic_oracle_http_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(529, json={"error": "overloaded"}))
    oracle = AnthropicOracle(api_key="test-key", transport=transport)

    with pytest.raises(OracleUnavailable):
        oracle.complete("prompt")


def test_default_oracle_follows_provider(monkeypatch):
    monkeypatch.setenv("CATEGORIZATION_LLM_PROVIDER", "anthropic")
    assert isinstance(get_default_oracle(), AnthropicOracle)

    monkeypatch.setenv("CATEGORIZATION_LLM_PROVIDER", "mystery")
    with pytest.raises(OracleUnavailable):
        get_default_oracle()
