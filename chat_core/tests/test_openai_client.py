import asyncio

import httpx
import pytest

from chat_core.domain.exceptions import ApiError, NetworkError, RateLimitError, UpstreamTimeoutError, ValidationError
from chat_core.domain.models import ChatMessage, ChatRequest
from chat_core.providers.azure_openai_client import AzureOpenAIClient
from chat_core.providers.openai_client import OpenAIClient


class SettingsStub:
    openai_api_key = "sk-test-123"
    openai_base_url = "https://api.openai.com/v1"
    azure_openai_endpoint = "https://example.openai.azure.com/"
    azure_openai_api_key = "azure-key-123"
    azure_openai_deployment = "gpt-4o"
    azure_openai_api_version = "2024-06-01"
    http_timeout = 1.0


def _req():
    return ChatRequest(provider="azure_openai", model="chat", messages=[ChatMessage(role="user", content="hi")])


def _patch_client(monkeypatch, status_code=200, body=None, error=None, captured=None):
    class Resp:
        def __init__(self):
            self.status_code = status_code
            self.text = "upstream said no"

        def json(self):
            return body or {}

    class Client:
        def __init__(self, *a, **kw):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def post(self, url, json=None, headers=None, **_):
            if captured is not None:
                captured["url"] = url
                captured["payload"] = json
                captured["headers"] = headers
            if error is not None:
                raise error
            return Resp()

    monkeypatch.setattr("httpx.AsyncClient", Client)


def test_openai_client_parse_basic(monkeypatch):
    body = {
        "choices": [{"message": {"role": "assistant", "content": "ok"}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4},
    }
    _patch_client(monkeypatch, body=body)
    res = asyncio.run(OpenAIClient(SettingsStub()).chat(_req()))
    assert res.text == "ok"
    assert res.usage.total_tokens == 4


def test_openai_client_missing_usage(monkeypatch):
    _patch_client(monkeypatch, body={"choices": [{"message": {"content": "ok"}}]})
    res = asyncio.run(OpenAIClient(SettingsStub()).chat(_req()))
    assert res.usage is None
    assert res.choices[0].message.role == "assistant"


def test_azure_client_endpoint_and_headers(monkeypatch):
    captured = {}
    _patch_client(monkeypatch, body={"choices": []}, captured=captured)
    res = asyncio.run(AzureOpenAIClient(SettingsStub()).chat(_req()))
    assert res.text == ""
    assert captured["url"] == (
        "https://example.openai.azure.com/openai/deployments/gpt-4o/chat/completions?api-version=2024-06-01"
    )
    assert captured["headers"]["api-key"] == "azure-key-123"
    assert captured["payload"]["max_tokens"] == 500
    assert captured["payload"]["top_p"] == 0.95
    assert captured["payload"]["messages"] == [{"role": "user", "content": "hi"}]


def test_rate_limit_maps_to_rate_limit_error(monkeypatch):
    _patch_client(monkeypatch, status_code=429)
    with pytest.raises(RateLimitError):
        asyncio.run(OpenAIClient(SettingsStub()).chat(_req()))


def test_server_error_maps_to_api_error(monkeypatch):
    _patch_client(monkeypatch, status_code=500)
    with pytest.raises(ApiError) as exc_info:
        asyncio.run(OpenAIClient(SettingsStub()).chat(_req()))
    assert exc_info.value.http_status == 500


def test_connect_error_maps_to_network_error(monkeypatch):
    _patch_client(monkeypatch, error=httpx.ConnectError("refused"))
    with pytest.raises(NetworkError):
        asyncio.run(OpenAIClient(SettingsStub()).chat(_req()))


def test_timeout_maps_to_upstream_timeout(monkeypatch):
    _patch_client(monkeypatch, error=httpx.ReadTimeout("slow"))
    with pytest.raises(UpstreamTimeoutError):
        asyncio.run(OpenAIClient(SettingsStub()).chat(_req()))


def test_azure_client_requires_endpoint():
    class NoEndpoint(SettingsStub):
        azure_openai_endpoint = None

    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(AzureOpenAIClient(NoEndpoint()).chat(_req()))
    assert exc_info.value.code == "MISSING_ENDPOINT"


def test_unknown_logical_model_rejected():
    req = ChatRequest(provider="openai", model="nope", messages=[ChatMessage(role="user", content="hi")])
    with pytest.raises(ValidationError):
        asyncio.run(OpenAIClient(SettingsStub()).chat(req))
