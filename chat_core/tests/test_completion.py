import asyncio

import pytest

from chat_core.agents.completion import CompletionClient
from chat_core.domain.conversation import HistoryWindow
from chat_core.domain.exceptions import ApiError, RateLimitError, UpstreamTimeoutError
from chat_core.domain.models import ChatChoice, ChatMessage, ChatResult, ChatUsage


class FakeProvider:
    name = "fake"

    def __init__(self, replies=None, errors=None, delay=0.0, usage=True):
        self.replies = list(replies or ["done"])
        self.errors = list(errors or [])
        self.delay = delay
        self.usage = usage
        self.requests = []

    async def chat(self, req):
        self.requests.append(req)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.errors:
            raise self.errors.pop(0)
        msg = ChatMessage(role="assistant", content=self.replies.pop(0) if len(self.replies) > 1 else self.replies[0])
        usage = ChatUsage(prompt_tokens=5, completion_tokens=2, total_tokens=7) if self.usage else None
        return ChatResult(provider="fake", model=req.model, choices=[ChatChoice(index=0, message=msg)], usage=usage)


def test_complete_returns_first_choice(telemetry):
    provider = FakeProvider(replies=["hello there"])
    client = CompletionClient(provider, telemetry)
    messages = [ChatMessage(role="system", content="sys"), ChatMessage(role="user", content="hi")]

    text = asyncio.run(client.complete(messages))

    assert text == "hello there"
    req = provider.requests[0]
    assert req.messages == messages
    assert (req.max_tokens, req.temperature, req.top_p) == (500, 0.7, 0.95)
    span = telemetry.dependencies[0]
    assert span.type_name == "fake"
    assert span.name == "ChatCompletion/chat"
    assert span.success is True
    assert ("CompletionTokenUsage", {"PromptTokens": 5, "CompletionTokens": 2, "TotalTokens": 7}) in telemetry.events


def test_complete_without_usage_skips_usage_event(telemetry):
    client = CompletionClient(FakeProvider(usage=False), telemetry)
    asyncio.run(client.complete([ChatMessage(role="user", content="hi")]))
    assert "CompletionTokenUsage" not in telemetry.event_names()


def test_complete_failure_propagates_and_marks_span(telemetry):
    provider = FakeProvider(errors=[ApiError(code="API_ERROR", message="boom", http_status=500)])
    client = CompletionClient(provider, telemetry)

    with pytest.raises(ApiError):
        asyncio.run(client.complete([ChatMessage(role="user", content="hi")]))

    assert telemetry.dependencies[0].success is False
    assert isinstance(telemetry.exceptions[0][0], ApiError)


def test_api_error_not_retried(telemetry):
    provider = FakeProvider(errors=[ApiError(code="API_ERROR", message="boom", http_status=500)])
    client = CompletionClient(provider, telemetry, max_attempts=3, retry_backoff=0)
    with pytest.raises(ApiError):
        asyncio.run(client.complete([ChatMessage(role="user", content="hi")]))
    assert len(provider.requests) == 1


def test_rate_limit_retried_within_attempts(telemetry):
    provider = FakeProvider(errors=[RateLimitError(code="RATE_LIMIT", message="slow down", http_status=429)])
    client = CompletionClient(provider, telemetry, max_attempts=2, retry_backoff=0)

    text = asyncio.run(client.complete([ChatMessage(role="user", content="hi")]))

    assert text == "done"
    assert len(provider.requests) == 2


def test_timeout_raises_upstream_timeout(telemetry):
    client = CompletionClient(FakeProvider(delay=0.5), telemetry, timeout=0.01)
    with pytest.raises(UpstreamTimeoutError):
        asyncio.run(client.complete([ChatMessage(role="user", content="hi")]))
    assert telemetry.dependencies[0].success is False


def test_converse_exit_makes_no_call(telemetry):
    provider = FakeProvider()
    client = CompletionClient(provider, telemetry)
    history = HistoryWindow("sys")

    assert asyncio.run(client.converse(history, "exit")) is None
    assert asyncio.run(client.converse(history, "   ")) is None
    assert provider.requests == []
    assert len(history) == 1


def test_converse_records_exchange_and_trims(telemetry):
    provider = FakeProvider(replies=["r"])
    client = CompletionClient(provider, telemetry)
    history = HistoryWindow("sys", max_messages=4)

    for i in range(3):
        assert asyncio.run(client.converse(history, f"q{i}")) == "r"

    snap = history.snapshot()
    assert len(snap) == 4
    assert snap[0].role == "system"
    assert [m.content for m in snap[1:]] == ["r", "q2", "r"]
    # the provider saw the full history of the current turn
    assert [m.content for m in provider.requests[-1].messages] == ["sys", "r", "q1", "r", "q2"]


def test_converse_empty_reply_is_not_exit(telemetry):
    client = CompletionClient(FakeProvider(replies=[""]), telemetry)
    history = HistoryWindow("sys")

    reply = asyncio.run(client.converse(history, "hello"))

    assert reply == ""
    assert reply is not None
    assert len(history) == 3


def test_complete_uses_caller_dependency_name(telemetry):
    client = CompletionClient(FakeProvider(), telemetry)
    asyncio.run(client.complete([ChatMessage(role="user", content="hi")], dependency_name="GetUserIntent"))
    assert [span.name for span in telemetry.dependencies] == ["GetUserIntent"]
