"""
Unit tests for the completion stream adapter, with a mocked provider client.
"""

from types import SimpleNamespace

import httpx
import openai
import pytest

from kb_assistant.core.config import Settings
from kb_assistant.core.errors import ProviderError
from kb_assistant.models.chat import ChatMessage
from kb_assistant.services.completion import CompletionStreamAdapter


def chunk(content, with_choice=True):
    if not with_choice:
        return SimpleNamespace(choices=[])
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class MockStream:
    def __init__(self, chunks, error=None):
        self._chunks = chunks
        self._error = error
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for item in self._chunks:
            yield item
        if self._error is not None:
            raise self._error

    async def close(self):
        self.closed = True


class MockCompletionClient:
    """Mock AsyncOpenAI exposing chat.completions.create."""

    def __init__(self, stream=None, create_error=None):
        self.stream = stream or MockStream([])
        self.create_error = create_error
        self.requests = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **kwargs):
        self.requests.append(kwargs)
        if self.create_error is not None:
            raise self.create_error
        return self.stream


@pytest.fixture
def settings():
    return Settings(llm_api_key="test-key", llm_default_model="llama-3.3-70b")


@pytest.fixture
def messages():
    return [
        ChatMessage(role="system", content="Be brief."),
        ChatMessage(role="user", content="Hi"),
    ]


async def collect(adapter, messages, model=None):
    return [fragment async for fragment in adapter.stream(messages, model)]


@pytest.mark.asyncio
async def test_yields_non_empty_deltas(settings, messages):
    stream = MockStream(
        [chunk("Hel"), chunk(""), chunk(None, with_choice=False), chunk(None), chunk("lo")]
    )
    client = MockCompletionClient(stream)
    adapter = CompletionStreamAdapter(client, settings)

    assert await collect(adapter, messages) == ["Hel", "lo"]
    assert stream.closed is True


@pytest.mark.asyncio
async def test_request_uses_streaming_and_default_model(settings, messages):
    client = MockCompletionClient(MockStream([chunk("x")]))
    adapter = CompletionStreamAdapter(client, settings)

    await collect(adapter, messages)

    request = client.requests[0]
    assert request["stream"] is True
    assert request["model"] == "llama-3.3-70b"
    assert request["temperature"] == settings.llm_temperature
    assert request["max_tokens"] == settings.llm_max_tokens
    assert request["messages"] == [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "Hi"},
    ]


@pytest.mark.asyncio
async def test_explicit_model_is_passed_through(settings, messages):
    client = MockCompletionClient(MockStream([chunk("x")]))
    await collect(CompletionStreamAdapter(client, settings), messages, model="qwen-3-32b")
    assert client.requests[0]["model"] == "qwen-3-32b"


@pytest.mark.asyncio
async def test_request_failure_becomes_provider_error(settings, messages):
    error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.example/v1"))
    adapter = CompletionStreamAdapter(MockCompletionClient(create_error=error), settings)

    with pytest.raises(ProviderError, match="Connection error"):
        await collect(adapter, messages)


@pytest.mark.asyncio
async def test_mid_stream_failure_after_partial_output(settings, messages):
    stream = MockStream([chunk("partial")], error=RuntimeError("socket closed"))
    adapter = CompletionStreamAdapter(MockCompletionClient(stream), settings)

    received = []
    with pytest.raises(ProviderError, match="socket closed"):
        async for fragment in adapter.stream(messages):
            received.append(fragment)

    assert received == ["partial"]
    assert stream.closed is True


@pytest.mark.asyncio
async def test_empty_conversation_is_rejected(settings):
    client = MockCompletionClient()
    with pytest.raises(ValueError):
        await collect(CompletionStreamAdapter(client, settings), [])
    assert client.requests == []


@pytest.mark.asyncio
async def test_consumer_stopping_early_closes_provider_stream(settings, messages):
    stream = MockStream([chunk("a"), chunk("b"), chunk("c")])
    fragments = CompletionStreamAdapter(MockCompletionClient(stream), settings).stream(messages)

    assert await fragments.__anext__() == "a"
    await fragments.aclose()

    assert stream.closed is True


def test_resolve_model(settings):
    assert settings.resolve_model("qwen-3-32b") == "qwen-3-32b"
    assert settings.resolve_model("unknown-model") == "llama-3.3-70b"
    assert settings.resolve_model(None) == "llama-3.3-70b"
