"""Unit tests for the upstream LLM stream client."""

import json

import httpx
import pytest

from toolgate.configuration.generation import GenerationOverrides
from toolgate.domain.conversation import ConversationMessage
from toolgate.domain.events import StreamEventType
from toolgate.domain.exceptions import (
    CircuitOpenError,
    RetryExhaustedError,
    UpstreamConnectionError,
)
from toolgate.infrastructure.llm.stream_client import LLMStreamClient, extract_delta_text
from toolgate.infrastructure.resilience import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    RetryOptions,
)

MESSAGES = [ConversationMessage.user("hi")]


def delta_frame(text: str) -> str:
    return json.dumps({"choices": [{"delta": {"content": text}}]})


def sse_body(*payloads: str) -> bytes:
    return "".join(f"data: {payload}\n\n" for payload in payloads).encode()


async def no_sleep(delay: float) -> None:
    return None


class Upstream:
    """MockTransport handler that records requests and replays responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    def body(self, index: int = 0) -> dict:
        return json.loads(self.requests[index].content)


def make_client(upstream, max_retries=0, failure_threshold=3):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    breaker = CircuitBreaker(
        "llm", CircuitBreakerConfig(failure_threshold=failure_threshold, recovery_timeout=60)
    )
    return LLMStreamClient(
        http_client,
        base_url="http://llm.test/",
        model="test-model",
        circuit_breaker=breaker,
        retry_options=RetryOptions(max_retries=max_retries, base_delay=0, max_delay=0),
        sleep=no_sleep,
    )


async def collect(iterator):
    return [item async for item in iterator]


class TestExtractDeltaText:
    """Tests for extract_delta_text."""

    def test_delta_content(self):
        assert extract_delta_text(delta_frame("Hel")) == "Hel"

    def test_message_content(self):
        payload = json.dumps({"choices": [{"message": {"content": "whole"}}]})

        assert extract_delta_text(payload) == "whole"

    def test_malformed_frames(self):
        assert extract_delta_text("{not json") == ""
        assert extract_delta_text('{"choices": []}') == ""
        assert extract_delta_text('{"choices": [{"delta": {}}]}') == ""


class TestStreamDeltas:
    """Tests for LLMStreamClient.stream_deltas."""

    @pytest.mark.asyncio
    async def test_yields_deltas_until_done(self):
        upstream = Upstream(
            httpx.Response(
                200,
                content=sse_body(delta_frame("Hel"), delta_frame("lo"), "[DONE]", delta_frame("!")),
            )
        )
        client = make_client(upstream)

        assert await collect(client.stream_deltas(MESSAGES)) == ["Hel", "lo"]

    @pytest.mark.asyncio
    async def test_request_body(self):
        upstream = Upstream(httpx.Response(200, content=sse_body("[DONE]")))
        client = make_client(upstream)

        await collect(client.stream_deltas(MESSAGES, GenerationOverrides(temperature=0.2)))

        assert str(upstream.requests[0].url) == "http://llm.test/v1/chat/completions"
        assert upstream.body() == {
            "model": "test-model",
            "messages": [{"role": "user", "content": "hi"}],
            "stream": True,
            "temperature": 0.2,
        }

    @pytest.mark.asyncio
    async def test_skips_comments_and_malformed_frames(self):
        body = b": keep-alive\n\ndata: {broken\n\n" + sse_body(delta_frame("ok"), "[DONE]")
        client = make_client(Upstream(httpx.Response(200, content=body)))

        assert await collect(client.stream_deltas(MESSAGES)) == ["ok"]

    @pytest.mark.asyncio
    async def test_stream_without_done_marker_still_ends(self):
        client = make_client(Upstream(httpx.Response(200, content=sse_body(delta_frame("a")))))

        assert await collect(client.stream_deltas(MESSAGES)) == ["a"]

    @pytest.mark.asyncio
    async def test_empty_body_raises(self):
        client = make_client(Upstream(httpx.Response(200, content=b"")))

        with pytest.raises(UpstreamConnectionError, match="No response stream"):
            await collect(client.stream_deltas(MESSAGES))

    @pytest.mark.asyncio
    async def test_non_2xx_is_retried_then_exhausted(self):
        upstream = Upstream(httpx.Response(500))
        client = make_client(upstream, max_retries=2)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await collect(client.stream_deltas(MESSAGES))

        assert len(upstream.requests) == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, UpstreamConnectionError)
        assert client.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self):
        upstream = Upstream(
            httpx.Response(503),
            httpx.Response(200, content=sse_body(delta_frame("fine"), "[DONE]")),
        )
        client = make_client(upstream, max_retries=1)

        assert await collect(client.stream_deltas(MESSAGES)) == ["fine"]
        assert client.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_open_breaker_rejects_without_request(self):
        upstream = Upstream(httpx.Response(500))
        client = make_client(upstream, failure_threshold=1)

        with pytest.raises(RetryExhaustedError):
            await collect(client.stream_deltas(MESSAGES))
        assert client.circuit_breaker.state == CircuitState.OPEN

        with pytest.raises(CircuitOpenError):
            await collect(client.stream_deltas(MESSAGES))
        assert len(upstream.requests) == 1

    @pytest.mark.asyncio
    async def test_network_error_wrapped(self):
        upstream = Upstream(httpx.ConnectError("refused"))
        client = make_client(upstream)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await collect(client.stream_deltas(MESSAGES))

        assert "Network error" in str(exc_info.value.last_error)


class TestStream:
    """Tests for the normalized event stream."""

    @pytest.mark.asyncio
    async def test_split_action_becomes_action_event(self):
        body = sse_body(
            delta_frame('{"action": "list'),
            delta_frame('Files", "params": {"path": "."}}'),
            "[DONE]",
        )
        client = make_client(Upstream(httpx.Response(200, content=body)))

        events = await collect(client.stream(MESSAGES))

        assert [e.to_dict() for e in events] == [
            {"type": "action", "data": {"action": "listFiles", "params": {"path": "."}}},
            {"type": "done"},
        ]

    @pytest.mark.asyncio
    async def test_action_started_in_same_delta_as_previous_one(self):
        body = sse_body(
            delta_frame('{"action":"search","params":{"query":"cows"}}{"action":"wri'),
            delta_frame('teFile","params":{"path":"cows.txt","content":"..."}}'),
            "[DONE]",
        )
        client = make_client(Upstream(httpx.Response(200, content=body)))

        events = await collect(client.stream(MESSAGES))

        assert [e.to_dict() for e in events] == [
            {"type": "action", "data": {"action": "search", "params": {"query": "cows"}}},
            {
                "type": "action",
                "data": {"action": "writeFile", "params": {"path": "cows.txt", "content": "..."}},
            },
            {"type": "done"},
        ]

    @pytest.mark.asyncio
    async def test_plain_text_becomes_chunk(self):
        body = sse_body(delta_frame("Hello "), delta_frame("world"), "[DONE]")
        client = make_client(Upstream(httpx.Response(200, content=body)))

        events = await collect(client.stream(MESSAGES))

        assert [e.to_dict() for e in events] == [
            {"type": "chunk", "data": "Hello world"},
            {"type": "done"},
        ]

    @pytest.mark.asyncio
    async def test_failure_becomes_error_then_done(self):
        client = make_client(Upstream(httpx.Response(500)))

        events = await collect(client.stream(MESSAGES))

        assert [e.type for e in events] == [StreamEventType.ERROR, StreamEventType.DONE]
        assert "Service temporarily unavailable" in events[0].error


class TestComplete:
    """Tests for non-streaming completion and model listing."""

    @pytest.mark.asyncio
    async def test_complete_returns_payload(self):
        payload = {"choices": [{"message": {"role": "assistant", "content": "hi"}}]}
        upstream = Upstream(httpx.Response(200, json=payload))
        client = make_client(upstream)

        assert await client.complete(MESSAGES) == payload
        assert upstream.body()["stream"] is False

    @pytest.mark.asyncio
    async def test_complete_invalid_json(self):
        client = make_client(Upstream(httpx.Response(200, content=b"<html>")))

        with pytest.raises(UpstreamConnectionError, match="Invalid JSON"):
            await client.complete(MESSAGES)

    @pytest.mark.asyncio
    async def test_list_models(self):
        upstream = Upstream(
            httpx.Response(200, json={"data": [{"id": "test-model"}, {"id": "other"}, {}]})
        )
        client = make_client(upstream)

        assert await client.list_models() == ["test-model", "other"]
        assert str(upstream.requests[0].url) == "http://llm.test/v1/models"

    @pytest.mark.asyncio
    async def test_validate_model(self):
        present = make_client(Upstream(httpx.Response(200, json={"data": [{"id": "test-model"}]})))
        missing = make_client(Upstream(httpx.Response(200, json={"data": [{"id": "other"}]})))
        down = make_client(Upstream(httpx.ConnectError("refused")))

        assert await present.validate_model() is True
        assert await missing.validate_model() is False
        assert await down.validate_model() is False
