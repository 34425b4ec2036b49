"""
Client for the upstream OpenAI-compatible chat-completion endpoint.

Two layers:
- ``stream_deltas`` is the producer. It opens one streaming request (behind
  the circuit breaker and retry policy) and yields raw text deltas until the
  backend sends ``data: [DONE]``. Closing the generator early closes the
  HTTP response, so a consumer that has seen enough stops the read.
- ``stream`` normalizes those deltas into StreamEvents (chunk / action /
  error / done) by running them through the ActionExtractor. It never
  raises; failures become an ``error`` event.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import aclosing
from typing import Any

import httpx

from toolgate.configuration.generation import GenerationOverrides
from toolgate.domain.conversation import ConversationMessage
from toolgate.domain.events import StreamEvent
from toolgate.domain.exceptions import UpstreamConnectionError, format_user_error
from toolgate.infrastructure.llm.action_extractor import ActionExtractor
from toolgate.infrastructure.resilience import CircuitBreaker, RetryOptions, retry_with_backoff

logger = logging.getLogger(__name__)

SERVICE_NAME = "language model backend"
DONE_MARKER = "[DONE]"


def extract_delta_text(payload: str) -> str:
    """
    Pull the text out of one ``data:`` frame.

    Streaming frames carry ``choices[0].delta.content``; some backends send
    a final ``choices[0].message.content`` instead. Malformed frames are
    logged at debug level and yield no text.
    """
    try:
        frame = json.loads(payload)
    except ValueError as e:
        logger.debug(f"Ignoring malformed upstream frame: {payload[:200]!r} ({e})")
        return ""

    try:
        choice = frame["choices"][0]
    except (KeyError, IndexError, TypeError):
        return ""
    if not isinstance(choice, dict):
        return ""

    for key in ("delta", "message"):
        part = choice.get(key)
        if isinstance(part, dict) and isinstance(part.get("content"), str):
            return part["content"]
    return ""


class LLMStreamClient:
    """Streaming and non-streaming access to the upstream model."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        model: str,
        circuit_breaker: CircuitBreaker,
        retry_options: RetryOptions,
        timeout: float = 30.0,
        health_timeout: float = 5.0,
        production: bool = False,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._http_client = http_client
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._breaker = circuit_breaker
        self._retry_options = retry_options
        self._timeout = timeout
        self._health_timeout = health_timeout
        self._production = production
        self._sleep = sleep

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def model(self) -> str:
        return self._model

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def completions_url(self) -> str:
        return f"{self._base_url}/v1/chat/completions"

    def build_request_body(
        self,
        messages: Sequence[ConversationMessage],
        overrides: GenerationOverrides | None = None,
        stream: bool = True,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self._model,
            "messages": [message.to_dict() for message in messages],
            "stream": stream,
        }
        if overrides is not None:
            body.update(overrides.to_request_fields())
        return body

    async def _send(self, body: dict[str, Any], stream: bool) -> httpx.Response:
        """One attempt: send the request and fail on transport errors or non-2xx."""
        request = self._http_client.build_request(
            "POST", self.completions_url, json=body, timeout=self._timeout
        )
        try:
            response = await self._http_client.send(request, stream=stream)
        except httpx.TimeoutException as e:
            raise UpstreamConnectionError(
                f"Request timeout after {self._timeout}s", SERVICE_NAME, original_error=e
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamConnectionError(
                f"Network error: {e}", SERVICE_NAME, original_error=e
            ) from e

        if not response.is_success:
            if stream:
                await response.aread()
                await response.aclose()
            raise UpstreamConnectionError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                SERVICE_NAME,
                status_code=response.status_code,
            )
        return response

    async def _guarded_send(
        self, body: dict[str, Any], stream: bool, context: str
    ) -> httpx.Response:
        async def attempt() -> httpx.Response:
            return await self._send(body, stream)

        return await self._breaker.call(
            lambda: retry_with_backoff(attempt, self._retry_options, context, sleep=self._sleep)
        )

    async def stream_deltas(
        self,
        messages: Sequence[ConversationMessage],
        overrides: GenerationOverrides | None = None,
    ) -> AsyncIterator[str]:
        """
        Yield raw text deltas from one streaming completion.

        Raises:
            CircuitOpenError: The breaker rejected the call; nothing was sent
            RetryExhaustedError: Every attempt to open the stream failed
            UpstreamConnectionError: The body was empty or the read broke off
        """
        body = self.build_request_body(messages, overrides, stream=True)
        response = await self._guarded_send(body, stream=True, context="LLM stream request")

        try:
            received_lines = 0
            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                received_lines += 1
                if not line.startswith("data:"):
                    continue

                payload = line[len("data:") :].strip()
                if payload == DONE_MARKER:
                    return
                if not payload:
                    continue

                text = extract_delta_text(payload)
                if text:
                    yield text

            if received_lines == 0:
                raise UpstreamConnectionError(
                    f"No response stream from {SERVICE_NAME}", SERVICE_NAME
                )
            logger.warning("Upstream stream ended without [DONE] marker")
        except httpx.HTTPError as e:
            raise UpstreamConnectionError(
                f"Stream interrupted: {e}", SERVICE_NAME, original_error=e
            ) from e
        finally:
            await response.aclose()

    async def stream(
        self,
        messages: Sequence[ConversationMessage],
        overrides: GenerationOverrides | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Normalized event stream for one completion. Always ends with ``done``."""
        extractor = ActionExtractor()
        try:
            async with aclosing(self.stream_deltas(messages, overrides)) as deltas:
                async for delta in deltas:
                    for invocation in extractor.feed(delta):
                        yield StreamEvent.action(invocation)
        except Exception as e:
            logger.error(f"LLM streaming failed: {e}")
            yield StreamEvent.failure(format_user_error(e, self._production))
            yield StreamEvent.done()
            return

        actions, leftover = extractor.finish()
        for invocation in actions:
            yield StreamEvent.action(invocation)
        if leftover:
            yield StreamEvent.chunk(leftover)
        yield StreamEvent.done()

    async def complete(
        self,
        messages: Sequence[ConversationMessage],
        overrides: GenerationOverrides | None = None,
    ) -> dict[str, Any]:
        """Non-streaming completion. Returns the backend's JSON payload."""
        body = self.build_request_body(messages, overrides, stream=False)
        response = await self._guarded_send(body, stream=False, context="LLM completion request")
        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamConnectionError(
                f"Invalid JSON from {SERVICE_NAME}", SERVICE_NAME, original_error=e
            ) from e
        if not isinstance(payload, dict):
            raise UpstreamConnectionError(f"Unexpected payload from {SERVICE_NAME}", SERVICE_NAME)
        return payload

    async def list_models(self) -> list[str]:
        """Model ids advertised by ``GET /v1/models``."""
        url = f"{self._base_url}/v1/models"
        try:
            response = await self._http_client.get(url, timeout=self._health_timeout)
        except httpx.HTTPError as e:
            raise UpstreamConnectionError(
                f"Network error: {e}", SERVICE_NAME, original_error=e
            ) from e
        if not response.is_success:
            raise UpstreamConnectionError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                SERVICE_NAME,
                status_code=response.status_code,
            )

        try:
            data = response.json().get("data") or []
        except (ValueError, AttributeError) as e:
            raise UpstreamConnectionError(
                f"Invalid model list from {SERVICE_NAME}", SERVICE_NAME, original_error=e
            ) from e
        return [str(item.get("id")) for item in data if isinstance(item, dict) and item.get("id")]

    async def validate_model(self) -> bool:
        """Check that the configured model is served. Logs and returns False otherwise."""
        logger.info(f"Validating upstream model: {self._model}")
        try:
            models = await self.list_models()
        except UpstreamConnectionError as e:
            logger.warning(f"Could not validate model, upstream unavailable: {e}")
            return False

        if self._model not in models:
            logger.warning(
                f"Model '{self._model}' not found upstream. Available: {', '.join(models) or 'none'}"
            )
            return False

        logger.info(f"Model '{self._model}' is available")
        return True
