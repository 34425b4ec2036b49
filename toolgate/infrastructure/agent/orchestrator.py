"""
Tool-call orchestration loop.

Drives repeated model turns:

    REQUESTING -> EXTRACTING_ACTIONS -> EXECUTING_TOOLS -> REQUESTING ...
    REQUESTING -> COMPLETE  (no action, ceiling reached, error, client gone)

Each turn streams from the upstream model until the first batch of actions
is extracted, then stops reading that stream. Every action of the batch is
executed in order through the registry, with the tool retry policy, and
the call plus its result are appended to the conversation before the next
turn. A turn counts as one iteration however many actions it carried.

There is no wall-clock deadline. The iteration ceiling is the only bound, so
a slow tool stalls its own loop.
"""

import asyncio
import copy
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import aclosing
from enum import Enum
from typing import Any, Protocol

from toolgate.configuration.generation import GenerationOverrides
from toolgate.domain.conversation import Conversation, ConversationMessage
from toolgate.domain.events import StreamEvent
from toolgate.domain.exceptions import RetryExhaustedError, format_user_error
from toolgate.domain.tool import ToolDescriptor, ToolInvocation
from toolgate.infrastructure.agent.prompts import build_tool_prompt
from toolgate.infrastructure.llm.action_extractor import ActionExtractor, extract_actions
from toolgate.infrastructure.resilience import RetryOptions, retry_with_backoff

logger = logging.getLogger(__name__)

MAX_ITERATIONS_NOTICE = "\n⚠️ **Maximum tool execution iterations reached**\n"

DisconnectCheck = Callable[[], Awaitable[bool]]


# ============================================================================
# Protocol Definitions
# ============================================================================


class DeltaSourceProtocol(Protocol):
    """Upstream model access used by the loop."""

    def stream_deltas(
        self,
        messages: Sequence[ConversationMessage],
        overrides: GenerationOverrides | None = None,
    ) -> AsyncIterator[str]: ...

    async def complete(
        self,
        messages: Sequence[ConversationMessage],
        overrides: GenerationOverrides | None = None,
    ) -> dict[str, Any]: ...


class ToolDispatcherProtocol(Protocol):
    """Tool catalog and dispatch used by the loop."""

    def get_all_tools(self) -> list[ToolDescriptor]: ...

    async def dispatch(self, name: str, params: dict[str, Any]) -> str: ...


class LoopState(str, Enum):
    """State of the orchestration loop."""

    REQUESTING = "requesting"
    EXTRACTING_ACTIONS = "extracting_actions"
    EXECUTING_TOOLS = "executing_tools"
    COMPLETE = "complete"


# ============================================================================
# Orchestrator
# ============================================================================


class ToolOrchestrator:
    """Run conversations that let the model call tools."""

    def __init__(
        self,
        delta_source: DeltaSourceProtocol,
        dispatcher: ToolDispatcherProtocol,
        tool_retry_options: RetryOptions,
        max_iterations: int = 5,
        production: bool = False,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._delta_source = delta_source
        self._dispatcher = dispatcher
        self._tool_retry_options = tool_retry_options
        self._max_iterations = max_iterations
        self._production = production
        self._sleep = sleep

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    def _preamble(self) -> ConversationMessage:
        return ConversationMessage.system(build_tool_prompt(self._dispatcher.get_all_tools()))

    async def run(
        self,
        messages: Sequence[ConversationMessage],
        overrides: GenerationOverrides | None = None,
        max_iterations: int | None = None,
        is_disconnected: DisconnectCheck | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream the events of one orchestrated conversation.

        Args:
            messages: Client conversation (not modified)
            overrides: Generation overrides for every turn
            max_iterations: Turn ceiling, defaults to the configured value
            is_disconnected: Polled before each upstream call and each tool
                call; once it returns True no further work is started

        Yields:
            chunk / action / error events, always followed by a single done
        """
        limit = self._max_iterations if max_iterations is None else max_iterations
        conversation = Conversation(messages)
        iterations = 0

        while True:
            if iterations >= limit:
                logger.warning(f"[Agent] Iteration ceiling reached ({limit})")
                yield StreamEvent.chunk(MAX_ITERATIONS_NOTICE)
                break

            if await self._client_gone(is_disconnected):
                logger.info("[Agent] Client disconnected, stopping before next model call")
                break

            state = LoopState.REQUESTING
            logger.debug(f"[Agent] Iteration {iterations + 1}/{limit}: {state.value}")
            try:
                actions, leftover = await self._request_turn(
                    conversation.with_preamble(self._preamble()), overrides
                )
            except Exception as e:
                logger.error(f"[Agent] Model turn failed: {e}")
                yield StreamEvent.failure(format_user_error(e, self._production))
                break

            if not actions:
                if leftover:
                    yield StreamEvent.chunk(leftover)
                state = LoopState.COMPLETE
                logger.debug(f"[Agent] No action requested, {state.value}")
                break

            state = LoopState.EXECUTING_TOOLS
            logger.info(f"[Agent] {state.value}: {len(actions)} tool call(s)")
            stopped = False
            for invocation in actions:
                if await self._client_gone(is_disconnected):
                    logger.info("[Agent] Client disconnected, skipping remaining tool calls")
                    stopped = True
                    break
                yield StreamEvent.action(invocation)
                for event in await self._execute_action(invocation, conversation):
                    yield event

            if stopped:
                break
            iterations += 1

        yield StreamEvent.done()

    async def _client_gone(self, is_disconnected: DisconnectCheck | None) -> bool:
        if is_disconnected is None:
            return False
        return await is_disconnected()

    async def _request_turn(
        self,
        messages: Sequence[ConversationMessage],
        overrides: GenerationOverrides | None,
    ) -> tuple[list[ToolInvocation], str]:
        """
        Read one model turn.

        Returns as soon as the extractor yields actions, closing the upstream
        stream. Otherwise drains the stream and returns the leftover text.
        """
        extractor = ActionExtractor()
        async with aclosing(self._delta_source.stream_deltas(messages, overrides)) as deltas:
            async for delta in deltas:
                actions = extractor.feed(delta)
                if actions:
                    logger.debug(
                        f"[Agent] {LoopState.EXTRACTING_ACTIONS.value}: "
                        f"{len(actions)} action(s), closing stream early"
                    )
                    return actions, ""
        return extractor.finish()

    async def _dispatch_with_retry(self, invocation: ToolInvocation) -> str:
        async def attempt() -> str:
            return await self._dispatcher.dispatch(invocation.action, invocation.params)

        return await retry_with_backoff(
            attempt,
            self._tool_retry_options,
            context=f"Tool execution: {invocation.action}",
            sleep=self._sleep,
        )

    def _tool_error_message(self, error: Exception) -> str:
        if isinstance(error, RetryExhaustedError) and isinstance(error.last_error, Exception):
            error = error.last_error
        return format_user_error(error, self._production)

    async def _execute_action(
        self,
        invocation: ToolInvocation,
        conversation: Conversation,
    ) -> list[StreamEvent]:
        """Run one tool call and record it. Tool failures never escape."""
        # A disconnecting client cancels the consumer, not a running tool
        task = asyncio.ensure_future(self._dispatch_with_retry(invocation))
        try:
            result = await asyncio.shield(task)
        except Exception as e:
            message = self._tool_error_message(e)
            logger.error(f"[Agent] Tool '{invocation.action}' failed: {message}")
            conversation.append(ConversationMessage.assistant(invocation.to_json()))
            conversation.append(ConversationMessage.user(f"Tool error: {message}"))
            return [StreamEvent.failure(message)]

        conversation.append(ConversationMessage.assistant(invocation.to_json()))
        conversation.append(ConversationMessage.user(f"Tool result: {result}"))
        return [
            StreamEvent.chunk(f"\n🔧 **Tool executed: {invocation.action}**\n"),
            StreamEvent.chunk(f"Result: {result}\n\n"),
        ]

    async def complete(
        self,
        messages: Sequence[ConversationMessage],
        overrides: GenerationOverrides | None = None,
    ) -> dict[str, Any]:
        """
        Non-streaming chat: one completion, then every requested tool call.

        The returned payload is the upstream JSON. When the reply contained
        tool calls, its message content is replaced by the joined results.
        Upstream failures propagate to the caller.
        """
        merged = [self._preamble(), *messages]
        payload = await self._delta_source.complete(merged, overrides)

        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return payload
        if not isinstance(content, str):
            return payload

        actions = extract_actions(content)
        if not actions:
            return payload

        results = []
        for invocation in actions:
            try:
                result = await self._dispatch_with_retry(invocation)
            except Exception as e:
                message = self._tool_error_message(e)
                logger.error(f"[Agent] Tool '{invocation.action}' failed: {message}")
                results.append(f"❌ **Tool execution failed: {invocation.action}**\n\nError: {message}")
            else:
                results.append(f"🔧 **Tool executed: {invocation.action}**\n\nResult: {result}")

        updated = copy.deepcopy(payload)
        updated["choices"][0]["message"]["content"] = "\n\n".join(results)
        return updated
