"""
Chat and manual tool-call endpoints.

``/chat`` and ``/chat/overrides`` run the tool orchestration loop, streamed
as SSE or returned as one JSON payload. ``/chat/legacy`` relays the
normalized upstream stream without executing tools.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from toolgate.configuration.container import Container
from toolgate.configuration.generation import GenerationOverrides
from toolgate.domain.conversation import ConversationMessage
from toolgate.domain.exceptions import (
    GatewayError,
    SandboxViolationError,
    ValidationError,
    format_user_error,
)
from toolgate.infrastructure.adapters.primary.web.dependencies import get_container
from toolgate.infrastructure.adapters.primary.web.schemas import (
    ChatRequest,
    ChatWithOverridesRequest,
    ToolCallRequest,
)
from toolgate.infrastructure.adapters.primary.web.sse import sse_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


async def _chat(
    request: Request,
    container: Container,
    messages: list[ConversationMessage],
    stream: bool,
    overrides: GenerationOverrides | None = None,
):
    orchestrator = container.orchestrator
    if stream:
        logger.info(f"[Chat] Streaming chat with {len(messages)} message(s)")
        return sse_response(
            orchestrator.run(messages, overrides, is_disconnected=request.is_disconnected)
        )

    logger.info(f"[Chat] Non-streaming chat with {len(messages)} message(s)")
    try:
        return await orchestrator.complete(messages, overrides)
    except GatewayError as e:
        message = format_user_error(e, container.settings.is_production)
        logger.error(f"[Chat] Upstream request failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "error": message,
                "choices": [
                    {
                        "message": {
                            "role": "assistant",
                            "content": (
                                "I'm sorry, I'm having trouble connecting to the "
                                f"language model. {message}"
                            ),
                        }
                    }
                ],
            },
        )


@router.post("/chat")
async def chat(
    body: ChatRequest,
    request: Request,
    container: Container = Depends(get_container),
):
    return await _chat(request, container, body.conversation(), body.stream)


@router.post("/chat/overrides")
async def chat_with_overrides(
    body: ChatWithOverridesRequest,
    request: Request,
    container: Container = Depends(get_container),
):
    return await _chat(request, container, body.conversation(), body.stream, body.overrides)


@router.post("/chat/legacy")
async def chat_legacy(body: ChatRequest, container: Container = Depends(get_container)):
    """Normalized upstream stream, actions reported but not executed."""
    return sse_response(container.llm_client.stream(body.conversation()))


@router.post("/call")
async def call_tool(
    body: ToolCallRequest,
    container: Container = Depends(get_container),
) -> Any:
    production = container.settings.is_production
    try:
        result = await container.registry.dispatch(body.tool, body.params)
    except (ValidationError, SandboxViolationError) as e:
        return JSONResponse(status_code=400, content={"error": format_user_error(e, production)})
    except GatewayError as e:
        return JSONResponse(status_code=500, content={"error": format_user_error(e, production)})

    return {"result": result}
