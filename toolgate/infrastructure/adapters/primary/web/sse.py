"""Server-Sent Events framing for normalized stream events."""

from collections.abc import AsyncIterator

import orjson
from fastapi.responses import StreamingResponse

from toolgate.domain.events import StreamEvent

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def format_sse(event: StreamEvent) -> str:
    return f"data: {orjson.dumps(event.to_dict()).decode()}\n\n"


async def sse_generator(events: AsyncIterator[StreamEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield format_sse(event)


def sse_response(events: AsyncIterator[StreamEvent]) -> StreamingResponse:
    return StreamingResponse(
        sse_generator(events),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
