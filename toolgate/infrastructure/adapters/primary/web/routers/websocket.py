"""
WebSocket Router for chat.

Bidirectional alternative to the SSE endpoint:
- Client frames: {"messages": [...], "overrides": {...}?}
- Server frames: the normalized stream events, one JSON object per frame
- Heartbeat: {"type": "ping"} every heartbeat interval
- Disconnect stops the running orchestration loop
"""

import asyncio
import logging
import uuid

import orjson
import pydantic
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from toolgate.configuration.container import Container
from toolgate.domain.events import StreamEvent
from toolgate.infrastructure.adapters.primary.web.schemas import WebSocketChatFrame
from toolgate.infrastructure.adapters.primary.web.websocket import ConnectionManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat-websocket"])


async def _heartbeat(manager: ConnectionManager, session_id: str, interval: float) -> None:
    while manager.is_connected(session_id):
        await asyncio.sleep(interval)
        if not await manager.send(session_id, {"type": "ping"}):
            break


async def _run_chat(
    manager: ConnectionManager,
    container: Container,
    session_id: str,
    frame: WebSocketChatFrame,
) -> None:
    async def is_disconnected() -> bool:
        return not manager.is_connected(session_id)

    events = container.orchestrator.run(
        frame.conversation(), frame.overrides, is_disconnected=is_disconnected
    )
    async for event in events:
        if not await manager.send(session_id, event.to_dict()):
            logger.info(f"[WS] Session {session_id[:8]}... gone, stopping chat")
            break


def _parse_frame(raw: str) -> WebSocketChatFrame:
    return WebSocketChatFrame.model_validate(orjson.loads(raw))


@router.websocket("/ws")
async def chat_websocket(websocket: WebSocket):
    container: Container = websocket.app.state.container
    manager = container.connection_manager
    session_id = str(uuid.uuid4())
    await manager.connect(session_id, websocket)

    heartbeat = asyncio.create_task(
        _heartbeat(manager, session_id, container.settings.ws_heartbeat_interval)
    )
    chat_task: asyncio.Task | None = None
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = _parse_frame(raw)
            except (orjson.JSONDecodeError, pydantic.ValidationError) as e:
                logger.warning(f"[WS] Invalid frame from {session_id[:8]}...: {e}")
                await manager.send(
                    session_id, StreamEvent.failure(f"Invalid message: {e}").to_dict()
                )
                continue

            if chat_task is not None and not chat_task.done():
                await manager.send(
                    session_id,
                    StreamEvent.failure("A chat is already in progress").to_dict(),
                )
                continue

            chat_task = asyncio.create_task(_run_chat(manager, container, session_id, frame))
    except WebSocketDisconnect:
        logger.info(f"[WS] Client {session_id[:8]}... closed the connection")
    finally:
        await manager.disconnect(session_id)
        heartbeat.cancel()
        if chat_task is not None and not chat_task.done():
            chat_task.cancel()
