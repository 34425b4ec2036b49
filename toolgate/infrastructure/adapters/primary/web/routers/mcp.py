"""
MCP endpoints.

JSON-RPC 2.0 over plain HTTP (``POST /mcp``), per-method convenience routes
(``POST /mcp/{method}``) and a WebSocket transport (``/mcp/ws``). All of
them hand messages to the shared MCPServer.
"""

import logging
import uuid
from typing import Any

import orjson
from fastapi import APIRouter, Depends, Header, Request, Response, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from toolgate.infrastructure.adapters.primary.web.dependencies import get_mcp_server
from toolgate.infrastructure.mcp import ErrorCode, JSONRPCError, MCPServer, parse_message
from toolgate.infrastructure.mcp.protocol import JSONRPC_VERSION, make_error_response
from toolgate.infrastructure.mcp.server import DEFAULT_CONNECTION_ID

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mcp", tags=["mcp"])

CONNECTION_HEADER = "X-MCP-Connection-Id"

_CLIENT_ERROR_CODES = {
    ErrorCode.PARSE_ERROR,
    ErrorCode.INVALID_REQUEST,
    ErrorCode.METHOD_NOT_FOUND,
    ErrorCode.INVALID_PARAMS,
}


def _status_for(response: dict[str, Any]) -> int:
    """HTTP status for a JSON-RPC response, shared by both POST routes."""
    error = response.get("error")
    if error is None:
        return 200
    return 400 if error.get("code") in _CLIENT_ERROR_CODES else 500


@router.post("")
async def mcp_endpoint(
    request: Request,
    mcp_server: MCPServer = Depends(get_mcp_server),
    connection_header: str | None = Header(default=None, alias=CONNECTION_HEADER),
):
    """Single JSON-RPC endpoint for every MCP method."""
    raw = await request.body()
    try:
        message = parse_message(raw)
    except JSONRPCError as e:
        logger.warning(f"[MCP] Rejected HTTP message: {e.message}")
        response = make_error_response(e.request_id, e.code, e.message, e.data)
        return JSONResponse(status_code=_status_for(response), content=response)

    connection_id = connection_header or message.get("connectionId") or DEFAULT_CONNECTION_ID
    response = await mcp_server.handle_message(message, str(connection_id))
    if response is None:
        return Response(status_code=202)
    return JSONResponse(status_code=_status_for(response), content=response)


@router.delete("/connections/{connection_id}")
async def close_connection(
    connection_id: str,
    mcp_server: MCPServer = Depends(get_mcp_server),
):
    if not mcp_server.close_connection(connection_id):
        return JSONResponse(
            status_code=404, content={"error": f"Connection '{connection_id}' not found"}
        )
    return {"closed": connection_id}


@router.post("/{method:path}")
async def mcp_method_endpoint(
    method: str,
    request: Request,
    mcp_server: MCPServer = Depends(get_mcp_server),
    connection_header: str | None = Header(default=None, alias=CONNECTION_HEADER),
):
    """
    Convenience route: ``POST /mcp/tools/call`` with ``{"params": {...}}``.

    The body may also carry ``id`` and ``connectionId``. An empty body is
    treated as no params.
    """
    raw = await request.body()
    try:
        body = orjson.loads(raw) if raw.strip() else {}
    except orjson.JSONDecodeError as e:
        response = make_error_response(None, ErrorCode.PARSE_ERROR, f"Parse error: {e}")
        return JSONResponse(status_code=400, content=response)
    if not isinstance(body, dict):
        response = make_error_response(
            None, ErrorCode.INVALID_REQUEST, "Invalid Request: expected an object"
        )
        return JSONResponse(status_code=400, content=response)

    connection_id = connection_header or body.get("connectionId") or DEFAULT_CONNECTION_ID
    message = {
        "jsonrpc": JSONRPC_VERSION,
        "id": body.get("id", method),
        "method": method,
        "params": {} if body.get("params") is None else body["params"],
    }
    response = await mcp_server.handle_message(message, str(connection_id))
    return JSONResponse(status_code=_status_for(response), content=response)


@router.websocket("/ws")
async def mcp_websocket(websocket: WebSocket):
    """JSON-RPC over WebSocket. Each socket is its own MCP connection."""
    mcp_server: MCPServer = websocket.app.state.container.mcp_server
    connection_id = str(uuid.uuid4())
    await websocket.accept()
    logger.info(f"[MCP] WebSocket connected: {connection_id[:8]}...")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = parse_message(raw)
            except JSONRPCError as e:
                response = make_error_response(e.request_id, e.code, e.message, e.data)
            else:
                response = await mcp_server.handle_message(message, connection_id)

            if response is not None:
                await websocket.send_text(orjson.dumps(response).decode())
    except WebSocketDisconnect:
        logger.info(f"[MCP] WebSocket disconnected: {connection_id[:8]}...")
    finally:
        mcp_server.close_connection(connection_id)
