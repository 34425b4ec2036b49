"""JSON-RPC 2.0 envelope helpers for the MCP adapter."""

from enum import IntEnum
from typing import Any

import orjson

JSONRPC_VERSION = "2.0"
MCP_PROTOCOL_VERSION = "2024-11-05"

RequestId = str | int | None


class ErrorCode(IntEnum):
    """Standard JSON-RPC error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    SERVER_ERROR = -32000


class JSONRPCError(Exception):
    """An error that maps directly onto a JSON-RPC error object."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        data: Any = None,
        request_id: RequestId = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data
        self.request_id = request_id

    def to_error(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": int(self.code), "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


def make_response(request_id: RequestId, result: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def make_error_response(
    request_id: RequestId,
    code: ErrorCode,
    message: str,
    data: Any = None,
) -> dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": JSONRPCError(code, message, data).to_error(),
    }


def make_notification(method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
    notification: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        notification["params"] = params
    return notification


def parse_message(raw: str | bytes) -> dict[str, Any]:
    """
    Decode and validate one JSON-RPC request or notification.

    Raises:
        JSONRPCError: PARSE_ERROR for invalid JSON, INVALID_REQUEST for a
            payload that is not a JSON-RPC 2.0 request
    """
    try:
        message = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise JSONRPCError(ErrorCode.PARSE_ERROR, f"Parse error: {e}") from e
    return validate_request(message)


def validate_request(message: Any) -> dict[str, Any]:
    if not isinstance(message, dict):
        raise JSONRPCError(ErrorCode.INVALID_REQUEST, "Invalid Request: expected an object")

    request_id = message.get("id")
    if request_id is not None and (
        isinstance(request_id, bool) or not isinstance(request_id, (str, int))
    ):
        raise JSONRPCError(ErrorCode.INVALID_REQUEST, "Invalid Request: bad id")

    if message.get("jsonrpc") != JSONRPC_VERSION:
        raise JSONRPCError(
            ErrorCode.INVALID_REQUEST,
            "Invalid Request: jsonrpc must be '2.0'",
            request_id=request_id,
        )

    method = message.get("method")
    if not isinstance(method, str) or not method:
        raise JSONRPCError(
            ErrorCode.INVALID_REQUEST,
            "Invalid Request: method must be a non-empty string",
            request_id=request_id,
        )

    params = message.get("params")
    if params is not None and not isinstance(params, (dict, list)):
        raise JSONRPCError(
            ErrorCode.INVALID_REQUEST,
            "Invalid Request: params must be an object or array",
            request_id=request_id,
        )

    return message


def is_notification(message: dict[str, Any]) -> bool:
    return "id" not in message
