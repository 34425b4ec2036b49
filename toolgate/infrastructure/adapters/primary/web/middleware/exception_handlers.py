"""
Centralized exception handlers for the FastAPI application.

Maps gateway exceptions onto HTTP responses with one consistent error body:

    {"error": {"type": ..., "message": ..., "error_id": ..., "retryable": ...}}

Messages are rendered with ``format_user_error`` so production deployments
never leak internal detail.
"""

import logging
import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from toolgate.domain.exceptions import (
    CircuitOpenError,
    GatewayError,
    RetryExhaustedError,
    SandboxViolationError,
    ToolExecutionError,
    UpstreamConnectionError,
    ValidationError,
    format_user_error,
)

logger = logging.getLogger(__name__)


class ErrorResponse:
    """Standard error response format."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        message: str,
        error_id: str | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.message = message
        self.error_id = error_id or str(uuid.uuid4())
        self.details = details or {}
        self.retryable = retryable
        self.headers = headers

    def to_dict(self) -> dict[str, Any]:
        response = {
            "error": {
                "type": self.error_type,
                "message": self.message,
                "error_id": self.error_id,
                "retryable": self.retryable,
            }
        }
        if self.details:
            response["error"]["details"] = self.details
        return response

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content=self.to_dict(),
            headers=self.headers,
        )


def _is_production(request: Request) -> bool:
    container = getattr(request.app.state, "container", None)
    return bool(container and container.settings.is_production)


# Exception type -> (status code, error type, retryable)
_ERROR_MAPPING: list[tuple[type[GatewayError], int, str, bool]] = [
    (ValidationError, 400, "ValidationError", False),
    (SandboxViolationError, 403, "SandboxViolation", False),
    (ToolExecutionError, 500, "ToolExecutionError", False),
    (CircuitOpenError, 503, "CircuitOpen", True),
    (RetryExhaustedError, 503, "RetryExhausted", True),
    (UpstreamConnectionError, 503, "UpstreamUnavailable", True),
]


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    error_id = str(uuid.uuid4())
    status_code, error_type, retryable = 500, "GatewayError", False
    for exc_type, mapped_status, mapped_type, mapped_retryable in _ERROR_MAPPING:
        if isinstance(exc, exc_type):
            status_code, error_type, retryable = mapped_status, mapped_type, mapped_retryable
            break

    headers = None
    if isinstance(exc, CircuitOpenError):
        headers = {"Retry-After": str(max(1, int(exc.retry_after)))}

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "%s: %s - error_id=%s, path=%s",
        error_type,
        exc.message,
        error_id,
        request.url.path,
    )
    return ErrorResponse(
        status_code=status_code,
        error_type=error_type,
        message=format_user_error(exc, _is_production(request)),
        error_id=error_id,
        retryable=retryable,
        headers=headers,
    ).to_response()


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    error_id = str(uuid.uuid4())
    logger.exception(
        "Unhandled exception - error_id=%s, path=%s",
        error_id,
        request.url.path,
    )
    return ErrorResponse(
        status_code=500,
        error_type="InternalServerError",
        message=format_user_error(exc, _is_production(request)),
        error_id=error_id,
    ).to_response()


def configure_exception_handlers(app: FastAPI) -> None:
    """Register all gateway exception handlers on the app."""
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    logger.debug("Exception handlers configured")
