"""
Gateway domain exceptions.

Exception Hierarchy:
    GatewayError (base)
    ├── UpstreamConnectionError  - Upstream unreachable, timed out or non-2xx
    ├── RetryExhaustedError      - Retry policy gave up, wraps the last error
    ├── ValidationError          - Malformed tool parameters or JSON-RPC payload
    ├── ToolExecutionError       - A tool executor raised
    ├── CircuitOpenError         - Circuit breaker rejected the call
    └── SandboxViolationError    - Resolved path escapes the sandbox root

UpstreamConnectionError also derives from the builtin ConnectionError so that
code catching OS-level connection failures sees it too.
"""

from typing import Any

PRODUCTION_FALLBACK_MESSAGE = "An unexpected error occurred. Please try again."


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    def __init__(
        self,
        message: str,
        original_error: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class UpstreamConnectionError(GatewayError, ConnectionError):
    """Raised when an upstream service cannot be reached or answers non-2xx."""

    def __init__(
        self,
        message: str,
        service: str,
        status_code: int | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            original_error=original_error,
            details={"service": service, "status_code": status_code},
        )
        self.service = service
        self.status_code = status_code


class RetryExhaustedError(GatewayError):
    """Raised when an operation still fails after every retry attempt."""

    def __init__(
        self,
        message: str,
        last_error: BaseException,
        attempts: int,
        max_retries: int,
    ) -> None:
        super().__init__(
            message,
            original_error=last_error,
            details={"attempts": attempts, "max_retries": max_retries},
        )
        self.last_error = last_error
        self.attempts = attempts
        self.max_retries = max_retries


class ValidationError(GatewayError):
    """Raised for malformed tool parameters or protocol payloads."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, details={"field": field} if field else None)
        self.field = field


class ToolExecutionError(GatewayError):
    """Raised when a tool executor fails. Carries the tool name."""

    def __init__(
        self,
        tool_name: str,
        message: str,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message, original_error=original_error, details={"tool": tool_name})
        self.tool_name = tool_name


class CircuitOpenError(GatewayError):
    """Raised when a circuit breaker is open and rejects the call."""

    def __init__(self, breaker_name: str, retry_after: float) -> None:
        self.breaker_name = breaker_name
        self.retry_after = max(0.0, retry_after)
        super().__init__(
            f"Circuit breaker '{breaker_name}' is open. "
            f"Retry after {self.retry_after:.1f}s",
            details={"breaker": breaker_name, "retry_after": self.retry_after},
        )


class SandboxViolationError(GatewayError):
    """Raised when a path resolves outside of the sandbox root."""

    def __init__(self, path: str, root: str) -> None:
        super().__init__(
            f"Path escapes sandbox: {path}",
            details={"path": path, "root": root},
        )
        self.path = path
        self.root = root


def format_user_error(error: BaseException, production: bool = False) -> str:
    """
    Render an exception as a message safe to show to an end user.

    Gateway errors have dedicated renderings. Any other exception shows its
    own message in development and a generic sentence in production.
    """
    if isinstance(error, RetryExhaustedError):
        return (
            "Service temporarily unavailable. Please try again in a few moments. "
            f"(Attempted {error.attempts}/{error.max_retries + 1})"
        )
    if isinstance(error, CircuitOpenError):
        return (
            "Service unavailable while it recovers from repeated failures. "
            f"Please retry in {error.retry_after:.0f}s."
        )
    if isinstance(error, UpstreamConnectionError):
        return f"Unable to connect to {error.service}. Please check if the service is running."
    if isinstance(error, ValidationError):
        suffix = f" (field: {error.field})" if error.field else ""
        return f"Invalid input: {error.message}{suffix}"
    if isinstance(error, ToolExecutionError):
        return f'Tool "{error.tool_name}" failed: {error.message}'
    if isinstance(error, SandboxViolationError):
        return f"Access denied: {error.path} is outside the sandbox"

    if production:
        return PRODUCTION_FALLBACK_MESSAGE
    return str(error) or error.__class__.__name__
