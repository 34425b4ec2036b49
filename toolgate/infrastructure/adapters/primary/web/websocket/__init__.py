"""WebSocket connection tracking for the chat socket."""

from toolgate.infrastructure.adapters.primary.web.websocket.connection_manager import (
    ConnectionManager,
)

__all__ = ["ConnectionManager"]
