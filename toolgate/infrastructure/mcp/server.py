"""
MCP server over JSON-RPC 2.0.

Exposes the tool registry, the sandbox files as resources, and a small
prompt catalog. The same ``handle_message`` entry point serves the HTTP
endpoint and the WebSocket endpoint; every client is tracked as an
``MCPConnection`` keyed by its connection id.
"""

import logging
import mimetypes
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import aiofiles
import aiofiles.os

from toolgate import __version__
from toolgate.domain.exceptions import GatewayError, ValidationError, format_user_error
from toolgate.infrastructure.mcp.prompts import DEFAULT_PROMPTS, MCPPrompt
from toolgate.infrastructure.mcp.protocol import (
    MCP_PROTOCOL_VERSION,
    ErrorCode,
    JSONRPCError,
    is_notification,
    make_error_response,
    make_response,
    validate_request,
)
from toolgate.infrastructure.sandbox import SandboxPathResolver
from toolgate.infrastructure.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_CONNECTION_ID = "default"


@dataclass
class MCPServerInfo:
    """MCP server information."""

    name: str = "toolgate"
    version: str = __version__
    protocol_version: str = MCP_PROTOCOL_VERSION


@dataclass(frozen=True)
class MCPResource:
    uri: str
    name: str
    description: str
    mime_type: str = "text/plain"

    def to_dict(self) -> dict[str, Any]:
        return {
            "uri": self.uri,
            "name": self.name,
            "description": self.description,
            "mimeType": self.mime_type,
        }


@dataclass
class MCPConnection:
    """Per-client session state."""

    id: str
    client_info: dict[str, Any] = field(default_factory=dict)
    client_capabilities: dict[str, Any] = field(default_factory=dict)
    tools: list[str] = field(default_factory=list)
    resources: list[str] = field(default_factory=list)
    prompts: list[str] = field(default_factory=list)
    initialized: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "initialized": self.initialized,
            "clientInfo": self.client_info,
            "tools": len(self.tools),
            "resources": len(self.resources),
            "prompts": len(self.prompts),
            "createdAt": self.created_at.isoformat(),
        }


class MCPServer:
    """JSON-RPC dispatcher for the MCP methods."""

    def __init__(
        self,
        registry: ToolRegistry,
        resolver: SandboxPathResolver,
        server_info: MCPServerInfo | None = None,
        production: bool = False,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._server_info = server_info or MCPServerInfo()
        self._production = production
        self._connections: dict[str, MCPConnection] = {}
        self._resources: dict[str, MCPResource] = {}
        self._prompts: dict[str, MCPPrompt] = {p.name: p for p in DEFAULT_PROMPTS}

    @property
    def server_info(self) -> MCPServerInfo:
        return self._server_info

    @property
    def capabilities(self) -> dict[str, Any]:
        return {
            "tools": {"listChanged": True},
            "resources": {"subscribe": True, "listChanged": True},
            "prompts": {"listChanged": True},
            "logging": {},
        }

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    def initialize_connection(
        self,
        connection_id: str,
        params: dict[str, Any] | None = None,
    ) -> MCPConnection:
        params = params or {}
        connection = MCPConnection(
            id=connection_id,
            client_info=params.get("clientInfo") or {},
            client_capabilities=params.get("capabilities") or {},
            tools=self._registry.list_names(),
            resources=list(self._resources.keys()),
            prompts=list(self._prompts.keys()),
            initialized=True,
        )
        self._connections[connection_id] = connection
        logger.info(f"[MCP] Connection initialized: {connection_id}")
        return connection

    def get_connection(self, connection_id: str) -> MCPConnection | None:
        return self._connections.get(connection_id)

    def ensure_connection(self, connection_id: str) -> MCPConnection:
        """Clients that skip ``initialize`` get a connection on first use."""
        connection = self._connections.get(connection_id)
        if connection is None:
            connection = self.initialize_connection(connection_id)
        return connection

    def close_connection(self, connection_id: str) -> bool:
        connection = self._connections.pop(connection_id, None)
        if connection is not None:
            logger.info(f"[MCP] Connection closed: {connection_id}")
        return connection is not None

    def list_connections(self) -> list[MCPConnection]:
        return list(self._connections.values())

    # -------------------------------------------------------------------------
    # Resources
    # -------------------------------------------------------------------------

    def register_resources(self, resources: list[MCPResource]) -> None:
        self._resources = {resource.uri: resource for resource in resources}

    async def refresh_resources(self) -> list[MCPResource]:
        """Rebuild the resource catalog from the top-level sandbox files."""
        root = self._resolver.root
        resources = []
        try:
            names = sorted(await aiofiles.os.listdir(root))
        except FileNotFoundError:
            names = []

        for name in names:
            if not await aiofiles.os.path.isfile(root / name):
                continue
            mime_type, _ = mimetypes.guess_type(name)
            resources.append(
                MCPResource(
                    uri=name,
                    name=name,
                    description=f"File in sandbox: {name}",
                    mime_type=mime_type or "text/plain",
                )
            )

        self.register_resources(resources)
        logger.debug(f"[MCP] Resource catalog refreshed: {len(resources)} files")
        return resources

    # -------------------------------------------------------------------------
    # Message handling
    # -------------------------------------------------------------------------

    async def handle_message(
        self,
        message: Any,
        connection_id: str = DEFAULT_CONNECTION_ID,
    ) -> dict[str, Any] | None:
        """
        Handle one decoded JSON-RPC message.

        Returns:
            The response object, or None for notifications
        """
        try:
            message = validate_request(message)
        except JSONRPCError as e:
            return make_error_response(e.request_id, e.code, e.message, e.data)

        method = message["method"]
        params = message.get("params")
        if params is None:
            params = {}
        request_id = message.get("id")

        if is_notification(message):
            await self._handle_notification(method, params, connection_id)
            return None

        try:
            if not isinstance(params, dict):
                raise JSONRPCError(ErrorCode.INVALID_PARAMS, "params must be an object")
            result = await self._dispatch_method(method, params, connection_id)
            return make_response(request_id, result)
        except JSONRPCError as e:
            return make_error_response(request_id, e.code, e.message, e.data)
        except ValidationError as e:
            return make_error_response(request_id, ErrorCode.INVALID_PARAMS, str(e))
        except GatewayError as e:
            return make_error_response(
                request_id, ErrorCode.SERVER_ERROR, format_user_error(e, self._production)
            )
        except Exception as e:
            logger.error(f"[MCP] Error handling {method}: {e}", exc_info=True)
            return make_error_response(
                request_id,
                ErrorCode.INTERNAL_ERROR,
                format_user_error(e, self._production),
            )

    async def _handle_notification(
        self, method: str, params: Any, connection_id: str
    ) -> None:
        if method == "notifications/initialized":
            self.ensure_connection(connection_id)
        logger.debug(f"[MCP] Notification {method} from {connection_id}")

    async def _dispatch_method(
        self, method: str, params: dict[str, Any], connection_id: str
    ) -> Any:
        """Dispatch a request to the appropriate handler."""
        if method == "initialize":
            return await self._handle_initialize(params, connection_id)
        elif method == "ping":
            return {}

        connection = self.ensure_connection(connection_id)
        if method == "tools/list":
            return await self._handle_list_tools(connection)
        elif method == "tools/call":
            return await self._handle_call_tool(params)
        elif method == "resources/list":
            return await self._handle_list_resources(connection)
        elif method == "resources/read":
            return await self._handle_read_resource(params)
        elif method == "prompts/list":
            return await self._handle_list_prompts(connection)
        elif method == "prompts/get":
            return await self._handle_get_prompt(params)
        else:
            raise JSONRPCError(ErrorCode.METHOD_NOT_FOUND, f"Method not found: {method}")

    async def _handle_initialize(
        self, params: dict[str, Any], connection_id: str
    ) -> dict[str, Any]:
        client_info = params.get("clientInfo", {})
        logger.info(
            f"[MCP] initialize - client={client_info.get('name', 'unknown')} "
            f"connection={connection_id}"
        )
        self.initialize_connection(connection_id, params)
        return {
            "protocolVersion": self._server_info.protocol_version,
            "capabilities": self.capabilities,
            "serverInfo": {
                "name": self._server_info.name,
                "version": self._server_info.version,
            },
        }

    async def _handle_list_tools(self, connection: MCPConnection) -> dict[str, Any]:
        tools = self._registry.get_all_tools()
        connection.tools = [tool.name for tool in tools]
        return {
            "tools": [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "inputSchema": tool.input_schema(),
                }
                for tool in tools
            ]
        }

    async def _handle_call_tool(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        arguments = params.get("arguments") or {}
        if not isinstance(name, str) or not name:
            raise JSONRPCError(ErrorCode.INVALID_PARAMS, "Missing tool name")
        if not isinstance(arguments, dict):
            raise JSONRPCError(ErrorCode.INVALID_PARAMS, "Tool arguments must be an object")

        start_time = time.time()
        logger.info(f"[MCP] tools/call START - tool={name}")
        try:
            result = await self._registry.dispatch(name, arguments)
            is_error = False
        except GatewayError as e:
            result = f"Tool execution failed: {format_user_error(e, self._production)}"
            is_error = True

        elapsed_ms = (time.time() - start_time) * 1000
        logger.info(
            f"[MCP] tools/call END - tool={name}, elapsed={elapsed_ms:.1f}ms, is_error={is_error}"
        )
        return {"content": [{"type": "text", "text": result}], "isError": is_error}

    async def _handle_list_resources(self, connection: MCPConnection) -> dict[str, Any]:
        await self.refresh_resources()
        connection.resources = list(self._resources.keys())
        return {"resources": [resource.to_dict() for resource in self._resources.values()]}

    async def _handle_read_resource(self, params: dict[str, Any]) -> dict[str, Any]:
        uri = params.get("uri")
        if not isinstance(uri, str) or not uri:
            raise JSONRPCError(ErrorCode.INVALID_PARAMS, "Missing resource uri")

        resource = self._resources.get(uri)
        if resource is None:
            await self.refresh_resources()
            resource = self._resources.get(uri)
        if resource is None:
            raise JSONRPCError(ErrorCode.INVALID_PARAMS, f"Resource '{uri}' not found")

        path = self._resolver.resolve(resource.uri)
        async with aiofiles.open(path, "r", encoding="utf-8", errors="replace") as f:
            text = await f.read()

        return {"contents": [{"uri": resource.uri, "mimeType": resource.mime_type, "text": text}]}

    async def _handle_list_prompts(self, connection: MCPConnection) -> dict[str, Any]:
        connection.prompts = list(self._prompts.keys())
        return {"prompts": [prompt.to_dict() for prompt in self._prompts.values()]}

    async def _handle_get_prompt(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        arguments = params.get("arguments") or {}
        if not isinstance(name, str) or not name:
            raise JSONRPCError(ErrorCode.INVALID_PARAMS, "Missing prompt name")
        if not isinstance(arguments, dict):
            raise JSONRPCError(ErrorCode.INVALID_PARAMS, "Prompt arguments must be an object")

        prompt = self._prompts.get(name)
        if prompt is None:
            raise JSONRPCError(ErrorCode.INVALID_PARAMS, f"Prompt '{name}' not found")

        missing = prompt.missing_arguments(arguments)
        if missing:
            raise JSONRPCError(
                ErrorCode.INVALID_PARAMS, f"Missing required argument: {', '.join(missing)}"
            )
        return prompt.get({key: str(value) for key, value in arguments.items()})
