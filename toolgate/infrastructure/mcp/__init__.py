from toolgate.infrastructure.mcp.protocol import ErrorCode, JSONRPCError, parse_message
from toolgate.infrastructure.mcp.server import MCPConnection, MCPServer, MCPServerInfo

__all__ = [
    "ErrorCode",
    "JSONRPCError",
    "MCPConnection",
    "MCPServer",
    "MCPServerInfo",
    "parse_message",
]
