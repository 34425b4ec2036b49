"""FastAPI dependencies resolving shared components from the container."""

from fastapi import Depends
from starlette.requests import HTTPConnection

from toolgate.configuration.container import Container
from toolgate.infrastructure.mcp import MCPServer


def get_container(connection: HTTPConnection) -> Container:
    return connection.app.state.container


def get_mcp_server(container: Container = Depends(get_container)) -> MCPServer:
    return container.mcp_server
