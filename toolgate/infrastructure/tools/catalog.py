"""Static catalog of the built-in tools."""

import logging

import httpx

from toolgate.configuration.config import Settings
from toolgate.domain.tool import ToolDescriptor
from toolgate.infrastructure.sandbox import SandboxPathResolver
from toolgate.infrastructure.tools.archive import create_archive_tools
from toolgate.infrastructure.tools.filesystem import create_filesystem_tools
from toolgate.infrastructure.tools.math_tool import create_math_tool
from toolgate.infrastructure.tools.network import FetchTool
from toolgate.infrastructure.tools.search import create_find_files_tool, create_grep_tool
from toolgate.infrastructure.tools.system import CommandTool
from toolgate.infrastructure.tools.web_search import WebSearchTool

logger = logging.getLogger(__name__)


def build_default_tools(
    resolver: SandboxPathResolver,
    settings: Settings,
    http_client: httpx.AsyncClient,
) -> list[ToolDescriptor]:
    """
    Build the complete built-in tool set.

    Args:
        resolver: Sandbox resolver shared by every path-taking tool
        settings: Application settings (timeouts, API keys)
        http_client: Client used by the network-facing tools

    Returns:
        Descriptors ready to pass to ``ToolRegistry.register``
    """
    tools = [
        *create_filesystem_tools(resolver),
        *create_archive_tools(resolver),
        create_grep_tool(resolver),
        create_find_files_tool(resolver),
        WebSearchTool(settings, http_client).descriptor(),
        CommandTool(resolver, default_timeout=settings.command_timeout).descriptor(),
        create_math_tool(),
        FetchTool(http_client, max_bytes=settings.fetch_max_bytes).descriptor(),
    ]
    logger.debug(f"Built {len(tools)} default tools")
    return tools
