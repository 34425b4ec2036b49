"""Unit tests for the built-in tool catalog."""

import httpx
import pytest

from toolgate.infrastructure.tools import ToolRegistry, build_default_tools

EXPECTED_TOOLS = {
    "writeFile",
    "readFile",
    "listFiles",
    "createDirectory",
    "deleteFile",
    "moveFile",
    "copyFile",
    "getFileInfo",
    "zipFiles",
    "unzipFile",
    "grep",
    "findFiles",
    "search",
    "executeCommand",
    "math",
    "fetch",
}


class TestBuildDefaultTools:
    """Tests for build_default_tools."""

    @pytest.mark.asyncio
    async def test_builds_every_tool_once(self, resolver, settings):
        async with httpx.AsyncClient() as client:
            tools = build_default_tools(resolver, settings, client)

        names = [tool.name for tool in tools]
        assert set(names) == EXPECTED_TOOLS
        assert len(names) == len(set(names))

    @pytest.mark.asyncio
    async def test_schemas_are_objects(self, resolver, settings):
        async with httpx.AsyncClient() as client:
            tools = build_default_tools(resolver, settings, client)

        for tool in tools:
            assert tool.parameter_schema["type"] == "object"
            assert set(tool.required) <= set(tool.properties)

    @pytest.mark.asyncio
    async def test_registry_dispatches_catalog_tools(self, resolver, settings):
        async with httpx.AsyncClient() as client:
            registry = ToolRegistry(build_default_tools(resolver, settings, client))
            await registry.dispatch("writeFile", {"path": "a.txt", "content": "hi"})
            result = await registry.dispatch("readFile", {"path": "a.txt"})

        assert result == "hi"
