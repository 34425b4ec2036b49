"""System preamble that teaches the model the tool-call format."""

import json
from collections.abc import Iterable

from toolgate.domain.tool import ToolDescriptor

TOOL_CALL_EXAMPLE = """{
  "action": "search",
  "params": { "query": "cows", "engine": "duckduckgo" }
}
{
  "action": "writeFile",
  "params": { "path": "cows.txt", "content": "Search results..." }
}"""


def format_tool_list(tools: Iterable[ToolDescriptor]) -> str:
    lines = []
    for tool in tools:
        params = json.dumps(tool.properties, indent=2)
        lines.append(f"- {tool.name}: {tool.description}\n  Params: {params}")
    return "\n".join(lines)


def build_tool_prompt(tools: Iterable[ToolDescriptor]) -> str:
    return f"""You are a tool-using model with access to tools via MCP (Model Context Protocol).

You can generate MULTIPLE tool calls in a single response. Each tool call should be a separate JSON object on its own line.

Example format for multiple tool calls:
{TOOL_CALL_EXAMPLE}

Available tools:
{format_tool_list(tools)}

This system uses MCP (Model Context Protocol) for standardized tool integration.
Respond ONLY with JSON tool calls of the form {{"action": "<tool>", "params": {{...}}}}.
No narration, no natural language, just structured JSON tool calls."""
