"""Unit tests for the tool-call system preamble."""

from unittest.mock import AsyncMock

from toolgate.domain.tool import ToolDescriptor
from toolgate.infrastructure.agent.prompts import TOOL_CALL_EXAMPLE, build_tool_prompt


def test_prompt_lists_every_tool_with_params():
    tools = [
        ToolDescriptor(
            "readFile",
            "Read a file",
            {"type": "object", "properties": {"path": {"type": "string"}}, "required": ["path"]},
            AsyncMock(return_value=""),
        ),
        ToolDescriptor("math", "Evaluate math", {"type": "object"}, AsyncMock(return_value="")),
    ]

    prompt = build_tool_prompt(tools)

    assert "- readFile: Read a file\n  Params: {\n  \"path\": {\n    \"type\": \"string\"" in prompt
    assert "- math: Evaluate math\n  Params: {}" in prompt
    assert TOOL_CALL_EXAMPLE in prompt
    assert "No narration" in prompt
