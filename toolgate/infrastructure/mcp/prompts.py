"""Static MCP prompt catalog."""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class PromptArgument:
    name: str
    description: str
    required: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "required": self.required}


@dataclass(frozen=True)
class MCPPrompt:
    """
    A named prompt template.

    ``render`` receives the caller's arguments (already checked for the
    required ones) and returns ``(role, text)`` message pairs.
    """

    name: str
    description: str
    render: Callable[[dict[str, str]], list[tuple[str, str]]] = field(compare=False, repr=False)
    arguments: tuple[PromptArgument, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "arguments": [argument.to_dict() for argument in self.arguments],
        }

    def missing_arguments(self, arguments: dict[str, str]) -> list[str]:
        return [a.name for a in self.arguments if a.required and not arguments.get(a.name)]

    def get(self, arguments: dict[str, str]) -> dict[str, Any]:
        return {
            "description": self.description,
            "messages": [
                {"role": role, "content": {"type": "text", "text": text}}
                for role, text in self.render(arguments)
            ],
        }


def _tool_usage_guide(arguments: dict[str, str]) -> list[tuple[str, str]]:
    return [
        (
            "user",
            "You are a tool-using model. Always respond with valid JSON in this format:\n"
            "{\n"
            '  "action": "tool_name",\n'
            '  "params": { ... }\n'
            "}\n\n"
            "Available tools will be provided separately.",
        )
    ]


def _search_and_analyze(arguments: dict[str, str]) -> list[tuple[str, str]]:
    query = arguments["query"]
    return [
        (
            "user",
            f'Search for "{query}" and provide a detailed analysis of the results.',
        )
    ]


def _file_operations(arguments: dict[str, str]) -> list[tuple[str, str]]:
    task = arguments.get("task")
    if task:
        return [("user", f"Help me with this file operation in the sandbox: {task}")]
    return [("user", "Help me with file operations. What would you like to do with files?")]


DEFAULT_PROMPTS: tuple[MCPPrompt, ...] = (
    MCPPrompt(
        name="tool_usage_guide",
        description="Guide for using tools with the local model",
        render=_tool_usage_guide,
    ),
    MCPPrompt(
        name="search_and_analyze",
        description="Search for information and analyze results",
        render=_search_and_analyze,
        arguments=(PromptArgument("query", "Search query", required=True),),
    ),
    MCPPrompt(
        name="file_operations",
        description="Perform file operations",
        render=_file_operations,
        arguments=(PromptArgument("task", "Description of the file task", required=False),),
    ),
)
