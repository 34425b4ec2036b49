"""Tool catalog value objects."""

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

ToolExecutor = Callable[[dict[str, Any]], Awaitable[str]]


@dataclass(frozen=True)
class ToolDescriptor:
    """
    A named, schema-described tool.

    ``parameter_schema`` is a JSON-schema object with ``properties`` and a
    ``required`` list. ``executor`` receives the validated params and returns
    the textual result.
    """

    name: str
    description: str
    parameter_schema: dict[str, Any]
    executor: ToolExecutor = field(compare=False, repr=False)

    @property
    def properties(self) -> dict[str, Any]:
        return self.parameter_schema.get("properties") or {}

    @property
    def required(self) -> list[str]:
        required = self.parameter_schema.get("required") or []
        return list(required)

    def input_schema(self) -> dict[str, Any]:
        """Schema in the shape MCP clients expect."""
        return {
            "type": "object",
            "properties": self.properties,
            "required": self.required,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "schema": self.input_schema(),
        }


@dataclass(frozen=True)
class ToolInvocation:
    """An action parsed from model output: tool name plus parameters."""

    action: str
    params: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, value: Any) -> "ToolInvocation | None":
        """Build an invocation from a decoded JSON value, or None if it is not one."""
        if not isinstance(value, dict):
            return None
        action = value.get("action")
        params = value.get("params")
        if not isinstance(action, str) or not action or not isinstance(params, dict):
            return None
        return cls(action=action, params=params)

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action, "params": self.params}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)
