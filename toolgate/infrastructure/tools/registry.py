"""Tool registry.

Maps tool names to descriptors, validates parameters against each tool's
schema and dispatches validated calls to the tool executor.
"""

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from toolgate.domain.exceptions import (
    SandboxViolationError,
    ToolExecutionError,
    ValidationError,
)
from toolgate.domain.tool import ToolDescriptor

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


_TYPE_CHECKS = {
    "string": lambda value: isinstance(value, str),
    "number": _is_number,
    "integer": _is_integer,
    "boolean": lambda value: isinstance(value, bool),
    "array": lambda value: isinstance(value, list),
    "object": lambda value: isinstance(value, dict),
}


class ToolRegistry:
    """
    Registry for tools.

    ``register`` swaps in a complete new catalog in a single assignment, so
    a concurrent ``validate`` or ``dispatch`` sees either the old catalog or
    the new one, never a mix.
    """

    def __init__(self, tools: Iterable[ToolDescriptor] = ()) -> None:
        self._catalog: Mapping[str, ToolDescriptor] = MappingProxyType({})
        if tools:
            self.register(tools)

    def register(self, tools: Iterable[ToolDescriptor]) -> None:
        """Replace the whole catalog. Later names win over earlier duplicates."""
        catalog: dict[str, ToolDescriptor] = {}
        for tool in tools:
            if tool.name in catalog:
                logger.warning(f"Duplicate tool name '{tool.name}', keeping the last one")
            catalog[tool.name] = tool

        self._catalog = MappingProxyType(catalog)
        logger.info(f"Tool registry loaded with {len(catalog)} tools")

    def get(self, name: str) -> ToolDescriptor | None:
        return self._catalog.get(name)

    def get_all_tools(self) -> list[ToolDescriptor]:
        return list(self._catalog.values())

    def list_names(self) -> list[str]:
        return list(self._catalog.keys())

    def __len__(self) -> int:
        return len(self._catalog)

    def __contains__(self, name: object) -> bool:
        return name in self._catalog

    def validate(self, name: str, params: Mapping[str, Any]) -> ToolDescriptor:
        """
        Check a call against the catalog.

        Returns:
            The matching descriptor

        Raises:
            ValidationError: Unknown tool, missing required parameter, or a
                parameter whose JSON type does not match the schema
        """
        return self._validate(self._catalog, name, params)

    async def dispatch(self, name: str, params: Mapping[str, Any]) -> str:
        """
        Validate and run a tool.

        Raises:
            ValidationError: As in ``validate``; the executor never runs
            SandboxViolationError: The tool was handed a path outside the sandbox
            ToolExecutionError: The executor raised anything else
        """
        tool = self._validate(self._catalog, name, params)

        try:
            result = await tool.executor(dict(params))
        except (ValidationError, SandboxViolationError):
            raise
        except Exception as e:
            logger.error(f"Tool '{name}' failed: {e}")
            raise ToolExecutionError(name, str(e) or e.__class__.__name__, e) from e

        return result if isinstance(result, str) else str(result)

    @staticmethod
    def _validate(
        catalog: Mapping[str, ToolDescriptor],
        name: str,
        params: Mapping[str, Any],
    ) -> ToolDescriptor:
        tool = catalog.get(name)
        if tool is None:
            available = ", ".join(catalog.keys())
            raise ValidationError(f"Unknown tool: {name}. Available tools: {available}")

        if not isinstance(params, Mapping):
            raise ValidationError("Tool parameters must be an object", field="params")

        for required in tool.required:
            if required not in params:
                raise ValidationError(
                    f"Missing required parameter: {required}", field=required
                )

        properties = tool.properties
        for key, value in params.items():
            schema = properties.get(key)
            if not isinstance(schema, dict):
                continue
            expected = schema.get("type")
            check = _TYPE_CHECKS.get(expected)
            if check is not None and not check(value):
                raise ValidationError(f"Parameter '{key}' must be a {expected}", field=key)

        return tool
