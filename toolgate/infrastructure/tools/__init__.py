from toolgate.infrastructure.tools.catalog import build_default_tools
from toolgate.infrastructure.tools.registry import ToolRegistry

__all__ = ["ToolRegistry", "build_default_tools"]
