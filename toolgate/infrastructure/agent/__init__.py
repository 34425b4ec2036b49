from toolgate.infrastructure.agent.orchestrator import LoopState, ToolOrchestrator
from toolgate.infrastructure.agent.prompts import build_tool_prompt

__all__ = ["LoopState", "ToolOrchestrator", "build_tool_prompt"]
