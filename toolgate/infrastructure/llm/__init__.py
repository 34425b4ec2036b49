from toolgate.infrastructure.llm.action_extractor import ActionExtractor, extract_actions
from toolgate.infrastructure.llm.stream_client import LLMStreamClient

__all__ = ["ActionExtractor", "LLMStreamClient", "extract_actions"]
