"""
Normalized stream events relayed to clients.

Wire format, one JSON object per event:
    {"type": "chunk", "data": "<text>"}
    {"type": "action", "data": {"action": "<tool>", "params": {...}}}
    {"type": "done"}
    {"type": "error", "error": "<message>"}
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from toolgate.domain.tool import ToolInvocation


class StreamEventType(str, Enum):
    """Types of events emitted to clients."""

    CHUNK = "chunk"
    ACTION = "action"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class StreamEvent:
    type: StreamEventType
    text: str | None = None
    invocation: ToolInvocation | None = None
    error: str | None = None

    @classmethod
    def chunk(cls, text: str) -> StreamEvent:
        return cls(StreamEventType.CHUNK, text=text)

    @classmethod
    def action(cls, invocation: ToolInvocation) -> StreamEvent:
        return cls(StreamEventType.ACTION, invocation=invocation)

    @classmethod
    def done(cls) -> StreamEvent:
        return cls(StreamEventType.DONE)

    @classmethod
    def failure(cls, message: str) -> StreamEvent:
        return cls(StreamEventType.ERROR, error=message)

    @property
    def is_terminal(self) -> bool:
        return self.type == StreamEventType.DONE

    def to_dict(self) -> dict[str, Any]:
        if self.type == StreamEventType.CHUNK:
            return {"type": "chunk", "data": self.text or ""}
        if self.type == StreamEventType.ACTION:
            assert self.invocation is not None
            return {"type": "action", "data": self.invocation.to_dict()}
        if self.type == StreamEventType.ERROR:
            return {"type": "error", "error": self.error or ""}
        return {"type": "done"}
