"""Request and response models for the HTTP surface."""

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from toolgate.configuration.generation import GenerationOverrides
from toolgate.domain.conversation import ConversationMessage, Role


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str

    def to_domain(self) -> ConversationMessage:
        return ConversationMessage(Role(self.role), self.content)


class ChatRequest(BaseModel):
    messages: list[ChatMessage]
    stream: bool = True

    def conversation(self) -> list[ConversationMessage]:
        return [message.to_domain() for message in self.messages]


class ChatWithOverridesRequest(ChatRequest):
    stream: bool = False
    overrides: GenerationOverrides | None = None


class ToolCallRequest(BaseModel):
    """Manual tool call. The tool name is accepted as ``tool`` or ``action``."""

    model_config = ConfigDict(populate_by_name=True)

    tool: str = Field(validation_alias=AliasChoices("tool", "action"))
    params: dict[str, Any] = Field(default_factory=dict)


class WebSocketChatFrame(BaseModel):
    """One chat request received over the WebSocket."""

    messages: list[ChatMessage]
    overrides: GenerationOverrides | None = None

    def conversation(self) -> list[ConversationMessage]:
        return [message.to_domain() for message in self.messages]
