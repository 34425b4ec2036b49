"""Conversation value objects."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationMessage:
    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationMessage":
        return cls(role=Role(data["role"]), content=str(data["content"]))

    @classmethod
    def system(cls, content: str) -> "ConversationMessage":
        return cls(Role.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "ConversationMessage":
        return cls(Role.USER, content)

    @classmethod
    def assistant(cls, content: str) -> "ConversationMessage":
        return cls(Role.ASSISTANT, content)


class Conversation:
    """
    Append-only message history owned by a single orchestration run.

    Messages can be added but never edited or removed, so a tool result
    always follows the assistant message that requested it.
    """

    def __init__(self, messages: Iterable[ConversationMessage] = ()) -> None:
        self._messages: list[ConversationMessage] = list(messages)

    def append(self, message: ConversationMessage) -> None:
        self._messages.append(message)

    def with_preamble(self, preamble: ConversationMessage) -> list[ConversationMessage]:
        """Return a new list with ``preamble`` in front, leaving history untouched."""
        return [preamble, *self._messages]

    @property
    def messages(self) -> tuple[ConversationMessage, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ConversationMessage]:
        return iter(tuple(self._messages))
