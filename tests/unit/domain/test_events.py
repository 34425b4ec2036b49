"""Unit tests for stream events, tool invocations and conversations."""

import json

import pytest

from toolgate.domain.conversation import Conversation, ConversationMessage, Role
from toolgate.domain.events import StreamEvent, StreamEventType
from toolgate.domain.tool import ToolDescriptor, ToolInvocation


class TestStreamEvent:
    """Tests for the event wire format."""

    def test_chunk_wire_format(self):
        assert StreamEvent.chunk("hello").to_dict() == {"type": "chunk", "data": "hello"}

    def test_action_wire_format(self):
        event = StreamEvent.action(ToolInvocation("listFiles", {"path": "."}))

        assert event.to_dict() == {
            "type": "action",
            "data": {"action": "listFiles", "params": {"path": "."}},
        }

    def test_error_wire_format(self):
        assert StreamEvent.failure("boom").to_dict() == {"type": "error", "error": "boom"}

    def test_done_is_terminal(self):
        event = StreamEvent.done()

        assert event.to_dict() == {"type": "done"}
        assert event.is_terminal
        assert not StreamEvent.chunk("x").is_terminal

    def test_event_type_values(self):
        assert StreamEventType.CHUNK == "chunk"
        assert StreamEventType.ERROR == "error"


class TestToolInvocation:
    """Tests for ToolInvocation.from_json."""

    def test_accepts_action_with_params(self):
        invocation = ToolInvocation.from_json({"action": "readFile", "params": {"path": "a"}})

        assert invocation == ToolInvocation("readFile", {"path": "a"})

    def test_accepts_empty_params(self):
        assert ToolInvocation.from_json({"action": "deleteFile", "params": {}}) is not None

    @pytest.mark.parametrize(
        "value",
        [
            {"action": "readFile"},
            {"params": {}},
            {"action": "", "params": {}},
            {"action": 3, "params": {}},
            {"action": "readFile", "params": []},
            ["action", "params"],
            "readFile",
        ],
    )
    def test_rejects_non_actions(self, value):
        assert ToolInvocation.from_json(value) is None

    def test_to_json_round_trips_through_json(self):
        invocation = ToolInvocation("writeFile", {"path": "ü.txt", "content": "x"})

        assert json.loads(invocation.to_json()) == invocation.to_dict()
        assert "ü" in invocation.to_json()


class TestToolDescriptor:
    """Tests for ToolDescriptor schema helpers."""

    @pytest.fixture
    def descriptor(self):
        async def run(params):
            return "ok"

        return ToolDescriptor(
            name="grep",
            description="Search",
            parameter_schema={
                "type": "object",
                "properties": {"pattern": {"type": "string"}},
                "required": ["pattern"],
            },
            executor=run,
        )

    def test_required_and_properties(self, descriptor):
        assert descriptor.required == ["pattern"]
        assert descriptor.properties == {"pattern": {"type": "string"}}

    def test_to_dict(self, descriptor):
        assert descriptor.to_dict() == {
            "name": "grep",
            "description": "Search",
            "schema": {
                "type": "object",
                "properties": {"pattern": {"type": "string"}},
                "required": ["pattern"],
            },
        }

    def test_missing_required_list_defaults_to_empty(self):
        async def run(params):
            return ""

        descriptor = ToolDescriptor("math", "calc", {"type": "object"}, run)

        assert descriptor.required == []
        assert descriptor.properties == {}


class TestConversation:
    """Tests for the append-only conversation."""

    def test_with_preamble_does_not_modify_history(self):
        conversation = Conversation([ConversationMessage.user("hi")])
        preamble = ConversationMessage.system("tools")

        merged = conversation.with_preamble(preamble)

        assert merged[0] == preamble
        assert len(conversation) == 1
        assert conversation.messages == (ConversationMessage.user("hi"),)

    def test_append_keeps_order(self):
        conversation = Conversation()
        conversation.append(ConversationMessage.assistant("call"))
        conversation.append(ConversationMessage.user("result"))

        assert [m.role for m in conversation] == [Role.ASSISTANT, Role.USER]

    def test_message_dict_round_trip(self):
        message = ConversationMessage.from_dict({"role": "assistant", "content": "x"})

        assert message.to_dict() == {"role": "assistant", "content": "x"}

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            ConversationMessage.from_dict({"role": "tool", "content": "x"})
