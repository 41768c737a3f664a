"""
Tests for Session - the owner of the conversation.

These tests verify the core constraint: message 0 is always the system
message, and nothing outlives the process.
"""

import pytest

from ikode.session import Session
from ikode.types import ImagePart, Message, Role, TextPart, ToolCall, ToolResult


class TestSessionBasics:
    """Test basic session operations."""

    def test_session_creates_with_unique_id(self) -> None:
        """Each session should have a unique ID and cache key."""
        s1 = Session()
        s2 = Session()
        assert s1.id != s2.id
        assert s1.cache_key != s2.cache_key

    def test_system_prompt_is_first_message(self) -> None:
        session = Session(system_prompt="You are helpful.")
        messages = session.get_messages()
        assert len(messages) == 1
        assert messages[0].role == Role.SYSTEM
        assert messages[0].content == "You are helpful."

    def test_empty_system_prompt_still_occupies_slot(self) -> None:
        session = Session()
        assert session.message_count == 1
        assert session.system_message.role == Role.SYSTEM

    def test_add_user_message(self) -> None:
        session = Session(system_prompt="sys")
        session.add_user_message("Hello")
        messages = session.get_messages()
        assert len(messages) == 2
        assert messages[1].role == Role.USER
        assert messages[1].content == "Hello"

    def test_add_multimodal_user_message(self) -> None:
        session = Session()
        session.add_user_message([TextPart("what is this?"), ImagePart(url="data:image/png;base64,AAAA")])
        payload = session.get_message_dicts()[1]
        assert payload["content"][0] == {"type": "text", "text": "what is this?"}
        assert payload["content"][1]["type"] == "image_url"

    def test_assistant_message_with_tool_calls(self) -> None:
        session = Session()
        call = ToolCall(id="call_1", name="read_file", arguments='{"path": "a.txt"}')
        session.add_assistant_message(None, tool_calls=[call])

        payload = session.get_message_dicts()[1]
        assert payload["role"] == "assistant"
        assert payload["content"] is None
        assert payload["tool_calls"][0]["id"] == "call_1"

    def test_empty_tool_calls_become_none(self) -> None:
        session = Session()
        message = session.add_assistant_message("done", tool_calls=[])
        assert message.tool_calls is None
        assert "tool_calls" not in message.to_dict()

    def test_add_tool_result(self) -> None:
        """Tool results should be added as tool messages."""
        session = Session()
        result = ToolResult(
            tool_call_id="call_123",
            content="File contents here",
            success=True,
        )
        session.add_tool_result(result)
        message = session.get_messages()[-1]
        assert message.role == Role.TOOL
        assert message.tool_call_id == "call_123"
        assert message.content == "File contents here"

    def test_get_messages_returns_copy(self) -> None:
        session = Session()
        session.get_messages().append(Message(role=Role.USER, content="sneaky"))
        assert session.message_count == 1

    def test_first_message_must_be_system(self) -> None:
        with pytest.raises(ValueError):
            Session(messages=[Message(role=Role.USER, content="hi")])


class TestSessionReset:
    """clear() and truncate() never remove the system message."""

    def test_clear_keeps_system_message(self) -> None:
        session = Session(system_prompt="sys")
        for i in range(5):
            session.add_user_message(f"msg {i}")

        session.clear()

        assert session.message_count == 1
        assert session.system_message.content == "sys"

    def test_clear_rotates_cache_key(self) -> None:
        session = Session()
        before = session.cache_key
        session.clear()
        assert session.cache_key != before

    def test_clear_keeps_session_id(self) -> None:
        session = Session()
        before = session.id
        session.clear()
        assert session.id == before

    def test_truncate(self) -> None:
        session = Session(system_prompt="sys")
        session.add_user_message("a")
        session.add_assistant_message("b")
        session.add_user_message("c")

        session.truncate(2)

        assert [m.content for m in session.get_messages()] == ["sys", "a"]

    def test_truncate_never_below_system_message(self) -> None:
        session = Session(system_prompt="sys")
        session.add_user_message("a")
        session.truncate(0)
        assert session.message_count == 1
        assert session.system_message.content == "sys"
