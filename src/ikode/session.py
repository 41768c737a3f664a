"""
Session - owner of the conversation.

The session holds every message exchanged in this process. Index 0 is
always the system message; it is never dropped or moved, and clear()
cuts the conversation back to it. Nothing is persisted: when the process
exits, the conversation is gone.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from ikode.types import Content, Message, Role, ToolCall, ToolResult


@dataclass
class Session:
    """
    A single agent session.

    cache_key identifies the conversation to providers that support
    prompt caching. It is rotated on clear() because the cached prefix is
    no longer valid once the history is reset.
    """

    system_prompt: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    cache_key: str = field(default_factory=lambda: str(uuid.uuid4()))
    messages: list[Message] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.messages:
            self.messages.append(Message(role=Role.SYSTEM, content=self.system_prompt))
        elif self.messages[0].role != Role.SYSTEM:
            raise ValueError("The first message of a session must be the system message")

    @property
    def system_message(self) -> Message:
        return self.messages[0]

    def add_user_message(self, content: Content) -> Message:
        """Add a user message to the conversation."""
        message = Message(role=Role.USER, content=content)
        self.messages.append(message)
        return message

    def add_assistant_message(
        self,
        content: Content,
        tool_calls: list[ToolCall] | None = None,
    ) -> Message:
        """Add an assistant message to the conversation."""
        message = Message(
            role=Role.ASSISTANT,
            content=content,
            tool_calls=tool_calls or None,
        )
        self.messages.append(message)
        return message

    def add_tool_result(self, result: ToolResult) -> Message:
        """Add a tool result message to the conversation."""
        message = Message(
            role=Role.TOOL,
            content=result.content,
            tool_call_id=result.tool_call_id,
        )
        self.messages.append(message)
        return message

    def truncate(self, length: int) -> None:
        """Drop every message after the first length messages (never the system message)."""
        del self.messages[max(length, 1):]

    def clear(self) -> None:
        """Reset the conversation to just the system message."""
        self.truncate(1)
        self.cache_key = str(uuid.uuid4())

    def get_messages(self) -> list[Message]:
        """Get all messages in the conversation."""
        return list(self.messages)

    def get_message_dicts(self) -> list[dict]:
        """Get all messages as dicts (for API calls)."""
        return [m.to_dict() for m in self.messages]

    @property
    def message_count(self) -> int:
        """Number of messages in the conversation."""
        return len(self.messages)
