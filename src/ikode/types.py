"""
Core types for the agent system.

These types represent the data that flows through the agent loop:
messages in the conversation, the tool calls the model emits, and the
results those calls produce.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class Role(str, Enum):
    """Message roles in the conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass
class TextPart:
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass
class ImagePart:
    """An image given by URL or data URI."""
    url: str
    detail: str | None = None

    def to_dict(self) -> dict[str, Any]:
        image: dict[str, Any] = {"url": self.url}
        if self.detail is not None:
            image["detail"] = self.detail
        return {"type": "image_url", "image_url": image}


@dataclass
class AudioPart:
    """Base64 audio data with its format (wav, mp3, ...)."""
    data: str
    format: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "input_audio", "input_audio": {"data": self.data, "format": self.format}}


@dataclass
class FilePart:
    """A file attached inline (base64 data) or by provider-side id."""
    file_data: str | None = None
    file_id: str | None = None
    filename: str | None = None

    def to_dict(self) -> dict[str, Any]:
        file: dict[str, Any] = {}
        if self.file_data is not None:
            file["file_data"] = self.file_data
        if self.file_id is not None:
            file["file_id"] = self.file_id
        if self.filename is not None:
            file["filename"] = self.filename
        return {"type": "file", "file": file}


ContentPart = Union[TextPart, ImagePart, AudioPart, FilePart]

# A single item and a one-element list mean the same thing.
Content = Union[str, ContentPart, list[ContentPart], None]


def normalize_content(content: Content) -> list[ContentPart]:
    """
    Flatten the one-or-many content union into an ordered list.

    This is the only place that branches on the shape of message content;
    everything downstream works on the returned list.
    """
    if content is None:
        return []
    if isinstance(content, str):
        return [TextPart(content)]
    if isinstance(content, list):
        return list(content)
    return [content]


def content_part_from_dict(data: dict[str, Any]) -> ContentPart:
    """Parse an OpenAI-format content part."""
    part_type = data.get("type")
    if part_type == "text":
        return TextPart(data.get("text", ""))
    if part_type == "image_url":
        image = data.get("image_url") or {}
        return ImagePart(url=image.get("url", ""), detail=image.get("detail"))
    if part_type == "input_audio":
        audio = data.get("input_audio") or {}
        return AudioPart(data=audio.get("data", ""), format=audio.get("format", ""))
    if part_type == "file":
        file = data.get("file") or {}
        return FilePart(
            file_data=file.get("file_data"),
            file_id=file.get("file_id"),
            filename=file.get("filename"),
        )
    raise ValueError(f"Unsupported content part type: {part_type!r}")


@dataclass
class ToolCall:
    """
    A request from the LLM to execute a tool.

    arguments is the raw JSON string exactly as the provider sent it. It is
    untrusted and is only parsed at the dispatch boundary, into the typed
    argument structure of the named tool.
    """
    id: str
    name: str
    arguments: str = "{}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        function = data.get("function") or {}
        arguments = function.get("arguments")
        if arguments is None:
            # Left empty so dispatch reports it instead of guessing.
            arguments = ""
        elif not isinstance(arguments, str):
            # Some backends send an already-decoded object.
            arguments = json.dumps(arguments)
        return cls(
            id=data.get("id", ""),
            name=function.get("name", ""),
            arguments=arguments,
        )


@dataclass
class Message:
    """A single message in the conversation history."""
    role: Role
    content: Content = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    @property
    def parts(self) -> list[ContentPart]:
        return normalize_content(self.content)

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "\n".join(p.text for p in self.parts if isinstance(p, TextPart))

    def to_dict(self) -> dict[str, Any]:
        """Convert to OpenAI API format."""
        parts = self.parts
        content: Any
        if not parts:
            content = None
        elif len(parts) == 1 and isinstance(parts[0], TextPart):
            content = parts[0].text
        else:
            content = [p.to_dict() for p in parts]

        result: dict[str, Any] = {
            "role": self.role.value,
            "content": content,
        }
        if self.tool_call_id is not None:
            result["tool_call_id"] = self.tool_call_id
        if self.tool_calls:
            result["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Create from OpenAI API format."""
        raw_content = data.get("content")
        content: Content
        if isinstance(raw_content, list):
            content = [content_part_from_dict(p) for p in raw_content]
        else:
            content = raw_content

        tool_calls = None
        if data.get("tool_calls"):
            tool_calls = [ToolCall.from_dict(tc) for tc in data["tool_calls"]]

        return cls(
            role=Role(data["role"]),
            content=content,
            tool_calls=tool_calls,
            tool_call_id=data.get("tool_call_id"),
        )


@dataclass
class ToolResult:
    """
    The result of executing a tool.

    This becomes a tool message in the conversation history. error holds
    the failure kind (PathEscape, NotFound, ...) when success is False.
    """
    tool_call_id: str
    content: str
    success: bool = True
    error: str | None = None


@dataclass
class TruncationEvent:
    """Records that the history window left messages out of a request."""
    messages_dropped: int
    messages_sent: int
    messages_stored: int


class LoopPhase(str, Enum):
    """Where the agent loop is in its turn cycle."""
    AWAITING_USER_INPUT = "awaiting_user_input"
    REQUEST_SENT = "request_sent"
    EXECUTING_TOOLS = "executing_tools"
    RESULTS_APPENDED = "results_appended"
    FAILED = "failed"
    EXITED = "exited"


@dataclass
class LoopState:
    """The current state of the agent loop."""
    phase: LoopPhase = LoopPhase.AWAITING_USER_INPUT
    step: int = 0
    tool_call_count: int = 0
    final_response: str | None = None
    error: str | None = None
    history: list[LoopPhase] = field(default_factory=list)

    def transition(self, phase: LoopPhase) -> None:
        self.history.append(self.phase)
        self.phase = phase
