"""
Errors raised while executing a tool call.

Every failure inside a single tool invocation is a ToolError. The registry
turns it into the text of the tool result so the model can read what went
wrong and adjust, instead of the session being aborted. Provider failures
are not tool errors; see LLMError in ikode.llm.
"""


class ToolError(Exception):
    """Base class for failures reported back to the model as a tool result."""

    kind = "ToolError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_result_text(self) -> str:
        return f"Error [{self.kind}]: {self.message}"


class PathEscapeError(ToolError):
    """A path resolves outside the working directory."""
    kind = "PathEscape"


class InvalidPathError(ToolError):
    """A path is empty or malformed."""
    kind = "InvalidPath"


class NotFoundError(ToolError):
    """A file, todo item, tool or search text does not exist."""
    kind = "NotFound"


class AmbiguousError(ToolError):
    """The text to replace occurs more than once."""
    kind = "Ambiguous"


class AlreadyExistsError(ToolError):
    """The file to create is already there."""
    kind = "AlreadyExists"


class TooLargeError(ToolError):
    """The file exceeds the read size cap."""
    kind = "TooLarge"


class BadArgumentsError(ToolError):
    """Tool arguments are not valid JSON or do not match the tool's parameters."""
    kind = "BadArguments"


class DeclinedError(ToolError):
    """The user refused to confirm a mutating operation."""
    kind = "Declined"


class ExecutionFailureError(ToolError):
    """A command could not be spawned, timed out, or exited non-zero."""
    kind = "ExecutionFailure"
