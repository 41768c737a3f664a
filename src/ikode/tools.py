"""
Tool System - the only way the agent affects the world.

A tool is a name, a description and a JSON schema shown to the model, an
argument type, and a handler. The raw JSON the model sends is parsed into
the argument type exactly once, here, and the handler only ever sees the
typed value.

Any ToolError raised while parsing or running a tool becomes the text of
the tool result, so the model can read it and correct itself. Tool
failures never abort the agent loop.
"""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

from ikode.errors import BadArgumentsError, ExecutionFailureError, NotFoundError, ToolError
from ikode.types import ToolCall, ToolResult

logger = logging.getLogger(__name__)


class ToolArguments(Protocol):
    """Typed arguments of one tool, built from the decoded JSON object."""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolArguments": ...


ArgsT = TypeVar("ArgsT", bound=ToolArguments)


def parse_arguments(arguments: str, args_type: type[ArgsT]) -> ArgsT:
    """
    Decode a tool call's JSON arguments into args_type.

    Malformed or missing JSON is a hard failure: there is no fallback to
    empty arguments. A tool without parameters takes "{}".
    """
    if arguments is None or not arguments.strip():
        raise BadArgumentsError(
            "Arguments are empty. Send a JSON object, or {} for a tool without parameters."
        )
    try:
        data = json.loads(arguments)
    except json.JSONDecodeError as e:
        raise BadArgumentsError(f"Arguments are not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise BadArgumentsError(
            f"Arguments must be a JSON object, got {type(data).__name__}."
        )
    return args_type.from_dict(data)


_JSON_TYPES: dict[type, str] = {
    str: "string",
    int: "integer",
    bool: "boolean",
    list: "array",
}


def require(data: dict[str, Any], key: str, expected: type) -> Any:
    """Fetch a required argument and check its JSON type."""
    if key not in data or data[key] is None:
        raise BadArgumentsError(f"Missing required argument '{key}'.")
    return optional(data, key, expected)


def optional(data: dict[str, Any], key: str, expected: type, default: Any = None) -> Any:
    """Fetch an optional argument and check its JSON type."""
    value = data.get(key)
    if value is None:
        return default
    # bool is a subclass of int; a JSON true is not an integer.
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise BadArgumentsError(
            f"Argument '{key}' must be of type {_JSON_TYPES.get(expected, expected.__name__)}, "
            f"got {type(value).__name__}."
        )
    return value


@dataclass
class Tool(Generic[ArgsT]):
    """
    Definition of a tool that the agent can use.

    A tool has:
    - name: Unique identifier
    - description: What the tool does (shown to the LLM)
    - parameters: JSON Schema for the tool's parameters
    - args_type: Typed argument structure parsed from the call
    - handler: Function that executes the tool

    The handler is the ONLY code that can have side effects.
    """
    name: str
    description: str
    parameters: dict[str, Any]
    args_type: type[ArgsT]
    handler: Callable[[ArgsT], str]

    def to_openai_schema(self) -> dict[str, Any]:
        """Convert to OpenAI tool format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def execute(self, arguments: str) -> ToolResult:
        """
        Parse the raw arguments and run the handler.

        The result is returned as a ToolResult that will be added to the
        conversation.
        """
        try:
            args = parse_arguments(arguments, self.args_type)
            result = self.handler(args)
            return ToolResult(
                tool_call_id="",
                content=str(result),
                success=True,
            )
        except ToolError as e:
            logger.info(f"Tool {self.name} failed: [{e.kind}] {e.message}")
            return ToolResult(
                tool_call_id="",
                content=e.to_result_text(),
                success=False,
                error=e.kind,
            )
        except Exception as e:
            logger.exception(f"Tool {self.name} raised unexpectedly")
            failure = ExecutionFailureError(f"{type(e).__name__}: {e}")
            return ToolResult(
                tool_call_id="",
                content=failure.to_result_text(),
                success=False,
                error=failure.kind,
            )


@dataclass
class ToolRegistry:
    """
    Registry of available tools.

    The registry is the controlled interface through which the agent
    can affect the world. Only tools registered here can be called, and
    its schemas are the catalog sent with every request.
    """

    _tools: dict[str, Tool[Any]] = field(default_factory=dict)

    def register(self, tool: Tool[Any]) -> None:
        """Register a tool."""
        if tool.name in self._tools:
            logger.warning(f"Overwriting existing tool: {tool.name}")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def register_function(
        self,
        name: str,
        description: str,
        parameters: dict[str, Any],
        args_type: type[ArgsT],
        handler: Callable[[ArgsT], str],
    ) -> Tool[ArgsT]:
        """Convenience method to register a function as a tool."""
        tool = Tool(
            name=name,
            description=description,
            parameters=parameters,
            args_type=args_type,
            handler=handler,
        )
        self.register(tool)
        return tool

    def get(self, name: str) -> Tool[Any] | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def execute(self, tool_call: ToolCall) -> ToolResult:
        """
        Execute a tool call.

        This is the controlled entry point for all side effects.
        """
        result = self.dispatch(tool_call.name, tool_call.arguments)
        result.tool_call_id = tool_call.id
        return result

    def dispatch(self, name: str, arguments: str) -> ToolResult:
        """Run the named tool on raw JSON arguments."""
        tool = self._tools.get(name)
        if tool is None:
            error = NotFoundError(
                f"Unknown tool '{name}'. Available tools: {', '.join(self.tool_names)}."
            )
            return ToolResult(
                tool_call_id="",
                content=error.to_result_text(),
                success=False,
                error=error.kind,
            )

        logger.info(f"Executing tool: {name}")
        return tool.execute(arguments)

    def get_schemas(self) -> list[dict[str, Any]]:
        """Get OpenAI-format schemas for all registered tools."""
        return [tool.to_openai_schema() for tool in self._tools.values()]

    @property
    def tool_names(self) -> list[str]:
        """List of registered tool names."""
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
