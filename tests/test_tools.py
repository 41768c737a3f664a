"""
Tests for the tool system.

These tests verify that arguments are parsed strictly at the dispatch
boundary and that every failure comes back to the model as a tool result
instead of escaping the registry.
"""

from dataclasses import dataclass
from typing import Any

import pytest

from ikode.errors import BadArgumentsError, NotFoundError
from ikode.tools import Tool, ToolRegistry, optional, parse_arguments, require
from ikode.types import ToolCall


@dataclass
class EchoArgs:
    message: str
    times: int = 1

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EchoArgs":
        return cls(
            message=require(data, "message", str),
            times=optional(data, "times", int, 1),
        )


@dataclass
class NoArgs:
    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NoArgs":
        return cls()


def _echo(args: EchoArgs) -> str:
    return " ".join([args.message] * args.times)


def _explode(args: NoArgs) -> str:
    raise RuntimeError("disk on fire")


def _missing(args: NoArgs) -> str:
    raise NotFoundError("nothing here")


@pytest.fixture
def registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register_function(
        name="echo",
        description="Echo a message",
        parameters={
            "type": "object",
            "properties": {"message": {"type": "string"}, "times": {"type": "integer"}},
            "required": ["message"],
        },
        args_type=EchoArgs,
        handler=_echo,
    )
    registry.register_function("explode", "Always fails", {"type": "object"}, NoArgs, _explode)
    registry.register_function("missing", "Reports NotFound", {"type": "object"}, NoArgs, _missing)
    return registry


class TestParseArguments:
    """Malformed arguments are a hard failure."""

    def test_valid(self) -> None:
        assert parse_arguments('{"message": "hi", "times": 2}', EchoArgs) == EchoArgs("hi", 2)

    @pytest.mark.parametrize("raw", ["", "   "])
    def test_empty_is_rejected(self, raw: str) -> None:
        with pytest.raises(BadArgumentsError) as exc_info:
            parse_arguments(raw, NoArgs)
        assert "empty" in str(exc_info.value)

    def test_empty_object_for_no_parameters(self) -> None:
        assert parse_arguments("{}", NoArgs) == NoArgs()

    def test_invalid_json(self) -> None:
        with pytest.raises(BadArgumentsError) as exc_info:
            parse_arguments('{"message": ', EchoArgs)
        assert "not valid JSON" in str(exc_info.value)

    def test_non_object(self) -> None:
        with pytest.raises(BadArgumentsError):
            parse_arguments('["hi"]', EchoArgs)

    def test_missing_required(self) -> None:
        with pytest.raises(BadArgumentsError) as exc_info:
            parse_arguments('{"times": 3}', EchoArgs)
        assert "'message'" in str(exc_info.value)

    def test_wrong_type(self) -> None:
        with pytest.raises(BadArgumentsError):
            parse_arguments('{"message": "hi", "times": "3"}', EchoArgs)

    def test_bool_is_not_integer(self) -> None:
        with pytest.raises(BadArgumentsError):
            parse_arguments('{"message": "hi", "times": true}', EchoArgs)


class TestToolRegistry:
    """Test the tool registry."""

    def test_register_and_lookup(self, registry: ToolRegistry) -> None:
        assert len(registry) == 3
        assert "echo" in registry
        assert registry.get("echo") is not None
        assert registry.get("nope") is None

    def test_schemas(self, registry: ToolRegistry) -> None:
        schemas = registry.get_schemas()
        assert [s["function"]["name"] for s in schemas] == ["echo", "explode", "missing"]
        assert schemas[0]["type"] == "function"
        assert schemas[0]["function"]["parameters"]["required"] == ["message"]

    def test_execute_success(self, registry: ToolRegistry) -> None:
        result = registry.execute(ToolCall(id="call_1", name="echo", arguments='{"message": "hi", "times": 2}'))
        assert result.success
        assert result.tool_call_id == "call_1"
        assert result.content == "hi hi"

    def test_bad_arguments_become_result(self, registry: ToolRegistry) -> None:
        result = registry.execute(ToolCall(id="call_2", name="echo", arguments="{not json"))
        assert not result.success
        assert result.error == "BadArguments"
        assert result.content.startswith("Error [BadArguments]:")
        assert result.tool_call_id == "call_2"

    def test_empty_arguments_become_result(self, registry: ToolRegistry) -> None:
        result = registry.execute(ToolCall(id="call_3", name="missing", arguments=""))
        assert not result.success
        assert result.error == "BadArguments"
        assert result.tool_call_id == "call_3"

    def test_unknown_tool(self, registry: ToolRegistry) -> None:
        result = registry.execute(ToolCall(id="call_3", name="rm_rf", arguments="{}"))
        assert not result.success
        assert result.error == "NotFound"
        assert "Unknown tool 'rm_rf'" in result.content
        assert "echo, explode, missing" in result.content

    def test_tool_error_kind_preserved(self, registry: ToolRegistry) -> None:
        result = registry.dispatch("missing", "{}")
        assert result.error == "NotFound"
        assert result.content == "Error [NotFound]: nothing here"

    def test_unexpected_exception_is_execution_failure(self, registry: ToolRegistry) -> None:
        result = registry.dispatch("explode", "{}")
        assert not result.success
        assert result.error == "ExecutionFailure"
        assert "RuntimeError: disk on fire" in result.content

    def test_overwrite_replaces_tool(self, registry: ToolRegistry) -> None:
        registry.register(Tool("echo", "Shout", {"type": "object"}, EchoArgs, lambda a: a.message.upper()))
        assert len(registry) == 3
        assert registry.dispatch("echo", '{"message": "hi"}').content == "HI"
