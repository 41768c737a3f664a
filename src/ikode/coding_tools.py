"""
The coding tool catalog.

Each tool has its own argument dataclass; together they form the closed
set of things the model can ask for. File tools go through PathValidator
first, mutating tools (edit, create, shell) ask the user for confirmation
unless brave mode is on, and todo tools work on the in-memory TodoStore.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ikode.config import ToolConfig
from ikode.errors import (
    BadArgumentsError,
    DeclinedError,
    ExecutionFailureError,
    InvalidPathError,
    NotFoundError,
    TooLargeError,
)
from ikode.patch import apply_patch, create_file, ensure_creatable, read_text_file, write_text_file
from ikode.paths import PathValidator
from ikode.shell import run_command
from ikode.todo import TodoStatus, TodoStore
from ikode.tools import ToolRegistry, optional, require

logger = logging.getLogger(__name__)

Confirmer = Callable[[str], bool]


def _decline(description: str) -> bool:
    return False


def _split_lines(content: str) -> list[str]:
    """
    Split on "\\n" only, so numbering matches what editors and offsets count.

    str.splitlines() also breaks on form feeds, \\x1c-\\x1e, \\x85 and
    \\u2028, which would shift every line number after one of them.
    """
    lines = content.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line.removesuffix("\r") for line in lines]


# =============================================================================
# Argument types
# =============================================================================


@dataclass
class ReadFileArgs:
    path: str
    offset: int = 0
    limit: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReadFileArgs":
        offset = optional(data, "offset", int, 0)
        limit = optional(data, "limit", int)
        if offset < 0:
            raise BadArgumentsError("offset must be >= 0.")
        if limit is not None and limit < 1:
            raise BadArgumentsError("limit must be >= 1.")
        return cls(path=require(data, "path", str), offset=offset, limit=limit)


@dataclass
class EditFileArgs:
    path: str
    old_text: str
    new_text: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EditFileArgs":
        return cls(
            path=require(data, "path", str),
            old_text=require(data, "old_text", str),
            new_text=require(data, "new_text", str),
        )


@dataclass
class CreateFileArgs:
    path: str
    content: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CreateFileArgs":
        return cls(
            path=require(data, "path", str),
            content=require(data, "content", str),
        )


@dataclass
class ExecuteCommandArgs:
    command: str
    args: list[str] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExecuteCommandArgs":
        command = require(data, "command", str)
        if not command.strip():
            raise BadArgumentsError("command must not be empty.")
        args = optional(data, "args", list)
        if args is not None and not all(isinstance(a, str) for a in args):
            raise BadArgumentsError("Every entry of 'args' must be a string.")
        return cls(command=command, args=args)


@dataclass
class TodoAddArgs:
    text: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TodoAddArgs":
        return cls(text=require(data, "text", str))


@dataclass
class TodoInsertArgs:
    before_id: int
    text: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TodoInsertArgs":
        return cls(
            before_id=require(data, "before_id", int),
            text=require(data, "text", str),
        )


@dataclass
class TodoUpdateArgs:
    id: int
    status: TodoStatus

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TodoUpdateArgs":
        return cls(
            id=require(data, "id", int),
            status=TodoStatus.parse(require(data, "status", str)),
        )


@dataclass
class TodoCompleteArgs:
    ids: list[int]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TodoCompleteArgs":
        ids = require(data, "ids", list)
        if not all(isinstance(i, int) and not isinstance(i, bool) for i in ids):
            raise BadArgumentsError("Every entry of 'ids' must be an integer.")
        return cls(ids=ids)


@dataclass
class TodoListArgs:
    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TodoListArgs":
        return cls()


# =============================================================================
# Handlers
# =============================================================================


class CodingToolset:
    """
    Handlers for the coding tools, bound to one working directory.

    confirm is asked before every edit, file creation and shell command
    unless config.brave is set. When no confirmer is given, every mutating
    operation is declined.
    """

    def __init__(
        self,
        validator: PathValidator,
        config: ToolConfig | None = None,
        todos: TodoStore | None = None,
        confirm: Confirmer | None = None,
    ) -> None:
        self.validator = validator
        self.config = config or ToolConfig()
        self.todos = todos if todos is not None else TodoStore()
        self.confirm = confirm or _decline

    def _confirm(self, description: str, declined: str) -> None:
        if self.config.brave:
            return
        if not self.confirm(description):
            logger.info(f"User declined: {description}")
            raise DeclinedError(declined)

    def _read_existing(self, path_arg: str) -> Path:
        path = self.validator.validate(path_arg)
        if not path.exists():
            raise NotFoundError(f"File '{path_arg}' does not exist.")
        if not path.is_file():
            raise InvalidPathError(f"'{path_arg}' is not a regular file.")
        return path

    def read_file(self, args: ReadFileArgs) -> str:
        path = self._read_existing(args.path)

        size = path.stat().st_size
        if size > self.config.max_file_size:
            raise TooLargeError(
                f"File is too large ({size / (1024 * 1024):.1f} MB). Maximum supported "
                f"size is {self.config.max_file_size / (1024 * 1024):.0f} MB."
            )

        try:
            content = read_text_file(path)
        except UnicodeDecodeError as e:
            raise BadArgumentsError(f"'{args.path}' is not a UTF-8 text file: {e}") from e

        lines = _split_lines(content)
        total = len(lines)
        limit = args.limit or self.config.read_default_limit

        if total == 0:
            return "(empty file)"
        if args.offset >= total:
            return f"(offset {args.offset} is past the end of the file, which has {total} lines)"

        window = lines[args.offset:args.offset + limit]
        result = "\n".join(
            f"{args.offset + i + 1:>6}\t{line}" for i, line in enumerate(window)
        )

        last_shown = args.offset + len(window)
        if last_shown < total:
            result += (
                f"\n\n... ({total - last_shown} more lines not shown. "
                f"Use offset={last_shown} to continue reading.)"
            )
        return result

    def edit_file(self, args: EditFileArgs) -> str:
        path = self._read_existing(args.path)
        try:
            content = read_text_file(path)
        except UnicodeDecodeError as e:
            raise BadArgumentsError(f"'{args.path}' is not a UTF-8 text file: {e}") from e

        new_content = apply_patch(content, args.old_text, args.new_text)

        self._confirm(f"Edit file {args.path}", "File edit cancelled by user.")
        write_text_file(path, new_content)
        logger.info(f"Edited {path}")
        return f"File {self.validator.relative(path)} updated successfully."

    def create_file(self, args: CreateFileArgs) -> str:
        path = self.validator.validate(args.path)
        ensure_creatable(path)

        self._confirm(f"Create file {args.path}", "File creation cancelled by user.")
        create_file(path, args.content)
        return f"File {self.validator.relative(path)} created successfully."

    def execute_command(self, args: ExecuteCommandArgs) -> str:
        shown = " ".join([args.command, *(args.args or [])])
        self._confirm(f"Execute command: {shown}", "Command cancelled by user.")

        output = run_command(
            args.command,
            args=args.args,
            cwd=self.validator.root,
            timeout=self.config.command_timeout,
        )
        if not output.success:
            raise ExecutionFailureError(output.format())
        return output.format()

    def todo_add(self, args: TodoAddArgs) -> str:
        item = self.todos.add(args.text)
        return f"Added task [{item.id}].\n{self.todos.format()}"

    def todo_insert(self, args: TodoInsertArgs) -> str:
        item = self.todos.insert(args.before_id, args.text)
        return f"Inserted task [{item.id}] before [{args.before_id}].\n{self.todos.format()}"

    def todo_update(self, args: TodoUpdateArgs) -> str:
        item = self.todos.update(args.id, args.status)
        return f"Task [{item.id}] is now {item.status.value}."

    def todo_complete(self, args: TodoCompleteArgs) -> str:
        done = self.todos.complete(args.ids)
        return f"Marked {len(done)} task(s) as done.\n{self.todos.format()}"

    def todo_list(self, args: TodoListArgs) -> str:
        return self.todos.format()


# =============================================================================
# Catalog
# =============================================================================


def _object(properties: dict[str, Any], required: list[str] | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def create_coding_tools(toolset: CodingToolset) -> ToolRegistry:
    """Build the registry holding the full tool catalog for toolset."""
    registry = ToolRegistry()

    registry.register_function(
        name="read_file",
        description=(
            "Reads a file's content with line numbers. Returns at most "
            f"{toolset.config.read_default_limit} lines. Use offset and limit to read "
            "specific line ranges of large files."
        ),
        parameters=_object(
            {
                "path": {"type": "string", "description": "Path to the file"},
                "offset": {
                    "type": "integer",
                    "description": "Number of lines to skip before reading. Defaults to 0.",
                },
                "limit": {
                    "type": "integer",
                    "description": (
                        "Maximum number of lines to return. "
                        f"Defaults to {toolset.config.read_default_limit}."
                    ),
                },
            },
            ["path"],
        ),
        args_type=ReadFileArgs,
        handler=toolset.read_file,
    )

    registry.register_function(
        name="edit_file",
        description=(
            "Performs a search-and-replace edit on an existing file. The old_text must "
            "match exactly (including whitespace and indentation) and occur exactly once. "
            "For multiple edits to the same file, call this tool multiple times."
        ),
        parameters=_object(
            {
                "path": {"type": "string", "description": "Path to the file to edit"},
                "old_text": {
                    "type": "string",
                    "description": "The exact text to find and replace. Must match the file content exactly.",
                },
                "new_text": {"type": "string", "description": "The replacement text."},
            },
            ["path", "old_text", "new_text"],
        ),
        args_type=EditFileArgs,
        handler=toolset.edit_file,
    )

    registry.register_function(
        name="create_file",
        description="Creates a new file with the given content. Fails if the file already exists.",
        parameters=_object(
            {
                "path": {"type": "string", "description": "Path for the new file"},
                "content": {"type": "string", "description": "Content of the new file"},
            },
            ["path", "content"],
        ),
        args_type=CreateFileArgs,
        handler=toolset.create_file,
    )

    registry.register_function(
        name="execute_command",
        description=(
            "Executes a command in the working directory and returns its exit code, "
            "stdout and stderr. Without args the command is run by the shell; with args "
            "the program is run directly with those arguments."
        ),
        parameters=_object(
            {
                "command": {"type": "string", "description": "The command to execute"},
                "args": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Optional arguments; when given, no shell is used.",
                },
            },
            ["command"],
        ),
        args_type=ExecuteCommandArgs,
        handler=toolset.execute_command,
    )

    registry.register_function(
        name="todo_add",
        description="Adds a task to the end of the todo list.",
        parameters=_object(
            {"text": {"type": "string", "description": "The task description"}},
            ["text"],
        ),
        args_type=TodoAddArgs,
        handler=toolset.todo_add,
    )

    registry.register_function(
        name="todo_insert",
        description="Inserts a task before another task in the todo list. Returns the updated list.",
        parameters=_object(
            {
                "before_id": {
                    "type": "integer",
                    "description": "The ID of the task before which to insert the new task.",
                },
                "text": {"type": "string", "description": "The task to insert."},
            },
            ["before_id", "text"],
        ),
        args_type=TodoInsertArgs,
        handler=toolset.todo_insert,
    )

    registry.register_function(
        name="todo_update",
        description="Sets the status of a task.",
        parameters=_object(
            {
                "id": {"type": "integer", "description": "The task ID"},
                "status": {
                    "type": "string",
                    "enum": [s.value for s in TodoStatus],
                    "description": "The new status",
                },
            },
            ["id", "status"],
        ),
        args_type=TodoUpdateArgs,
        handler=toolset.todo_update,
    )

    registry.register_function(
        name="todo_complete",
        description="Marks tasks as done by ID.",
        parameters=_object(
            {
                "ids": {
                    "type": "array",
                    "items": {"type": "integer"},
                    "description": "Array of task IDs",
                },
            },
            ["ids"],
        ),
        args_type=TodoCompleteArgs,
        handler=toolset.todo_complete,
    )

    registry.register_function(
        name="todo_list",
        description="Lists all tasks in the todo list.",
        parameters=_object({}),
        args_type=TodoListArgs,
        handler=toolset.todo_list,
    )

    return registry
