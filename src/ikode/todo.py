"""
Todo store - the agent's in-memory task list.

Items get an increasing numeric id when they are created and are never
deleted or renumbered; only their status changes. Statuses normally move
pending -> in_progress -> done, but any status can be set directly.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from ikode.errors import BadArgumentsError, NotFoundError

logger = logging.getLogger(__name__)


class TodoStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @classmethod
    def parse(cls, value: str) -> "TodoStatus":
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise BadArgumentsError(
                f"Unknown status '{value}'. Expected one of: {allowed}."
            ) from None


_STATUS_MARKERS = {
    TodoStatus.PENDING: "[ ]",
    TodoStatus.IN_PROGRESS: "[*]",
    TodoStatus.DONE: "[x]",
}


@dataclass
class TodoItem:
    id: int
    text: str
    status: TodoStatus = TodoStatus.PENDING

    def format(self) -> str:
        return f"{_STATUS_MARKERS[self.status]} [{self.id}] {self.text}"


class TodoStore:
    """Ordered list of TodoItems, kept for the life of the process."""

    def __init__(self) -> None:
        self._items: list[TodoItem] = []
        self._next_id = 1

    def _new_item(self, text: str) -> TodoItem:
        if not text.strip():
            raise BadArgumentsError("Task text must not be empty.")
        item = TodoItem(id=self._next_id, text=text)
        self._next_id += 1
        return item

    def add(self, text: str) -> TodoItem:
        """Append a new pending task."""
        item = self._new_item(text)
        self._items.append(item)
        logger.info(f"Added todo [{item.id}]: {text}")
        return item

    def insert(self, before_id: int, text: str) -> TodoItem:
        """Place a new pending task before an existing one in list order."""
        index = self._index_of(before_id)
        item = self._new_item(text)
        self._items.insert(index, item)
        logger.info(f"Inserted todo [{item.id}] before [{before_id}]: {text}")
        return item

    def get(self, todo_id: int) -> TodoItem:
        return self._items[self._index_of(todo_id)]

    def update(self, todo_id: int, status: TodoStatus | str) -> TodoItem:
        """Set the status of one task."""
        if isinstance(status, str) and not isinstance(status, TodoStatus):
            status = TodoStatus.parse(status)
        item = self.get(todo_id)
        before = item.status
        item.status = status
        logger.info(f"Todo [{todo_id}]: {before.value} -> {status.value}")
        return item

    def complete(self, todo_ids: list[int]) -> list[TodoItem]:
        """Mark several tasks done. Nothing changes if any id is unknown."""
        known = {item.id for item in self._items}
        missing = [i for i in todo_ids if i not in known]
        if missing:
            raise NotFoundError(
                f"No todo with id {', '.join(str(i) for i in missing)}. "
                "Use todo_list to see available todos."
            )
        return [self.update(i, TodoStatus.DONE) for i in todo_ids]

    def items(self) -> list[TodoItem]:
        return list(self._items)

    def format(self) -> str:
        if not self._items:
            return "No tasks."
        return "\n".join(item.format() for item in self._items)

    def _index_of(self, todo_id: int) -> int:
        for index, item in enumerate(self._items):
            if item.id == todo_id:
                return index
        raise NotFoundError(
            f"No todo with id {todo_id}. Use todo_list to see available todos."
        )

    def __len__(self) -> int:
        return len(self._items)
