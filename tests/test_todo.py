"""
Tests for TodoStore - the agent's in-memory task list.
"""

import pytest

from ikode.errors import BadArgumentsError, NotFoundError
from ikode.todo import TodoStatus, TodoStore


@pytest.fixture
def store() -> TodoStore:
    s = TodoStore()
    s.add("write parser")
    s.add("write tests")
    return s


class TestAddAndInsert:
    """Ids are assigned once, increase, and are never reused."""

    def test_add_assigns_increasing_ids(self, store: TodoStore) -> None:
        item = store.add("ship it")
        assert item.id == 3
        assert item.status == TodoStatus.PENDING
        assert [i.id for i in store.items()] == [1, 2, 3]

    def test_insert_before(self, store: TodoStore) -> None:
        item = store.insert(2, "design grammar")
        assert item.id == 3
        assert [i.text for i in store.items()] == ["write parser", "design grammar", "write tests"]

    def test_insert_before_unknown(self, store: TodoStore) -> None:
        with pytest.raises(NotFoundError):
            store.insert(42, "nope")
        assert len(store) == 2

    def test_empty_text_rejected(self, store: TodoStore) -> None:
        with pytest.raises(BadArgumentsError):
            store.add("   ")

    def test_failed_insert_does_not_consume_id(self, store: TodoStore) -> None:
        with pytest.raises(NotFoundError):
            store.insert(99, "lost")
        assert store.add("next").id == 3


class TestStatus:
    def test_update_with_string(self, store: TodoStore) -> None:
        item = store.update(1, "in_progress")
        assert item.status == TodoStatus.IN_PROGRESS

    def test_update_unknown_status(self, store: TodoStore) -> None:
        with pytest.raises(BadArgumentsError) as exc_info:
            store.update(1, "finished")
        assert "pending, in_progress, done" in str(exc_info.value)

    def test_update_unknown_id(self, store: TodoStore) -> None:
        with pytest.raises(NotFoundError):
            store.update(7, TodoStatus.DONE)

    def test_any_transition_allowed(self, store: TodoStore) -> None:
        store.update(1, TodoStatus.DONE)
        store.update(1, TodoStatus.PENDING)
        assert store.get(1).status == TodoStatus.PENDING

    def test_complete_many(self, store: TodoStore) -> None:
        done = store.complete([1, 2])
        assert [i.status for i in done] == [TodoStatus.DONE, TodoStatus.DONE]

    def test_complete_is_all_or_nothing(self, store: TodoStore) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            store.complete([1, 5, 6])
        assert "5, 6" in str(exc_info.value)
        assert store.get(1).status == TodoStatus.PENDING


class TestFormat:
    def test_empty(self) -> None:
        assert TodoStore().format() == "No tasks."

    def test_markers(self, store: TodoStore) -> None:
        store.add("deploy")
        store.update(1, TodoStatus.DONE)
        store.update(2, TodoStatus.IN_PROGRESS)
        assert store.format() == "[x] [1] write parser\n[*] [2] write tests\n[ ] [3] deploy"
