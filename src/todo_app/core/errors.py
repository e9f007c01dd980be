# src/todo_app/core/errors.py

"""
Error kinds raised by the todo core.

Every error derives from TodoError so front-ends can catch the whole family
at one boundary. The stdlib base classes are mixed in where the meaning matches.
"""

from __future__ import annotations


class TodoError(Exception):
    """Base class for all todo core errors."""


class ValidationError(TodoError, ValueError):
    """Input fails a precondition (e.g. empty title). Collection is left unchanged."""


class NotFoundError(TodoError, LookupError):
    def __init__(self, todo_id: str) -> None:
        super().__init__(f"No todo with id={todo_id!r}")
        self.todo_id = todo_id


class IndexOutOfRangeError(TodoError, IndexError):
    def __init__(self, index: int, length: int) -> None:
        super().__init__(f"Index {index} is out of range for {length} item(s)")
        self.index = index
        self.length = length


class CorruptStorageError(TodoError):
    """Persisted data exists but cannot be decoded into a well-formed collection."""


class PersistenceError(TodoError):
    """The key-value store failed to read or write the collection."""
