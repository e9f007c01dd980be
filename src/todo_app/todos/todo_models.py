# src/todo_app/todos/todo_models.py

from __future__ import annotations

import dataclasses
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from ..core.errors import CorruptStorageError, ValidationError


class TodoFilter(StrEnum):
    """Which part of the collection a view shows."""

    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, raw: str | None) -> TodoFilter:
        """Tolerant parsing for user input ("done" -> completed, "open" -> active)."""
        key = (raw or "").strip().lower()
        if not key:
            return cls.ALL
        aliases = {"done": cls.COMPLETED, "open": cls.ACTIVE, "todo": cls.ACTIVE}
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError:
            raise ValidationError(f"Unknown filter: {raw!r}") from None


class TodoIdGenerator:
    """
    Millisecond-timestamp ids that never repeat within a process.

    If the clock has not moved past the last issued value (rapid adds, coarse clocks,
    clock going backwards), the next id is last + 1.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            candidate = int(self._clock() * 1000)
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return str(candidate)


_default_ids = TodoIdGenerator()


def new_todo_id() -> str:
    return _default_ids.next_id()


def _normalize_title(title: str | None) -> str:
    text = (title or "").strip()
    if not text:
        raise ValidationError("title is required")
    return text


def _normalize_description(description: str | None) -> str | None:
    if description is None:
        return None
    text = description.strip()
    return text or None


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class TodoItem:
    id: str
    title: str
    description: str | None = None
    completed: bool = False
    created_at: datetime = dataclasses.field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not isinstance(self.title, str) or not self.title.strip():
            raise ValidationError("title is required")

    @classmethod
    def create(
        cls,
        title: str,
        description: str | None = None,
        *,
        todo_id: str | None = None,
        created_at: datetime | None = None,
    ) -> TodoItem:
        """Build a new, not yet completed item with normalized title/description."""
        return cls(
            id=todo_id or new_todo_id(),
            title=_normalize_title(title),
            description=_normalize_description(description),
            completed=False,
            created_at=created_at or _utcnow(),
        )

    def with_changes(
        self,
        *,
        title: str | None = None,
        description: str | None = None,
        completed: bool | None = None,
    ) -> TodoItem:
        """
        Copy with overrides. None keeps the current value.

        description="" clears the description (same normalization as create()).
        id and created_at cannot be changed here.
        """
        return dataclasses.replace(
            self,
            title=self.title if title is None else _normalize_title(title),
            description=self.description if description is None else _normalize_description(description),
            completed=self.completed if completed is None else bool(completed),
        )

    # ---- storage shape ----

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: Any) -> TodoItem:
        if not isinstance(raw, dict):
            raise CorruptStorageError(f"todo entry must be an object, got {type(raw).__name__}")

        missing = [k for k in ("id", "title", "completed", "createdAt") if k not in raw]
        if missing:
            raise CorruptStorageError(f"todo entry is missing field(s): {', '.join(missing)}")

        todo_id = raw["id"]
        title = raw["title"]
        description = raw.get("description")
        completed = raw["completed"]
        created_raw = raw["createdAt"]

        if not isinstance(todo_id, str) or not todo_id:
            raise CorruptStorageError(f"todo id must be a non-empty string, got {todo_id!r}")
        if not isinstance(title, str) or not title.strip():
            raise CorruptStorageError(f"todo {todo_id} has an empty or non-string title")
        if description is not None and not isinstance(description, str):
            raise CorruptStorageError(f"todo {todo_id} has a non-string description")
        if not isinstance(completed, bool):
            raise CorruptStorageError(f"todo {todo_id} has a non-boolean 'completed'")
        if not isinstance(created_raw, str):
            raise CorruptStorageError(f"todo {todo_id} has a non-string 'createdAt'")

        try:
            created_at = datetime.fromisoformat(created_raw)
        except ValueError as e:
            raise CorruptStorageError(f"todo {todo_id} has malformed createdAt={created_raw!r}") from e

        return cls(
            id=todo_id,
            title=title.strip(),
            description=_normalize_description(description),
            completed=completed,
            created_at=created_at,
        )
