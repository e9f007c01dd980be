# src/todo_app/todos/todo_store.py

from __future__ import annotations

import json
import logging
from collections.abc import Sequence

from ..core.errors import CorruptStorageError, PersistenceError
from ..core.ports import KeyValueStore
from .todo_models import TodoItem

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "TODOS"


class TodoRepository:
    """
    Whole-collection persistence over a key-value store.

    The collection lives under one key as a JSON array in display order.
    Every save() overwrites the whole value; there are no partial writes.
    """

    def __init__(self, kv: KeyValueStore, *, key: str = DEFAULT_STORAGE_KEY) -> None:
        if not key:
            raise ValueError("storage key is required")
        self._kv = kv
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def load(self) -> list[TodoItem]:
        try:
            text = self._kv.get_string(self._key)
        except Exception as e:
            raise PersistenceError(f"Failed to read key {self._key!r}") from e

        if text is None:
            logger.info("No stored todos under key=%s; starting empty.", self._key)
            return []

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptStorageError(f"Stored todos under {self._key!r} are not valid JSON") from e

        if not isinstance(data, list):
            raise CorruptStorageError(
                f"Stored todos under {self._key!r} must be a JSON array, got {type(data).__name__}"
            )

        items: list[TodoItem] = []
        seen: set[str] = set()
        for pos, raw in enumerate(data):
            try:
                item = TodoItem.from_dict(raw)
            except CorruptStorageError as e:
                raise CorruptStorageError(f"Stored todo #{pos}: {e}") from e
            if item.id in seen:
                raise CorruptStorageError(f"Stored todo #{pos}: duplicate id {item.id!r}")
            seen.add(item.id)
            items.append(item)

        logger.info("Loaded %d todo(s) from key=%s", len(items), self._key)
        return items

    def save(self, items: Sequence[TodoItem]) -> None:
        try:
            payload = json.dumps([item.to_dict() for item in items], ensure_ascii=False)
            self._kv.set_string(self._key, payload)
        except Exception as e:
            raise PersistenceError(f"Failed to save {len(items)} todo(s) under {self._key!r}") from e
        logger.debug("Saved %d todo(s) to key=%s", len(items), self._key)
