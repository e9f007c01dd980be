# src/todo_app/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The controller depends on Protocols instead of concrete implementations.
This keeps the storage engine swappable and makes testing easier.
"""

from collections.abc import Callable, Sequence
from typing import Any, Protocol

TodoSubscriber = Callable[[tuple[Any, ...]], None]
# Receives the full collection snapshot (tuple[TodoItem, ...]) after every change.


class KeyValueStore(Protocol):
    """Opaque string-keyed persistence service."""

    def get_string(self, key: str) -> str | None: ...
    def set_string(self, key: str, value: str) -> None: ...


class TodoRepo(Protocol):
    """Whole-collection persistence used by the controller."""

    def load(self) -> list[Any]: ...
    def save(self, items: Sequence[Any]) -> None: ...
