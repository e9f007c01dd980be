# src/todo_app/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..todos.todo_controller import TodoListController
from ..todos.todo_models import TodoFilter, TodoItem
from ..todos.todo_store import TodoRepository
from .ports import KeyValueStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    kv_store: KeyValueStore
    repository: TodoRepository
    controller: TodoListController

    # View selection (never persisted).
    filter_mode: TodoFilter = TodoFilter.ALL
    query: str = ""

    def visible_todos(self) -> list[TodoItem]:
        """What the front-end currently shows: collection filtered by filter_mode and query."""
        return self.controller.derive(self.filter_mode, self.query)
