# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from todo_app.core.state import AppState
from todo_app.storage.kv_store import SqliteKeyValueStore
from todo_app.todos.todo_controller import TodoListController
from todo_app.todos.todo_store import TodoRepository

from .fakes import InMemoryKeyValueStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="todo-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        store_db_path=tmp_path / "store.sqlite3",
        storage_key="TODOS",
        strict_load=False,
        rollback_on_save_failure=True,
    )


@pytest.fixture()
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture()
def repo(kv: InMemoryKeyValueStore) -> TodoRepository:
    return TodoRepository(kv)


@pytest.fixture()
def controller(repo: TodoRepository) -> TodoListController:
    return TodoListController(repo)


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired like bootstrap does.

    NOTE: We keep the real SQLite key-value store here because
    the whole persistence path is part of what we want to test.
    """
    kv_store = SqliteKeyValueStore(settings.store_db_path)
    repository = TodoRepository(kv_store, key=settings.storage_key)
    return AppState(
        settings=settings,
        kv_store=kv_store,
        repository=repository,
        controller=TodoListController(repository),
    )
