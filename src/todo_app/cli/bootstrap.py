# src/todo_app/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the key-value store, repository and controller into AppState.

The controller is NOT loaded here; the async entrypoint awaits controller.initialize().
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..storage.kv_store import SqliteKeyValueStore
from ..todos.todo_controller import TodoListController
from ..todos.todo_store import TodoRepository

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.store_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    kv_store = SqliteKeyValueStore(settings.store_db_path)
    repository = TodoRepository(kv_store, key=settings.storage_key)
    controller = TodoListController(
        repository,
        rollback_on_save_failure=settings.rollback_on_save_failure,
        strict_load=settings.strict_load,
    )

    logger.debug(
        "State wired db=%s key=%s strict_load=%s rollback=%s",
        settings.store_db_path,
        settings.storage_key,
        settings.strict_load,
        settings.rollback_on_save_failure,
    )
    return AppState(
        settings=settings,
        kv_store=kv_store,
        repository=repository,
        controller=controller,
    )
