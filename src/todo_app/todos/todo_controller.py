# src/todo_app/todos/todo_controller.py

from __future__ import annotations

"""
Todo list controller.

Owns the authoritative in-memory collection and is its only mutator.
Every command runs the same sequence under one asyncio.Lock:
- validate input,
- compute the new collection,
- swap it in,
- persist the whole collection (off the event loop),
- notify subscribers.

If persisting fails, the previous collection is restored (unless rollback is disabled),
subscribers are re-notified, and PersistenceError is raised to the caller.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from enum import StrEnum

from ..core.errors import (
    CorruptStorageError,
    IndexOutOfRangeError,
    NotFoundError,
    PersistenceError,
)
from ..core.ports import TodoRepo, TodoSubscriber
from . import todo_views
from .todo_models import TodoFilter, TodoIdGenerator, TodoItem, new_todo_id

logger = logging.getLogger(__name__)


class ControllerState(StrEnum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


class TodoListController:
    def __init__(
        self,
        repo: TodoRepo,
        *,
        rollback_on_save_failure: bool = True,
        strict_load: bool = False,
        id_generator: TodoIdGenerator | None = None,
    ) -> None:
        self._repo = repo
        self._rollback = rollback_on_save_failure
        self._strict_load = strict_load
        self._next_id: Callable[[], str] = id_generator.next_id if id_generator else new_todo_id

        self._items: tuple[TodoItem, ...] = ()
        self._state = ControllerState.UNINITIALIZED
        self._load_error: CorruptStorageError | None = None
        self._load_task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()
        self._subscribers: list[TodoSubscriber] = []

    # ---- lifecycle ----

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def load_error(self) -> CorruptStorageError | None:
        """Set when stored data was unreadable and the controller started empty."""
        return self._load_error

    async def initialize(self) -> CorruptStorageError | None:
        """
        Load the collection from the repository (once).

        Concurrent callers share the same load. A failed load is not cached,
        so a later call retries it. Returns the corrupt-storage warning, if any.
        """
        if self._state == ControllerState.READY:
            return self._load_error

        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._load())
        task = self._load_task
        try:
            await task
        except BaseException:
            if self._load_task is task and task.done():
                self._load_task = None
            raise
        return self._load_error

    async def _load(self) -> None:
        try:
            items = await asyncio.to_thread(self._repo.load)
        except CorruptStorageError as e:
            if self._strict_load:
                logger.error("Stored todos are corrupt; refusing to start: %s", e)
                raise
            logger.warning("Stored todos are corrupt; starting with an empty list: %s", e)
            self._load_error = e
            items = []

        self._items = tuple(items)
        self._state = ControllerState.READY
        logger.info("Todo controller ready with %d item(s)", len(self._items))
        self._emit()

    # ---- read surface ----

    def current(self) -> tuple[TodoItem, ...]:
        return self._items

    def get(self, todo_id: str) -> TodoItem | None:
        for t in self._items:
            if t.id == todo_id:
                return t
        return None

    def derive(self, filter_mode: TodoFilter = TodoFilter.ALL, query: str | None = "") -> list[TodoItem]:
        return todo_views.derive(self._items, filter_mode, query)

    def subscribe(self, callback: TodoSubscriber) -> Callable[[], None]:
        """
        Register a callback receiving the collection after each change.

        If the controller is already READY, the callback gets the current collection right away.
        Returns a function that unsubscribes it.
        """
        self._subscribers.append(callback)
        if self._state == ControllerState.READY:
            self._notify_one(callback, self._items)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: TodoSubscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _notify_one(self, callback: TodoSubscriber, snapshot: tuple[TodoItem, ...]) -> None:
        try:
            callback(snapshot)
        except Exception:
            logger.exception("Todo subscriber %r failed", callback)

    def _emit(self) -> None:
        snapshot = self._items
        for callback in list(self._subscribers):
            self._notify_one(callback, snapshot)

    # ---- commands ----

    async def add(self, title: str, description: str | None = None) -> TodoItem:
        await self.initialize()
        async with self._lock:
            todo_id = self._fresh_id()
            item = TodoItem.create(title, description, todo_id=todo_id)
            await self._commit([item, *self._items], action="add")
            logger.debug("Added todo id=%s", item.id)
            return item

    async def edit(
        self,
        todo_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        completed: bool | None = None,
    ) -> TodoItem:
        """Replace the item in place; None keeps a field, description="" clears it."""
        await self.initialize()
        async with self._lock:
            return await self._replace(todo_id, title=title, description=description, completed=completed)

    async def toggle_completed(self, todo_id: str) -> TodoItem:
        await self.initialize()
        async with self._lock:
            idx = self._index_of(todo_id)
            return await self._replace(todo_id, completed=not self._items[idx].completed)

    async def remove(self, todo_id: str) -> bool:
        """Remove by id. Unknown ids are a successful no-op (returns False)."""
        await self.initialize()
        async with self._lock:
            remaining = [t for t in self._items if t.id != todo_id]
            if len(remaining) == len(self._items):
                logger.debug("remove: id=%s not present; nothing to do", todo_id)
                return False
            await self._commit(remaining, action="remove")
            logger.debug("Removed todo id=%s", todo_id)
            return True

    async def reorder(self, from_index: int, to_index: int) -> None:
        """
        Move the item at from_index so that it ends up at to_index.

        to_index is a position in the list after the item has been taken out,
        e.g. [A,B,C,D]: reorder(0, 2) -> [B,C,A,D]; reorder(3, 0) -> [D,A,B,C].
        """
        await self.initialize()
        async with self._lock:
            n = len(self._items)
            for index in (from_index, to_index):
                if not 0 <= index < n:
                    raise IndexOutOfRangeError(index, n)
            if from_index == to_index:
                return

            items = list(self._items)
            moved = items.pop(from_index)
            items.insert(to_index, moved)
            await self._commit(items, action="reorder")
            logger.debug("Moved todo id=%s %d -> %d", moved.id, from_index, to_index)

    # ---- internals ----

    def _index_of(self, todo_id: str) -> int:
        for i, t in enumerate(self._items):
            if t.id == todo_id:
                return i
        raise NotFoundError(todo_id)

    def _fresh_id(self) -> str:
        taken = {t.id for t in self._items}
        todo_id = self._next_id()
        while todo_id in taken:
            todo_id = self._next_id()
        return todo_id

    async def _replace(
        self,
        todo_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        completed: bool | None = None,
    ) -> TodoItem:
        idx = self._index_of(todo_id)
        updated = self._items[idx].with_changes(title=title, description=description, completed=completed)
        items = list(self._items)
        items[idx] = updated
        await self._commit(items, action="edit")
        logger.debug("Updated todo id=%s completed=%s", todo_id, updated.completed)
        return updated

    async def _commit(self, items: Sequence[TodoItem], *, action: str) -> None:
        previous = self._items
        self._items = tuple(items)
        save = asyncio.ensure_future(asyncio.to_thread(self._repo.save, self._items))
        try:
            await asyncio.shield(save)
        except asyncio.CancelledError:
            # The worker thread cannot be stopped; hold the lock until it is done
            # so a later command's save is never overwritten by this one.
            logger.warning("%s cancelled while saving; waiting for the save to finish", action)
            await asyncio.wait([save])
            error = save.exception()
            if error is not None:
                self._save_failed(previous, action, error)
            else:
                self._emit()
            raise
        except Exception as e:
            self._save_failed(previous, action, e)
            if isinstance(e, PersistenceError):
                raise
            raise PersistenceError(f"Failed to save todos after {action}") from e
        self._emit()

    def _save_failed(self, previous: tuple[TodoItem, ...], action: str, error: BaseException) -> None:
        logger.error("Saving todos failed after %s (rollback=%s)", action, self._rollback, exc_info=error)
        if self._rollback:
            self._items = previous
        self._emit()
