# tests/test_todo_controller.py

from __future__ import annotations

import asyncio
import json
import threading

import pytest

from todo_app.core.errors import (
    CorruptStorageError,
    IndexOutOfRangeError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from todo_app.todos.todo_controller import ControllerState, TodoListController
from todo_app.todos.todo_models import TodoFilter, TodoIdGenerator, TodoItem
from todo_app.todos.todo_store import TodoRepository

from .fakes import CountingRepo, FrozenClock, InMemoryKeyValueStore


async def _abcd(controller: TodoListController) -> dict[str, str]:
    """Build [A, B, C, D] (adds prepend, so add in reverse) and map title -> id."""
    ids = {}
    for title in ("D", "C", "B", "A"):
        ids[title] = (await controller.add(title)).id
    return ids


def _titles(controller: TodoListController) -> list[str]:
    return [t.title for t in controller.current()]


def _persisted_titles(kv: InMemoryKeyValueStore) -> list[str]:
    return [d["title"] for d in json.loads(kv.data["TODOS"])]


@pytest.mark.asyncio
async def test_scenario_newest_first_toggle_and_views(controller: TodoListController) -> None:
    await controller.initialize()
    assert controller.current() == ()

    milk = await controller.add("Buy milk", None)
    bob = await controller.add("Call Bob", "re: contract")
    assert [t.id for t in controller.current()] == [bob.id, milk.id]

    await controller.toggle_completed(milk.id)

    assert [t.id for t in controller.derive(TodoFilter.COMPLETED, "")] == [milk.id]
    assert [t.id for t in controller.derive(TodoFilter.ACTIVE, "")] == [bob.id]


@pytest.mark.asyncio
async def test_every_mutation_is_persisted(kv: InMemoryKeyValueStore, controller: TodoListController) -> None:
    ids = await _abcd(controller)
    assert kv.writes == 4

    await controller.edit(ids["B"], title="B2")
    await controller.toggle_completed(ids["C"])
    await controller.reorder(0, 3)
    await controller.remove(ids["D"])
    assert kv.writes == 8

    reloaded = TodoListController(TodoRepository(kv))
    await reloaded.initialize()
    assert reloaded.current() == controller.current()
    assert _persisted_titles(kv) == _titles(controller) == ["B2", "C", "A"]


@pytest.mark.asyncio
async def test_ids_are_unique_even_when_the_clock_stands_still(repo: TodoRepository) -> None:
    controller = TodoListController(repo, id_generator=TodoIdGenerator(clock=FrozenClock()))
    for i in range(50):
        await controller.add(f"task {i}")
    ids = [t.id for t in controller.current()]
    assert len(set(ids)) == 50


@pytest.mark.asyncio
async def test_new_ids_skip_ids_already_in_the_collection(kv: InMemoryKeyValueStore) -> None:
    existing = TodoItem.create("from storage", todo_id="1700000000000")
    TodoRepository(kv).save([existing])

    controller = TodoListController(TodoRepository(kv), id_generator=TodoIdGenerator(clock=FrozenClock()))
    added = await controller.add("new")
    assert added.id == "1700000000001"


@pytest.mark.asyncio
@pytest.mark.parametrize("title", ["", "   "])
async def test_add_rejects_blank_title_without_saving(
    kv: InMemoryKeyValueStore, controller: TodoListController, title: str
) -> None:
    await controller.add("keep me")
    writes = kv.writes

    with pytest.raises(ValidationError):
        await controller.add(title, "x" if not title else None)

    assert _titles(controller) == ["keep me"]
    assert kv.writes == writes


@pytest.mark.asyncio
async def test_edit_replaces_in_place(controller: TodoListController) -> None:
    ids = await _abcd(controller)
    before = controller.get(ids["B"])
    assert before is not None

    updated = await controller.edit(ids["B"], title=" Bee ", description="buzz", completed=True)

    assert _titles(controller) == ["A", "Bee", "C", "D"]
    assert updated.id == before.id
    assert updated.created_at == before.created_at
    assert updated.description == "buzz"
    assert updated.completed is True

    cleared = await controller.edit(ids["B"], description="")
    assert cleared.description is None
    assert cleared.title == "Bee"


@pytest.mark.asyncio
async def test_edit_errors_leave_collection_unchanged(controller: TodoListController) -> None:
    ids = await _abcd(controller)
    snapshot = controller.current()

    with pytest.raises(NotFoundError):
        await controller.edit("missing", title="x")
    with pytest.raises(ValidationError):
        await controller.edit(ids["A"], title="   ")
    with pytest.raises(NotFoundError):
        await controller.toggle_completed("missing")

    assert controller.current() == snapshot


@pytest.mark.asyncio
async def test_toggle_twice_restores_original(controller: TodoListController) -> None:
    item = await controller.add("Water plants", "balcony")

    once = await controller.toggle_completed(item.id)
    assert once.completed is True
    twice = await controller.toggle_completed(item.id)

    assert twice == item


@pytest.mark.asyncio
async def test_remove_is_idempotent(kv: InMemoryKeyValueStore, controller: TodoListController) -> None:
    ids = await _abcd(controller)

    assert await controller.remove(ids["C"]) is True
    after_first = controller.current()
    writes = kv.writes

    assert await controller.remove(ids["C"]) is False
    assert controller.current() == after_first
    assert kv.writes == writes


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("src", "dst", "expected"),
    [
        (0, 2, ["B", "C", "A", "D"]),
        (3, 0, ["D", "A", "B", "C"]),
        (1, 3, ["A", "C", "D", "B"]),
        (2, 2, ["A", "B", "C", "D"]),
    ],
)
async def test_reorder(controller: TodoListController, src: int, dst: int, expected: list[str]) -> None:
    await _abcd(controller)
    await controller.reorder(src, dst)
    assert _titles(controller) == expected


@pytest.mark.asyncio
async def test_reorder_rejects_bad_indices(kv: InMemoryKeyValueStore, controller: TodoListController) -> None:
    await _abcd(controller)
    writes = kv.writes

    for src, dst in ((4, 0), (0, 4), (-1, 0)):
        with pytest.raises(IndexOutOfRangeError):
            await controller.reorder(src, dst)

    await controller.reorder(1, 1)
    assert _titles(controller) == ["A", "B", "C", "D"]
    assert kv.writes == writes


@pytest.mark.asyncio
async def test_save_failure_rolls_back_and_renotifies(
    kv: InMemoryKeyValueStore, controller: TodoListController
) -> None:
    await controller.add("first")
    seen: list[tuple[TodoItem, ...]] = []
    controller.subscribe(seen.append)
    seen.clear()

    kv.fail_writes = True
    with pytest.raises(PersistenceError):
        await controller.add("second")

    assert _titles(controller) == ["first"]
    assert _persisted_titles(kv) == ["first"]
    assert [[t.title for t in snap] for snap in seen] == [["first"]]


@pytest.mark.asyncio
async def test_save_failure_without_rollback_keeps_new_state(kv: InMemoryKeyValueStore) -> None:
    controller = TodoListController(TodoRepository(kv), rollback_on_save_failure=False)
    await controller.add("first")

    kv.fail_writes = True
    with pytest.raises(PersistenceError):
        await controller.add("second")

    assert _titles(controller) == ["second", "first"]


@pytest.mark.asyncio
async def test_corrupt_storage_starts_empty_with_warning() -> None:
    kv = InMemoryKeyValueStore({"TODOS": "{broken"})
    controller = TodoListController(TodoRepository(kv))

    warning = await controller.initialize()

    assert isinstance(warning, CorruptStorageError)
    assert controller.load_error is warning
    assert controller.state == ControllerState.READY
    assert controller.current() == ()


@pytest.mark.asyncio
async def test_corrupt_storage_strict_mode_fails_initialization() -> None:
    kv = InMemoryKeyValueStore({"TODOS": "{broken"})
    controller = TodoListController(TodoRepository(kv), strict_load=True)

    with pytest.raises(CorruptStorageError):
        await controller.initialize()
    assert controller.state == ControllerState.UNINITIALIZED

    with pytest.raises(CorruptStorageError):
        await controller.add("queued")
    assert kv.data["TODOS"] == "{broken"


@pytest.mark.asyncio
async def test_commands_before_ready_wait_for_the_single_load(kv: InMemoryKeyValueStore) -> None:
    TodoRepository(kv).save([TodoItem.create("stored", todo_id="1")])
    repo = CountingRepo(TodoRepository(kv))
    controller = TodoListController(repo)
    assert controller.state == ControllerState.UNINITIALIZED

    await asyncio.gather(controller.add("a"), controller.add("b"), controller.initialize())

    assert controller.state == ControllerState.READY
    assert repo.loads == 1
    assert sorted(_titles(controller)) == ["a", "b", "stored"]
    assert _titles(controller)[-1] == "stored"

    await controller.initialize()
    assert repo.loads == 1


@pytest.mark.asyncio
async def test_store_read_failure_keeps_controller_uninitialized_and_is_retried(
    kv: InMemoryKeyValueStore,
) -> None:
    TodoRepository(kv).save([TodoItem.create("stored", todo_id="1")])
    repo = CountingRepo(TodoRepository(kv))
    controller = TodoListController(repo)

    kv.fail_reads = True
    with pytest.raises(PersistenceError):
        await controller.add("x")
    assert controller.state == ControllerState.UNINITIALIZED
    assert controller.current() == ()
    assert _persisted_titles(kv) == ["stored"]

    kv.fail_reads = False
    await controller.add("x")

    assert controller.state == ControllerState.READY
    assert repo.loads == 2
    assert _titles(controller) == ["x", "stored"]
    assert _persisted_titles(kv) == ["x", "stored"]


@pytest.mark.asyncio
async def test_cancelled_command_finishes_its_save_before_releasing_the_lock(
    kv: InMemoryKeyValueStore,
) -> None:
    save_started = threading.Event()
    release_save = threading.Event()
    saved = threading.Event()

    class SlowRepo:
        def __init__(self) -> None:
            self.inner = TodoRepository(kv)

        def load(self):
            return self.inner.load()

        def save(self, items) -> None:
            save_started.set()
            release_save.wait(5)
            self.inner.save(items)
            saved.set()

    controller = TodoListController(SlowRepo())
    await controller.initialize()
    seen: list[list[str]] = []
    controller.subscribe(lambda items: seen.append([t.title for t in items]))

    command = asyncio.create_task(controller.add("x"))
    assert await asyncio.to_thread(save_started.wait, 5)
    command.cancel()
    # queued behind the cancelled command until its save is done
    follow_up = asyncio.create_task(controller.add("y"))
    for _ in range(5):
        await asyncio.sleep(0)
    assert not command.done()
    assert not follow_up.done()

    release_save.set()
    with pytest.raises(asyncio.CancelledError):
        await command
    assert saved.is_set()
    assert seen[-1] == ["x"]

    await follow_up
    assert _titles(controller) == ["y", "x"]
    assert _persisted_titles(kv) == ["y", "x"]


@pytest.mark.asyncio
async def test_concurrent_commands_do_not_lose_writes(kv: InMemoryKeyValueStore, controller: TodoListController) -> None:
    await controller.initialize()
    await asyncio.gather(*(controller.add(f"task {i}") for i in range(20)))

    assert len(controller.current()) == 20
    assert _persisted_titles(kv) == _titles(controller)


@pytest.mark.asyncio
async def test_subscribers_get_every_change_and_failures_are_isolated(controller: TodoListController) -> None:
    seen: list[list[str]] = []

    def broken(_items) -> None:
        raise RuntimeError("boom")

    controller.subscribe(broken)
    unsubscribe = controller.subscribe(lambda items: seen.append([t.title for t in items]))

    await controller.initialize()
    item = await controller.add("one")
    await controller.toggle_completed(item.id)
    unsubscribe()
    await controller.remove(item.id)

    assert seen == [[], ["one"], ["one"]]


@pytest.mark.asyncio
async def test_subscribe_when_ready_delivers_current_collection(controller: TodoListController) -> None:
    await controller.add("x")
    seen: list[int] = []
    controller.subscribe(lambda items: seen.append(len(items)))
    assert seen == [1]
