# src/todo_app/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence

from ..core.errors import IndexOutOfRangeError, PersistenceError, TodoError, ValidationError
from ..core.state import AppState
from ..todos import todo_views
from ..todos.todo_models import TodoFilter, TodoItem

CommandHandler = Callable[[AppState, list[str]], Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        TodoError is turned into a reply; anything else propagates to the connector.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return await handler(state, args)
        except PersistenceError as e:
            logger.warning("/%s could not be saved: %s", name, e)
            return f"Could not save your change ({e}). Please retry."
        except TodoError as e:
            logger.debug("/%s rejected: %s", name, e)
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def render_todos(items: Sequence[TodoItem], *, empty: str = "No todos yet.") -> str:
    if not items:
        return empty
    lines = []
    for i, t in enumerate(items, start=1):
        mark = "x" if t.completed else " "
        lines.append(f"{i:>3}. [{mark}] {t.title}")
        if t.description:
            lines.append(f"          {t.description}")
    return "\n".join(lines)


def _view_header(state: AppState) -> str:
    header = f"Todos ({state.filter_mode.value}"
    if state.query:
        header += f", search: {state.query!r}"
    return header + "):"


def _render_view(state: AppState) -> str:
    return f"{_view_header(state)}\n{render_todos(state.visible_todos())}"


def _parse_position(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"Expected a number, got {raw!r}") from None


def _resolve_visible(state: AppState, raw: str) -> TodoItem:
    """Map a 1-based position in the current view to the item shown there."""
    pos = _parse_position(raw)
    visible = state.visible_todos()
    if not 1 <= pos <= len(visible):
        raise IndexOutOfRangeError(pos, len(visible))
    return visible[pos - 1]


def _split_title_description(words: list[str]) -> tuple[str, str | None]:
    # "title | description" -> (title, description); description is None when there is no "|".
    text = " ".join(words)
    if "|" not in text:
        return text.strip(), None
    title, _, description = text.partition("|")
    return title.strip(), description.strip()


# ---- handlers ----


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str]) -> str:
    items = state.controller.current()
    done = sum(1 for t in items if t.completed)
    lines = [
        "Status:",
        f"  Todos: {len(items)} total, {len(items) - done} active, {done} completed",
        f"  View: filter={state.filter_mode.value} search={state.query or '-'}",
        f"  Storage key: {getattr(state.settings, 'storage_key', '?')}",
    ]
    if state.controller.load_error is not None:
        lines.append(f"  Warning: stored data was unreadable at startup ({state.controller.load_error})")
    return "\n".join(lines)


async def cmd_list(state: AppState, args: list[str]) -> str:
    return _render_view(state)


async def cmd_filter(state: AppState, args: list[str]) -> str:
    """
    /filter                       -> show current filter
    /filter all|active|completed  -> change it
    """
    if not args:
        return f"Filter is {state.filter_mode.value}. Use /filter all | active | completed."
    state.filter_mode = TodoFilter.parse(args[0])
    return _render_view(state)


async def cmd_search(state: AppState, args: list[str]) -> str:
    """
    /search text  -> only show todos whose title contains text
    /search       -> clear the search
    """
    state.query = " ".join(args).strip()
    return _render_view(state)


async def cmd_find(state: AppState, args: list[str]) -> str:
    query = " ".join(args).strip()
    if not query:
        return "Usage: /find text"
    found = todo_views.search(state.controller.current(), query)
    return f"Matches for {query!r} in all todos:\n" + render_todos(found, empty="No matches.")


async def cmd_add(state: AppState, args: list[str]) -> str:
    title, description = _split_title_description(args)
    item = await state.controller.add(title, description)
    return f"Added: {item.title}\n{_render_view(state)}"


async def cmd_edit(state: AppState, args: list[str]) -> str:
    """
    /edit N new title            -> change the title
    /edit N new title | new desc -> change title and description
    /edit N | new desc           -> change only the description ("/edit N |" clears it)
    """
    if len(args) < 2:
        return "Usage: /edit N [title] [| description]"
    target = _resolve_visible(state, args[0])
    title, description = _split_title_description(args[1:])
    item = await state.controller.edit(target.id, title=title or None, description=description)
    return f"Updated: {item.title}\n{_render_view(state)}"


async def cmd_done(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /done N"
    target = _resolve_visible(state, args[0])
    item = await state.controller.toggle_completed(target.id)
    verb = "Completed" if item.completed else "Reopened"
    return f"{verb}: {item.title}\n{_render_view(state)}"


async def cmd_remove(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /rm N"
    target = _resolve_visible(state, args[0])
    await state.controller.remove(target.id)
    return f"Deleted: {target.title}\n{_render_view(state)}"


async def cmd_move(state: AppState, args: list[str]) -> str:
    """
    /mv FROM TO -> move a todo within the full list (1-based positions, see /filter all).
    """
    if len(args) != 2:
        return "Usage: /mv FROM TO (positions in the full list)"
    src = _parse_position(args[0]) - 1
    dst = _parse_position(args[1]) - 1
    await state.controller.reorder(src, dst)
    return "Todos (all):\n" + render_todos(state.controller.current())


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show totals and the current view settings.")
registry.register("list", cmd_list, help_text="Show the current view.", aliases=["ls"])
registry.register("filter", cmd_filter, help_text="Filter the view: /filter all | active | completed.")
registry.register("search", cmd_search, help_text="Search titles in the view: /search text (empty clears).")
registry.register("find", cmd_find, help_text="Search titles across all todos: /find text.")
registry.register("add", cmd_add, help_text="Add a todo: /add title | description.", aliases=["new"])
registry.register("edit", cmd_edit, help_text="Edit a todo: /edit N title | description.")
registry.register("done", cmd_done, help_text="Toggle completion: /done N.", aliases=["toggle"])
registry.register("rm", cmd_remove, help_text="Delete a todo: /rm N.", aliases=["del", "delete"])
registry.register("mv", cmd_move, help_text="Reorder: /mv FROM TO (full list positions).", aliases=["move"])
