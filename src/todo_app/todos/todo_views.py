# src/todo_app/todos/todo_views.py

"""Derived views over a todo collection (pure functions, no I/O, no state)."""

from __future__ import annotations

from collections.abc import Iterable

from .todo_models import TodoFilter, TodoItem


def matches_filter(item: TodoItem, filter_mode: TodoFilter) -> bool:
    if filter_mode == TodoFilter.ACTIVE:
        return not item.completed
    if filter_mode == TodoFilter.COMPLETED:
        return item.completed
    return True


def matches_query(item: TodoItem, query: str | None) -> bool:
    """Case-insensitive substring match on the title; empty query matches everything."""
    if not query:
        return True
    return query.casefold() in item.title.casefold()


def derive(
    items: Iterable[TodoItem],
    filter_mode: TodoFilter = TodoFilter.ALL,
    query: str | None = "",
) -> list[TodoItem]:
    """Items passing both the filter and the title query, in source order."""
    return [t for t in items if matches_filter(t, filter_mode) and matches_query(t, query)]


def search(items: Iterable[TodoItem], query: str | None) -> list[TodoItem]:
    """Title search across the whole collection, regardless of the active filter."""
    return derive(items, TodoFilter.ALL, query)
