# -------------------------------------
# Column selection
# -------------------------------------
"""
Column selectors used by table_select, table_pivot_longer and friends.

A selection item is one of:
- a column name (str)
- a 0-based position (int, negative counts from the end)
- a predicate over column names (callable(name) -> bool)
- a Selector (cols, starts_with, ends_with, contains, matches, everything, where)
- a list/tuple of items

Selectors combine with | (union), & (intersection) and ~ (complement):

    ~cols("sex", "wstatus")          every column except these two
    starts_with("pop") | cols("geo")
"""
from __future__ import annotations

import re
from typing import Any, Callable

import pyarrow as pa

from .errors import UnknownColumnError
from .table import _ensure_arrow, _resolve_column_index

__all__ = [
    "Selector",
    "cols",
    "starts_with",
    "ends_with",
    "contains",
    "matches",
    "everything",
    "where",
    "resolve_selection",
]


class Selector:
    """Resolves to an ordered list of column names of a table."""

    def resolve(self, table: dict[str, Any]) -> list[str]:
        raise NotImplementedError

    def __invert__(self) -> Selector:
        return _Not(self)

    def __or__(self, other: Any) -> Selector:
        return _Union(self, _as_selector(other))

    def __and__(self, other: Any) -> Selector:
        return _Intersect(self, _as_selector(other))


class _Items(Selector):
    def __init__(self, items: tuple):
        self.items = items

    def resolve(self, table):
        names: list[str] = []
        for item in self.items:
            for name in _resolve_item(table, item):
                if name not in names:
                    names.append(name)
        return names

    def __repr__(self):
        return f"cols({', '.join(repr(i) for i in self.items)})"


class _NamePredicate(Selector):
    def __init__(self, predicate: Callable[[str], bool], label: str):
        self.predicate = predicate
        self.label = label

    def resolve(self, table):
        return [c for c in table["columns"] if self.predicate(c)]

    def __repr__(self):
        return self.label


class _Where(Selector):
    def __init__(self, predicate: Callable[[pa.Array], bool]):
        self.predicate = predicate

    def resolve(self, table):
        t = _ensure_arrow(table)
        return [c for c, arr in zip(t["columns"], t["rows"]) if self.predicate(arr)]


class _Not(Selector):
    def __init__(self, inner: Selector):
        self.inner = inner

    def resolve(self, table):
        excluded = set(self.inner.resolve(table))
        return [c for c in table["columns"] if c not in excluded]

    def __repr__(self):
        return f"~{self.inner!r}"


class _Union(Selector):
    def __init__(self, left: Selector, right: Selector):
        self.left = left
        self.right = right

    def resolve(self, table):
        names = self.left.resolve(table)
        return names + [c for c in self.right.resolve(table) if c not in names]


class _Intersect(Selector):
    def __init__(self, left: Selector, right: Selector):
        self.left = left
        self.right = right

    def resolve(self, table):
        right = set(self.right.resolve(table))
        return [c for c in self.left.resolve(table) if c in right]


def _as_selector(item: Any) -> Selector:
    if isinstance(item, Selector):
        return item
    return _Items((item,))


def _resolve_item(table: dict[str, Any], item: Any) -> list[str]:
    if isinstance(item, Selector):
        return item.resolve(table)
    if isinstance(item, str) or (isinstance(item, int) and not isinstance(item, bool)):
        return [table["columns"][_resolve_column_index(table, item)]]
    if isinstance(item, (list, tuple)):
        return _Items(tuple(item)).resolve(table)
    if callable(item):
        return [c for c in table["columns"] if item(c)]
    raise UnknownColumnError(item, table["columns"])


def cols(*items: Any) -> Selector:
    """Columns by name or position, in the given order."""
    return _Items(items)


def starts_with(prefix: str) -> Selector:
    return _NamePredicate(lambda c: c.startswith(prefix), f"starts_with({prefix!r})")


def ends_with(suffix: str) -> Selector:
    return _NamePredicate(lambda c: c.endswith(suffix), f"ends_with({suffix!r})")


def contains(text: str) -> Selector:
    return _NamePredicate(lambda c: text in c, f"contains({text!r})")


def matches(pattern: str) -> Selector:
    """Columns whose name matches a regular expression (re.search)."""
    regex = re.compile(pattern)
    return _NamePredicate(lambda c: regex.search(c) is not None, f"matches({pattern!r})")


def everything() -> Selector:
    return _NamePredicate(lambda c: True, "everything()")


def where(predicate: Callable[[pa.Array], bool]) -> Selector:
    """Columns whose values satisfy predicate(pa.Array) -> bool."""
    return _Where(predicate)


def resolve_selection(table: dict[str, Any], *items: Any) -> list[str]:
    """
    Resolve selection items against a table.

    Returns:
        Ordered, de-duplicated column names

    Raises:
        UnknownColumnError: If a name or position does not exist
    """
    return _Items(items).resolve(_ensure_arrow(table))
