# -------------------------------------
# Categorical columns
# -------------------------------------
"""
Categorical (factor) columns: integer codes plus an ordered level list,
stored as arrow dictionary arrays.

Two operations look alike and must not be confused:

- table_reorder_levels permutes the level list. Every row keeps its
  label; only sort, group and display order change.
- table_relabel_levels renames levels position by position. Codes stay
  put, so rows change label. It is keyword-only and logged as a warning.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

import pyarrow as pa
import pyarrow.compute as pc

from .errors import LevelError, TidyError
from .expr import EvalContext, _subject, broadcast, evaluate
from .grouped import _strip_groups, regroup_like, table_group_vars
from .table import _column_array, _ensure_arrow, encode_categorical, table_nrows
from .verbs import _set_column

logger = logging.getLogger(__name__)

__all__ = [
    "table_as_factor",
    "table_levels",
    "table_reorder_levels",
    "table_relabel_levels",
    "table_recode_levels",
    "table_collapse_levels",
    "table_reorder_by",
]


def _replace(table: dict[str, Any], column: str, values: pa.Array) -> dict[str, Any]:
    out = _set_column(table, column, values)
    if column in table_group_vars(table):
        out = regroup_like(out, table)
    return out


def _categorical(table: dict[str, Any], column: str) -> pa.DictionaryArray:
    arr = _column_array(table, column)
    if not pa.types.is_dictionary(arr.type):
        raise LevelError(f"Column '{column}' is not categorical ({arr.type})")
    return arr


def _rebuild(arr: pa.DictionaryArray, code_map: list[int], levels: list[Any]) -> pa.DictionaryArray:
    """Map old codes through code_map onto a new level list."""
    codes = pc.take(pa.array(code_map, type=pa.int32()), arr.indices.cast(pa.int32()))
    return pa.DictionaryArray.from_arrays(codes, pa.array(levels, type=arr.dictionary.type))


def table_as_factor(table: dict[str, Any], column: str, levels: list | None = None) -> dict[str, Any]:
    """
    Make a column categorical.

    Args:
        table: Table in any orientation
        column: Column to encode
        levels: Level order. Defaults to the sorted distinct values; values
            not in `levels` become missing.
    """
    t = _ensure_arrow(table)
    return _replace(t, column, encode_categorical(_column_array(t, column), levels))


def table_levels(table: dict[str, Any], column: str) -> list[Any]:
    """Levels of a categorical column, in order."""
    return _categorical(_ensure_arrow(table), column).dictionary.to_pylist()


def table_reorder_levels(table: dict[str, Any], column: str, levels: list[Any]) -> dict[str, Any]:
    """
    Change the order of the levels without changing any row's label.

    Args:
        table: Table in any orientation
        column: Categorical column
        levels: The existing levels in their new order

    Raises:
        LevelError: If `levels` is not a permutation of the current levels

    Examples:
        >>> table_reorder_levels(t, "sex", ["Male", "Female", "Total"])
    """
    t = _ensure_arrow(table)
    arr = _categorical(t, column)
    old = arr.dictionary.to_pylist()
    levels = list(levels)
    if len(levels) != len(old) or set(levels) != set(old) or len(set(levels)) != len(levels):
        raise LevelError(f"{levels} is not a reordering of the levels of '{column}': {old}")
    position = {label: i for i, label in enumerate(levels)}
    return _replace(t, column, _rebuild(arr, [position[label] for label in old], levels))


def table_relabel_levels(table: dict[str, Any], column: str, *, new_levels: list[Any]) -> dict[str, Any]:
    """
    Replace level labels position by position, keeping every code.

    Rows coded as the i-th level now read new_levels[i]. Use
    table_reorder_levels to change order while keeping labels.

    Raises:
        LevelError: If the number of labels differs or labels repeat
    """
    t = _ensure_arrow(table)
    arr = _categorical(t, column)
    old = arr.dictionary.to_pylist()
    new_levels = list(new_levels)
    if len(new_levels) != len(old) or len(set(new_levels)) != len(new_levels):
        raise LevelError(
            f"relabel_levels needs {len(old)} distinct labels for '{column}', got {new_levels}"
        )
    logger.warning("relabel_levels on '%s' changes row labels: %s -> %s", column, old, new_levels)
    return _replace(t, column, pa.DictionaryArray.from_arrays(arr.indices, pa.array(new_levels)))


def table_recode_levels(table: dict[str, Any], column: str, mapping: dict[Any, Any]) -> dict[str, Any]:
    """
    Rename levels by label (old -> new).

    Levels mapped to the same new label are merged; the merged level takes
    the position of the first of them.

    Raises:
        LevelError: If a key of `mapping` is not a level
    """
    t = _ensure_arrow(table)
    arr = _categorical(t, column)
    old = arr.dictionary.to_pylist()
    unknown = [k for k in mapping if k not in old]
    if unknown:
        raise LevelError(f"Unknown levels of '{column}': {unknown}")

    levels: list[Any] = []
    code_map = []
    for label in old:
        new = mapping.get(label, label)
        if new not in levels:
            levels.append(new)
        code_map.append(levels.index(new))
    return _replace(t, column, _rebuild(arr, code_map, levels))


def table_collapse_levels(
    table: dict[str, Any],
    column: str,
    groups: dict[Any, list[Any]],
    other: Any = None,
) -> dict[str, Any]:
    """
    Merge levels into named groups.

    Args:
        table: Table in any orientation
        column: Categorical column
        groups: New level -> list of existing levels it replaces
        other: Label for every level not listed in `groups` (placed last);
            unlisted levels are kept as they are when None

    Examples:
        >>> table_collapse_levels(t, "activity", {"Work": ["Main job", "Second job"]}, other="Other")
    """
    t = _ensure_arrow(table)
    old = table_levels(t, column)
    mapping = {label: new for new, labels in groups.items() for label in labels}
    if other is not None:
        for label in old:
            mapping.setdefault(label, other)
    out = table_recode_levels(t, column, mapping)

    levels = table_levels(out, column)
    if other is not None and other in levels and other not in groups:
        out = table_reorder_levels(out, column, [lv for lv in levels if lv != other] + [other])
    return out


_AGGS: dict[str, Callable[[pa.Array], Any]] = {
    "median": lambda a: pc.quantile(a, q=0.5)[0].as_py(),
    "mean": lambda a: pc.mean(a).as_py(),
    "sum": lambda a: pc.sum(a).as_py(),
    "min": lambda a: pc.min(a).as_py(),
    "max": lambda a: pc.max(a).as_py(),
    "n": len,
}


def table_reorder_by(
    table: dict[str, Any],
    column: str,
    by: Any,
    agg: str | Callable[[pa.Array], Any] = "median",
    descending: bool = False,
) -> dict[str, Any]:
    """
    Order the levels of `column` by a summary of `by` within each level.

    Args:
        table: Table in any orientation
        column: Column to reorder (made categorical if it is not)
        by: Column name, Expr or callable(ctx) giving the values to summarise
        agg: "median", "mean", "sum", "min", "max", "n" or a function of a pa.Array
        descending: Largest summary first

    Levels without non-missing values go last.
    """
    t = _ensure_arrow(table)
    if not pa.types.is_dictionary(_column_array(t, column).type):
        t = table_as_factor(t, column)
    arr = _categorical(t, column)
    if isinstance(agg, str) and agg not in _AGGS:
        raise TidyError(f"agg must be one of {list(_AGGS)} or a function, got {agg!r}")
    summarise = _AGGS[agg] if isinstance(agg, str) else agg

    values = broadcast(evaluate(_subject(by), EvalContext(_strip_groups(t))), table_nrows(t), "by")
    codes = arr.indices.to_pylist()
    levels = arr.dictionary.to_pylist()

    summaries = []
    for code, label in enumerate(levels):
        rows = pa.array([i for i, c in enumerate(codes) if c == code], type=pa.int64())
        members = pc.drop_null(pc.take(values, rows))
        summaries.append(summarise(members) if len(members) else None)

    valued = sorted(
        (i for i, s in enumerate(summaries) if s is not None),
        key=lambda i: summaries[i],
        reverse=descending,
    )
    missing = [i for i, s in enumerate(summaries) if s is None]
    return table_reorder_levels(t, column, [levels[i] for i in valued + missing])
