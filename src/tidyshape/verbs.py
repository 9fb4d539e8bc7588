# -------------------------------------
# Table verbs
# -------------------------------------
"""
The single-table verbs: select, rename, filter, mutate, arrange, slice.

Every verb takes a table (grouped or not) and returns a new table; inputs
are never modified. On a grouped table, filter/mutate/slice work group by
group and every verb keeps the grouping on its result.

    t = table_from_dict({"group": ["a", "a", "b"], "value": [1, 2, 3]})
    t = table_mutate(t, share=col("value") / col("value").sum())
    t = table_filter(t, col("share") > 0.2)
    t = table_arrange(t, desc("value"))
"""
from __future__ import annotations

import logging
import random
from typing import Any, Callable

import pyarrow as pa
import pyarrow.compute as pc

from .errors import TidyError
from .expr import Column, Desc, EvalContext, _order_values, broadcast, evaluate
from .grouped import (
    _group_rows,
    _strip_groups,
    eval_by_group,
    regroup_like,
    table_group_vars,
)
from .selectors import resolve_selection
from .table import (
    _column_array,
    _ensure_arrow,
    _new_table,
    _resolve_column_index,
    _take_rows,
    table_column,
    table_nrows,
)

logger = logging.getLogger(__name__)

__all__ = [
    "table_select",
    "table_rename",
    "table_filter",
    "table_mutate",
    "table_arrange",
    "table_slice",
    "table_slice_head",
    "table_slice_tail",
    "table_slice_min",
    "table_slice_max",
    "table_slice_sample",
    "table_pull",
    "table_distinct",
]


def _with_renamed_groups(out: dict[str, Any], source: dict[str, Any], renames: dict[str, str]) -> dict[str, Any]:
    """Carry the grouping of `source` over to `out` (same rows), renaming vars."""
    groups = source.get("groups")
    if groups and groups["vars"]:
        out["groups"] = dict(groups, vars=[renames.get(v, v) for v in groups["vars"]])
    return out


# -------------------------------------
# Columns
# -------------------------------------

def table_select(table: dict[str, Any], *selection: Any) -> dict[str, Any]:
    """
    Keep exactly the selected columns, in the order selected.

    Args:
        table: Table in any orientation
        *selection: Column names, 0-based positions, name predicates,
            selectors, lists of these, or {new: old} dicts that select
            and rename in one step

    Returns:
        New table with the selected columns. Grouping columns are always
        kept (added in front when not selected).

    Raises:
        UnknownColumnError: If a name or position does not exist
        DuplicateNameError: If two output columns end up with the same name

    Examples:
        >>> table_select(t, "group", ~cols("group", "sex"))
        >>> table_select(t, {"region": "geo"}, starts_with("pop"))
    """
    t = _ensure_arrow(table)
    pairs: list[tuple[str, str]] = []
    for item in selection:
        if isinstance(item, dict):
            for new, old in item.items():
                pairs.append((new, t["columns"][_resolve_column_index(t, old)]))
            continue
        for name in resolve_selection(t, item):
            if name not in [src for _, src in pairs]:
                pairs.append((name, name))

    sources = [src for _, src in pairs]
    missing_vars = [v for v in table_group_vars(t) if v not in sources]
    if missing_vars:
        logger.info("adding missing grouping variables: %s", missing_vars)
        pairs = [(v, v) for v in missing_vars] + pairs

    out = _new_table(
        [new for new, _ in pairs],
        [_column_array(t, src) for _, src in pairs],
        nrows=table_nrows(t),
    )
    renames = {src: new for new, src in pairs if new != src}
    return _with_renamed_groups(out, t, renames)


def table_rename(table: dict[str, Any], mapping: dict[str, Any] | None = None, **new_to_old: Any) -> dict[str, Any]:
    """
    Rename columns, keeping all of them in place.

    Args:
        table: Table in any orientation
        mapping: {new_name: old_name or position}
        **new_to_old: More new_name=old_name pairs

    Raises:
        UnknownColumnError: If an old name does not exist
        DuplicateNameError: If a new name collides with another column

    Examples:
        >>> table_rename(t, region="geo")
    """
    t = _ensure_arrow(table)
    pairs = dict(mapping or {})
    pairs.update(new_to_old)

    columns = list(t["columns"])
    renames: dict[str, str] = {}
    for new, old in pairs.items():
        idx = _resolve_column_index(t, old)
        renames[t["columns"][idx]] = new
        columns[idx] = new

    out = _new_table(columns, list(t["rows"]), nrows=table_nrows(t))
    return _with_renamed_groups(out, t, renames)


def table_pull(table: dict[str, Any], column: str | int = -1) -> list[Any]:
    """A single column as a list (default: the last column)."""
    return table_column(table, column)


# -------------------------------------
# Rows
# -------------------------------------

def _predicate_mask(table: dict[str, Any], predicate: Any, label: str) -> pa.Array:
    mask = eval_by_group(table, predicate, label)
    if pa.types.is_null(mask.type):
        return pa.nulls(len(mask), type=pa.bool_())
    if not pa.types.is_boolean(mask.type):
        raise TidyError(f"filter predicate {label} must be boolean, got {mask.type}")
    return mask


def table_filter(table: dict[str, Any], *predicates: Any) -> dict[str, Any]:
    """
    Keep the rows where every predicate is true.

    Predicates are Exprs, callables(ctx) or boolean constants. A row whose
    predicate is missing is dropped, so comparing with MISSING keeps no
    rows; use is_missing() to select missing values.

    On a grouped table predicates are evaluated per group (aggregates such
    as col("x").mean() use the group's rows).

    Examples:
        >>> table_filter(t, col("pop") > 10, col("sex") != "Total")
        >>> table_filter(t, is_missing("pop"))
    """
    t = _ensure_arrow(table)
    if not predicates:
        return t

    mask = None
    for i, predicate in enumerate(predicates, start=1):
        current = _predicate_mask(t, predicate, f"#{i}")
        mask = current if mask is None else pc.and_kleene(mask, current)

    keep = pc.fill_null(mask, False).to_pylist()
    indices = [i for i, k in enumerate(keep) if k]
    logger.debug("filter kept %d of %d rows", len(indices), table_nrows(t))
    return regroup_like(_take_rows(t, indices), t)


def _set_column(table: dict[str, Any], name: str, values: pa.Array) -> dict[str, Any]:
    """Replace column `name` in place, or append it."""
    columns = list(table["columns"])
    arrays = list(table["rows"])
    if name in columns:
        arrays[columns.index(name)] = values
    else:
        columns.append(name)
        arrays.append(values)
    out = _new_table(columns, arrays, nrows=table_nrows(table))
    if "groups" in table:
        out["groups"] = table["groups"]
    return out


def table_mutate(table: dict[str, Any], exprs: dict[str, Any] | None = None, **named: Any) -> dict[str, Any]:
    """
    Add or replace columns.

    Expressions are evaluated left to right; each one sees the columns
    produced before it. A result of length 1 is repeated for every row
    (of the group, on a grouped table).

    Args:
        table: Table or grouped table
        exprs: Ordered mapping of column name -> Expr, callable(ctx) or constant
        **named: More name=expression pairs (after exprs)

    Raises:
        LengthMismatchError: If a result is neither length 1 nor the row count
        UnknownColumnError: If an expression references a missing column

    Examples:
        >>> table_mutate(t, share=col("value") / col("value").sum())
        >>> table_mutate(t, {"nx": col("age").diff().lead()})
    """
    t = _ensure_arrow(table)
    specs = list((exprs or {}).items()) + list(named.items())
    vars = table_group_vars(t)

    work = t
    for name, value in specs:
        values = eval_by_group(work, value, name)
        work = _set_column(work, name, values)
        if name in vars:
            work = regroup_like(work, t)
    return work


# -------------------------------------
# Ordering
# -------------------------------------

def _sort_key(key: Any) -> tuple[Any, str]:
    if isinstance(key, Desc):
        return key.inner, "descending"
    if isinstance(key, str):
        return Column(key), "ascending"
    return key, "ascending"


def table_arrange(table: dict[str, Any], *keys: Any, by_group: bool = False) -> dict[str, Any]:
    """
    Sort rows by one or more keys (stable).

    Keys are column names, positions, Exprs or callables; wrap a key in
    desc() for descending order. Missing values go last in either
    direction. Categorical columns sort by level order, not by label.

    Args:
        table: Table or grouped table
        *keys: Sort keys, most significant first
        by_group: Sort by the grouping columns first

    Examples:
        >>> table_arrange(t, "country", desc("year"))
    """
    t = _ensure_arrow(table)
    if by_group:
        keys = tuple(table_group_vars(t)) + keys
    if not keys:
        return t

    n_rows = table_nrows(t)
    if not n_rows:
        return t
    ctx = EvalContext(_strip_groups(t))
    sort_columns = {}
    sort_keys = []
    for i, key in enumerate(keys):
        expr, order = _sort_key(key)
        if isinstance(expr, int) and not isinstance(expr, bool):
            values = _column_array(t, expr)
        else:
            values = broadcast(evaluate(expr, ctx), n_rows, f"sort key #{i + 1}")
        values = _order_values(values)
        # missing last in either direction
        sort_columns[f"m{i}"] = pc.is_null(values, nan_is_null=True)
        sort_columns[f"k{i}"] = values
        sort_keys += [(f"m{i}", "ascending"), (f"k{i}", order)]

    indices = pc.sort_indices(pa.table(sort_columns), sort_keys=sort_keys)
    return regroup_like(_take_rows(t, indices), t)


# -------------------------------------
# Slicing
# -------------------------------------

def _slice_groups(table: dict[str, Any], pick: Callable[[dict[str, Any], list[int]], list[int]]) -> dict[str, Any]:
    """
    Select rows group by group.

    pick(table, rows) returns positions local to the group's rows; groups
    are concatenated in group order.
    """
    t = _ensure_arrow(table)
    chosen: list[int] = []
    for rows in _group_rows(t):
        rows = list(rows)
        chosen.extend(rows[j] for j in pick(t, rows))
    return regroup_like(_take_rows(t, chosen), t)


def _positions(size: int, indices: list[int]) -> list[int]:
    out = []
    for i in indices:
        j = i + size if i < 0 else i
        if 0 <= j < size:
            out.append(j)
    return out


def table_slice(table: dict[str, Any], indices: int | list[int] | range) -> dict[str, Any]:
    """
    Rows at 0-based positions, in the order given.

    Negative positions count from the end; positions outside the table
    (or the group) are skipped; repeats are allowed. On a grouped table
    positions are relative to each group.

    Examples:
        >>> table_slice(t, [0, -1])
    """
    if isinstance(indices, int):
        indices = [indices]
    indices = list(indices)
    return _slice_groups(table, lambda t, rows: _positions(len(rows), indices))


def table_slice_head(table: dict[str, Any], n: int = 1) -> dict[str, Any]:
    """First n rows (of each group)."""
    return _slice_groups(table, lambda t, rows: list(range(min(n, len(rows)))))


def table_slice_tail(table: dict[str, Any], n: int = 1) -> dict[str, Any]:
    """Last n rows (of each group)."""
    return _slice_groups(table, lambda t, rows: list(range(max(0, len(rows) - n), len(rows))))


def _extreme_positions(order_by: Any, n: int, with_ties: bool, descending: bool):
    def pick(t: dict[str, Any], rows: list[int]) -> list[int]:
        sub = _take_rows(t, rows)
        values = broadcast(evaluate(order_by, EvalContext(sub)), len(rows), "order_by")
        values = _order_values(values).to_pylist()
        valid = sorted(
            (j for j, v in enumerate(values) if v is not None),
            key=lambda j: values[j],
            reverse=descending,
        )
        picked = valid[:n]
        if with_ties and picked:
            edge = values[picked[-1]]
            picked += [j for j in valid[n:] if values[j] == edge]
        if len(picked) < n:
            picked += [j for j, v in enumerate(values) if v is None][: n - len(picked)]
        return picked
    return pick


def table_slice_min(table: dict[str, Any], order_by: Any, n: int = 1, with_ties: bool = True) -> dict[str, Any]:
    """
    Rows with the smallest values of order_by (per group).

    With with_ties=True, rows tied with the n-th value are kept too.
    Missing values are only used to make up n rows.
    """
    expr, _ = _sort_key(order_by)
    return _slice_groups(table, _extreme_positions(expr, n, with_ties, descending=False))


def table_slice_max(table: dict[str, Any], order_by: Any, n: int = 1, with_ties: bool = True) -> dict[str, Any]:
    """Rows with the largest values of order_by (per group); see table_slice_min."""
    expr, _ = _sort_key(order_by)
    return _slice_groups(table, _extreme_positions(expr, n, with_ties, descending=True))


def table_slice_sample(
    table: dict[str, Any],
    n: int = 1,
    seed: int | None = None,
    replace: bool = False,
) -> dict[str, Any]:
    """
    Random rows (per group).

    Args:
        table: Table or grouped table
        n: Rows to draw from each group (capped at the group size without replacement)
        seed: Seed for reproducible draws
        replace: Sample with replacement
    """
    rng = random.Random(seed)

    def pick(t: dict[str, Any], rows: list[int]) -> list[int]:
        size = len(rows)
        if replace:
            return [rng.randrange(size) for _ in range(n)] if size else []
        return rng.sample(range(size), min(n, size))

    return _slice_groups(table, pick)


def table_distinct(table: dict[str, Any], *cols: Any, keep_all: bool = False) -> dict[str, Any]:
    """
    Unique rows, keeping the first occurrence of each.

    Args:
        table: Table or grouped table
        *cols: Columns that define uniqueness (default: all columns)
        keep_all: Keep every column instead of only the key columns

    Returns:
        Table of the distinct rows in order of first appearance. Grouping
        columns are always part of the key.
    """
    t = _ensure_arrow(table)
    if cols:
        names = resolve_selection(t, *cols)
        names = [v for v in table_group_vars(t) if v not in names] + names
    else:
        names = list(t["columns"])
    if not names:
        return t

    key_lists = [_column_array(t, c).to_pylist() for c in names]
    seen = set()
    first = []
    for i, key in enumerate(zip(*key_lists)):
        if key not in seen:
            seen.add(key)
            first.append(i)

    out = _take_rows(t, first)
    if cols and not keep_all:
        out = _new_table(names, [_column_array(out, c) for c in names], nrows=len(first))
    return regroup_like(out, t)
