# -------------------------------------
# Grouped tables - split-apply-combine
# -------------------------------------
"""
Grouping, per-group evaluation and summarise.

A grouped table is an ordinary table dict with an extra "groups" entry,
a logical partition of its row indices:

    {"orientation": "arrow", "columns": [...], "rows": [...],
     "groups": {"vars": ["country"], "keys": [("X",), ("Y",)],
                "rows": [[0, 1], [2, 3]], "sort": False}}

Groups follow the first appearance of each key combination. Categorical
keys order groups by level order instead; sort=True sorts by key values
(missing last).

Grouped mutate/filter/slice live in tidyshape.verbs and use
eval_by_group() from here; they keep the grouping on their result.
summarise collapses each group to one row.
"""
from __future__ import annotations

import logging
import warnings
from typing import Any, Callable

import pyarrow as pa
import pyarrow.compute as pc

from . import config
from .errors import ConfigError, GroupingWarning, NonScalarAggregateError
from .expr import EvalContext, broadcast, evaluate, n, scalar_array
from .selectors import resolve_selection
from .table import (
    _column_array,
    _ensure_arrow,
    _new_table,
    _take_rows,
    concat_arrays,
    table_bind_rows,
    table_nrows,
)

logger = logging.getLogger(__name__)

__all__ = [
    "table_group_by",
    "table_ungroup",
    "table_is_grouped",
    "table_group_vars",
    "table_group_keys",
    "table_n_groups",
    "table_group_split",
    "table_group_modify",
    "table_summarise",
    "table_count",
    "regroup",
    "regroup_like",
    "eval_by_group",
]


# -------------------------------------
# Partitioning
# -------------------------------------

# NaN keys share one group
_NAN = object()


def _sort_key(value: Any, code_of: dict | None) -> tuple:
    if value is None or value != value:
        return (True, 0)
    if code_of is not None:
        return (False, code_of[value])
    return (False, value)


def compute_groups(table: dict[str, Any], vars: list[str], sort: bool = False) -> dict[str, Any]:
    """
    Partition row indices by the distinct combinations of `vars`.

    Returns:
        {"vars": [...], "keys": [tuple, ...], "rows": [[int, ...], ...], "sort": sort}
    """
    t = _ensure_arrow(table)
    n_rows = table_nrows(t)
    if not vars:
        return {"vars": [], "keys": [()] if n_rows else [], "rows": [list(range(n_rows))] if n_rows else [], "sort": sort}

    arrays = [_column_array(t, v) for v in vars]
    key_lists = [a.to_pylist() for a in arrays]

    index: dict[tuple, int] = {}
    keys: list[tuple] = []
    rows: list[list[int]] = []
    for i, key in enumerate(zip(*key_lists)):
        lookup = tuple(_NAN if v != v else v for v in key)
        g = index.get(lookup)
        if g is None:
            index[lookup] = len(keys)
            keys.append(key)
            rows.append([i])
        else:
            rows[g].append(i)

    code_maps = [
        {label: code for code, label in enumerate(a.dictionary.to_pylist())}
        if pa.types.is_dictionary(a.type) else None
        for a in arrays
    ]
    order = list(range(len(keys)))
    if sort:
        order.sort(key=lambda g: tuple(_sort_key(v, m) for v, m in zip(keys[g], code_maps)))
    elif any(m is not None for m in code_maps):
        order.sort(key=lambda g: tuple(
            _sort_key(v, m) for v, m in zip(keys[g], code_maps) if m is not None
        ))

    return {
        "vars": list(vars),
        "keys": [keys[g] for g in order],
        "rows": [rows[g] for g in order],
        "sort": sort,
    }


def _strip_groups(table: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in table.items() if k != "groups"}


def regroup(table: dict[str, Any], vars: list[str], sort: bool = False) -> dict[str, Any]:
    """Attach a fresh grouping by `vars` (no vars: ungrouped)."""
    t = _strip_groups(_ensure_arrow(table))
    if not vars:
        return t
    t["groups"] = compute_groups(t, vars, sort=sort)
    return t


def regroup_like(table: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    """Group `table` the way `source` is grouped."""
    groups = _groups(source)
    if not groups:
        return _strip_groups(_ensure_arrow(table))
    return regroup(table, groups["vars"], sort=groups.get("sort", False))


def _groups(table: dict[str, Any]) -> dict[str, Any] | None:
    groups = table.get("groups")
    if groups and groups["vars"]:
        return groups
    return None


# -------------------------------------
# Grouping verbs
# -------------------------------------

def table_group_by(table: dict[str, Any], *keys: Any, add: bool = False, sort: bool = False) -> dict[str, Any]:
    """
    Group a table by one or more columns.

    Grouping an already grouped table replaces its grouping, unless
    add=True, which appends the new keys to the existing ones.

    Args:
        table: Table in any orientation
        *keys: Column names, positions or selectors
        add: Extend instead of replace an existing grouping
        sort: Order groups by key values instead of first appearance

    Returns:
        Grouped table (same rows, same order)

    Raises:
        UnknownColumnError: If a key column does not exist
    """
    t = _ensure_arrow(table)
    vars = resolve_selection(t, *keys)
    if add:
        prior = table_group_vars(t)
        vars = prior + [v for v in vars if v not in prior]
    out = regroup(t, vars, sort=sort)
    logger.debug("group_by %s: %d groups", vars, table_n_groups(out))
    return out


def table_ungroup(table: dict[str, Any]) -> dict[str, Any]:
    """Drop the grouping of a table."""
    return _strip_groups(_ensure_arrow(table))


def table_is_grouped(table: dict[str, Any]) -> bool:
    return _groups(table) is not None


def table_group_vars(table: dict[str, Any]) -> list[str]:
    groups = _groups(table)
    return list(groups["vars"]) if groups else []


def table_n_groups(table: dict[str, Any]) -> int:
    """Number of groups (an ungrouped non-empty table is one group)."""
    groups = _groups(table)
    if groups:
        return len(groups["rows"])
    return 1 if table_nrows(table) else 0


def _group_rows(table: dict[str, Any]) -> list[list[int]]:
    groups = _groups(table)
    if groups:
        return groups["rows"]
    return [list(range(table_nrows(table)))]


def _first_rows(table: dict[str, Any], vars: list[str], first: list[int]) -> list[pa.Array]:
    indices = pa.array(first, type=pa.int64())
    return [pc.take(_column_array(table, v), indices) for v in vars]


def table_group_keys(table: dict[str, Any]) -> dict[str, Any]:
    """One row per group holding its key values, in group order."""
    t = _ensure_arrow(table)
    vars = table_group_vars(t)
    groups = _groups(t)
    first = [rows[0] for rows in groups["rows"]] if groups else []
    return _new_table(vars, _first_rows(t, vars, first), nrows=len(first))


def table_group_split(table: dict[str, Any]) -> list[dict[str, Any]]:
    """Split into one ungrouped table per group, in group order."""
    t = _ensure_arrow(table)
    if not _groups(t):
        return [_strip_groups(t)]
    return [_take_rows(t, rows) for rows in _group_rows(t)]


def table_group_modify(
    table: dict[str, Any],
    func: Callable[[dict[str, Any]], dict[str, Any]],
) -> dict[str, Any]:
    """
    Apply a table -> table function to every group and recombine.

    func receives each group without its grouping columns; the key values
    are put back in front of whatever func returns. Results are bound in
    group order and regrouped by the same variables.
    """
    t = _ensure_arrow(table)
    groups = _groups(t)
    if not groups:
        return _ensure_arrow(func(_strip_groups(t)))

    vars = groups["vars"]
    keep = [i for i, c in enumerate(t["columns"]) if c not in vars]
    pieces = []
    for rows in groups["rows"]:
        sub = _take_rows(t, rows)
        sub = _new_table([sub["columns"][i] for i in keep], [sub["rows"][i] for i in keep], nrows=len(rows))
        result = _strip_groups(_ensure_arrow(func(sub)))
        m = table_nrows(result)
        key_arrays = _first_rows(t, vars, [rows[0]] * m)
        pieces.append(_new_table(vars + result["columns"], key_arrays + result["rows"], nrows=m))

    if not pieces:
        out = _new_table(vars, _first_rows(t, vars, []))
    else:
        out = table_bind_rows(*pieces)
    logger.debug("group_modify over %d groups -> %d rows", len(pieces), table_nrows(out))
    return regroup(out, vars, sort=groups.get("sort", False))


# -------------------------------------
# Per-group evaluation
# -------------------------------------

def eval_by_group(table: dict[str, Any], value: Any, name: str) -> pa.Array:
    """
    Evaluate an expression per group and return a full-length column.

    Each group sees only its own rows, so aggregates and window functions
    are scoped to the group. Results are written back in original row
    order.

    Raises:
        LengthMismatchError: If a group result is neither length 1 nor the group size
    """
    t = _ensure_arrow(table)
    n_rows = table_nrows(t)
    groups = _groups(t)
    if not groups or not groups["rows"]:
        return broadcast(evaluate(value, EvalContext(t)), n_rows, name)

    pieces = []
    order: list[int] = []
    for rows in groups["rows"]:
        sub = _take_rows(t, rows)
        pieces.append(broadcast(evaluate(value, EvalContext(sub)), len(rows), name))
        order.extend(rows)

    combined = concat_arrays(pieces, [f"{name} (group {i})" for i in range(1, len(pieces) + 1)])
    inverse = [0] * n_rows
    for pos, row in enumerate(order):
        inverse[row] = pos
    return pc.take(combined, pa.array(inverse, type=pa.int64()))


def _as_scalar(result: Any, name: str) -> pa.Scalar:
    if isinstance(result, pa.Scalar):
        return result
    if isinstance(result, pa.ChunkedArray):
        result = result.combine_chunks()
    if isinstance(result, (list, tuple)):
        result = pa.array(list(result))
    if isinstance(result, pa.Array):
        if len(result) != 1:
            raise NonScalarAggregateError(name, len(result))
        return result[0]
    return pa.scalar(result)


def _named_exprs(exprs: dict[str, Any] | None, named: dict[str, Any]) -> list[tuple[str, Any]]:
    specs = list((exprs or {}).items())
    specs.extend(named.items())
    return specs


def _residual_groups(vars: list[str], groups: str | None) -> list[str]:
    policy = groups if groups is not None else config.get_option("summarise.groups")
    if policy not in config.SUMMARISE_GROUPS:
        raise ConfigError(f"groups must be one of {config.SUMMARISE_GROUPS}, got {policy!r}")
    if policy == "drop":
        return []
    if policy == "keep":
        return list(vars)
    remaining = list(vars[:-1])
    if remaining and groups is None:
        warnings.warn(
            f"summarise() has grouped output by {remaining}. "
            f"Pass groups='drop_last', 'drop' or 'keep' to choose explicitly.",
            GroupingWarning,
            stacklevel=3,
        )
    return remaining


def table_summarise(
    table: dict[str, Any],
    exprs: dict[str, Any] | None = None,
    groups: str | None = None,
    **named: Any,
) -> dict[str, Any]:
    """
    Collapse each group to a single row of summaries.

    Expressions are evaluated left to right within each group; a later
    expression can use an earlier summary by name. The result holds the
    grouping columns followed by the summaries, one row per group, in
    group order. An ungrouped table gives exactly one row.

    Args:
        table: Table or grouped table
        exprs: Ordered mapping of output name -> Expr, callable(ctx) or constant
        groups: Grouping left on the result: "drop_last" peels off the last
            grouping variable, "drop" ungroups, "keep" keeps every variable.
            Defaults to the summarise.groups option; a GroupingWarning is
            issued when that default leaves the result grouped.
        **named: More output name -> expression pairs

    Returns:
        Summary table

    Raises:
        NonScalarAggregateError: If an expression yields more than one value
    """
    t = _ensure_arrow(table)
    specs = _named_exprs(exprs, named)
    grouping = _groups(t)
    vars = list(grouping["vars"]) if grouping else []
    rows_list = grouping["rows"] if grouping else [list(range(table_nrows(t)))]

    first = [rows[0] for rows in rows_list] if grouping else []
    key_arrays = _first_rows(t, vars, first)

    pieces: dict[str, list[pa.Array]] = {name: [] for name, _ in specs}
    if not rows_list:
        ctx = EvalContext(_strip_groups(t))
        for name, value in specs:
            result = evaluate(value, ctx)
            if not isinstance(result, (pa.Array, pa.Scalar, pa.ChunkedArray)):
                result = pa.scalar(result)
            ctx.extras[name] = result
            pieces[name].append(pa.nulls(0, type=result.type))
    for rows in rows_list:
        sub = _take_rows(t, rows) if grouping else _strip_groups(t)
        ctx = EvalContext(sub)
        for name, value in specs:
            scalar = _as_scalar(evaluate(value, ctx), name)
            ctx.extras[name] = scalar
            pieces[name].append(scalar_array(scalar, 1))

    summary_arrays = [
        concat_arrays(arrs, [f"{name} (group {i})" for i in range(1, len(arrs) + 1)])
        for name, arrs in pieces.items()
    ]
    out = _new_table(vars + [name for name, _ in specs], key_arrays + summary_arrays, nrows=len(rows_list))
    remaining = _residual_groups(vars, groups)
    logger.debug("summarise over %d groups; grouping left: %s", len(rows_list), remaining)
    return regroup(out, remaining, sort=grouping.get("sort", False) if grouping else False)


def table_count(table: dict[str, Any], *cols: Any, name: str = "n", sort: bool = False) -> dict[str, Any]:
    """
    Count rows per combination of the existing groups and `cols`.

    The result keeps the grouping of the input.

    Args:
        table: Table or grouped table
        *cols: Extra columns to count by
        name: Name of the count column
        sort: Largest counts first
    """
    t = _ensure_arrow(table)
    prior = table_group_vars(t)
    extra = resolve_selection(t, *cols) if cols else []
    vars = prior + [c for c in extra if c not in prior]

    grouped = regroup(t, vars)
    out = table_summarise(grouped, {name: n()}, groups="drop")
    if sort and table_nrows(out):
        pa_tbl = pa.table({"count": _column_array(out, name)})
        order = pc.sort_indices(pa_tbl, sort_keys=[("count", "descending")])
        out = _take_rows(out, order)
    return regroup(out, prior)
