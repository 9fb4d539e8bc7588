# -------------------------------------
# Reshaping - long <-> wide
# -------------------------------------
"""
Pivots between long and wide layouts, plus the small tidying helpers
that usually travel with them (complete, drop_na, fill).

pivot_longer turns a set of columns into key/value pairs:

    group  Female  Male            group  name    value
    a      1       3         ->    a      Female  1
    b      2       4               b      Female  2
                                   a      Male    3
                                   b      Male    4

pivot_wider is its inverse. Both either succeed completely or raise.
"""
from __future__ import annotations

import itertools
import logging
from typing import Any

import pyarrow as pa
import pyarrow.compute as pc

from .errors import DuplicateIdentifierError, DuplicateNameError, TidyError
from .grouped import regroup, regroup_like, table_group_modify, table_group_vars, table_is_grouped
from .selectors import resolve_selection
from .table import (
    _column_array,
    _ensure_arrow,
    _new_table,
    _resolve_column_index,
    _take_rows,
    concat_arrays,
    encode_categorical,
    table_nrows,
)
from .verbs import table_mutate

logger = logging.getLogger(__name__)

__all__ = [
    "table_pivot_longer",
    "table_pivot_wider",
    "table_complete",
    "table_drop_na",
    "table_fill",
]


def _take(arr: pa.Array, indices: list[int | None]) -> pa.Array:
    return pc.take(arr, pa.array(indices, type=pa.int64()))


# -------------------------------------
# pivot_longer
# -------------------------------------

def table_pivot_longer(
    table: dict[str, Any],
    cols: Any,
    names_to: str = "name",
    values_to: str = "value",
    values_drop_na: bool = False,
    names_prefix: str | None = None,
    order: str = "columns",
) -> dict[str, Any]:
    """
    Gather columns into key/value pairs.

    Every input row yields one output row per gathered column. Kept
    columns come first (in their original order), then the key column
    holding the gathered column names, then the value column.

    Args:
        table: Table in any orientation
        cols: Columns to gather (name, position, selector or list of these)
        names_to: Name of the key column
        values_to: Name of the value column
        values_drop_na: Drop output rows whose value is missing
        names_prefix: Prefix stripped from gathered column names
        order: "columns" emits all rows for the first gathered column, then
            the second, and so on; "rows" emits each input row's pairs together

    Returns:
        Long table with N x len(cols) rows (fewer with values_drop_na)

    Raises:
        TypeUnificationError: If the gathered columns have incompatible types
        DuplicateNameError: If names_to or values_to is a kept column
        UnknownColumnError: If a gathered column does not exist

    Examples:
        >>> long = table_pivot_longer(t, ~cols("group"), names_to="sex", values_to="n")
    """
    t = _ensure_arrow(table)
    gathered = resolve_selection(t, cols)
    if not gathered:
        raise TidyError("pivot_longer needs at least one column to gather")
    if order not in ("columns", "rows"):
        raise TidyError(f"order must be 'columns' or 'rows', got {order!r}")

    kept = [c for c in t["columns"] if c not in gathered]
    clashes = [c for c in (names_to, values_to) if c in kept]
    if names_to == values_to:
        clashes.append(names_to)
    if clashes:
        raise DuplicateNameError(clashes)

    n_rows = table_nrows(t)
    m = len(gathered)
    values = concat_arrays([_column_array(t, c) for c in gathered], gathered)

    labels = list(gathered)
    if names_prefix:
        labels = [c[len(names_prefix):] if c.startswith(names_prefix) else c for c in labels]

    if order == "columns":
        row_of = [i for _ in range(m) for i in range(n_rows)]
        source_of = [j for j in range(m) for _ in range(n_rows)]
    else:
        row_of = [i for i in range(n_rows) for _ in range(m)]
        source_of = [j for _ in range(n_rows) for j in range(m)]
    value_index = [j * n_rows + i for i, j in zip(row_of, source_of)]

    arrays = [_take(_column_array(t, c), row_of) for c in kept]
    arrays.append(pa.array([labels[j] for j in source_of], type=pa.string()))
    arrays.append(_take(values, value_index))
    out = _new_table(kept + [names_to, values_to], arrays, nrows=n_rows * m)

    if values_drop_na:
        valid = pc.is_valid(arrays[-1]).to_pylist()
        out = _take_rows(out, [i for i, ok in enumerate(valid) if ok])

    logger.debug("pivot_longer: %d x %d -> %d x %d", n_rows, len(t["columns"]),
                 table_nrows(out), len(out["columns"]))
    return regroup(out, [v for v in table_group_vars(t) if v in kept])


# -------------------------------------
# pivot_wider
# -------------------------------------

def _key_name(value: Any, prefix: str) -> str:
    return f"{prefix}{'NA' if value is None else value}"


def table_pivot_wider(
    table: dict[str, Any],
    names_from: str | int = "name",
    values_from: str | int = "value",
    id_cols: Any = None,
    values_fill: Any = None,
    names_prefix: str = "",
) -> dict[str, Any]:
    """
    Spread key/value pairs into columns.

    Rows are identified by the id columns (default: every column except
    names_from and values_from). The output has one row per distinct
    identity, in order of first appearance, followed by one column per
    distinct key value, also in order of first appearance. A missing key
    becomes a column named "NA". Identity/key pairs that never occur are
    missing, or values_fill when given.

    Args:
        table: Long table
        names_from: Column holding the new column names
        values_from: Column holding the cell values
        id_cols: Identity columns (selection); default is all other columns
        values_fill: Value for absent cells
        names_prefix: Prefix added to the new column names

    Returns:
        Wide table

    Raises:
        DuplicateIdentifierError: If an identity/key pair occurs twice. Add a
            row id column (e.g. row_number() per identity) to id_cols to
            keep every value.
        DuplicateNameError: If a new column name clashes with an id column,
            or two distinct key values give the same name (a missing key
            and the string "NA")

    Examples:
        >>> wide = table_pivot_wider(long, names_from="sex", values_from="n")
    """
    t = _ensure_arrow(table)
    key_col = t["columns"][_resolve_column_index(t, names_from)]
    value_col = t["columns"][_resolve_column_index(t, values_from)]
    if id_cols is None:
        ids = [c for c in t["columns"] if c not in (key_col, value_col)]
    else:
        ids = resolve_selection(t, id_cols)

    keys = _column_array(t, key_col).to_pylist()
    id_lists = [_column_array(t, c).to_pylist() for c in ids]
    n_rows = table_nrows(t)

    identity_of: dict[tuple, int] = {}
    first_rows: list[int] = []
    key_of: dict[Any, int] = {}
    key_values: list[Any] = []
    cells: dict[tuple[int, int], int] = {}
    for i in range(n_rows):
        identity = tuple(values[i] for values in id_lists)
        g = identity_of.get(identity)
        if g is None:
            g = identity_of[identity] = len(first_rows)
            first_rows.append(i)
        k = key_of.get(keys[i])
        if k is None:
            k = key_of[keys[i]] = len(key_values)
            key_values.append(keys[i])
        if (g, k) in cells:
            raise DuplicateIdentifierError(dict(zip(ids, identity)), keys[i])
        cells[(g, k)] = i

    key_names = [_key_name(v, names_prefix) for v in key_values]
    if len(set(key_names)) != len(key_names):
        raise DuplicateNameError([name for name in key_names if key_names.count(name) > 1])

    values = _column_array(t, value_col)
    if values_fill is not None and pa.types.is_dictionary(values.type):
        values = values.dictionary_decode()

    arrays = [_take(_column_array(t, c), first_rows) for c in ids]
    for k in range(len(key_values)):
        column = _take(values, [cells.get((g, k)) for g in range(len(first_rows))])
        if values_fill is not None:
            column = pc.fill_null(column, values_fill)
        arrays.append(column)

    out = _new_table(ids + key_names, arrays, nrows=len(first_rows))
    logger.debug("pivot_wider: %d rows -> %d identities x %d keys", n_rows, len(first_rows), len(key_names))
    return regroup(out, [v for v in table_group_vars(t) if v in ids])


# -------------------------------------
# Tidying helpers
# -------------------------------------

def _domain(arr: pa.Array) -> list[Any]:
    """Values a key column can take: levels for categoricals, else sorted distinct values."""
    values = arr.to_pylist()
    has_missing = any(v is None for v in values)
    if pa.types.is_dictionary(arr.type):
        domain = arr.dictionary.to_pylist()
    else:
        domain = sorted({v for v in values if v is not None})
    return domain + [None] if has_missing else domain


def _key_array(values: list[Any], like: pa.Array) -> pa.Array:
    if pa.types.is_dictionary(like.type):
        return encode_categorical(values, levels=like.dictionary.to_pylist())
    return pa.array(values, type=like.type)


def table_complete(table: dict[str, Any], *cols: Any, fill: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Make implicit missing rows explicit.

    The output holds every combination of the distinct values of `cols`
    (categoricals contribute all their levels), sorted by those columns.
    Combinations absent from the input get missing values in the other
    columns. On a grouped table this is done within each group.

    Args:
        table: Table or grouped table
        *cols: Key columns to expand
        fill: Column -> value replacing missing values in the other columns

    Examples:
        >>> table_complete(t, "country", "year", fill={"pop": 0})
    """
    t = _ensure_arrow(table)
    if table_is_grouped(t):
        return table_group_modify(t, lambda sub: table_complete(sub, *cols, fill=fill))

    names = resolve_selection(t, *cols)
    key_arrays = [_column_array(t, c) for c in names]
    rows_by_key: dict[tuple, list[int]] = {}
    for i, key in enumerate(zip(*(a.to_pylist() for a in key_arrays))):
        rows_by_key.setdefault(key, []).append(i)

    take: list[int | None] = []
    key_values: list[tuple] = []
    for combo in itertools.product(*(_domain(a) for a in key_arrays)):
        rows = rows_by_key.get(combo)
        if rows:
            take.extend(rows)
            key_values.extend([combo] * len(rows))
        else:
            take.append(None)
            key_values.append(combo)

    arrays = []
    for c, arr in zip(t["columns"], t["rows"]):
        if c in names:
            j = names.index(c)
            column = _key_array([k[j] for k in key_values], arr)
        else:
            column = _take(arr, take)
            if fill and c in fill:
                column = pc.fill_null(column.dictionary_decode() if pa.types.is_dictionary(column.type)
                                      else column, fill[c])
        arrays.append(column)

    out = _new_table(t["columns"], arrays, nrows=len(take))
    logger.debug("complete on %s: %d -> %d rows", names, table_nrows(t), len(take))
    return out


def table_drop_na(table: dict[str, Any], *cols: Any) -> dict[str, Any]:
    """Drop rows with a missing value in any of `cols` (default: any column)."""
    t = _ensure_arrow(table)
    names = resolve_selection(t, *cols) if cols else list(t["columns"])
    keep = [True] * table_nrows(t)
    for c in names:
        valid = pc.is_valid(_column_array(t, c)).to_pylist()
        keep = [k and v for k, v in zip(keep, valid)]
    return regroup_like(_take_rows(t, [i for i, k in enumerate(keep) if k]), t)


_FILL_DIRECTIONS = ("down", "up", "downup", "updown")


def _fill_array(arr: pa.Array, direction: str) -> pa.Array:
    if pa.types.is_dictionary(arr.type):
        codes = _fill_array(arr.indices, direction)
        return pa.DictionaryArray.from_arrays(codes, arr.dictionary)
    for step in direction.replace("down", "d ").replace("up", "u ").split():
        arr = pc.fill_null_forward(arr) if step == "d" else pc.fill_null_backward(arr)
    return arr


def table_fill(table: dict[str, Any], *cols: Any, direction: str = "down") -> dict[str, Any]:
    """
    Fill missing values with the previous (or next) non-missing value.

    Args:
        table: Table or grouped table (filling stays within each group)
        *cols: Columns to fill
        direction: "down", "up", "downup" or "updown"
    """
    if direction not in _FILL_DIRECTIONS:
        raise TidyError(f"direction must be one of {_FILL_DIRECTIONS}, got {direction!r}")
    t = _ensure_arrow(table)
    names = resolve_selection(t, *cols)
    return table_mutate(t, {c: (lambda ctx, c=c: _fill_array(ctx[c], direction)) for c in names})
