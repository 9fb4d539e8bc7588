# -------------------------------------
# Table utilities - dict-based arrow tables
# -------------------------------------
"""
Construction, conversion and validation of dict-based tables.

Tables are dicts with 'columns', 'rows' and 'orientation' keys:
    Arrow-oriented: {"orientation": "arrow", "columns": ["a", "b"], "rows": [pa.Array, pa.Array]}
    Row-oriented: {"orientation": "row", "columns": ["a", "b"], "rows": [[a0, b0], [a1, b1], ...]}
    Column-oriented: {"orientation": "column", "columns": ["a", "b"], "rows": [[a0, a1, ...], [b0, b1, ...]]}

Every verb works on arrow-oriented tables and converts row/column input on
entry. A row/column table may carry a "types" entry (list parallel to
"columns", or dict keyed by name) with declared element types:

    int, float, str, bool, cat

"cat" columns are categorical: arrow dictionary arrays holding int32 codes
and an ordered list of levels. Missing values are arrow nulls (None).

A grouped table also carries a "groups" entry, see tidyshape.grouped.

This module provides:
- Orientation conversion: table_to_arrow, table_to_rows, table_to_columns
- Construction: table_from_dict, table_from_rows, table_from_pyarrow
- Inspection: table_nrows, table_ncols, table_column_names, table_types, table_column
- Type unification shared by reshaping and row binding
- Row binding, head, and text formatting
"""
from __future__ import annotations
from typing import Any, Literal

import pyarrow as pa
import pyarrow.compute as pc

from . import config
from .errors import (
    DuplicateNameError,
    TidyError,
    TypeUnificationError,
    UnknownColumnError,
)

DTYPES = {
    "int": pa.int64(),
    "float": pa.float64(),
    "str": pa.string(),
    "bool": pa.bool_(),
}

CATEGORICAL = "cat"


# -------------------------------------
# Orientation helpers
# -------------------------------------

def _is_column_oriented(table: dict[str, Any]) -> bool:
    """Check if table is column-oriented."""
    return table.get("orientation") == "column"


def _is_arrow(table: dict[str, Any]) -> bool:
    """Check if table is arrow-oriented (PyArrow-backed)."""
    return table.get("orientation") == "arrow"


def _transpose_rows_to_cols(rows: list[list], n_cols: int) -> list[list]:
    """
    Transpose row-oriented data to column-oriented without zip(*rows) splat.

    Args:
        rows: List of row lists
        n_cols: Number of columns

    Returns:
        List of column lists
    """
    cols = [[] for _ in range(n_cols)]
    for row in rows:
        for i, val in enumerate(row):
            cols[i].append(val)
    return cols


def _transpose_cols_to_rows(cols: list[list]) -> list[list]:
    """Transpose column-oriented data to row-oriented."""
    if not cols or not cols[0]:
        return []
    n_rows = len(cols[0])
    n_cols = len(cols)
    return [[cols[j][i] for j in range(n_cols)] for i in range(n_rows)]


def table_orientation(table: dict[str, Any]) -> Literal["row", "column", "arrow"]:
    """Get the orientation of a table ("row" when unspecified)."""
    orientation = table.get("orientation", "row")
    if orientation not in ("row", "column", "arrow"):
        raise TidyError(f"Unsupported orientation: {orientation}")
    return orientation


def table_nrows(table: dict[str, Any]) -> int:
    """
    Get the number of rows in a table (works for all orientations).

    Args:
        table: Table dict

    Returns:
        Number of data rows in the table
    """
    orientation = table_orientation(table)
    if orientation == "row":
        return len(table["rows"])
    if not table["rows"]:
        return int(table.get("nrows", 0))
    return len(table["rows"][0])


def table_ncols(table: dict[str, Any]) -> int:
    """Number of columns."""
    return len(table["columns"])


def table_column_names(table: dict[str, Any]) -> list[str]:
    """Column names, in order."""
    return list(table["columns"])


# -------------------------------------
# Column construction
# -------------------------------------

def encode_categorical(values: Any, levels: list | None = None) -> pa.DictionaryArray:
    """
    Build a categorical (dictionary) array from values.

    Args:
        values: Python list or arrow array of labels (None for missing)
        levels: Ordered level list. Defaults to the sorted distinct
            non-missing values. Values outside the levels become missing.

    Returns:
        pa.DictionaryArray with int32 codes
    """
    if isinstance(values, pa.ChunkedArray):
        values = values.combine_chunks()
    if isinstance(values, pa.Array):
        if pa.types.is_dictionary(values.type):
            values = values.dictionary_decode()
        values = values.to_pylist()
    values = list(values)

    if levels is None:
        levels = sorted({v for v in values if v is not None})
    levels = list(levels)
    if len(set(levels)) != len(levels):
        raise TidyError(f"Duplicate levels: {levels}")

    code_of = {level: i for i, level in enumerate(levels)}
    codes = [None if v is None else code_of.get(v) for v in values]
    dictionary = pa.array(levels, type=pa.string()) if all(
        isinstance(v, str) for v in levels
    ) else pa.array(levels)
    return pa.DictionaryArray.from_arrays(pa.array(codes, type=pa.int32()), dictionary)


def _as_array(values: Any, dtype: str | None = None) -> pa.Array:
    """Coerce a column payload (list, arrow array) to a pa.Array of the declared type."""
    if dtype == CATEGORICAL:
        return encode_categorical(values)
    if isinstance(values, pa.ChunkedArray):
        values = values.combine_chunks()
    if not isinstance(values, pa.Array):
        values = pa.array(list(values), type=DTYPES.get(dtype) if dtype else None)
    elif dtype is not None:
        values = values.cast(DTYPES[dtype])
    return values


def _types_for(table: dict[str, Any]) -> list[str | None]:
    """Declared types of a row/column table, parallel to its columns."""
    types = table.get("types")
    if types is None:
        return [None] * len(table["columns"])
    if isinstance(types, dict):
        return [types.get(c) for c in table["columns"]]
    return list(types)


def _new_table(columns: list[str], arrays: list[pa.Array], nrows: int | None = None) -> dict[str, Any]:
    """Build an arrow-oriented table, checking names and lengths."""
    arrays = [a.combine_chunks() if isinstance(a, pa.ChunkedArray) else a for a in arrays]
    out = {"orientation": "arrow", "columns": list(columns), "rows": arrays}
    if not arrays and nrows:
        out["nrows"] = nrows
    table_validate(out)
    return out


# -------------------------------------
# Validation
# -------------------------------------

def table_validate(table: dict[str, Any]) -> None:
    """
    Validate table structure.

    Checks:
    - Required keys: columns, rows
    - Orientation is valid: row, column, arrow
    - Column names are unique
    - len(rows) == len(columns) for column/arrow orientations
    - All columns have equal length
    - Arrow: each element in rows is a pa.Array

    Raises:
        TidyError: If table structure is invalid
        DuplicateNameError: If column names repeat
    """
    for key in ("columns", "rows"):
        if key not in table:
            raise TidyError(f"Table missing required key: '{key}'")

    orientation = table_orientation(table)
    columns = table["columns"]
    rows = table["rows"]

    if len(set(columns)) != len(columns):
        raise DuplicateNameError([c for c in columns if columns.count(c) > 1])

    if orientation == "row":
        n_cols = len(columns)
        for i, row in enumerate(rows):
            if len(row) != n_cols:
                raise TidyError(f"Row {i} has {len(row)} values, expected {n_cols} columns")
        return

    if len(rows) != len(columns):
        raise TidyError(
            f"Number of data columns ({len(rows)}) does not match "
            f"column names ({len(columns)})"
        )

    if rows:
        first_len = len(rows[0])
        for i, col in enumerate(rows[1:], start=1):
            if len(col) != first_len:
                raise TidyError(
                    f"Column {i} ({columns[i]}) has {len(col)} values, "
                    f"expected {first_len}"
                )

    if orientation == "arrow":
        for i, col in enumerate(rows):
            if not isinstance(col, pa.Array):
                raise TidyError(
                    f"Column {i} ({columns[i]}) is not a PyArrow Array, "
                    f"got {type(col).__name__}"
                )


# -------------------------------------
# Conversion
# -------------------------------------

def table_to_arrow(table: dict[str, Any]) -> dict[str, Any]:
    """
    Convert any table to arrow-oriented (PyArrow arrays).

    Declared "types" of row/column tables are applied during conversion.
    The "groups" entry of an arrow table is kept as is.

    Args:
        table: Table in any orientation (row, column, or arrow)

    Returns:
        Arrow-oriented table with pa.Array columns
    """
    if _is_arrow(table):
        return table

    types = _types_for(table)
    if _is_column_oriented(table):
        cols = table["rows"]
    else:
        table_validate(table)
        cols = _transpose_rows_to_cols(table["rows"], len(table["columns"]))

    arrays = [_as_array(col, dtype) for col, dtype in zip(cols, types)]
    return _new_table(table["columns"], arrays, nrows=table_nrows(table))


def _ensure_arrow(table: dict[str, Any]) -> dict[str, Any]:
    """Convert table to arrow orientation if not already."""
    if _is_arrow(table):
        return table
    return table_to_arrow(table)


def _decoded(arr: pa.Array) -> pa.Array:
    """Replace a dictionary array by its labels."""
    if pa.types.is_dictionary(arr.type):
        return arr.dictionary_decode()
    return arr


def table_to_columns(table: dict[str, Any]) -> dict[str, Any]:
    """
    Convert any table to column-oriented (Python lists).

    Categorical columns are decoded to their labels.
    """
    if _is_column_oriented(table):
        return table

    if _is_arrow(table):
        return {
            "orientation": "column",
            "columns": table["columns"][:],
            "rows": [col.to_pylist() for col in table["rows"]],
        }

    cols = _transpose_rows_to_cols(table["rows"], len(table["columns"]))
    return {"orientation": "column", "columns": table["columns"][:], "rows": cols}


def table_to_rows(table: dict[str, Any]) -> dict[str, Any]:
    """Convert any table to row-oriented (Python lists)."""
    orientation = table_orientation(table)

    if orientation == "row":
        return table

    if orientation == "arrow":
        cols = [col.to_pylist() for col in table["rows"]]
    else:
        cols = table["rows"]
    return {"orientation": "row", "columns": table["columns"][:], "rows": _transpose_cols_to_rows(cols)}


def table_to_pydict(table: dict[str, Any]) -> dict[str, list]:
    """Convert a table to {column: list of values}."""
    cols = table_to_columns(table)
    return {name: list(values) for name, values in zip(cols["columns"], cols["rows"])}


def table_from_dict(data: dict[str, Any], types: dict[str, str] | None = None) -> dict[str, Any]:
    """
    Build a table from a mapping of column name -> values.

    Args:
        data: Column name -> list or pa.Array (insertion order is column order)
        types: Optional column name -> one of int, float, str, bool, cat

    Returns:
        Arrow-oriented table

    Examples:
        >>> t = table_from_dict({"group": ["a", "b"], "Female": [1, 2]})
        >>> table_nrows(t)
        2
    """
    types = types or {}
    for name in types:
        if name not in data:
            raise UnknownColumnError(name, list(data))
    arrays = [_as_array(values, types.get(name)) for name, values in data.items()]
    return _new_table(list(data), arrays)


def table_from_rows(
    columns: list[str],
    rows: list[list],
    types: dict[str, str] | list[str] | None = None,
) -> dict[str, Any]:
    """Build a table from column names and row lists."""
    return table_to_arrow({"orientation": "row", "columns": list(columns), "rows": rows, "types": types})


def table_from_pyarrow(pa_table: pa.Table) -> dict[str, Any]:
    """Wrap a pyarrow.Table (chunks are combined)."""
    arrays = [pa_table.column(i).combine_chunks() for i in range(pa_table.num_columns)]
    return _new_table(pa_table.column_names, arrays, nrows=pa_table.num_rows)


def table_to_pyarrow(table: dict[str, Any]) -> pa.Table:
    """Convert a table to a pyarrow.Table (grouping is dropped)."""
    t = _ensure_arrow(table)
    return pa.Table.from_arrays(t["rows"], names=t["columns"])


# -------------------------------------
# Column access
# -------------------------------------

def _resolve_column_index(table: dict[str, Any], column: str | int) -> int:
    """Convert column name or 0-based index (negative from the end) to an index.

    Raises:
        UnknownColumnError: If column not found or index out of range
    """
    columns = table["columns"]
    if isinstance(column, int) and not isinstance(column, bool):
        idx = column + len(columns) if column < 0 else column
        if idx < 0 or idx >= len(columns):
            raise UnknownColumnError(column, columns)
        return idx
    try:
        return columns.index(column)
    except ValueError:
        raise UnknownColumnError(column, columns) from None


def _column_array(table: dict[str, Any], column: str | int) -> pa.Array:
    t = _ensure_arrow(table)
    return t["rows"][_resolve_column_index(t, column)]


def table_column(table: dict[str, Any], column: str | int) -> list[Any]:
    """Extract a single column as a Python list (categorical labels decoded).

    Raises:
        UnknownColumnError: If column name not found
    """
    return _column_array(table, column).to_pylist()


def dtype_name(arrow_type: pa.DataType) -> str:
    """Short element type name: int, float, str, bool, cat, null or the arrow name."""
    if pa.types.is_dictionary(arrow_type):
        return CATEGORICAL
    if pa.types.is_null(arrow_type):
        return "null"
    if pa.types.is_boolean(arrow_type):
        return "bool"
    if pa.types.is_integer(arrow_type):
        return "int"
    if pa.types.is_floating(arrow_type):
        return "float"
    if pa.types.is_string(arrow_type) or pa.types.is_large_string(arrow_type):
        return "str"
    return str(arrow_type)


def table_types(table: dict[str, Any]) -> dict[str, str]:
    """Column name -> element type name."""
    t = _ensure_arrow(table)
    return {name: dtype_name(arr.type) for name, arr in zip(t["columns"], t["rows"])}


# -------------------------------------
# Type unification
# -------------------------------------

_NUMERIC = ("bool", "int", "float")


def common_type(types: list[pa.DataType], names: list[str] | None = None) -> pa.DataType:
    """
    Find the type a set of columns can all be coerced to.

    Rules:
    - null (all-missing) unifies with anything
    - categorical columns count as their label type
    - identical types are kept
    - bool, int and float promote to int64, or float64 when any is floating
    - string variants unify to string

    Raises:
        TypeUnificationError: For any other combination (e.g. string with numeric)
    """
    value_types = [t.value_type if pa.types.is_dictionary(t) else t for t in types]
    concrete = [t for t in value_types if not pa.types.is_null(t)]
    if not concrete:
        return pa.null()
    if all(t == concrete[0] for t in concrete):
        return concrete[0]

    kinds = {dtype_name(t) for t in concrete}
    if kinds <= set(_NUMERIC):
        return pa.float64() if "float" in kinds else pa.int64()
    if kinds == {"str"}:
        return pa.string()

    if names is None:
        names = [f"#{i}" for i in range(len(types))]
    described = ", ".join(f"{n} <{dtype_name(t)}>" for n, t in zip(names, types))
    raise TypeUnificationError(f"Can't combine columns with incompatible types: {described}")


def cast_to(arr: pa.Array, target: pa.DataType) -> pa.Array:
    """Cast an array to target, decoding categoricals first."""
    if pa.types.is_dictionary(arr.type) and not pa.types.is_dictionary(target):
        arr = arr.dictionary_decode()
    if arr.type == target:
        return arr
    if pa.types.is_null(arr.type):
        return pa.nulls(len(arr), type=target)
    return arr.cast(target)


def concat_arrays(arrays: list[pa.Array], names: list[str] | None = None) -> pa.Array:
    """
    Concatenate arrays end to end, unifying their types.

    Categorical arrays stay categorical when every non-null piece is
    categorical; their level lists are merged in order of appearance.
    """
    if not arrays:
        raise TidyError("Nothing to concatenate")
    concrete = [a for a in arrays if not pa.types.is_null(a.type)]
    if concrete and all(pa.types.is_dictionary(a.type) for a in concrete):
        target = concrete[0].type
        pieces = [pa.nulls(len(a), type=target) if pa.types.is_null(a.type) else a for a in arrays]
        if all(p.type == target for p in pieces):
            chunked = pa.chunked_array(pieces, type=target).unify_dictionaries()
            return chunked.combine_chunks()
    target = common_type([a.type for a in arrays], names)
    return pa.concat_arrays([cast_to(a, target) for a in arrays])


# -------------------------------------
# Row operations
# -------------------------------------

def _take_rows(table: dict[str, Any], indices: list[int] | pa.Array) -> dict[str, Any]:
    """Rows at the given positions, as a new ungrouped table."""
    t = _ensure_arrow(table)
    if not isinstance(indices, pa.Array):
        indices = pa.array(indices, type=pa.int64())
    return _new_table(t["columns"], [pc.take(col, indices) for col in t["rows"]], nrows=len(indices))


def table_head(table: dict[str, Any], n: int = 10) -> dict[str, Any]:
    """
    Return the first n rows of a table (grouping is dropped).

    Args:
        table: Table in any orientation
        n: Number of rows to return (default 10)
    """
    t = _ensure_arrow(table)
    n = max(0, min(n, table_nrows(t)))
    return _new_table(t["columns"], [col.slice(0, n) for col in t["rows"]], nrows=n)


def table_bind_rows(*tables: dict[str, Any]) -> dict[str, Any]:
    """
    Concatenate rows from multiple tables.

    Columns are matched by name; the result has the union of all columns in
    order of first appearance. A table lacking a column contributes missing
    values for it. Column types are unified (see common_type).

    Returns:
        New ungrouped arrow table with all rows concatenated

    Raises:
        TypeUnificationError: If a column has incompatible types across tables
    """
    if not tables:
        return _new_table([], [])

    arrow_tables = [_ensure_arrow(t) for t in tables]
    columns: list[str] = []
    for t in arrow_tables:
        for c in t["columns"]:
            if c not in columns:
                columns.append(c)

    out_cols = []
    for name in columns:
        pieces = []
        for t in arrow_tables:
            if name in t["columns"]:
                pieces.append(t["rows"][t["columns"].index(name)])
            else:
                pieces.append(pa.nulls(table_nrows(t)))
        labels = [f"{name} (table {i})" for i in range(1, len(pieces) + 1)]
        out_cols.append(concat_arrays(pieces, labels))

    return _new_table(columns, out_cols, nrows=sum(table_nrows(t) for t in arrow_tables))


# -------------------------------------
# Formatting
# -------------------------------------

def _format_value(v: Any, digits: int) -> str:
    """Format a value for table output.

    Missing values print as NA, floats to `digits` significant figures.
    """
    if v is None:
        return "NA"
    if isinstance(v, bool):
        return "TRUE" if v else "FALSE"
    if isinstance(v, float):
        if v == 0:
            return "0"
        return f"{v:.{digits}g}"
    return str(v)


def format_table(table: dict[str, Any]) -> str:
    """Format a table dict as a tab-separated string with header.

    Grouped tables get a leading "# Groups:" line. At most the
    display.max_rows option rows are shown.
    """
    t = _ensure_arrow(table)
    max_rows = config.get_option("display.max_rows")
    digits = config.get_option("display.float_digits")
    n_rows = table_nrows(t)

    lines = []
    groups = t.get("groups")
    if groups and groups["vars"]:
        lines.append(f"# Groups: {', '.join(groups['vars'])} [{len(groups['rows'])}]")

    lines.append("\t".join(str(c) for c in t["columns"]))

    shown = table_to_rows(table_head(t, max_rows))
    for row in shown["rows"]:
        lines.append("\t".join(_format_value(v, digits) for v in row))

    if n_rows > max_rows:
        lines.append(f"# ... with {n_rows - max_rows} more rows")

    return "\n".join(lines)


def print_table(table: dict[str, Any]) -> None:
    """Print a table with header and rows to stdout."""
    print(format_table(table))
