# -------------------------------------
# Column expressions
# -------------------------------------
"""
Expression builder evaluated against a table or a single group.

Verbs never look columns up as free variables. Their arguments are either
an Expr built from col()/lit() and the helpers below, or a callable that
receives an EvalContext (a column accessor) and returns values:

    col("value") / col("value").sum()
    min_rank(desc("score")) <= 2
    lambda ctx: pc.multiply(ctx["value"], 2)

Evaluation is backed by pyarrow.compute, so missing values (nulls)
propagate through arithmetic and comparisons are three-valued: comparing
with a missing value yields missing, not false.

Aggregates take na_rm=False: a missing input makes the result missing unless
na_rm=True. Window functions (lag, cumsum, min_rank, row_number, n, ...)
see only the current group when a table is grouped.

parse_expr() compiles a restricted expression string into an Expr with
simpleeval, binding names to columns explicitly.
"""
from __future__ import annotations

import ast
import operator as op
from typing import Any, Callable

import pyarrow as pa
import pyarrow.compute as pc
from simpleeval import SimpleEval

from .errors import LengthMismatchError, TidyError, UnknownColumnError
from .table import DTYPES, _column_array, _ensure_arrow, table_nrows

__all__ = [
    "MISSING",
    "Expr",
    "EvalContext",
    "col",
    "lit",
    "desc",
    "n",
    "row_number",
    "min_rank",
    "dense_rank",
    "if_else",
    "case_when",
    "coalesce",
    "is_missing",
    "mean",
    "median",
    "quantile",
    "sd",
    "var",
    "n_distinct",
    "first",
    "last",
    "nth",
    "cumsum",
    "lag",
    "lead",
    "str_length",
    "str_sub",
    "str_detect",
    "str_pad",
    "evaluate",
    "broadcast",
    "parse_expr",
]

MISSING = None


# -------------------------------------
# Evaluation context
# -------------------------------------

class EvalContext:
    """
    Column accessor handed to expressions and callables.

    ctx["name"] returns the column as a pa.Array restricted to the rows in
    scope (the whole table, or one group). Values computed earlier in the
    same summarise call are visible as extras (pa.Scalar).
    """

    def __init__(self, table: dict[str, Any], extras: dict[str, Any] | None = None):
        self.table = _ensure_arrow(table)
        self.extras = dict(extras or {})

    @property
    def nrows(self) -> int:
        return table_nrows(self.table)

    @property
    def columns(self) -> list[str]:
        return list(self.table["columns"]) + [c for c in self.extras if c not in self.table["columns"]]

    def __contains__(self, name: str) -> bool:
        return name in self.extras or name in self.table["columns"]

    def __getitem__(self, name: str):
        if name in self.extras:
            return self.extras[name]
        if name not in self.table["columns"]:
            raise UnknownColumnError(name, self.columns)
        return _column_array(self.table, name)


# -------------------------------------
# Arrow value helpers
# -------------------------------------

def _decoded(value):
    """Labels in place of categorical codes (arrays and scalars)."""
    if isinstance(value, pa.Array) and pa.types.is_dictionary(value.type):
        return value.dictionary_decode()
    if isinstance(value, pa.Scalar) and pa.types.is_dictionary(value.type):
        return value.value if value.is_valid else pa.scalar(None, type=value.type.value_type)
    return value


def _typed_null(value, target: pa.DataType):
    if isinstance(value, pa.Array):
        return pa.nulls(len(value), type=target)
    return pa.scalar(None, type=target)


def _align(a, b):
    """Decode categoricals and give all-missing operands the other side's type."""
    a, b = _decoded(a), _decoded(b)
    if pa.types.is_null(a.type) and not pa.types.is_null(b.type):
        a = _typed_null(a, b.type)
    elif pa.types.is_null(b.type) and not pa.types.is_null(a.type):
        b = _typed_null(b, a.type)
    return a, b


def _all_null(a, b):
    """Result for an operation whose operands are both untyped missing."""
    sizes = [len(v) for v in (a, b) if isinstance(v, pa.Array)]
    if sizes:
        return pa.nulls(max(sizes))
    return pa.scalar(None)


def _binary(func: Callable) -> Callable:
    def apply(a, b):
        a, b = _align(a, b)
        if pa.types.is_null(a.type):
            return _all_null(a, b)
        return func(a, b)
    return apply


def _true_divide(a, b):
    return pc.divide(a.cast(pa.float64()), b.cast(pa.float64()))


def _floor_divide(a, b):
    out = pc.floor(_true_divide(a, b))
    if pa.types.is_integer(a.type) and pa.types.is_integer(b.type):
        out = out.cast(pa.int64())
    return out


def _power(a, b):
    if pa.types.is_integer(a.type) and pa.types.is_integer(b.type):
        return pc.power(a.cast(pa.float64()), b.cast(pa.float64()))
    return pc.power(a, b)


def _as_arr(value) -> pa.Array:
    """One-element array for a scalar, the array itself otherwise."""
    if isinstance(value, pa.Scalar):
        return scalar_array(value, 1)
    if isinstance(value, pa.ChunkedArray):
        return value.combine_chunks()
    return value


def scalar_array(scalar: pa.Scalar, size: int) -> pa.Array:
    """Repeat a scalar `size` times (categorical scalars keep their levels)."""
    if not scalar.is_valid:
        return pa.nulls(size, type=scalar.type)
    if pa.types.is_dictionary(scalar.type):
        indices = pa.array([scalar.index.as_py()] * size, type=scalar.type.index_type)
        return pa.DictionaryArray.from_arrays(indices, scalar.dictionary)
    return pa.array([scalar.as_py()] * size, type=scalar.type)


def _order_values(arr: pa.Array) -> pa.Array:
    """Values to sort by: categorical codes follow level order."""
    if pa.types.is_dictionary(arr.type):
        return arr.indices
    return arr


def broadcast(value: Any, size: int, name: str = "value") -> pa.Array:
    """
    Turn an evaluation result into a column of `size` rows.

    Scalars and length-1 results are repeated; arrays of length `size` pass
    through unchanged.

    Raises:
        LengthMismatchError: If the result has any other length
    """
    if isinstance(value, Expr):
        raise TidyError(f"'{name}' is an unevaluated expression")
    if isinstance(value, pa.ChunkedArray):
        value = value.combine_chunks()
    if isinstance(value, pa.Scalar):
        return scalar_array(value, size)
    if isinstance(value, pa.Array):
        if len(value) == size:
            return value
        if len(value) == 1:
            return pc.take(value, pa.array([0] * size, type=pa.int64()))
        raise LengthMismatchError(name, len(value), size)
    if isinstance(value, (list, tuple)):
        return broadcast(pa.array(list(value)), size, name)
    return scalar_array(pa.scalar(value), size)


def evaluate(value: Any, ctx: EvalContext):
    """Evaluate an Expr, a callable(ctx), or a constant in a context."""
    if isinstance(value, Expr):
        return value.evaluate(ctx)
    if callable(value):
        return value(ctx)
    if isinstance(value, (list, tuple)):
        return pa.array(list(value))
    if isinstance(value, (pa.Array, pa.Scalar, pa.ChunkedArray)):
        return value
    return pa.scalar(value)


# -------------------------------------
# Expression nodes
# -------------------------------------

class Expr:
    """Base class of column expressions. Operators build new expressions."""

    def evaluate(self, ctx: EvalContext):
        raise NotImplementedError

    def __bool__(self):
        raise TypeError("Expressions have no truth value; combine them with &, | and ~")

    # arithmetic
    def __add__(self, other): return Call(_binary(pc.add), self, other, label="+")
    def __radd__(self, other): return Call(_binary(pc.add), other, self, label="+")
    def __sub__(self, other): return Call(_binary(pc.subtract), self, other, label="-")
    def __rsub__(self, other): return Call(_binary(pc.subtract), other, self, label="-")
    def __mul__(self, other): return Call(_binary(pc.multiply), self, other, label="*")
    def __rmul__(self, other): return Call(_binary(pc.multiply), other, self, label="*")
    def __truediv__(self, other): return Call(_binary(_true_divide), self, other, label="/")
    def __rtruediv__(self, other): return Call(_binary(_true_divide), other, self, label="/")
    def __floordiv__(self, other): return Call(_binary(_floor_divide), self, other, label="//")
    def __rfloordiv__(self, other): return Call(_binary(_floor_divide), other, self, label="//")
    def __pow__(self, other): return Call(_binary(_power), self, other, label="**")
    def __rpow__(self, other): return Call(_binary(_power), other, self, label="**")
    def __neg__(self): return Call(lambda x: pc.negate(_decoded(x)), self, label="neg")
    def __pos__(self): return self

    # comparisons (three-valued)
    def __eq__(self, other): return Call(_binary(pc.equal), self, other, label="==")
    def __ne__(self, other): return Call(_binary(pc.not_equal), self, other, label="!=")
    def __lt__(self, other): return Call(_binary(pc.less), self, other, label="<")
    def __le__(self, other): return Call(_binary(pc.less_equal), self, other, label="<=")
    def __gt__(self, other): return Call(_binary(pc.greater), self, other, label=">")
    def __ge__(self, other): return Call(_binary(pc.greater_equal), self, other, label=">=")

    __hash__ = None

    # logic (Kleene)
    def __and__(self, other): return Call(_binary(pc.and_kleene), self, other, label="&")
    def __rand__(self, other): return Call(_binary(pc.and_kleene), other, self, label="&")
    def __or__(self, other): return Call(_binary(pc.or_kleene), self, other, label="|")
    def __ror__(self, other): return Call(_binary(pc.or_kleene), other, self, label="|")
    def __invert__(self): return Call(pc.invert, self, label="~")

    # aggregates
    def sum(self, na_rm: bool = False) -> Expr:
        return Call(lambda x: pc.sum(_as_arr(_decoded(x)), skip_nulls=na_rm, min_count=0), self, label="sum")

    def mean(self, na_rm: bool = False) -> Expr:
        return Call(lambda x: pc.mean(_as_arr(_decoded(x)), skip_nulls=na_rm), self, label="mean")

    def median(self, na_rm: bool = False) -> Expr:
        return self.quantile(0.5, na_rm=na_rm)

    def quantile(self, q: float, na_rm: bool = False) -> Expr:
        def apply(x):
            x = _as_arr(_decoded(x))
            if not na_rm and x.null_count:
                return pa.scalar(None, type=pa.float64())
            return pc.quantile(x, q=q, interpolation="linear", skip_nulls=True)[0]
        return Call(apply, self, label="quantile")

    def min(self, na_rm: bool = False) -> Expr:
        return Call(lambda x: pc.min(_as_arr(_decoded(x)), skip_nulls=na_rm), self, label="min")

    def max(self, na_rm: bool = False) -> Expr:
        return Call(lambda x: pc.max(_as_arr(_decoded(x)), skip_nulls=na_rm), self, label="max")

    def sd(self, na_rm: bool = False) -> Expr:
        return Call(lambda x: pc.stddev(_as_arr(_decoded(x)), ddof=1, skip_nulls=na_rm), self, label="sd")

    def var(self, na_rm: bool = False) -> Expr:
        return Call(lambda x: pc.variance(_as_arr(_decoded(x)), ddof=1, skip_nulls=na_rm), self, label="var")

    def count(self) -> Expr:
        """Number of non-missing values."""
        return Call(lambda x: pc.count(_as_arr(x), mode="only_valid"), self, label="count")

    def n_distinct(self) -> Expr:
        """Number of distinct values; missing counts as one value."""
        return Call(lambda x: pc.count_distinct(_as_arr(_decoded(x)), mode="all"), self, label="n_distinct")

    def nth(self, i: int) -> Expr:
        """Value at 0-based position i (negative from the end), missing if out of range."""
        def apply(x):
            x = _as_arr(x)
            idx = i + len(x) if i < 0 else i
            if idx < 0 or idx >= len(x):
                return pa.scalar(None, type=x.type)
            return x[idx]
        return Call(apply, self, label="nth")

    def first(self) -> Expr:
        return self.nth(0)

    def last(self) -> Expr:
        return self.nth(-1)

    def any(self, na_rm: bool = False) -> Expr:
        return Call(lambda x: pc.any(_as_arr(x), skip_nulls=na_rm, min_count=0), self, label="any")

    def all(self, na_rm: bool = False) -> Expr:
        return Call(lambda x: pc.all(_as_arr(x), skip_nulls=na_rm, min_count=0), self, label="all")

    # windows
    def cumsum(self) -> Expr:
        return Call(lambda x: pc.cumulative_sum(_as_arr(_decoded(x))), self, label="cumsum")

    def cummax(self) -> Expr:
        return Call(lambda x: pc.cumulative_max(_as_arr(_decoded(x))), self, label="cummax")

    def cummin(self) -> Expr:
        return Call(lambda x: pc.cumulative_min(_as_arr(_decoded(x))), self, label="cummin")

    def cummean(self) -> Expr:
        return Call(lambda x: pc.cumulative_mean(_as_arr(_decoded(x))), self, label="cummean")

    def lag(self, k: int = 1, default: Any = None) -> Expr:
        """Values shifted k rows down (first k rows take `default`)."""
        def apply(x):
            x = _as_arr(x)
            k_ = min(k, len(x))
            head = broadcast(pa.scalar(default, type=x.type) if default is not None
                             else pa.scalar(None, type=x.type), k_)
            return pa.concat_arrays([head, x.slice(0, len(x) - k_)])
        return Call(apply, self, label="lag")

    def lead(self, k: int = 1, default: Any = None) -> Expr:
        """Values shifted k rows up (last k rows take `default`)."""
        def apply(x):
            x = _as_arr(x)
            k_ = min(k, len(x))
            tail = broadcast(pa.scalar(default, type=x.type) if default is not None
                             else pa.scalar(None, type=x.type), k_)
            return pa.concat_arrays([x.slice(k_), tail])
        return Call(apply, self, label="lead")

    def diff(self) -> Expr:
        """Pairwise differences; the first element is missing."""
        return self - self.lag(1)

    # element-wise
    def is_missing(self) -> Expr:
        return Call(lambda x: pc.is_null(x), self, label="is_missing")

    def is_in(self, values: list) -> Expr:
        return Call(lambda x: pc.is_in(_decoded(x), value_set=pa.array(list(values))), self, label="is_in")

    def fill_missing(self, value: Any) -> Expr:
        return coalesce(self, value)

    def abs(self) -> Expr:
        return Call(lambda x: pc.abs(_decoded(x)), self, label="abs")

    def round(self, digits: int = 0) -> Expr:
        return Call(lambda x: pc.round(_decoded(x), ndigits=digits), self, label="round")

    def log(self) -> Expr:
        return Call(lambda x: pc.ln(_decoded(x).cast(pa.float64())), self, label="log")

    def exp(self) -> Expr:
        return Call(lambda x: pc.exp(_decoded(x).cast(pa.float64())), self, label="exp")

    def sqrt(self) -> Expr:
        return Call(lambda x: pc.sqrt(_decoded(x).cast(pa.float64())), self, label="sqrt")

    def cast(self, dtype: str) -> Expr:
        """Cast to one of int, float, str, bool."""
        if dtype not in DTYPES:
            raise TidyError(f"Unknown type '{dtype}', expected one of {list(DTYPES)}")
        return Call(lambda x: _decoded(x).cast(DTYPES[dtype]), self, label="cast")

    # strings
    def str_length(self) -> Expr:
        return Call(lambda x: pc.utf8_length(_decoded(x)).cast(pa.int64()), self, label="str_length")

    def str_sub(self, start: int = 0, end: int | None = None) -> Expr:
        """Substring by 0-based, end-exclusive code point positions."""
        return Call(lambda x: pc.utf8_slice_codeunits(_decoded(x), start=start, stop=end),
                    self, label="str_sub")

    def str_detect(self, pattern: str) -> Expr:
        return Call(lambda x: pc.match_substring_regex(_decoded(x), pattern=pattern), self, label="str_detect")

    def str_pad(self, width: int, side: str = "left", pad: str = " ") -> Expr:
        funcs = {"left": pc.utf8_lpad, "right": pc.utf8_rpad, "both": pc.utf8_center}
        if side not in funcs:
            raise TidyError(f"side must be one of {list(funcs)}, got {side!r}")
        return Call(lambda x: funcs[side](_decoded(x), width=width, padding=pad), self, label="str_pad")


class Column(Expr):
    """Reference to a column by name."""

    def __init__(self, name: str):
        self.name = name

    def evaluate(self, ctx: EvalContext):
        return ctx[self.name]

    def __repr__(self):
        return f"col({self.name!r})"


class Literal(Expr):
    """A constant; None is the missing value."""

    def __init__(self, value: Any):
        self.value = value

    def evaluate(self, ctx: EvalContext):
        value = self.value
        if isinstance(value, (pa.Array, pa.Scalar)):
            return value
        if isinstance(value, (list, tuple)):
            return pa.array(list(value))
        return pa.scalar(value)

    def __repr__(self):
        return f"lit({self.value!r})"


class Call(Expr):
    """Function applied to evaluated arguments."""

    def __init__(self, func: Callable, *args: Any, label: str = "call"):
        self.func = func
        self.args = [_wrap(a) for a in args]
        self.label = label

    def evaluate(self, ctx: EvalContext):
        return self.func(*(a.evaluate(ctx) for a in self.args))

    def __repr__(self):
        return f"{self.label}({', '.join(repr(a) for a in self.args)})"


class ContextCall(Expr):
    """Function of the evaluation context itself (n(), row_number())."""

    def __init__(self, func: Callable[[EvalContext], Any], label: str):
        self.func = func
        self.label = label

    def evaluate(self, ctx: EvalContext):
        return self.func(ctx)

    def __repr__(self):
        return f"{self.label}()"


class Desc(Expr):
    """Marks an expression for descending order in ranks and arrange."""

    def __init__(self, inner: Expr):
        self.inner = inner

    def evaluate(self, ctx: EvalContext):
        return self.inner.evaluate(ctx)

    def __repr__(self):
        return f"desc({self.inner!r})"


def _wrap(value: Any) -> Expr:
    """Operands that are not expressions become literals; callables take the context."""
    if isinstance(value, Expr):
        return value
    if callable(value):
        return ContextCall(value, label="fn")
    return Literal(value)


def _subject(value: Any) -> Expr:
    """Arguments that denote a column: a name is read as col(name)."""
    if isinstance(value, str):
        return Column(value)
    return _wrap(value)


# -------------------------------------
# Builders
# -------------------------------------

def col(name: str) -> Expr:
    """Reference a column."""
    return Column(name)


def lit(value: Any) -> Expr:
    """A constant value (None for missing)."""
    return Literal(value)


def desc(x: Expr | str) -> Desc:
    """Descending order for min_rank/dense_rank/row_number and table_arrange."""
    return Desc(_subject(x))


def n() -> Expr:
    """Number of rows in the current group."""
    return ContextCall(lambda ctx: pa.scalar(ctx.nrows, type=pa.int64()), label="n")


def _rank(x: Expr | str, tie_breaker: str) -> Expr:
    x = _subject(x)
    order = "descending" if isinstance(x, Desc) else "ascending"

    def apply(values):
        values = _order_values(_as_arr(values))
        ranks = pc.rank(values, sort_keys=order, null_placement="at_end", tiebreaker=tie_breaker)
        return pc.if_else(pc.is_valid(values), ranks.cast(pa.int64()), pa.scalar(None, type=pa.int64()))

    return Call(apply, x, label=f"rank_{tie_breaker}")


def row_number(x: Expr | str | None = None) -> Expr:
    """1..n within the group, or the rank of x with ties broken by position."""
    if x is None:
        return ContextCall(lambda ctx: pa.array(range(1, ctx.nrows + 1), type=pa.int64()), label="row_number")
    return _rank(x, "first")


def min_rank(x: Expr | str) -> Expr:
    """Rank with ties sharing the lowest rank (1, 2, 2, 4); missing stays missing."""
    return _rank(x, "min")


def dense_rank(x: Expr | str) -> Expr:
    """Rank with ties sharing a rank and no gaps (1, 2, 2, 3)."""
    return _rank(x, "dense")


def _if_else(cond, yes, no):
    yes, no = _align(yes, no)
    if pa.types.is_null(yes.type):
        sizes = [len(v) for v in (cond, yes, no) if isinstance(v, pa.Array)]
        return pa.nulls(max(sizes)) if sizes else pa.scalar(None)
    return pc.if_else(cond, yes, no)


def if_else(condition: Expr, true: Any, false: Any) -> Expr:
    """Element-wise choice; a missing condition gives missing."""
    return Call(_if_else, condition, true, false, label="if_else")


def case_when(*cases: tuple[Expr, Any], default: Any = None) -> Expr:
    """
    First matching (condition, value) pair wins; missing conditions never match.

    Examples:
        >>> case_when((col("x") < 0, "neg"), (col("x") == 0, "zero"), default="pos")
    """
    result = _wrap(default)
    for condition, value in reversed(cases):
        guard = Call(lambda c: pc.fill_null(c, False), condition, label="guard")
        result = Call(_if_else, guard, value, result, label="case_when")
    return result


def _coalesce(*values):
    values = [_decoded(v) for v in values]
    concrete = [v for v in values if not pa.types.is_null(v.type)]
    if not concrete:
        return values[0]
    target = concrete[0].type
    values = [_typed_null(v, target) if pa.types.is_null(v.type) else v for v in values]
    return pc.coalesce(*values)


def coalesce(*values: Any) -> Expr:
    """First non-missing value, element-wise."""
    return Call(_coalesce, *values, label="coalesce")


def is_missing(x: Expr | str) -> Expr:
    return _subject(x).is_missing()


def mean(x: Expr | str, na_rm: bool = False) -> Expr:
    return _subject(x).mean(na_rm=na_rm)


def median(x: Expr | str, na_rm: bool = False) -> Expr:
    return _subject(x).median(na_rm=na_rm)


def quantile(x: Expr | str, q: float, na_rm: bool = False) -> Expr:
    return _subject(x).quantile(q, na_rm=na_rm)


def sd(x: Expr | str, na_rm: bool = False) -> Expr:
    return _subject(x).sd(na_rm=na_rm)


def var(x: Expr | str, na_rm: bool = False) -> Expr:
    return _subject(x).var(na_rm=na_rm)


def n_distinct(x: Expr | str) -> Expr:
    return _subject(x).n_distinct()


def first(x: Expr | str) -> Expr:
    return _subject(x).first()


def last(x: Expr | str) -> Expr:
    return _subject(x).last()


def nth(x: Expr | str, i: int) -> Expr:
    return _subject(x).nth(i)


def cumsum(x: Expr | str) -> Expr:
    return _subject(x).cumsum()


def lag(x: Expr | str, k: int = 1, default: Any = None) -> Expr:
    return _subject(x).lag(k, default=default)


def lead(x: Expr | str, k: int = 1, default: Any = None) -> Expr:
    return _subject(x).lead(k, default=default)


def str_length(x: Expr | str) -> Expr:
    return _subject(x).str_length()


def str_sub(x: Expr | str, start: int = 0, end: int | None = None) -> Expr:
    return _subject(x).str_sub(start, end)


def str_detect(x: Expr | str, pattern: str) -> Expr:
    return _subject(x).str_detect(pattern)


def str_pad(x: Expr | str, width: int, side: str = "left", pad: str = " ") -> Expr:
    return _subject(x).str_pad(width, side=side, pad=pad)


# -------------------------------------
# Expression strings
# -------------------------------------

ALLOWED_OPS = {
    ast.Add: op.add,
    ast.Sub: op.sub,
    ast.Mult: op.mul,
    ast.Div: op.truediv,
    ast.FloorDiv: op.floordiv,
    ast.Pow: op.pow,
    ast.USub: op.neg,
    ast.UAdd: op.pos,
    ast.Eq: op.eq,
    ast.NotEq: op.ne,
    ast.Lt: op.lt,
    ast.LtE: op.le,
    ast.Gt: op.gt,
    ast.GtE: op.ge,
    ast.BitAnd: op.and_,
    ast.BitOr: op.or_,
    ast.Invert: op.invert,
}

NAMES: dict[str, Any] = {
    "NA": Literal(None),
    "MISSING": Literal(None),
}

FUNCS: dict[str, Callable] = {
    # aggregates
    "sum": lambda x, na_rm=False: _subject(x).sum(na_rm=na_rm),
    "mean": mean,
    "median": median,
    "quantile": quantile,
    "min": lambda x, na_rm=False: _subject(x).min(na_rm=na_rm),
    "max": lambda x, na_rm=False: _subject(x).max(na_rm=na_rm),
    "sd": sd,
    "var": var,
    "count": lambda x: _subject(x).count(),
    "n_distinct": n_distinct,
    "first": first,
    "last": last,
    "nth": nth,
    "any": lambda x, na_rm=False: _subject(x).any(na_rm=na_rm),
    "all": lambda x, na_rm=False: _subject(x).all(na_rm=na_rm),
    # windows
    "n": n,
    "row_number": row_number,
    "min_rank": min_rank,
    "dense_rank": dense_rank,
    "desc": desc,
    "cumsum": cumsum,
    "lag": lag,
    "lead": lead,
    # element-wise
    "is_missing": is_missing,
    "if_else": if_else,
    "coalesce": coalesce,
    "abs": lambda x: _subject(x).abs(),
    "round": lambda x, digits=0: _subject(x).round(digits),
    "log": lambda x: _subject(x).log(),
    "exp": lambda x: _subject(x).exp(),
    "sqrt": lambda x: _subject(x).sqrt(),
    "str_length": str_length,
    "str_sub": str_sub,
    "str_detect": str_detect,
    "str_pad": str_pad,
}


def parse_expr(text: str, columns: list[str] | None = None) -> Expr:
    """
    Compile an expression string into an Expr.

    Every bare name is bound to col(name) at compile time (NA and MISSING
    are the missing value). Use &, | and ~ for logic; `and`/`or`/`not`
    raise TypeError.

    Args:
        text: Expression such as "value / sum(value)" or "min_rank(desc(score)) <= 2"
        columns: If given, names outside this list raise UnknownColumnError

    Returns:
        The compiled expression
    """
    def resolve(node):
        name = node.id
        if name in NAMES:
            return NAMES[name]
        if columns is not None and name not in columns:
            raise UnknownColumnError(name, columns)
        return Column(name)

    se = SimpleEval(names=resolve, functions=FUNCS, operators=ALLOWED_OPS)
    return _wrap(se.eval(text))
