# -------------------------------------
# tidyshape errors
# -------------------------------------
"""
Exception types raised by table verbs, reshaping and grouping.

All errors derive from TidyError (a ValueError) and are raised at the
point of the offending operation. No verb returns a partial table.
"""

__all__ = [
    "TidyError",
    "UnknownColumnError",
    "DuplicateNameError",
    "LengthMismatchError",
    "TypeUnificationError",
    "DuplicateIdentifierError",
    "NonScalarAggregateError",
    "LevelError",
    "ConfigError",
    "GroupingWarning",
]


class TidyError(ValueError):
    """Base class for tidyshape errors."""


class UnknownColumnError(TidyError):
    """A column name or position does not exist in the table."""

    def __init__(self, column, available=None):
        self.column = column
        self.available = list(available) if available is not None else None
        if isinstance(column, int):
            msg = f"Column position {column} out of range"
            if self.available is not None:
                msg += f" for {len(self.available)} columns"
        else:
            msg = f"Column '{column}' not found"
            if self.available is not None:
                msg += f" in table columns: {self.available}"
        super().__init__(msg)


class DuplicateNameError(TidyError):
    """A select/rename/reshape would produce two columns with the same name."""

    def __init__(self, names):
        self.names = sorted(set(names))
        super().__init__(f"Duplicate column names: {self.names}")


class LengthMismatchError(TidyError):
    """An expression result is neither length 1 nor the table length."""

    def __init__(self, name, got, expected):
        self.name = name
        self.got = got
        self.expected = expected
        super().__init__(
            f"Column '{name}' has length {got}; expected 1 or {expected}"
        )


class TypeUnificationError(TidyError, TypeError):
    """Columns that must share a type cannot be coerced to a common one."""


class DuplicateIdentifierError(TidyError):
    """pivot_wider found two rows with the same identity values and key."""

    def __init__(self, identity, key):
        self.identity = dict(identity)
        self.key = key
        super().__init__(
            f"Values are not uniquely identified: key {key!r} appears more than "
            f"once for identity {self.identity}. Add a row id column to "
            f"id_cols to keep every row."
        )


class NonScalarAggregateError(TidyError):
    """A summarise expression produced something other than one value."""

    def __init__(self, name, size):
        self.name = name
        self.size = size
        super().__init__(
            f"summarise expression '{name}' must produce 1 value, got {size}"
        )


class LevelError(TidyError):
    """Invalid level list for a categorical column."""


class ConfigError(TidyError):
    """Unknown option key or invalid option value."""


class GroupingWarning(UserWarning):
    """summarise() left grouping variables active on its result."""
