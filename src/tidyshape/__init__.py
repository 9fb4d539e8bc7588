# -------------------------------------
# tidyshape - tidy tables on pyarrow
# -------------------------------------
"""
In-memory tidy tables: pure verbs, long/wide reshaping and grouped
split-apply-combine over dict tables backed by pyarrow arrays.

This package provides:
- Tables and conversion (table)
- Column expressions (expr) and column selectors (selectors)
- select/rename/filter/mutate/arrange/slice (verbs)
- group_by, summarise and friends (grouped)
- pivot_longer/pivot_wider, complete, drop_na, fill (reshape)
- Categorical level handling (factors)
- Left-to-right chaining (pipeline)
- Options (config) and errors (errors)

Imports are lazy so that importing the package stays cheap.
Use: from tidyshape import table_from_dict, col, table_mutate, etc.
"""
__version__ = "0.1.0"

# Lazy import mapping: attribute -> (module, name)
_LAZY_IMPORTS = {
    # tables
    "table_from_dict": (".table", "table_from_dict"),
    "table_from_rows": (".table", "table_from_rows"),
    "table_from_pyarrow": (".table", "table_from_pyarrow"),
    "table_to_pyarrow": (".table", "table_to_pyarrow"),
    "table_to_pydict": (".table", "table_to_pydict"),
    "table_to_rows": (".table", "table_to_rows"),
    "table_to_columns": (".table", "table_to_columns"),
    "table_to_arrow": (".table", "table_to_arrow"),
    "table_validate": (".table", "table_validate"),
    "table_nrows": (".table", "table_nrows"),
    "table_ncols": (".table", "table_ncols"),
    "table_column_names": (".table", "table_column_names"),
    "table_types": (".table", "table_types"),
    "table_column": (".table", "table_column"),
    "table_head": (".table", "table_head"),
    "table_bind_rows": (".table", "table_bind_rows"),
    "format_table": (".table", "format_table"),
    "print_table": (".table", "print_table"),
    # expressions
    "MISSING": (".expr", "MISSING"),
    "Expr": (".expr", "Expr"),
    "EvalContext": (".expr", "EvalContext"),
    "col": (".expr", "col"),
    "lit": (".expr", "lit"),
    "desc": (".expr", "desc"),
    "n": (".expr", "n"),
    "row_number": (".expr", "row_number"),
    "min_rank": (".expr", "min_rank"),
    "dense_rank": (".expr", "dense_rank"),
    "if_else": (".expr", "if_else"),
    "case_when": (".expr", "case_when"),
    "coalesce": (".expr", "coalesce"),
    "is_missing": (".expr", "is_missing"),
    "mean": (".expr", "mean"),
    "median": (".expr", "median"),
    "quantile": (".expr", "quantile"),
    "sd": (".expr", "sd"),
    "var": (".expr", "var"),
    "n_distinct": (".expr", "n_distinct"),
    "first": (".expr", "first"),
    "last": (".expr", "last"),
    "nth": (".expr", "nth"),
    "cumsum": (".expr", "cumsum"),
    "lag": (".expr", "lag"),
    "lead": (".expr", "lead"),
    "str_length": (".expr", "str_length"),
    "str_sub": (".expr", "str_sub"),
    "str_detect": (".expr", "str_detect"),
    "str_pad": (".expr", "str_pad"),
    "parse_expr": (".expr", "parse_expr"),
    # selectors
    "cols": (".selectors", "cols"),
    "starts_with": (".selectors", "starts_with"),
    "ends_with": (".selectors", "ends_with"),
    "contains": (".selectors", "contains"),
    "matches": (".selectors", "matches"),
    "everything": (".selectors", "everything"),
    "where": (".selectors", "where"),
    # verbs
    "table_select": (".verbs", "table_select"),
    "table_rename": (".verbs", "table_rename"),
    "table_filter": (".verbs", "table_filter"),
    "table_mutate": (".verbs", "table_mutate"),
    "table_arrange": (".verbs", "table_arrange"),
    "table_slice": (".verbs", "table_slice"),
    "table_slice_head": (".verbs", "table_slice_head"),
    "table_slice_tail": (".verbs", "table_slice_tail"),
    "table_slice_min": (".verbs", "table_slice_min"),
    "table_slice_max": (".verbs", "table_slice_max"),
    "table_slice_sample": (".verbs", "table_slice_sample"),
    "table_pull": (".verbs", "table_pull"),
    "table_distinct": (".verbs", "table_distinct"),
    # grouping
    "table_group_by": (".grouped", "table_group_by"),
    "table_ungroup": (".grouped", "table_ungroup"),
    "table_is_grouped": (".grouped", "table_is_grouped"),
    "table_group_vars": (".grouped", "table_group_vars"),
    "table_group_keys": (".grouped", "table_group_keys"),
    "table_n_groups": (".grouped", "table_n_groups"),
    "table_group_split": (".grouped", "table_group_split"),
    "table_group_modify": (".grouped", "table_group_modify"),
    "table_summarise": (".grouped", "table_summarise"),
    "table_count": (".grouped", "table_count"),
    # reshaping
    "table_pivot_longer": (".reshape", "table_pivot_longer"),
    "table_pivot_wider": (".reshape", "table_pivot_wider"),
    "table_complete": (".reshape", "table_complete"),
    "table_drop_na": (".reshape", "table_drop_na"),
    "table_fill": (".reshape", "table_fill"),
    # categoricals
    "table_as_factor": (".factors", "table_as_factor"),
    "table_levels": (".factors", "table_levels"),
    "table_reorder_levels": (".factors", "table_reorder_levels"),
    "table_relabel_levels": (".factors", "table_relabel_levels"),
    "table_recode_levels": (".factors", "table_recode_levels"),
    "table_collapse_levels": (".factors", "table_collapse_levels"),
    "table_reorder_by": (".factors", "table_reorder_by"),
    # pipelines
    "pipe": (".pipeline", "pipe"),
    "step": (".pipeline", "step"),
    "Pipeline": (".pipeline", "Pipeline"),
    # options
    "get_option": (".config", "get_option"),
    "set_option": (".config", "set_option"),
    "reset_options": (".config", "reset_options"),
    "load_options": (".config", "load_options"),
    "clear_cache": (".config", "clear_cache"),
    # errors
    "TidyError": (".errors", "TidyError"),
    "UnknownColumnError": (".errors", "UnknownColumnError"),
    "DuplicateNameError": (".errors", "DuplicateNameError"),
    "LengthMismatchError": (".errors", "LengthMismatchError"),
    "TypeUnificationError": (".errors", "TypeUnificationError"),
    "DuplicateIdentifierError": (".errors", "DuplicateIdentifierError"),
    "NonScalarAggregateError": (".errors", "NonScalarAggregateError"),
    "LevelError": (".errors", "LevelError"),
    "ConfigError": (".errors", "ConfigError"),
    "GroupingWarning": (".errors", "GroupingWarning"),
}

__all__ = list(_LAZY_IMPORTS)


def __getattr__(name: str):
    if name in _LAZY_IMPORTS:
        module_name, attr_name = _LAZY_IMPORTS[name]
        from importlib import import_module
        module = import_module(module_name, __package__)
        return getattr(module, attr_name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
