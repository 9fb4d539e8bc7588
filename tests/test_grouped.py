# -------------------------------------
# Grouped pipeline tests
# -------------------------------------
"""
Tests for group_by, grouped mutate/filter/slice/arrange, summarise,
count and group_modify.
"""
import warnings

import pytest

from tidyshape import (
    ConfigError,
    GroupingWarning,
    NonScalarAggregateError,
    col,
    format_table,
    lag,
    n,
    reset_options,
    row_number,
    set_option,
    table_arrange,
    table_column,
    table_column_names,
    table_count,
    table_filter,
    table_from_dict,
    table_group_by,
    table_group_keys,
    table_group_modify,
    table_group_split,
    table_group_vars,
    table_head,
    table_is_grouped,
    table_mutate,
    table_n_groups,
    table_nrows,
    table_rename,
    table_select,
    table_slice,
    table_slice_head,
    table_slice_max,
    table_summarise,
    table_to_rows,
    table_ungroup,
)


@pytest.fixture
def values():
    return table_from_dict({"group": ["a", "a", "b", "b"], "value": [1, 2, 1, 3]})


@pytest.fixture
def population():
    return table_from_dict({
        "country": ["X", "X", "Y", "Y", "X", "Y"],
        "sex": ["F", "M", "F", "M", "F", "M"],
        "pop": [1, 2, 3, 4, 5, 6],
    })


@pytest.fixture(autouse=True)
def default_options():
    reset_options()
    yield
    reset_options()


# -------------------------------------
# group_by
# -------------------------------------

class TestGroupBy:
    """Tests for creating and inspecting groupings."""

    def test_group_by(self, values):
        g = table_group_by(values, "group")
        assert table_is_grouped(g)
        assert table_group_vars(g) == ["group"]
        assert table_n_groups(g) == 2
        # rows are untouched
        assert table_to_rows(g)["rows"] == table_to_rows(values)["rows"]

    def test_first_appearance_order(self):
        t = table_from_dict({"k": ["b", "a", "b"]})
        keys = table_group_keys(table_group_by(t, "k"))
        assert table_column(keys, "k") == ["b", "a"]

    def test_sorted_order(self):
        t = table_from_dict({"k": ["b", "a", "b"]})
        keys = table_group_keys(table_group_by(t, "k", sort=True))
        assert table_column(keys, "k") == ["a", "b"]

    def test_categorical_level_order(self):
        t = table_from_dict({"k": ["y", "x", "y"]}, types={"k": "cat"})
        keys = table_group_keys(table_group_by(t, "k"))
        assert table_column(keys, "k") == ["x", "y"]

    def test_missing_key_is_a_group(self):
        t = table_from_dict({"k": ["a", None, "a"]})
        assert table_n_groups(table_group_by(t, "k")) == 2

    def test_nan_keys_share_a_group(self):
        t = table_from_dict({"k": [float("nan"), 1.0, float("nan")], "v": [1, 2, 3]})
        g = table_group_by(t, "k")
        assert table_n_groups(g) == 2
        out = table_summarise(g, total=col("v").sum())
        assert table_column(out, "total") == [4, 2]

    def test_regroup_replaces(self, population):
        g = table_group_by(table_group_by(population, "country"), "sex")
        assert table_group_vars(g) == ["sex"]

    def test_regroup_add(self, population):
        g = table_group_by(table_group_by(population, "country"), "sex", add=True)
        assert table_group_vars(g) == ["country", "sex"]
        assert table_n_groups(g) == 4

    def test_ungroup(self, values):
        g = table_ungroup(table_group_by(values, "group"))
        assert not table_is_grouped(g)
        assert table_group_vars(g) == []

    def test_split(self, population):
        parts = table_group_split(table_group_by(population, "country"))
        assert [table_column(p, "pop") for p in parts] == [[1, 2, 5], [3, 4, 6]]

    def test_ungrouped_counts_as_one_group(self, values):
        assert table_n_groups(values) == 1


# -------------------------------------
# Grouped verbs
# -------------------------------------

class TestGroupedVerbs:
    """Tests for mutate/filter/slice/arrange on grouped tables."""

    def test_share_within_group(self, values):
        out = table_mutate(table_group_by(values, "group"), share=col("value") / col("value").sum())
        assert table_column(out, "share") == pytest.approx([1 / 3, 2 / 3, 0.25, 0.75])
        assert table_group_vars(out) == ["group"]

    def test_written_back_in_row_order(self, population):
        g = table_group_by(population, "country")
        out = table_mutate(g, total=col("pop").sum(), i=row_number())
        assert table_column(out, "total") == [8, 8, 13, 13, 8, 13]
        assert table_column(out, "i") == [1, 2, 1, 2, 3, 3]

    def test_window_within_group(self, population):
        out = table_mutate(table_group_by(population, "country"), prev=lag("pop"))
        assert table_column(out, "prev") == [None, 1, None, 3, 2, 4]

    def test_filter_by_group_mean(self, population):
        g = table_group_by(population, "country")
        out = table_filter(g, col("pop") > col("pop").mean())
        assert table_column(out, "pop") == [5, 6]
        assert table_group_vars(out) == ["country"]

    def test_slice_per_group(self, population):
        out = table_slice(table_group_by(population, "country"), [0])
        assert table_column(out, "pop") == [1, 3]

    def test_slice_head_and_max(self, population):
        g = table_group_by(population, "country")
        assert table_column(table_slice_head(g, 2), "pop") == [1, 2, 3, 4]
        assert table_column(table_slice_max(g, "pop"), "pop") == [5, 6]

    def test_arrange_keeps_grouping(self, population):
        out = table_arrange(table_group_by(population, "country"), "pop")
        assert table_group_vars(out) == ["country"]

    def test_arrange_by_group(self, population):
        out = table_arrange(table_group_by(population, "country"), "sex", by_group=True)
        assert table_column(out, "pop") == [1, 5, 2, 3, 4, 6]

    def test_select_keeps_grouping_columns(self, population):
        out = table_select(table_group_by(population, "country"), "pop")
        assert table_column_names(out) == ["country", "pop"]

    def test_rename_grouping_column(self, population):
        out = table_rename(table_group_by(population, "country"), nation="country")
        assert table_group_vars(out) == ["nation"]

    def test_mutate_grouping_column_regroups(self, values):
        g = table_group_by(values, "group")
        out = table_mutate(g, group="all")
        assert table_n_groups(out) == 1

    def test_head_drops_grouping(self, values):
        assert not table_is_grouped(table_head(table_group_by(values, "group"), 1))


# -------------------------------------
# summarise
# -------------------------------------

class TestSummarise:
    """Tests for table_summarise and its residual grouping."""

    def test_one_row_per_group(self, values):
        out = table_summarise(table_group_by(values, "group"), total=col("value").sum(), rows=n())
        assert table_to_rows(out)["rows"] == [["a", 3, 2], ["b", 4, 2]]
        assert not table_is_grouped(out)

    def test_ungrouped_single_row(self, values):
        out = table_summarise(values, total=col("value").sum())
        assert table_to_rows(out)["rows"] == [[7]]

    def test_empty_ungrouped_single_row(self):
        t = table_from_dict({"v": []})
        assert table_column(table_summarise(t, rows=n()), "rows") == [0]

    def test_empty_grouped_no_rows(self):
        t = table_from_dict({"g": [], "v": []})
        out = table_summarise(table_group_by(t, "g"), rows=n())
        assert table_column_names(out) == ["g", "rows"]
        assert table_nrows(out) == 0

    def test_later_summaries_see_earlier(self, values):
        out = table_summarise(
            table_group_by(values, "group"),
            {"total": col("value").sum()},
            twice=col("total") * 2,
        )
        assert table_column(out, "twice") == [6, 8]

    def test_non_scalar(self, values):
        with pytest.raises(NonScalarAggregateError) as exc:
            table_summarise(table_group_by(values, "group"), bad=col("value"))
        assert exc.value.size == 2

    def test_drop_last_warns(self, population):
        g = table_group_by(population, "country", "sex")
        with pytest.warns(GroupingWarning):
            out = table_summarise(g, total=col("pop").sum())
        assert table_group_vars(out) == ["country"]
        assert table_nrows(out) == 4

    def test_explicit_drop_last_is_silent(self, population):
        g = table_group_by(population, "country", "sex")
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            out = table_summarise(g, total=col("pop").sum(), groups="drop_last")
        assert table_group_vars(out) == ["country"]

    def test_drop_and_keep(self, population):
        g = table_group_by(population, "country", "sex")
        assert table_group_vars(table_summarise(g, total=col("pop").sum(), groups="drop")) == []
        kept = table_summarise(g, total=col("pop").sum(), groups="keep")
        assert table_group_vars(kept) == ["country", "sex"]

    def test_configured_default(self, population):
        set_option("summarise.groups", "drop")
        g = table_group_by(population, "country", "sex")
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            out = table_summarise(g, total=col("pop").sum())
        assert not table_is_grouped(out)

    def test_invalid_policy(self, values):
        with pytest.raises(ConfigError):
            table_summarise(table_group_by(values, "group"), total=col("value").sum(), groups="all")

    def test_group_order(self, population):
        g = table_group_by(population, "sex", "country")
        out = table_summarise(g, total=col("pop").sum(), groups="drop")
        assert table_to_rows(out)["rows"] == [
            ["F", "X", 6], ["M", "X", 2], ["F", "Y", 3], ["M", "Y", 10],
        ]

    def test_summary_then_mutate_on_residual_groups(self, population):
        g = table_group_by(population, "country", "sex")
        out = table_summarise(g, total=col("pop").sum(), groups="drop_last")
        out = table_mutate(out, share=col("total") / col("total").sum())
        assert table_column(out, "share") == pytest.approx([6 / 8, 2 / 8, 3 / 13, 10 / 13])

    def test_format_grouped_summary(self, population):
        g = table_group_by(population, "country", "sex")
        out = table_summarise(g, total=col("pop").sum(), groups="drop_last")
        assert format_table(out).splitlines()[0] == "# Groups: country [2]"


# -------------------------------------
# count / group_modify
# -------------------------------------

class TestCountAndModify:
    """Tests for table_count and table_group_modify."""

    def test_count(self, population):
        out = table_count(population, "country")
        assert table_to_rows(out)["rows"] == [["X", 3], ["Y", 3]]

    def test_count_sorted(self):
        t = table_from_dict({"k": ["a", "b", "b"]})
        out = table_count(t, "k", sort=True, name="freq")
        assert table_to_rows(out)["rows"] == [["b", 2], ["a", 1]]

    def test_count_keeps_grouping(self, population):
        out = table_count(table_group_by(population, "country"), "sex")
        assert table_group_vars(out) == ["country"]
        assert table_column(out, "n") == [2, 1, 1, 2]

    def test_count_ungrouped_total(self, population):
        assert table_column(table_count(population), "n") == [6]

    def test_group_modify(self, population):
        g = table_group_by(population, "country")
        out = table_group_modify(g, lambda sub: table_head(sub, 1))
        assert table_column_names(out) == ["country", "sex", "pop"]
        assert table_to_rows(out)["rows"] == [["X", "F", 1], ["Y", "F", 3]]
        assert table_group_vars(out) == ["country"]

    def test_group_modify_sees_group_rows_only(self, population):
        g = table_group_by(population, "country")
        out = table_group_modify(g, lambda sub: table_summarise(sub, rows=n()))
        assert table_to_rows(out)["rows"] == [["X", 3], ["Y", 3]]
