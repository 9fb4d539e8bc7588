# -------------------------------------
# Categorical tests
# -------------------------------------
"""
Tests for categorical columns: encoding, reordering vs relabelling,
recoding, collapsing and ordering levels by a summary.
"""
import logging

import pytest

from tidyshape import (
    LevelError,
    TidyError,
    col,
    table_arrange,
    table_as_factor,
    table_collapse_levels,
    table_column,
    table_from_dict,
    table_group_by,
    table_group_keys,
    table_levels,
    table_recode_levels,
    table_relabel_levels,
    table_reorder_by,
    table_reorder_levels,
    table_types,
)


@pytest.fixture
def sizes():
    t = table_from_dict({"size": ["small", "large", "medium", "small"], "w": [1, 9, 5, 2]})
    return table_as_factor(t, "size", levels=["small", "medium", "large"])


class TestEncoding:
    """Tests for table_as_factor and table_levels."""

    def test_default_levels_sorted(self):
        t = table_as_factor(table_from_dict({"s": ["b", "a", "b"]}), "s")
        assert table_types(t)["s"] == "cat"
        assert table_levels(t, "s") == ["a", "b"]
        assert table_column(t, "s") == ["b", "a", "b"]

    def test_explicit_levels(self, sizes):
        assert table_levels(sizes, "size") == ["small", "medium", "large"]

    def test_values_outside_levels_become_missing(self):
        t = table_as_factor(table_from_dict({"s": ["a", "z"]}), "s", levels=["a", "b"])
        assert table_column(t, "s") == ["a", None]

    def test_levels_of_plain_column(self):
        with pytest.raises(LevelError):
            table_levels(table_from_dict({"s": ["a"]}), "s")


class TestReorderVersusRelabel:
    """reorder_levels keeps labels; relabel_levels keeps codes."""

    def test_reorder_keeps_labels(self, sizes):
        out = table_reorder_levels(sizes, "size", ["large", "medium", "small"])
        assert table_levels(out, "size") == ["large", "medium", "small"]
        assert table_column(out, "size") == table_column(sizes, "size")

    def test_reorder_changes_sort_order(self, sizes):
        assert table_column(table_arrange(sizes, "size"), "w") == [1, 2, 5, 9]
        out = table_reorder_levels(sizes, "size", ["large", "medium", "small"])
        assert table_column(table_arrange(out, "size"), "w") == [9, 5, 1, 2]

    def test_reorder_changes_group_order(self, sizes):
        out = table_reorder_levels(sizes, "size", ["large", "medium", "small"])
        keys = table_group_keys(table_group_by(out, "size"))
        assert table_column(keys, "size") == ["large", "medium", "small"]

    def test_reorder_requires_permutation(self, sizes):
        with pytest.raises(LevelError):
            table_reorder_levels(sizes, "size", ["large", "small"])
        with pytest.raises(LevelError):
            table_reorder_levels(sizes, "size", ["large", "small", "huge"])

    def test_relabel_changes_labels(self, sizes, caplog):
        with caplog.at_level(logging.WARNING, logger="tidyshape.factors"):
            out = table_relabel_levels(sizes, "size", new_levels=["S", "M", "L"])
        assert table_column(out, "size") == ["S", "L", "M", "S"]
        assert "relabel_levels" in caplog.text

    def test_relabel_is_keyword_only(self, sizes):
        with pytest.raises(TypeError):
            table_relabel_levels(sizes, "size", ["S", "M", "L"])

    def test_relabel_wrong_length(self, sizes):
        with pytest.raises(LevelError):
            table_relabel_levels(sizes, "size", new_levels=["S", "M"])


class TestRecoding:
    """Tests for recode, collapse and reorder_by."""

    def test_recode(self, sizes):
        out = table_recode_levels(sizes, "size", {"small": "S"})
        assert table_levels(out, "size") == ["S", "medium", "large"]
        assert table_column(out, "size") == ["S", "large", "medium", "S"]

    def test_recode_merges(self, sizes):
        out = table_recode_levels(sizes, "size", {"medium": "big", "large": "big"})
        assert table_levels(out, "size") == ["small", "big"]
        assert table_column(out, "size") == ["small", "big", "big", "small"]

    def test_recode_unknown_level(self, sizes):
        with pytest.raises(LevelError):
            table_recode_levels(sizes, "size", {"huge": "H"})

    def test_collapse(self, sizes):
        out = table_collapse_levels(sizes, "size", {"not small": ["medium", "large"]})
        assert table_levels(out, "size") == ["small", "not small"]

    def test_collapse_other_goes_last(self):
        t = table_as_factor(
            table_from_dict({"act": ["Sleep", "Main job", "TV", "Second job"]}),
            "act",
            levels=["Main job", "Second job", "Sleep", "TV"],
        )
        out = table_collapse_levels(t, "act", {"Work": ["Main job", "Second job"]}, other="Other")
        assert table_levels(out, "act") == ["Work", "Other"]
        assert table_column(out, "act") == ["Other", "Work", "Other", "Work"]

    def test_reorder_by_median(self):
        t = table_from_dict({"k": ["a", "a", "b", "c"], "v": [5, 7, 1, 3]})
        out = table_reorder_by(t, "k", "v")
        assert table_levels(out, "k") == ["b", "c", "a"]

    def test_reorder_by_descending_expression(self):
        t = table_from_dict({"k": ["a", "a", "b", "c"], "v": [5, 7, 1, 3]})
        out = table_reorder_by(t, "k", col("v") * -1, agg="max", descending=True)
        assert table_levels(out, "k") == ["b", "c", "a"]

    def test_reorder_by_count(self):
        t = table_from_dict({"k": ["a", "b", "b", "c", "c", "c"], "v": [1] * 6})
        out = table_reorder_by(t, "k", "v", agg="n", descending=True)
        assert table_levels(out, "k") == ["c", "b", "a"]

    def test_reorder_by_unknown_agg(self):
        t = table_from_dict({"k": ["a"], "v": [1]})
        with pytest.raises(TidyError):
            table_reorder_by(t, "k", "v", agg="mode")
