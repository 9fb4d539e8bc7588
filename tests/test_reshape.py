# -------------------------------------
# Reshape tests
# -------------------------------------
"""
Tests for pivot_longer, pivot_wider, complete, drop_na and fill.
"""
import pytest

from tidyshape import (
    DuplicateIdentifierError,
    DuplicateNameError,
    TidyError,
    TypeUnificationError,
    cols,
    row_number,
    starts_with,
    table_as_factor,
    table_column,
    table_column_names,
    table_complete,
    table_drop_na,
    table_fill,
    table_from_dict,
    table_group_by,
    table_group_vars,
    table_mutate,
    table_nrows,
    table_pivot_longer,
    table_pivot_wider,
    table_to_pydict,
    table_to_rows,
    table_types,
    table_ungroup,
)


@pytest.fixture
def sexes():
    return table_from_dict({"group": ["a", "b"], "Female": [1, 2], "Male": [3, 4]})


@pytest.fixture
def long():
    return table_from_dict({
        "country": ["X", "X", "Y"],
        "sex": ["F", "M", "F"],
        "pop": [1, 2, 3],
    })


# -------------------------------------
# pivot_longer
# -------------------------------------

class TestPivotLonger:
    """Tests for table_pivot_longer."""

    def test_gather_by_column(self, sexes):
        out = table_pivot_longer(sexes, ~cols("group"), names_to="sex", values_to="count")
        assert table_column_names(out) == ["group", "sex", "count"]
        assert table_to_rows(out)["rows"] == [
            ["a", "Female", 1],
            ["b", "Female", 2],
            ["a", "Male", 3],
            ["b", "Male", 4],
        ]

    def test_gather_by_row(self, sexes):
        out = table_pivot_longer(sexes, ["Female", "Male"], order="rows")
        assert table_to_rows(out)["rows"] == [
            ["a", "Female", 1],
            ["a", "Male", 3],
            ["b", "Female", 2],
            ["b", "Male", 4],
        ]

    def test_default_names(self, sexes):
        out = table_pivot_longer(sexes, ["Female", "Male"])
        assert table_column_names(out) == ["group", "name", "value"]

    def test_row_count(self):
        t = table_from_dict({"id": [1, 2, 3], "a": [1, 2, 3], "b": [4, 5, 6]})
        out = table_pivot_longer(t, ["a", "b"])
        assert table_nrows(out) == 3 * 2

    def test_types_unified(self):
        t = table_from_dict({"id": [1], "a": [1], "b": [2.5]})
        out = table_pivot_longer(t, ["a", "b"])
        assert table_types(out)["value"] == "float"
        assert table_column(out, "value") == [1.0, 2.5]

    def test_categoricals_stay_categorical(self):
        t = table_from_dict({"id": [1], "a": ["x"], "b": ["y"]}, types={"a": "cat", "b": "cat"})
        out = table_pivot_longer(t, ["a", "b"])
        assert table_types(out)["value"] == "cat"
        assert table_column(out, "value") == ["x", "y"]

    def test_incompatible_types(self):
        t = table_from_dict({"id": [1], "a": [1], "b": ["x"]})
        with pytest.raises(TypeUnificationError):
            table_pivot_longer(t, ["a", "b"])

    def test_name_collision(self, sexes):
        with pytest.raises(DuplicateNameError):
            table_pivot_longer(sexes, ["Female", "Male"], names_to="group")

    def test_drop_na(self):
        t = table_from_dict({"id": [1, 2], "a": [1, None], "b": [None, 4]})
        out = table_pivot_longer(t, ["a", "b"], values_drop_na=True)
        assert table_to_rows(out)["rows"] == [[1, "a", 1], [2, "b", 4]]

    def test_names_prefix(self):
        t = table_from_dict({"id": [1], "pop_2000": [5], "pop_2010": [6]})
        out = table_pivot_longer(t, starts_with("pop_"), names_to="year", names_prefix="pop_")
        assert table_column(out, "year") == ["2000", "2010"]

    def test_nothing_to_gather(self, sexes):
        with pytest.raises(TidyError):
            table_pivot_longer(sexes, [])

    def test_bad_order(self, sexes):
        with pytest.raises(TidyError):
            table_pivot_longer(sexes, ["Female"], order="diagonal")

    def test_keeps_grouping_on_kept_columns(self, sexes):
        out = table_pivot_longer(table_group_by(sexes, "group"), ["Female", "Male"])
        assert table_group_vars(out) == ["group"]


# -------------------------------------
# pivot_wider
# -------------------------------------

class TestPivotWider:
    """Tests for table_pivot_wider."""

    def test_spread(self, long):
        out = table_pivot_wider(long, names_from="sex", values_from="pop")
        assert table_column_names(out) == ["country", "F", "M"]
        assert table_to_rows(out)["rows"] == [["X", 1, 2], ["Y", 3, None]]

    def test_values_fill(self, long):
        out = table_pivot_wider(long, names_from="sex", values_from="pop", values_fill=0)
        assert table_column(out, "M") == [2, 0]

    def test_names_prefix(self, long):
        out = table_pivot_wider(long, names_from="sex", values_from="pop", names_prefix="pop_")
        assert table_column_names(out) == ["country", "pop_F", "pop_M"]

    def test_missing_key_column(self):
        t = table_from_dict({"id": [1, 1], "k": ["a", None], "v": [1, 2]})
        out = table_pivot_wider(t, names_from="k", values_from="v")
        assert table_column_names(out) == ["id", "a", "NA"]

    def test_explicit_id_cols(self):
        t = table_from_dict({"id": [1, 1], "note": ["x", "y"], "k": ["a", "b"], "v": [1, 2]})
        out = table_pivot_wider(t, names_from="k", values_from="v", id_cols=["id"])
        assert table_to_rows(out)["rows"] == [[1, 1, 2]]

    def test_duplicate_identifier(self):
        t = table_from_dict({"id": ["a", "a"], "key": ["x", "x"], "value": [1, 2]})
        with pytest.raises(DuplicateIdentifierError) as exc:
            table_pivot_wider(t, names_from="key", values_from="value")
        assert exc.value.identity == {"id": "a"}
        assert exc.value.key == "x"
        assert "row id" in str(exc.value)

    def test_row_id_resolves_duplicates(self):
        t = table_from_dict({"id": ["a", "a"], "key": ["x", "x"], "value": [1, 2]})
        t = table_ungroup(table_mutate(table_group_by(t, "id", "key"), rid=row_number()))
        out = table_pivot_wider(t, names_from="key", values_from="value", id_cols=["id", "rid"])
        assert table_to_rows(out)["rows"] == [["a", 1, 1], ["a", 2, 2]]

    def test_round_trip(self, sexes):
        long = table_pivot_longer(sexes, ["Female", "Male"], names_to="sex", values_to="n")
        wide = table_pivot_wider(long, names_from="sex", values_from="n")
        assert table_to_pydict(wide) == table_to_pydict(sexes)

    def test_round_trip_row_order(self, sexes):
        long = table_pivot_longer(sexes, ["Female", "Male"], order="rows")
        wide = table_pivot_wider(long)
        assert table_to_pydict(wide) == table_to_pydict(sexes)

    def test_missing_key_and_na_string_stay_distinct(self):
        same_identity = table_from_dict({"id": [1, 1], "k": [None, "NA"], "v": [1, 2]})
        with pytest.raises(DuplicateNameError):
            table_pivot_wider(same_identity, names_from="k", values_from="v")
        other_identity = table_from_dict({"id": [1, 2], "k": [None, "NA"], "v": [1, 2]})
        with pytest.raises(DuplicateNameError):
            table_pivot_wider(other_identity, names_from="k", values_from="v")

    def test_key_clashes_with_id(self):
        t = table_from_dict({"id": [1], "k": ["id"], "v": [1]})
        with pytest.raises(DuplicateNameError):
            table_pivot_wider(t, names_from="k", values_from="v")


# -------------------------------------
# complete / drop_na / fill
# -------------------------------------

class TestTidyingHelpers:
    """Tests for table_complete, table_drop_na and table_fill."""

    def test_complete(self):
        t = table_from_dict({"country": ["X", "X", "Y"], "year": [2000, 2001, 2000], "pop": [1, 2, 3]})
        out = table_complete(t, "country", "year")
        assert table_to_rows(out)["rows"] == [
            ["X", 2000, 1], ["X", 2001, 2], ["Y", 2000, 3], ["Y", 2001, None],
        ]

    def test_complete_fill(self):
        t = table_from_dict({"country": ["X", "X", "Y"], "year": [2000, 2001, 2000], "pop": [1, 2, 3]})
        out = table_complete(t, "country", "year", fill={"pop": 0})
        assert table_column(out, "pop") == [1, 2, 3, 0]

    def test_complete_uses_all_levels(self):
        t = table_from_dict({"sex": ["F", "F"], "year": [1, 2], "n": [1, 2]})
        t = table_as_factor(t, "sex", levels=["F", "M"])
        out = table_complete(t, "sex", "year")
        assert table_column(out, "sex") == ["F", "F", "M", "M"]
        assert table_column(out, "n") == [1, 2, None, None]

    def test_complete_grouped(self):
        t = table_from_dict({"g": ["a", "a", "b"], "k": [1, 2, 1], "v": [1, 2, 3]})
        out = table_complete(table_group_by(t, "g"), "k")
        assert table_to_rows(out)["rows"] == [["a", 1, 1], ["a", 2, 2], ["b", 1, 3]]

    def test_drop_na(self):
        t = table_from_dict({"a": [1, None, 3], "b": ["x", "y", None]})
        assert table_column(table_drop_na(t), "a") == [1]
        assert table_column(table_drop_na(t, "a"), "a") == [1, 3]

    def test_fill_down_and_up(self):
        t = table_from_dict({"v": [1, None, None, 4]})
        assert table_column(table_fill(t, "v"), "v") == [1, 1, 1, 4]
        assert table_column(table_fill(t, "v", direction="up"), "v") == [1, 4, 4, 4]

    def test_fill_within_groups(self):
        t = table_from_dict({"g": ["a", "a", "b", "b"], "v": [1, None, None, 4]})
        g = table_group_by(t, "g")
        assert table_column(table_fill(g, "v"), "v") == [1, 1, None, 4]
        assert table_column(table_fill(g, "v", direction="downup"), "v") == [1, 1, 4, 4]

    def test_fill_bad_direction(self):
        t = table_from_dict({"v": [1]})
        with pytest.raises(TidyError):
            table_fill(t, "v", direction="sideways")
