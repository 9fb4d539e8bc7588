# -------------------------------------
# Pipeline tests
# -------------------------------------
"""
Tests for pipe, step and Pipeline.
"""
import pytest

from tidyshape import (
    Pipeline,
    TidyError,
    col,
    cols,
    pipe,
    step,
    table_column,
    table_column_names,
    table_from_dict,
    table_group_by,
    table_mutate,
    table_pivot_longer,
    table_to_rows,
    table_ungroup,
)


@pytest.fixture
def wide():
    return table_from_dict({"group": ["a", "b"], "x": [1, 1], "y": [2, 3]})


class TestPipe:
    """Tests for pipe and step."""

    def test_no_steps(self, wide):
        assert pipe(wide) is wide

    def test_steps_run_left_to_right(self, wide):
        out = pipe(
            wide,
            step(table_pivot_longer, ~cols("group"), names_to="key"),
            step(table_group_by, "group"),
            step(table_mutate, share=col("value") / col("value").sum()),
            table_ungroup,
        )
        assert table_column_names(out) == ["group", "key", "value", "share"]
        assert table_to_rows(out)["rows"][0] == ["a", "x", 1, pytest.approx(1 / 3)]

    def test_plain_callable(self, wide):
        out = pipe(wide, lambda t: table_mutate(t, z=1))
        assert table_column(out, "z") == [1, 1]

    def test_step_repr(self):
        assert repr(step(table_mutate, z=1)) == "step(table_mutate)"

    def test_not_callable(self, wide):
        with pytest.raises(TidyError):
            step("table_mutate")
        with pytest.raises(TidyError):
            pipe(wide, 42)


class TestPipeline:
    """Tests for reusable Pipelines."""

    def test_compose_with_or(self, wide):
        shares = Pipeline(step(table_group_by, "group")) | step(
            table_mutate, share=col("y") / col("y").sum()
        )
        assert len(shares) == 2
        assert table_column(shares(wide), "share") == [1.0, 1.0]

    def test_then(self, wide):
        p = Pipeline().then(table_mutate, z=col("x") + col("y")).then(table_ungroup)
        assert len(p) == 2
        assert table_column(p(wide), "z") == [3, 4]

    def test_join_pipelines(self, wide):
        first = Pipeline(step(table_mutate, z=1))
        second = Pipeline(step(table_mutate, w=2))
        joined = first | second
        assert len(joined) == 2
        assert table_column_names(joined(wide))[-2:] == ["z", "w"]

    def test_reusable(self, wide):
        p = Pipeline(step(table_mutate, z=col("x") * 10))
        assert table_column(p(wide), "z") == table_column(p(wide), "z") == [10, 10]

    def test_repr(self):
        p = Pipeline(step(table_mutate, z=1), table_ungroup)
        assert repr(p) == "Pipeline(step(table_mutate), step(table_ungroup))"
