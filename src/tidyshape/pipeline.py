# -------------------------------------
# Pipelines - left-to-right chaining
# -------------------------------------
"""
Thread a table through a sequence of verbs.

Each step receives the table explicitly; nothing is read from an
implicit "current" dataset.

    result = pipe(
        t,
        step(table_pivot_longer, ~cols("group"), names_to="sex"),
        step(table_group_by, "group"),
        step(table_mutate, share=col("value") / col("value").sum()),
    )

A Pipeline is a reusable, callable sequence of steps:

    shares = Pipeline(step(table_group_by, "group")) | step(table_mutate, share=...)
    result = shares(t)
"""
from __future__ import annotations

import logging
from typing import Any, Callable

from .errors import TidyError
from .table import table_nrows

logger = logging.getLogger(__name__)

__all__ = ["Step", "step", "pipe", "Pipeline"]


class Step:
    """A verb with its arguments, applied as func(table, *args, **kwargs)."""

    def __init__(self, func: Callable[..., dict[str, Any]], *args: Any, **kwargs: Any):
        if not callable(func):
            raise TidyError(f"Pipeline step must be callable, got {type(func).__name__}")
        self.func = func
        self.args = args
        self.kwargs = kwargs

    @property
    def name(self) -> str:
        return getattr(self.func, "__name__", type(self.func).__name__)

    def __call__(self, table: dict[str, Any]) -> dict[str, Any]:
        return self.func(table, *self.args, **self.kwargs)

    def __repr__(self):
        return f"step({self.name})"


def step(func: Callable[..., dict[str, Any]], *args: Any, **kwargs: Any) -> Step:
    """Bind arguments to a verb; the table is supplied when the step runs."""
    return Step(func, *args, **kwargs)


def _as_step(s: Any) -> Callable[[dict[str, Any]], dict[str, Any]]:
    if isinstance(s, (Step, Pipeline)):
        return s
    if callable(s):
        return Step(s)
    raise TidyError(f"Pipeline step must be callable, got {type(s).__name__}")


def pipe(table: dict[str, Any], *steps: Any) -> dict[str, Any]:
    """
    Apply steps left to right.

    Args:
        table: Starting table
        *steps: Callables table -> table, step(...) objects or Pipelines

    Returns:
        The table returned by the last step (the input when there are none)
    """
    for i, s in enumerate(steps, start=1):
        s = _as_step(s)
        table = s(table)
        logger.debug("step %d %r -> %d rows", i, s, table_nrows(table))
    return table


class Pipeline:
    """Reusable sequence of steps, callable on a table."""

    def __init__(self, *steps: Any):
        self.steps = [_as_step(s) for s in steps]

    def then(self, func: Any, *args: Any, **kwargs: Any) -> Pipeline:
        """New pipeline with one more step."""
        s = Step(func, *args, **kwargs) if args or kwargs else _as_step(func)
        return Pipeline(*self.steps, s)

    def __or__(self, other: Any) -> Pipeline:
        if isinstance(other, Pipeline):
            return Pipeline(*self.steps, *other.steps)
        return Pipeline(*self.steps, _as_step(other))

    def __call__(self, table: dict[str, Any]) -> dict[str, Any]:
        return pipe(table, *self.steps)

    def __len__(self):
        return len(self.steps)

    def __repr__(self):
        return f"Pipeline({', '.join(repr(s) for s in self.steps)})"
