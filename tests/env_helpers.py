from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator

from graft.config import MAX_DEPTH_ENV, STEP_BUDGET_ENV

TRAVERSAL_ENV_KEYS = (MAX_DEPTH_ENV, STEP_BUDGET_ENV)


def set_env(values: dict[str, str | None]) -> dict[str, str | None]:
    previous = {key: os.environ.get(key) for key in values}
    for key, value in values.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value
    return previous


def restore_env(previous: dict[str, str | None]) -> None:
    set_env(previous)


@contextmanager
def traversal_env(
    *,
    max_depth: str | None = None,
    step_budget: str | None = None,
) -> Iterator[None]:
    """Run with the traversal env knobs set (None clears the variable)."""
    previous = set_env({MAX_DEPTH_ENV: max_depth, STEP_BUDGET_ENV: step_budget})
    try:
        yield
    finally:
        restore_env(previous)
