"""Invariant markers for graft."""

from __future__ import annotations

from typing import NoReturn

from graft.exceptions import NeverThrown


def never(reason: str = "", **env: object) -> NoReturn:
    """Mark a code path as intentionally unreachable.

    The optional env payload is diagnostic metadata only; it travels on the
    raised exception and is not evaluated.
    """
    raise NeverThrown(reason or "never() marker reached", env=env)


def require_positive_int(value: object, *, reason: str, **env: object) -> int:
    try:
        number = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        never(reason, value=value, **env)
    if isinstance(value, bool) or number <= 0:
        never(reason, value=value, **env)
    return number
