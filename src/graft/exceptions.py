"""Error taxonomy for graft.

Structural and lifecycle violations are detected before anything is
published, so callers never have to undo a partial write.
"""

from __future__ import annotations


class NeverRaise(RuntimeError):
    """Sentinel exception for code paths that must be unreachable.

    Raising this exception means an internal contract was broken (an invalid
    budget, a negative counter). It is never part of the domain taxonomy and
    callers are not expected to handle it.
    """

    def __init__(self, message: str, *, env: dict[str, object] | None = None):
        super().__init__(message)
        self.reason = message
        self.env = dict(env or {})


class NeverThrown(NeverRaise):
    """Alias for NeverRaise used by the explicit never() marker."""


class GraftError(Exception):
    """Base class for every domain error raised by graft."""


class NotFound(GraftError, KeyError):
    def __init__(self, item_id: object, *, what: str = "item") -> None:
        super().__init__(f"{what} {item_id!r} not found")
        self.item_id = item_id
        self.what = what

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return str(self.args[0])


class StructuralViolation(GraftError, ValueError):
    """A write would break the pointer model (self reference, ascendant cycle,
    composing onto a non-head, flux-head invariant, dangling pointer)."""

    def __init__(self, message: str, *, item_id: object = None, rule: str = "") -> None:
        super().__init__(message)
        self.item_id = item_id
        self.rule = rule


class LifecycleViolation(GraftError):
    """Deleting a flux target that is still mounted by another stem."""

    def __init__(self, message: str, *, item_id: object, mounts: tuple[int, ...]) -> None:
        super().__init__(message)
        self.item_id = item_id
        self.mounts = tuple(mounts)
