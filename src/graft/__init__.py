"""Graft package root."""

from graft.exceptions import (
    GraftError,
    LifecycleViolation,
    NeverRaise,
    NeverThrown,
    NotFound,
    StructuralViolation,
)
from graft.invariants import never

__all__ = [
    "__version__",
    "GraftError",
    "LifecycleViolation",
    "NeverRaise",
    "NeverThrown",
    "NotFound",
    "StructuralViolation",
    "never",
]

__version__ = "0.1.0"
