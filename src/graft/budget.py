"""Per-call traversal budgets.

Every walker spends one step per expanded item. A budget is exhausted either
by running out of steps (``GasMeter``) or by passing its wall-clock
``Deadline``; in both cases the walker stops and reports a
``TraversalTruncated`` marker instead of raising.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field

from graft.deadline_clock import DeadlineClockExhausted, GasMeter, MonotonicClock
from graft.invariants import never

TRUNCATED_BY_DEPTH = "depth"
TRUNCATED_BY_STEPS = "steps"
TRUNCATED_BY_DEADLINE = "deadline"

_SYSTEM_CLOCK = MonotonicClock()


@dataclass(frozen=True)
class TraversalTruncated:
    """Result annotation: the traversal stopped before it ran out of data.

    Callers must treat a truncated result as incomplete, never as "no more
    data".
    """

    reason: str
    frontier: tuple[int, ...] = ()

    def as_payload(self) -> dict[str, object]:
        return {"reason": self.reason, "frontier": list(self.frontier)}


class BudgetExhausted(DeadlineClockExhausted):
    def __init__(self, reason: str) -> None:
        super().__init__(f"traversal budget exhausted ({reason})")
        self.reason = reason


@dataclass(frozen=True)
class Deadline:
    deadline_ns: int

    @classmethod
    def from_timeout_ticks(cls, ticks: int, tick_ns: int) -> "Deadline":
        ticks_value = int(ticks)
        tick_ns_value = int(tick_ns)
        if ticks_value < 0:
            never("invalid timeout ticks", ticks=ticks)
        if tick_ns_value <= 0:
            never("invalid timeout tick_ns", tick_ns=tick_ns)
        return cls(deadline_ns=_SYSTEM_CLOCK.get_mark() + ticks_value * tick_ns_value)

    @classmethod
    def from_timeout_ms(cls, milliseconds: int) -> "Deadline":
        return cls.from_timeout_ticks(milliseconds, 1_000_000)

    def expired(self) -> bool:
        return _SYSTEM_CLOCK.get_mark() >= self.deadline_ns


@dataclass
class TraversalBudget:
    meter: GasMeter
    deadline: Deadline | None = None
    exhausted_reason: str | None = field(default=None, init=False)

    @classmethod
    def from_steps(
        cls,
        steps: int,
        *,
        timeout_ms: int | None = None,
    ) -> "TraversalBudget":
        deadline = Deadline.from_timeout_ms(timeout_ms) if timeout_ms is not None else None
        return cls(meter=GasMeter(limit=steps), deadline=deadline)

    @property
    def steps_used(self) -> int:
        return self.meter.get_mark()

    @property
    def exhausted(self) -> bool:
        return self.exhausted_reason is not None

    def consume(self, ticks: int = 1) -> None:
        """Spend ``ticks`` steps; raise ``BudgetExhausted`` once spent out.

        Exhaustion is sticky: once a budget ran out, every later call raises
        again with the same reason.
        """
        if self.exhausted_reason is not None:
            raise BudgetExhausted(self.exhausted_reason)
        if self.deadline is not None and self.deadline.expired():
            self.exhausted_reason = TRUNCATED_BY_DEADLINE
            raise BudgetExhausted(TRUNCATED_BY_DEADLINE)
        try:
            self.meter.consume(ticks)
        except DeadlineClockExhausted as exc:
            self.exhausted_reason = TRUNCATED_BY_STEPS
            raise BudgetExhausted(TRUNCATED_BY_STEPS) from exc


_budget_var: ContextVar[TraversalBudget | None] = ContextVar(
    "graft_traversal_budget", default=None
)


def set_budget(budget: TraversalBudget) -> Token[TraversalBudget | None]:
    if budget is None:
        never("traversal budget carrier missing")
    return _budget_var.set(budget)


def reset_budget(token: Token[TraversalBudget | None]) -> None:
    _budget_var.reset(token)


def current_budget() -> TraversalBudget | None:
    return _budget_var.get()


@contextmanager
def budget_scope(budget: TraversalBudget) -> Iterator[TraversalBudget]:
    """Share one budget between every walk started inside the scope."""
    token = set_budget(budget)
    try:
        yield budget
    finally:
        reset_budget(token)


def resolve_budget(
    budget: TraversalBudget | None,
    *,
    default_steps: int,
) -> TraversalBudget:
    if budget is not None:
        return budget
    active = current_budget()
    if active is not None:
        return active
    return TraversalBudget.from_steps(default_steps)
