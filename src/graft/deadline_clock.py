from __future__ import annotations

from dataclasses import dataclass
import time

from graft.invariants import never


class DeadlineClockExhausted(RuntimeError):
    """Raised by logical clocks when available ticks are exhausted."""


@dataclass(frozen=True)
class MonotonicClock:
    """Wall-clock implementation used for deadlines."""

    def get_mark(self) -> int:
        return time.monotonic_ns()


@dataclass
class GasMeter:
    """Deterministic logical clock driven by consumed ticks.

    One tick is one traversal step (one item expanded).
    """

    limit: int
    current: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.limit, bool) or int(self.limit) <= 0:
            never("invalid gas meter limit", limit=self.limit)
        self.limit = int(self.limit)
        self.current = int(self.current)
        if self.current < 0:
            never("invalid gas meter current", current=self.current)

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.current)

    def consume(self, ticks: int = 1) -> None:
        ticks_value = int(ticks)
        if ticks_value <= 0:
            never("invalid gas meter ticks", ticks=ticks)
        if self.current + ticks_value > self.limit:
            self.current = self.limit
            raise DeadlineClockExhausted(
                f"Gas exhausted: {self.limit}/{self.limit}"
            )
        self.current += ticks_value

    def get_mark(self) -> int:
        return self.current
