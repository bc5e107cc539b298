from __future__ import annotations

import pytest

from graft.deadline_clock import DeadlineClockExhausted, GasMeter, MonotonicClock
from graft.exceptions import NeverThrown


def test_monotonic_clock_mark_increases() -> None:
    clock = MonotonicClock()
    first = clock.get_mark()
    second = clock.get_mark()
    assert second >= first


def test_gas_meter_allows_exactly_limit_ticks() -> None:
    meter = GasMeter(limit=3)
    meter.consume()
    meter.consume()
    meter.consume()
    assert meter.remaining == 0
    with pytest.raises(DeadlineClockExhausted):
        meter.consume()
    assert meter.get_mark() == 3


def test_gas_meter_overdraw_pins_to_limit() -> None:
    meter = GasMeter(limit=5)
    meter.consume(4)
    with pytest.raises(DeadlineClockExhausted):
        meter.consume(2)
    assert meter.remaining == 0


def test_gas_meter_rejects_invalid_inputs() -> None:
    with pytest.raises(NeverThrown):
        GasMeter(limit=0)
    with pytest.raises(NeverThrown):
        GasMeter(limit=True)
    with pytest.raises(NeverThrown):
        GasMeter(limit=2, current=-1)
    meter = GasMeter(limit=2)
    with pytest.raises(NeverThrown):
        meter.consume(0)
