"""Tests for clocks and duration conversion."""

import pytest

from callspine.core.clock import (
    NANOS_PER_SECOND,
    Clock,
    FakeClock,
    SystemClock,
    to_nanos,
    to_seconds,
)


class TestConversion:
    """Tests for to_nanos / to_seconds."""

    def test_to_nanos(self):
        assert to_nanos(1) == NANOS_PER_SECOND
        assert to_nanos(0.002) == 2_000_000

    def test_to_nanos_rounds(self):
        # 0.1 + 0.2 is not exactly 0.3 as a float
        assert to_nanos(0.1 + 0.2) == 300_000_000

    def test_to_seconds(self):
        assert to_seconds(1_500_000_000) == 1.5


class TestSystemClock:
    """Tests for SystemClock."""

    def test_is_clock(self):
        assert isinstance(SystemClock(), Clock)

    def test_monotonic(self):
        clock = SystemClock()
        first = clock.nanos()
        assert clock.nanos() >= first


class TestFakeClock:
    """Tests for FakeClock."""

    def test_starts_at_zero(self):
        assert FakeClock().nanos() == 0

    def test_custom_start(self):
        assert FakeClock(start_nanos=42).nanos() == 42

    def test_advance(self):
        clock = FakeClock()
        clock.advance(0.002)
        clock.advance_nanos(5)
        assert clock.nanos() == 2_000_005

    def test_does_not_move_on_its_own(self):
        clock = FakeClock()
        assert clock.nanos() == clock.nanos()

    def test_cannot_go_backwards(self):
        with pytest.raises(ValueError):
            FakeClock().advance_nanos(-1)

    def test_is_clock(self):
        assert isinstance(FakeClock(), Clock)
