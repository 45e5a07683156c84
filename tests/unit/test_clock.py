"""Unit tests for time sources."""

from datetime import UTC, datetime, timedelta

import pytest

from travia.domain.clock import FixedClock, SystemClock, elapsed_seconds, ensure_aware
from travia.domain.errors import InvalidArgument

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def test_fixed_clock_moves_forward():
    clock = FixedClock(T0)

    clock.advance(90)

    assert clock.now() == T0 + timedelta(seconds=90)


@pytest.mark.parametrize("seconds", [-1, float("nan")])
def test_fixed_clock_never_moves_back(seconds):
    with pytest.raises(InvalidArgument):
        FixedClock(T0).advance(seconds)


def test_system_clock_is_utc():
    assert SystemClock().now().tzinfo is UTC


def test_naive_datetimes_are_treated_as_utc():
    assert ensure_aware(datetime(2024, 1, 1)) == T0
    assert elapsed_seconds(datetime(2024, 1, 1), T0 + timedelta(minutes=1)) == 60.0


def test_elapsed_is_negative_for_future_timestamps():
    assert elapsed_seconds(T0 + timedelta(seconds=5), T0) == -5.0
