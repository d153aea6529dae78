"""Tests for AdaptiveThrottle."""

from __future__ import annotations

import pytest

from tickerdesk.services import AdaptiveThrottle, DecreaseMode, ThrottleConfig


def linear(**overrides) -> AdaptiveThrottle:
    params = dict(
        name="test",
        initial_delay=0.5,
        min_delay=0.1,
        max_delay=10.0,
        backoff_multiplier=2.0,
        mode=DecreaseMode.LINEAR,
        step=0.1,
    )
    params.update(overrides)
    return AdaptiveThrottle(ThrottleConfig(**params))


class TestLinearThrottle:
    """Tests for linear recovery."""

    def test_rate_limit_then_three_successes(self):
        """500ms -> 429 -> 1000ms -> three successes -> 700ms."""
        throttle = linear()

        throttle.record_rate_limited()
        assert throttle.delay == pytest.approx(1.0)

        for _ in range(3):
            throttle.record_success()
        assert throttle.delay == pytest.approx(0.7)

    def test_success_floors_at_min_delay(self):
        throttle = linear()
        for _ in range(20):
            throttle.record_success()
        assert throttle.delay == pytest.approx(0.1)

    def test_rate_limits_cap_at_max_delay(self):
        """Consecutive 429s never decrease the delay and stop at max_delay."""
        throttle = linear()
        previous = throttle.delay
        for _ in range(10):
            throttle.record_rate_limited()
            assert throttle.delay >= previous
            previous = throttle.delay
        assert throttle.delay == pytest.approx(10.0)

    def test_successes_are_non_increasing(self):
        throttle = linear(initial_delay=5.0)
        previous = throttle.delay
        for _ in range(60):
            throttle.record_success()
            assert throttle.delay <= previous
            previous = throttle.delay

    def test_other_failures_leave_delay_unchanged(self):
        throttle = linear()
        throttle.record_failure()
        assert throttle.delay == pytest.approx(0.5)


class TestStreakGate:
    """Tests for success_threshold."""

    def test_decrease_only_after_threshold(self):
        throttle = linear(initial_delay=1.0, step=0.05, success_threshold=5)

        for _ in range(4):
            throttle.record_success()
        assert throttle.delay == pytest.approx(1.0)

        throttle.record_success()
        assert throttle.delay == pytest.approx(0.95)
        assert throttle.consecutive_successes == 0

    def test_rate_limit_resets_streak(self):
        throttle = linear(initial_delay=1.0, success_threshold=3)
        throttle.record_success()
        throttle.record_success()
        throttle.record_rate_limited()
        assert throttle.consecutive_successes == 0

        throttle.record_success()
        throttle.record_success()
        assert throttle.delay == pytest.approx(2.0)


class TestMultiplicativeThrottle:
    """Tests for multiplicative recovery."""

    def test_decrease_factor(self):
        throttle = AdaptiveThrottle(
            ThrottleConfig(
                initial_delay=20.0,
                min_delay=10.0,
                max_delay=120.0,
                backoff_multiplier=1.1,
                mode=DecreaseMode.MULTIPLICATIVE,
                decrease_factor=0.5,
            )
        )
        throttle.record_success()
        assert throttle.delay == pytest.approx(10.0)
        throttle.record_success()
        assert throttle.delay == pytest.approx(10.0)

        throttle.record_rate_limited()
        assert throttle.delay == pytest.approx(11.0)


class TestRisingFloor:
    """Tests for min_delay_increment."""

    def test_floor_rises_per_rate_limit_up_to_cap(self):
        throttle = linear(
            initial_delay=0.01,
            min_delay=0.01,
            min_delay_increment=0.01,
            max_min_delay=0.03,
        )
        for _ in range(5):
            throttle.record_rate_limited()
        assert throttle.min_delay == pytest.approx(0.03)

        for _ in range(1000):
            throttle.record_success()
        assert throttle.delay == pytest.approx(0.03)

    def test_retry_after_is_respected(self):
        throttle = linear()
        throttle.record_rate_limited(retry_after=3.0)
        assert throttle.delay == pytest.approx(3.0)


class TestThrottleConfig:
    """Tests for configuration validation."""

    def test_rejects_inverted_bounds(self):
        with pytest.raises(ValueError):
            ThrottleConfig(min_delay=5.0, max_delay=1.0)

    def test_rejects_bad_decrease_factor(self):
        with pytest.raises(ValueError):
            ThrottleConfig(decrease_factor=1.5)

    def test_stats(self):
        throttle = linear()
        throttle.record_rate_limited()
        stats = throttle.get_stats()
        assert stats["name"] == "test"
        assert stats["rate_limited_count"] == 1
