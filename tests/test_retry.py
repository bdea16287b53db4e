"""Tests for backoff delay calculation."""

import random

import pytest

from resilient_qa.executor.retry import calculate_backoff_delay
from resilient_qa.models.config import ExecutorConfig


class TestCalculateBackoffDelay:
    """Tests for calculate_backoff_delay."""

    def test_fixed_delay_without_exponential(self):
        cfg = ExecutorConfig(initial_retry_delay_ms=700, use_exponential_backoff=False)
        assert [calculate_backoff_delay(k, cfg) for k in range(1, 5)] == [700] * 4

    def test_delays_stay_within_bounds(self):
        cfg = ExecutorConfig(initial_retry_delay_ms=500, max_retry_delay_ms=10000)
        rng = random.Random(42)
        for k in range(1, 11):
            for _ in range(200):
                delay = calculate_backoff_delay(k, cfg, rng)
                assert 500 <= delay <= 10000

    def test_jitter_range_around_base(self):
        cfg = ExecutorConfig(initial_retry_delay_ms=500, max_retry_delay_ms=10000)
        rng = random.Random(7)
        # Third retry: base 2000ms, jitter +/-25%
        delays = [calculate_backoff_delay(3, cfg, rng) for _ in range(500)]
        assert min(delays) >= 1500
        assert max(delays) <= 2500
        assert len(set(delays)) > 1

    def test_capped_at_max(self):
        cfg = ExecutorConfig(initial_retry_delay_ms=1000, max_retry_delay_ms=4000)
        rng = random.Random(1)
        assert all(calculate_backoff_delay(10, cfg, rng) <= 4000 for _ in range(100))

    def test_zero_jitter_midpoint(self):
        cfg = ExecutorConfig(initial_retry_delay_ms=500, max_retry_delay_ms=10000)

        class Midpoint:
            def random(self):
                return 0.5

        assert calculate_backoff_delay(1, cfg, Midpoint()) == 500
        assert calculate_backoff_delay(2, cfg, Midpoint()) == 1000
        assert calculate_backoff_delay(4, cfg, Midpoint()) == 4000

    def test_attempt_must_be_positive(self):
        with pytest.raises(ValueError):
            calculate_backoff_delay(0, ExecutorConfig())
