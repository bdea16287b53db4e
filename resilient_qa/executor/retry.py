"""Backoff schedule for retried tool attempts."""

from __future__ import annotations

import random
from typing import Optional

from resilient_qa.models.config import ExecutorConfig

JITTER_FRACTION = 0.25


def calculate_backoff_delay(
    retry_attempt: int,
    config: ExecutorConfig,
    rng: Optional[random.Random] = None,
) -> int:
    """Delay in milliseconds before retry number ``retry_attempt`` (1-indexed).

    Exponential mode doubles from the initial delay, caps at the maximum,
    applies uniform +/-25% jitter, then clamps to [initial, max]. Otherwise
    the initial delay is used unchanged.
    """
    if retry_attempt < 1:
        raise ValueError(f"retry_attempt must be >= 1 (got {retry_attempt})")

    initial = config.initial_retry_delay_ms
    if not config.use_exponential_backoff:
        return initial

    rng = rng or random
    base = min(initial * 2 ** (retry_attempt - 1), config.max_retry_delay_ms)
    jitter = base * JITTER_FRACTION * (2 * rng.random() - 1)
    delay = int(base + jitter)
    return max(initial, min(delay, config.max_retry_delay_ms))
