"""
Request pacing shared by every unit of work: a global rate limit and a
per-request random delay.
"""

import asyncio
import logging
import random
import time
from typing import Optional, Tuple

MICROSECONDS_PER_SECOND = 1_000_000

logger = logging.getLogger(__name__)


def parse_random_delay(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    Parse a ``MIN:MAX`` millisecond range.

    Returns None (and logs a warning) for anything malformed, including
    MAX < MIN.
    """
    if not value:
        return None

    parts = value.split(':')
    if len(parts) != 2:
        logger.warning(f"Invalid --random-delay format. Expected MIN:MAX. Got: {value}")
        return None

    try:
        min_delay, max_delay = int(parts[0]), int(parts[1])
    except ValueError:
        logger.warning(
            f"Invalid --random-delay format: Could not parse min/max values. Got: {value}"
        )
        return None

    if min_delay < 0 or max_delay < min_delay:
        logger.warning(
            f"Invalid --random-delay format: MAX must be greater than or equal to MIN. Got: {value}"
        )
        return None

    return min_delay, max_delay


class Throttle:
    """
    Holds the process-wide pacing state.

    ``wait_for_slot`` serializes the check-sleep-stamp sequence behind a lock so
    request starts are spaced at least ``1 / rate_limit`` seconds apart. The lock
    is released before the caller sends anything.
    """

    def __init__(self, rate_limit: Optional[int] = None, random_delay: Optional[str] = None):
        self.rate_limit = rate_limit
        self.jitter_range = parse_random_delay(random_delay)
        self.min_interval_micros = (
            MICROSECONDS_PER_SECOND // rate_limit if rate_limit else 0
        )
        self._lock = asyncio.Lock()
        self._last_request = time.monotonic()

    @property
    def last_request(self) -> float:
        return self._last_request

    async def apply_jitter(self) -> float:
        """Sleep a random duration within the configured range; returns seconds slept."""
        if self.jitter_range is None:
            return 0.0

        delay_ms = random.randint(*self.jitter_range)
        await asyncio.sleep(delay_ms / 1000)
        return delay_ms / 1000

    async def wait_for_slot(self):
        """Block until the next request start is allowed under the rate limit."""
        if not self.rate_limit:
            return

        async with self._lock:
            elapsed_micros = (time.monotonic() - self._last_request) * MICROSECONDS_PER_SECOND
            if elapsed_micros < self.min_interval_micros:
                await asyncio.sleep((self.min_interval_micros - elapsed_micros) / MICROSECONDS_PER_SECOND)
            self._last_request = max(self._last_request, time.monotonic())
