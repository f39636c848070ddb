# deckscout/scraper/waits.py
"""
Deadline-bounded wait primitives.

Every wait here ends by its max-wait at the latest; callers proceed with
whatever the page shows at that point. Clock and sleep are injectable so
the same code runs against Playwright (``page.wait_for_timeout``) and a fake
clock in tests.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from deckscout.config import STABLE_MAX_WAIT_SECONDS, STABLE_POLL_SECONDS, STABLE_REQUIRED_SECONDS

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], None]


def wait_until(
    predicate: Callable[[], bool],
    timeout: float,
    poll_interval: float,
    clock: Clock = time.monotonic,
    sleep: Sleep = time.sleep,
) -> bool:
    """Poll ``predicate`` until it holds or ``timeout`` seconds pass. Returns whether it held."""
    deadline = clock() + timeout
    while True:
        if predicate():
            return True
        if clock() >= deadline:
            return False
        sleep(poll_interval)


@dataclass(frozen=True)
class StabilityResult:
    changed: bool
    count: int
    timed_out: bool = False


class StabilityDetector:
    """Wait for a live count to stop changing after a load action."""

    def __init__(
        self,
        count_fn: Callable[[], int],
        poll_interval: float = STABLE_POLL_SECONDS,
        quiet_period: float = STABLE_REQUIRED_SECONDS,
        max_wait: float = STABLE_MAX_WAIT_SECONDS,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
    ):
        self.count_fn = count_fn
        self.poll_interval = poll_interval
        self.quiet_period = quiet_period
        self.max_wait = max_wait
        self.clock = clock
        self.sleep = sleep

    def wait(self, baseline: int) -> StabilityResult:
        """
        Return once the count held for ``quiet_period`` or ``max_wait`` elapsed.

        ``changed`` reports whether the final count is above ``baseline``.
        """
        start = self.clock()
        last_count = baseline
        last_change_at = start

        while True:
            self.sleep(self.poll_interval)
            now = self.clock()
            current = self.count_fn()
            if current != last_count:
                last_count = current
                last_change_at = now
            if now - last_change_at >= self.quiet_period:
                return StabilityResult(changed=current > baseline, count=current)
            if now - start >= self.max_wait:
                logger.info("Battle count still changing after %.1fs; continuing with %s", self.max_wait, current)
                return StabilityResult(changed=current > baseline, count=current, timed_out=True)
