# deckscout/scraper/scroll.py
"""
Drive an infinite-scroll battle list to the end of its loaded content.

The driver steps the viewport down, and whenever the loading indicator is
on-screen it parks the indicator in view and waits for it to go away before
moving on. Every wait is bounded; a whole pass is bounded by a total budget.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from deckscout.config import (
    LOADER_MAX_WAIT_SECONDS,
    LOADER_POLL_SECONDS,
    SCROLL_BOTTOM_TOLERANCE_PX,
    SCROLL_DELAY_SECONDS,
    SCROLL_MAX_TOTAL_SECONDS,
    SCROLL_SETTLE_SECONDS,
    SCROLL_STEP_PX,
)
from .waits import Clock, Sleep, wait_until

logger = logging.getLogger(__name__)

REASON_BOTTOM = "bottom"
REASON_LOADER_TIMEOUT = "loader_timeout"
REASON_BUDGET = "budget"


@dataclass(frozen=True)
class ScrollMetrics:
    scroll_y: float
    viewport_height: float
    document_height: float

    @property
    def bottom_y(self) -> float:
        return max(0.0, self.document_height - self.viewport_height)


@dataclass(frozen=True)
class ScrollOutcome:
    reason: str
    steps: int
    elapsed: float


class ScrollDriver:
    """
    Scroll a page until content stops arriving.

    ``page`` needs ``scroll_metrics()``, ``visible_loader_top()`` (viewport
    offset of an on-screen loader, or None) and ``scroll_to(y)``.
    """

    def __init__(
        self,
        page,
        step_px: int = SCROLL_STEP_PX,
        step_delay: float = SCROLL_DELAY_SECONDS + SCROLL_SETTLE_SECONDS,
        loader_poll: float = LOADER_POLL_SECONDS,
        loader_max_wait: float = LOADER_MAX_WAIT_SECONDS,
        max_total: float = SCROLL_MAX_TOTAL_SECONDS,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
    ):
        self.page = page
        self.step_px = step_px
        self.step_delay = step_delay
        self.loader_poll = loader_poll
        self.loader_max_wait = loader_max_wait
        self.max_total = max_total
        self.clock = clock
        self.sleep = sleep

    def wait_for_loader_gone(self) -> bool:
        return wait_until(
            lambda: self.page.visible_loader_top() is None,
            timeout=self.loader_max_wait,
            poll_interval=self.loader_poll,
            clock=self.clock,
            sleep=self.sleep,
        )

    def scroll_to_bottom(self) -> ScrollOutcome:
        start = self.clock()
        steps = 0

        while True:
            metrics = self.page.scroll_metrics()
            target = metrics.bottom_y
            loader_top = self.page.visible_loader_top()

            if metrics.scroll_y >= target - SCROLL_BOTTOM_TOLERANCE_PX:
                if loader_top is None:
                    self.page.scroll_to(target)
                    self.sleep(0.35)
                    return ScrollOutcome(REASON_BOTTOM, steps, self.clock() - start)
                if not self._park_loader(metrics, loader_top, 0.7, settle=0.35):
                    return self._give_up(start, steps)
            elif loader_top is not None:
                if not self._park_loader(metrics, loader_top, 0.75, settle=0.3):
                    return self._give_up(start, steps)
            else:
                self.page.scroll_to(min(target, metrics.scroll_y + self.step_px))
                steps += 1
                self.sleep(self.step_delay)

            if self.clock() - start > self.max_total:
                logger.warning("Scroll budget of %.0fs exhausted after %s steps", self.max_total, steps)
                return ScrollOutcome(REASON_BUDGET, steps, self.clock() - start)

    def _park_loader(self, metrics: ScrollMetrics, loader_top: float, fraction: float, settle: float) -> bool:
        """Bring the loader into view and wait for it to disappear."""
        desired = max(0.0, metrics.scroll_y + loader_top - int(metrics.viewport_height * fraction))
        self.page.scroll_to(desired)
        self.sleep(settle)
        if not self.wait_for_loader_gone():
            return False
        self.sleep(0.2)
        return True

    def _give_up(self, start: float, steps: int) -> ScrollOutcome:
        logger.warning("Loading indicator still visible after %.1fs; treating page as settled", self.loader_max_wait)
        self.page.scroll_to(self.page.scroll_metrics().bottom_y)
        self.sleep(0.6)
        return ScrollOutcome(REASON_LOADER_TIMEOUT, steps, self.clock() - start)
