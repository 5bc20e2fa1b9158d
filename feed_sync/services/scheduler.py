"""Periodic update scheduler.

Runs the batch updater every ``interval`` seconds, then lets the
categorizer group new items. Deadlines advance by exactly one interval so
the cadence does not drift; when a fire is late by more than
``drift_threshold`` (e.g. after the machine slept) the schedule is
resynchronized to now instead of firing a burst of catch-up runs.

Updates never overlap: a cycle whose predecessor is still running is
skipped. Errors from the updater or categorizer are logged and the cadence
continues.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from feed_sync.interfaces import Categorizer


logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 10 * 60.0
DEFAULT_DRIFT_THRESHOLD = 30.0


def compute_next_deadline(
    previous: float, now: float, interval: float, drift_threshold: float
) -> float:
    """Next fire time after a fire that was due at ``previous``.

    Args:
        previous: Deadline of the fire that just happened
        now: Actual time of the fire
        interval: Seconds between fires
        drift_threshold: Lateness beyond which the schedule is resynchronized

    Returns:
        ``previous + interval``, or ``now + interval`` if the fire was late
        by more than ``drift_threshold``
    """
    if now - previous > drift_threshold:
        return now + interval
    return previous + interval


class Scheduler:
    """Drives periodic feed updates.

    Args:
        updater: Object with ``update_items()`` and ``is_update_in_progress``
        categorizer: Categorizer run after each successful update
        interval: Seconds between updates
        drift_threshold: Seconds of lateness tolerated before resynchronizing
        clock: Wall-clock time source, in seconds
    """

    def __init__(
        self,
        updater,
        categorizer: Categorizer,
        interval: float = DEFAULT_INTERVAL,
        drift_threshold: float = DEFAULT_DRIFT_THRESHOLD,
        clock: Callable[[], float] = time.time,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        if drift_threshold < 0:
            raise ValueError("drift_threshold must not be negative")

        self.updater = updater
        self.categorizer = categorizer
        self.interval = interval
        self.drift_threshold = drift_threshold
        self._clock = clock
        self.next_at: Optional[float] = None
        self._timer: Optional[asyncio.Task] = None
        self._update_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        """Run one update now and schedule the following ones.

        Must be called from within a running event loop.
        """
        if self.is_running:
            logger.warning("Scheduler already running")
            return

        logger.info(f"Starting scheduler, updating every {self.interval:.0f}s")
        self.trigger_update()

        self.next_at = self._clock() + self.interval
        self._timer = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        """Cancel the pending timer. An update already running is left to finish."""
        if self._timer is not None:
            self._timer.cancel()
            logger.info("Scheduler stopped")
        self._timer = None
        self.next_at = None

    async def _run(self) -> None:
        while True:
            delay = max(0.0, self.next_at - self._clock())
            await asyncio.sleep(delay)
            self._fire()

    def _fire(self) -> None:
        now = self._clock()
        drift = now - self.next_at

        self.trigger_update()

        if drift > self.drift_threshold:
            logger.warning(
                f"Significant drift detected ({drift:.1f}s); resynchronizing schedule"
            )
        self.next_at = compute_next_deadline(
            self.next_at, now, self.interval, self.drift_threshold
        )

    def trigger_update(self) -> Optional[asyncio.Task]:
        """Start an update unless one is already running.

        Returns:
            The update task, or None if the cycle was skipped
        """
        update_running = self._update_task is not None and not self._update_task.done()
        if update_running or self.updater.is_update_in_progress:
            logger.warning("Update already in progress, skipping this update cycle")
            return None

        self._update_task = asyncio.get_running_loop().create_task(
            self._update_and_categorize()
        )
        return self._update_task

    async def _update_and_categorize(self) -> None:
        try:
            await self.updater.update_items()

            if self.categorizer.is_categorization_in_progress:
                logger.debug("Categorization already in progress, skipping categorization")
                return

            logger.debug("Feed update completed, starting item categorization")
            groups = await self.categorizer.categorize_uncategorized()
            if groups:
                logger.info(
                    f"Item categorization completed after feed update: {len(groups)} groups"
                )
        except Exception:
            logger.exception("Update or categorization failed")
