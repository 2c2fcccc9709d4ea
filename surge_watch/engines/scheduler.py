"""
SURGE WATCH — Poll Scheduler
Drives the detection engine on wall-clock aligned boundaries
(every 5 minutes, 3 seconds past the mark by default).
"""
import asyncio
import math
from typing import Awaitable, Callable, Optional
from datetime import datetime, timedelta

from surge_watch.config.settings import MonitorSettings, get_settings
from surge_watch.engines.detection_engine import DetectionEngine
from surge_watch.utils.logger import get_logger
from surge_watch.utils.helpers import utc_now

logger = get_logger("scheduler")


def compute_next_delay(now: datetime, interval_minutes: int = 5, offset_seconds: int = 3) -> timedelta:
    """
    Time until the next trigger instant.

    The minute field is rounded up to the next multiple of
    ``interval_minutes`` with seconds pinned to ``offset_seconds``; if that
    instant is not strictly after ``now`` one more interval is added.
    """
    minutes = math.ceil(now.minute / interval_minutes) * interval_minutes
    next_time = now.replace(minute=0, second=offset_seconds, microsecond=0) + timedelta(minutes=minutes)
    if next_time <= now:
        next_time += timedelta(minutes=interval_minutes)
    return next_time - now


class PollScheduler:
    """Repeating poll task. Survives poll failures; ends only when cancelled."""

    def __init__(
        self,
        engine: DetectionEngine,
        settings: Optional[MonitorSettings] = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.engine = engine
        self.settings = settings or get_settings().monitor
        self._clock = clock
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self.next_run_at: Optional[datetime] = None

    def next_delay(self) -> timedelta:
        now = self._clock()
        delay = compute_next_delay(now, self.settings.poll_interval_minutes, self.settings.poll_offset_seconds)
        self.next_run_at = now + delay
        return delay

    async def run(self) -> None:
        """Wait for the next boundary, poll, repeat."""
        self._running = True
        logger.info("scheduler_started")
        while self._running:
            delay = self.next_delay()
            logger.info("next_check_scheduled", next_run_at=self.next_run_at.isoformat(),
                        wait_seconds=round(delay.total_seconds(), 3))
            await self._sleep(delay.total_seconds())
            if not self._running:
                break

            try:
                await self.engine.poll()
            except Exception as e:
                logger.error("scheduled_poll_error", error=str(e), error_type=type(e).__name__)
        logger.info("scheduler_stopped")

    def start(self) -> asyncio.Task:
        """Launch run() as a background task on the running loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    @property
    def is_running(self) -> bool:
        return self._running
