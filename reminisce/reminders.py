"""Periodic reminders spoken only while the patient is normally awake."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, time
from typing import Callable, Optional

from .config import ConfigHolder, parse_clock

logger = logging.getLogger(__name__)


def within_window(now: time, wake: time, sleep: time) -> bool:
    """True when ``now`` falls in [wake, sleep); handles windows past midnight."""
    if wake == sleep:
        return True
    if wake < sleep:
        return wake <= now < sleep
    return now >= wake or now < sleep


class ReminderScheduler:
    def __init__(
        self,
        settings: ConfigHolder,
        notify: Callable[[str], None],
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._settings = settings
        self._notify = notify
        self._clock = clock
        self.fired = 0

    def tick(self, now: Optional[datetime] = None) -> bool:
        cfg = self._settings.current
        now = now or self._clock()
        wake = time(*parse_clock(cfg.wake_time))
        sleep = time(*parse_clock(cfg.sleep_time))
        if not within_window(now.time(), wake, sleep):
            logger.debug("[reminder] %s outside %s-%s", now.strftime("%H:%M"), cfg.wake_time, cfg.sleep_time)
            return False
        try:
            self._notify(cfg.reminder_message)
        except Exception:
            logger.exception("[reminder] notify failed")
            return False
        self.fired += 1
        logger.info("[reminder] %s", cfg.reminder_message)
        return True

    async def run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            interval = self._settings.current.reminder_interval_s
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                self.tick()


__all__ = ["ReminderScheduler", "within_window"]
