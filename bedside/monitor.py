"""Fixed-rate camera polling feeding the session orchestrator."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from reminisce.config import ConfigHolder

from .presence import NoFace, Verdict

logger = logging.getLogger(__name__)


class PresenceMonitor:
    """Poll the camera every ``tick_interval_s`` and classify what it sees.

    Recognition can take longer than one tick. Only one poll is ever in
    flight; ticks that arrive while it is still running are skipped rather
    than queued, so verdicts reach the orchestrator in capture order.
    """

    def __init__(self, camera, recognizer, orchestrator, settings: ConfigHolder) -> None:
        self._camera = camera
        self._recognizer = recognizer
        self._orchestrator = orchestrator
        self._settings = settings
        self._inflight: Optional[asyncio.Task] = None
        self.polls = 0
        self.skipped_ticks = 0

    @property
    def busy(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def tick(self) -> Optional[asyncio.Task]:
        if self.busy:
            self.skipped_ticks += 1
            return None
        self._inflight = asyncio.create_task(self._poll())
        return self._inflight

    def _classify(self) -> Verdict:
        frame = self._camera.read()
        return self._recognizer.detect(frame)

    async def _poll(self) -> None:
        self.polls += 1
        try:
            verdict = await asyncio.to_thread(self._classify)
        except Exception as exc:
            logger.debug("[monitor] sensor or recognition failure, treating as no face: %s", exc)
            verdict = NoFace()
        try:
            self._orchestrator.observe(verdict)
        except Exception:
            logger.exception("[monitor] orchestrator rejected %s", type(verdict).__name__)

    async def run(self, stop_event: asyncio.Event) -> None:
        logger.info("[monitor] started")
        try:
            while not stop_event.is_set():
                self.tick()
                interval = self._settings.current.tick_interval_s
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            if self._inflight is not None and not self._inflight.done():
                await asyncio.wait([self._inflight])
            self._orchestrator.deactivate()
            logger.info("[monitor] stopped")


__all__ = ["PresenceMonitor"]
