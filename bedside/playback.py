"""Single-utterance speech output."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PlaybackArbiter:
    """Ensure at most one utterance is synthesising or playing at a time.

    ``synthesizer`` exposes a blocking ``synthesize(text) -> bytes`` and runs
    off-loop. ``player`` exposes ``async play(bytes)`` and ``stop()``. While
    speaking, the transcriber is paused; when an utterance finishes normally
    it is resumed if ``should_resume()`` says someone is still being tracked.
    """

    def __init__(
        self,
        synthesizer,
        player,
        *,
        transcriber=None,
        should_resume: Callable[[], bool] = lambda: False,
    ) -> None:
        self._synthesizer = synthesizer
        self._player = player
        self._transcriber = transcriber
        self._should_resume = should_resume
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self.spoken: int = 0

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def speak(self, text: str) -> Optional[asyncio.Task]:
        text = (text or "").strip()
        if not text:
            return None
        self.stop()
        self._generation += 1
        self._task = asyncio.create_task(self._run(text, self._generation))
        return self._task

    async def _run(self, text: str, generation: int) -> None:
        if self._transcriber is not None:
            self._transcriber.pause()
        finished = False
        try:
            audio = await asyncio.to_thread(self._synthesizer.synthesize, text)
            if generation != self._generation:
                logger.debug("[speech] dropping superseded audio for %r", text)
                return
            await self._player.play(audio)
            self.spoken += 1
            finished = True
            logger.info("[speech] %s", text)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("[speech] synthesis or playback failed, skipping: %s", exc)
            finished = True
        finally:
            if finished and generation == self._generation:
                if self._transcriber is not None and self._should_resume():
                    self._transcriber.resume()

    def stop(self) -> None:
        """Cut off whatever is speaking; safe to call repeatedly."""
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        self._player.stop()
        if self._transcriber is not None:
            self._transcriber.resume()


__all__ = ["PlaybackArbiter"]
