from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Optional, Set

from reminisce.config import ConfigHolder
from reminisce.consolidator import ConsolidationError
from reminisce.schema import ConsolidationResult, MemoryEntry

logger = logging.getLogger(__name__)


class ConsolidationQueue:
    """Runs memory consolidations in the background.

    Work for one identity is chained so its memories are stored in the order
    the conversations ended; different identities run side by side. Nothing
    here touches session state: results reach the orchestrator only through
    ``on_result(token, result)``.
    """

    def __init__(
        self,
        consolidator,
        store,
        settings: ConfigHolder,
        *,
        on_result: Optional[Callable[[object, ConsolidationResult], None]] = None,
    ) -> None:
        self._consolidator = consolidator
        self._store = store
        self._settings = settings
        self._on_result = on_result
        self._tails: Dict[str, asyncio.Task] = {}
        self._pending: Set[asyncio.Task] = set()
        self.submitted = 0
        self.skipped = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(self, token, transcript: str) -> Optional[asyncio.Task]:
        minimum = self._settings.current.min_transcript_chars
        text = (transcript or "").strip()
        if len(text) <= minimum:
            self.skipped += 1
            logger.info(
                "[memory] skipping %s: transcript too short (%d <= %d chars)",
                token.name,
                len(text),
                minimum,
            )
            return None

        previous = self._tails.get(token.name)
        task = asyncio.create_task(self._run(token, text, previous))
        self._tails[token.name] = task
        self._pending.add(task)
        task.add_done_callback(lambda t, name=token.name: self._forget(name, t))
        self.submitted += 1
        logger.info("[memory] queued consolidation for %s (%d chars)", token.name, len(text))
        return task

    def _forget(self, name: str, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if self._tails.get(name) is task:
            del self._tails[name]

    async def _run(self, token, transcript: str, previous: Optional[asyncio.Task]) -> None:
        if previous is not None:
            # Ordering only; the earlier job's outcome is its own business.
            await asyncio.wait([previous])
        try:
            result = await self._consolidator.consolidate(token.name, transcript)
        except ConsolidationError as exc:
            logger.warning("[memory] dropped update for %s: %s", token.name, exc)
            return
        except Exception as exc:
            logger.warning("[memory] summarization failed for %s, dropping: %s", token.name, exc)
            return

        cfg = self._settings.current
        entry = MemoryEntry(
            summary=result.summary,
            emotion=result.emotion,
            transcript_excerpt=transcript,
        )
        try:
            stored = await asyncio.to_thread(
                self._store.append_memory,
                token.name,
                entry,
                result.tags,
                max_history=cfg.history_limit,
                max_tags=cfg.max_tags,
            )
        except Exception as exc:
            logger.warning("[memory] could not store memory for %s: %s", token.name, exc)
            return
        if stored is None:
            return
        if self._on_result is not None:
            self._on_result(token, result)

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for outstanding work; returns False if ``timeout`` elapsed first."""
        if not self._pending:
            return True
        done, not_done = await asyncio.wait(set(self._pending), timeout=timeout)
        if not_done:
            logger.warning("[memory] %d consolidations still running at shutdown", len(not_done))
        return not not_done


__all__ = ["ConsolidationQueue"]
