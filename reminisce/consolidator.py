"""Turn a finished conversation into a structured memory."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

from .schema import ConsolidationResult, Emotion

logger = logging.getLogger(__name__)

MAX_RESULT_TAGS = 5


class ConsolidationError(RuntimeError):
    """The model reply could not be turned into a memory."""


def parse_consolidation(raw: Mapping[str, Any]) -> ConsolidationResult:
    summary = str(raw.get("summary") or "").strip()
    if not summary:
        raise ConsolidationError("model reply has no summary")
    tags_raw = raw.get("tags") or []
    if isinstance(tags_raw, str):
        tags_raw = [t for t in tags_raw.split(",")]
    tags = tuple(str(t).strip() for t in tags_raw if str(t).strip())[:MAX_RESULT_TAGS]
    return ConsolidationResult(
        summary=summary,
        emotion=Emotion.parse(raw.get("emotion")),
        tags=tags,
    )


class MemoryConsolidator:
    """Summarise a transcript with the language model.

    This is a pure transformation: it reads nothing from the session and
    writes nothing anywhere. Callers decide where the result goes.
    """

    def __init__(self, llm) -> None:
        self._llm = llm

    async def consolidate(self, name: str, transcript: str) -> ConsolidationResult:
        try:
            raw = await asyncio.to_thread(self._llm.summarize, name=name, transcript=transcript)
        except ValueError as exc:
            raise ConsolidationError(f"unusable model reply: {exc}") from exc
        result = parse_consolidation(raw)
        logger.debug("consolidated %s: emotion=%s tags=%s", name, result.emotion.value, result.tags)
        return result


__all__ = ["ConsolidationError", "MemoryConsolidator", "parse_consolidation"]
