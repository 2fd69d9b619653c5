from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .schema import Identity

logger = logging.getLogger(__name__)

RECENT_HISTORY = 3


def fallback_greeting(name: str) -> str:
    return f"Look, it's {name}."


class Greeter:
    """Build the spoken greeting for a recognised visitor.

    Never raises: when the store or the model fails, the templated
    ``Look, it's <name>.`` line is returned instead.
    """

    def __init__(self, llm, store=None) -> None:
        self._llm = llm
        self._store = store

    async def _fresh(self, identity: Identity) -> Identity:
        if self._store is None:
            return identity
        try:
            stored: Optional[Identity] = await asyncio.to_thread(self._store.get, identity.name)
        except Exception as exc:
            logger.warning("Could not refresh %s from the store: %s", identity.name, exc)
            return identity
        return stored or identity

    async def greet(self, identity: Identity, image: bytes | None = None) -> str:
        person = await self._fresh(identity)
        try:
            text = await asyncio.to_thread(
                self._llm.greet,
                name=person.name,
                bio=person.bio,
                history=person.history[-RECENT_HISTORY:],
                last_mood=person.last_emotion.value,
                image_jpeg=image,
            )
        except Exception as exc:
            logger.warning("Greeting failed for %s, using fallback: %s", person.name, exc)
            return fallback_greeting(person.name)
        return text or fallback_greeting(person.name)


__all__ = ["Greeter", "fallback_greeting"]
