"""Recognizer verdicts and the debouncer that turns them into presence events."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from reminisce.schema import Identity

logger = logging.getLogger(__name__)


# ---- Verdicts (one per camera tick) ----
@dataclass(frozen=True)
class NoFace:
    pass


@dataclass(frozen=True)
class Match:
    identity: Identity
    distance: float
    image: bytes = b""


@dataclass(frozen=True)
class Unmatched:
    image: bytes = b""


Verdict = Union[NoFace, Match, Unmatched]


# ---- Events (at most one per tick) ----
@dataclass(frozen=True)
class PersonArrived:
    identity: Identity
    image: bytes = b""


@dataclass(frozen=True)
class PersonUnknownConfirmed:
    image: bytes = b""


@dataclass(frozen=True)
class PersonAbsentTick:
    pass


PresenceEvent = Union[PersonArrived, PersonUnknownConfirmed, PersonAbsentTick]


class PresenceDebouncer:
    """Smooth single-frame verdicts into presence events.

    A known face is reported immediately. An unknown face must be seen on
    more than ``threshold`` consecutive ticks before it is reported, and is
    then reported once per streak.
    """

    def __init__(self, threshold: int = 5) -> None:
        self.threshold = threshold
        self._streak = 0

    @property
    def streak(self) -> int:
        return self._streak

    def reset(self) -> None:
        self._streak = 0

    def feed(self, verdict: Verdict) -> Optional[PresenceEvent]:
        if isinstance(verdict, Match):
            self._streak = 0
            return PersonArrived(verdict.identity, verdict.image)
        if isinstance(verdict, Unmatched):
            self._streak += 1
            if self._streak == self.threshold + 1:
                logger.debug("unknown face confirmed after %d ticks", self._streak)
                return PersonUnknownConfirmed(verdict.image)
            return None
        self._streak = 0
        return PersonAbsentTick()


__all__ = [
    "Match",
    "NoFace",
    "PersonAbsentTick",
    "PersonArrived",
    "PersonUnknownConfirmed",
    "PresenceDebouncer",
    "PresenceEvent",
    "Unmatched",
    "Verdict",
]
