from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Sequence


MAX_EXCERPT_CHARS = 500


class Emotion(str, Enum):
    HAPPY = "Happy"
    SAD = "Sad"
    ANGRY = "Angry"
    NEUTRAL = "Neutral"
    EXCITED = "Excited"

    @classmethod
    def parse(cls, value: Any) -> "Emotion":
        """Map free-form model output onto the enum; anything unknown is Neutral."""
        if isinstance(value, Emotion):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.NEUTRAL


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class MemoryEntry:
    """One consolidated conversation. Entries are never edited once stored."""

    summary: str
    emotion: Emotion = Emotion.NEUTRAL
    transcript_excerpt: str = ""
    timestamp: str = field(default_factory=_utcnow_iso)

    def to_item(self) -> Dict[str, Any]:
        return {
            "date": self.timestamp,
            "summary": self.summary,
            "emotion": self.emotion.value,
            "transcript": self.transcript_excerpt[:MAX_EXCERPT_CHARS],
        }

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "MemoryEntry":
        return cls(
            summary=str(item.get("summary") or ""),
            emotion=Emotion.parse(item.get("emotion")),
            transcript_excerpt=str(item.get("transcript") or ""),
            timestamp=str(item.get("date") or _utcnow_iso()),
        )


@dataclass(slots=True)
class Identity:
    name: str
    embedding: List[float] = field(default_factory=list)
    bio: str = ""
    contact: str = ""
    history: List[MemoryEntry] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    @property
    def last_emotion(self) -> Emotion:
        if not self.history:
            return Emotion.NEUTRAL
        return self.history[-1].emotion

    def to_item(self) -> Dict[str, Any]:
        # DynamoDB rejects Python floats.
        return {
            "name": self.name,
            "bio": self.bio,
            "contact": self.contact,
            "embedding": [Decimal(str(v)) for v in self.embedding],
            "history": [entry.to_item() for entry in self.history],
            "tags": list(self.tags),
        }

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "Identity":
        return cls(
            name=str(item["name"]),
            embedding=[float(v) for v in item.get("embedding") or []],
            bio=str(item.get("bio") or ""),
            contact=str(item.get("contact") or ""),
            history=[
                MemoryEntry.from_item(raw)
                for raw in item.get("history") or []
                if isinstance(raw, dict)
            ],
            tags=[str(t) for t in item.get("tags") or []],
        )


@dataclass(frozen=True, slots=True)
class ConsolidationResult:
    summary: str
    emotion: Emotion
    tags: tuple[str, ...] = ()


def initial_history(bio: str) -> List[MemoryEntry]:
    """History seeded at enrollment so the first greeting has something to say."""
    return [MemoryEntry(summary=f"Initial Bio: {bio}", emotion=Emotion.NEUTRAL)]


def merge_tags(new: Sequence[str], existing: Sequence[str], limit: int) -> List[str]:
    """New tags first, then existing ones, deduplicated case-insensitively."""
    merged: List[str] = []
    seen: set[str] = set()
    for raw in list(new) + list(existing):
        tag = str(raw).strip()
        if not tag or tag.lower() in seen:
            continue
        seen.add(tag.lower())
        merged.append(tag)
    if limit > 0:
        merged = merged[:limit]
    return merged


def merge_memory(
    identity: Identity,
    entry: MemoryEntry,
    tags: Sequence[str] = (),
    *,
    max_history: int,
    max_tags: int,
) -> Identity:
    """Return a copy of ``identity`` with ``entry`` appended and tags merged.

    History is append-only; once it grows past ``max_history`` the oldest
    entries are evicted. ``max_history <= 0`` keeps everything.
    """
    history = list(identity.history) + [entry]
    if max_history > 0 and len(history) > max_history:
        history = history[-max_history:]
    return replace(
        identity,
        history=history,
        tags=merge_tags(tags, identity.tags, max_tags),
    )


__all__ = [
    "ConsolidationResult",
    "Emotion",
    "Identity",
    "MemoryEntry",
    "initial_history",
    "merge_memory",
    "merge_tags",
]
