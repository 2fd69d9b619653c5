"""Shared fakes for the session tests.

None of these touch a camera, microphone, speaker or AWS; they record what
the code under test asked of them so tests can assert on ordering.
"""
from __future__ import annotations

import asyncio
import time
from types import SimpleNamespace
from typing import Callable, Dict, List, Optional

import pytest

from bedside.orchestrator import SessionOrchestrator
from reminisce.config import ConfigHolder, RuntimeConfig
from reminisce.schema import (
    ConsolidationResult,
    Emotion,
    Identity,
    MemoryEntry,
    initial_history,
    merge_memory,
)


def person(name: str, *, mood: Emotion = Emotion.NEUTRAL) -> Identity:
    return Identity(
        name=name,
        embedding=[0.1] * 128,
        bio=f"{name} is family",
        history=[MemoryEntry(summary=f"Initial Bio: {name} is family", emotion=mood)],
    )


async def eventually(predicate: Callable[[], bool], timeout: float = 1.0) -> bool:
    """Poll ``predicate`` on the loop until it holds or ``timeout`` passes."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.005)
    return predicate()


class FakeTranscriber:
    def __init__(self) -> None:
        self.calls: List[str] = []
        self.open = False
        self.overlapped = False
        self.committed = ""
        self.interim = ""
        self.paused = False
        self.stop_delay = 0.0
        self.start_failures = 0

    async def start(self) -> None:
        self.calls.append("start")
        if self.start_failures:
            self.start_failures -= 1
            raise ConnectionError("transcribe endpoint unreachable")
        if self.open:
            self.overlapped = True
        await asyncio.sleep(0)
        self.open = True
        self.committed = ""
        self.interim = ""

    async def stop(self) -> str:
        self.calls.append("stop")
        if not self.open:
            return ""
        await asyncio.sleep(self.stop_delay)
        self.open = False
        return self.committed

    def say(self, text: str) -> None:
        self.committed = f"{self.committed} {text}".strip()

    @property
    def live(self) -> str:
        return f"{self.committed} {self.interim}".strip()

    def snapshot(self) -> str:
        return self.committed or self.live

    def abort(self) -> None:
        self.calls.append("abort")
        self.open = False

    def reset(self) -> None:
        self.committed = ""
        self.interim = ""

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False


class FakeSynthesizer:
    def __init__(self) -> None:
        self.texts: List[str] = []
        self.fail = False
        self.delay = 0.0

    def synthesize(self, text: str) -> bytes:
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise RuntimeError("polly unavailable")
        self.texts.append(text)
        return f"audio:{text}".encode()


class FakePlayer:
    def __init__(self, duration: float = 0.0) -> None:
        self.duration = duration
        self.played: List[bytes] = []
        self.completed: List[bytes] = []
        self.stops = 0

    async def play(self, data: bytes) -> bool:
        self.played.append(data)
        await asyncio.sleep(self.duration)
        self.completed.append(data)
        return True

    def stop(self) -> None:
        self.stops += 1


class FakeGreeter:
    def __init__(self) -> None:
        self.calls: List[str] = []
        self.delay = 0.0
        self.fail = False

    async def greet(self, identity: Identity, image: bytes | None = None) -> str:
        self.calls.append(identity.name)
        await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("model down")
        return f"Look, it's {identity.name}."


class FakeConsolidator:
    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.fail = False
        self.delays: Dict[str, List[float]] = {}

    async def consolidate(self, name: str, transcript: str) -> ConsolidationResult:
        self.calls.append((name, transcript))
        pending = self.delays.get(name)
        if pending:
            await asyncio.sleep(pending.pop(0))
        if self.fail:
            raise RuntimeError("summarizer offline")
        return ConsolidationResult(summary=transcript, emotion=Emotion.HAPPY, tags=("family",))


class FakeStore:
    def __init__(self, *identities: Identity) -> None:
        self.items: Dict[str, Identity] = {i.name: i for i in identities}
        self.created: List[str] = []

    def get(self, name: str) -> Optional[Identity]:
        return self.items.get(name)

    def create(self, identity: Identity) -> Identity:
        if identity.name in self.items:
            raise ValueError(f"{identity.name} exists")
        self.items[identity.name] = identity
        self.created.append(identity.name)
        return identity

    def append_memory(self, name, entry, tags=(), *, max_history, max_tags):
        current = self.items.get(name)
        if current is None:
            return None
        merged = merge_memory(current, entry, tags, max_history=max_history, max_tags=max_tags)
        self.items[name] = merged
        return merged


class FakeEnroller:
    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.calls: List[tuple] = []
        self.delay = 0.0

    def enroll(self, name: str, image: bytes, bio: str = "New Person", contact: str = ""):
        self.calls.append((name, image, bio, contact))
        if self.delay:
            time.sleep(self.delay)
        if not image:
            return None
        identity = Identity(
            name=name,
            embedding=[0.2] * 128,
            bio=bio,
            contact=contact,
            history=initial_history(bio),
        )
        return self.store.create(identity)


def make_settings(**overrides) -> ConfigHolder:
    values = dict(grace_period_s=0.05, tick_interval_s=0.01)
    values.update(overrides)
    return ConfigHolder(RuntimeConfig(**values))


def build_rig(**overrides) -> SimpleNamespace:
    ada, ben = person("Ada"), person("Ben", mood=Emotion.SAD)
    store = FakeStore(ada, ben)
    rig = SimpleNamespace(
        settings=make_settings(**overrides),
        transcriber=FakeTranscriber(),
        synth=FakeSynthesizer(),
        player=FakePlayer(),
        greeter=FakeGreeter(),
        consolidator=FakeConsolidator(),
        store=store,
        enroller=FakeEnroller(store),
        ada=ada,
        ben=ben,
    )
    rig.orch = SessionOrchestrator(
        settings=rig.settings,
        transcriber=rig.transcriber,
        synthesizer=rig.synth,
        player=rig.player,
        greeter=rig.greeter,
        consolidator=rig.consolidator,
        store=rig.store,
        enroller=rig.enroller,
    )
    return rig


@pytest.fixture
def rig() -> SimpleNamespace:
    return build_rig()
