"""Presence-driven session control.

The orchestrator is the only component that decides when a conversation
starts and ends. Every transition is a plain synchronous method running on
the event loop, so transitions never interleave; anything slow (recording,
greeting, speech, consolidation) is scheduled and reports back tagged with
the session token it was started for.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Set

from reminisce.config import ConfigHolder
from reminisce.greeting import fallback_greeting
from reminisce.schema import ConsolidationResult, Emotion, Identity

from .consent import ConsentFlow, ConsentSnapshot
from .consolidation import ConsolidationQueue
from .playback import PlaybackArbiter
from .presence import (
    PersonAbsentTick,
    PersonArrived,
    PersonUnknownConfirmed,
    PresenceDebouncer,
    PresenceEvent,
    Verdict,
)

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = "Idle"
    TRACKING = "Tracking"
    AWAITING_LOSS = "AwaitingLossTimeout"
    CONSENT_PENDING = "ConsentPending"


@dataclass(frozen=True)
class SessionToken:
    name: str
    serial: int


@dataclass(frozen=True)
class Session:
    active_identity: Optional[str]
    recording_active: bool
    pending_loss_timer: bool
    unknown_frame_streak: int
    consent: ConsentSnapshot


@dataclass(frozen=True)
class SessionView:
    """What a display shows. Nothing in the orchestrator reads this back."""

    phase: Phase
    current_face: Optional[str]
    last_emotion: Optional[str]
    is_recording: bool
    transcript: str
    consent_open: bool


class RecordingLane:
    """Applies start/stop/reset to the transcriber strictly in queue order.

    A single worker drains the queue, so a stop for one person always
    completes before the next person's start begins. ``claimed`` names the
    session the lane has been asked to record (set when its start is queued,
    cleared when its stop is queued or the start fails); ``owner`` names the
    session whose recording is actually open.
    """

    def __init__(
        self,
        transcriber,
        on_stopped: Callable[[SessionToken, str], None],
        on_start_failed: Callable[[SessionToken], None] = lambda token: None,
    ) -> None:
        self._transcriber = transcriber
        self._on_stopped = on_stopped
        self._on_start_failed = on_start_failed
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self.claimed: Optional[SessionToken] = None
        self.owner: Optional[SessionToken] = None

    def start(self, token: SessionToken) -> None:
        self.claimed = token
        self._put(("start", token))

    def stop(self, token: SessionToken) -> None:
        if self.claimed == token:
            self.claimed = None
        self._put(("stop", token))

    def reset(self) -> None:
        self._put(("reset", None))

    def _put(self, op) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(self._queue))
        self._queue.put_nowait(op)

    async def _run(self, queue: asyncio.Queue) -> None:
        while True:
            kind, token = await queue.get()
            try:
                await self._apply(kind, token)
            except Exception:
                logger.exception("[recording] %s failed for %s", kind, token)
            finally:
                queue.task_done()

    async def _apply(self, kind: str, token: Optional[SessionToken]) -> None:
        if kind == "start":
            try:
                await self._transcriber.start()
            except Exception as exc:
                logger.warning("[recording] could not open for %s: %s", token, exc)
                if self.claimed == token:
                    self.claimed = None
                self._on_start_failed(token)
                return
            self.owner = token
            logger.debug("[recording] open for %s", token)
        elif kind == "stop":
            if self.owner != token:
                logger.debug("[recording] nothing open for %s", token)
                return
            try:
                text = await self._transcriber.stop()
            except Exception as exc:
                logger.warning("[recording] stop failed for %s, keeping snapshot: %s", token, exc)
                text = self._transcriber.snapshot()
            # Clearing the owner and handing off happen together so a flush
            # can never submit the same recording a second time.
            self.owner = None
            self._on_stopped(token, text)
        else:
            self._transcriber.reset()

    async def idle(self) -> None:
        if self._queue is not None:
            await self._queue.join()

    def abandon(self) -> None:
        """Drop queued work and forget the open recording."""
        if self._worker is not None:
            self._worker.cancel()
        self._worker = None
        self._queue = None
        self.claimed = None
        self.owner = None


class SessionOrchestrator:
    def __init__(
        self,
        *,
        settings: ConfigHolder,
        transcriber,
        synthesizer,
        player,
        greeter,
        consolidator,
        store,
        enroller,
    ) -> None:
        self._settings = settings
        self._transcriber = transcriber
        self._greeter = greeter
        self._enroller = enroller

        self._debouncer = PresenceDebouncer(settings.current.unknown_streak_threshold)
        self.consent = ConsentFlow()
        self._lane = RecordingLane(
            transcriber, self._on_recording_stopped, self._on_recording_failed
        )
        self._arbiter = PlaybackArbiter(
            synthesizer,
            player,
            transcriber=transcriber,
            should_resume=lambda: self._active is not None,
        )
        self._memory = ConsolidationQueue(
            consolidator, store, settings, on_result=self._on_consolidated
        )

        self._active: Optional[Identity] = None
        self._token: Optional[SessionToken] = None
        self._serial = 0
        self._loss_timer: Optional[asyncio.TimerHandle] = None
        self._greetings: Set[asyncio.Task] = set()
        self._last_emotion: Optional[Emotion] = None
        self._moods: Dict[str, Emotion] = {}
        self._running = True

    # ---- Read-only state ----
    @property
    def phase(self) -> Phase:
        if self.consent.open:
            return Phase.CONSENT_PENDING
        if self._active is not None:
            if self._loss_timer is not None:
                return Phase.AWAITING_LOSS
            return Phase.TRACKING
        return Phase.IDLE

    @property
    def active_identity(self) -> Optional[Identity]:
        return self._active

    @property
    def token(self) -> Optional[SessionToken]:
        return self._token

    @property
    def running(self) -> bool:
        return self._running

    @property
    def arbiter(self) -> PlaybackArbiter:
        return self._arbiter

    @property
    def memory(self) -> ConsolidationQueue:
        return self._memory

    @property
    def recording_owner(self) -> Optional[SessionToken]:
        return self._lane.owner

    @property
    def session(self) -> Session:
        return Session(
            active_identity=self._active.name if self._active else None,
            recording_active=self._lane.claimed is not None,
            pending_loss_timer=self._loss_timer is not None,
            unknown_frame_streak=self._debouncer.streak,
            consent=self.consent.snapshot(),
        )

    def view(self) -> SessionView:
        return SessionView(
            phase=self.phase,
            current_face=self._active.name if self._active else None,
            last_emotion=self._last_emotion.value if self._last_emotion else None,
            is_recording=self._lane.claimed is not None,
            transcript=self._transcriber.live,
            consent_open=self.consent.open,
        )

    # ---- Inputs ----
    def observe(self, verdict: Verdict) -> None:
        """Feed one recognizer verdict through the debouncer."""
        if not self._running:
            return
        self._debouncer.threshold = self._settings.current.unknown_streak_threshold
        event = self._debouncer.feed(verdict)
        if event is not None:
            self.handle(event)

    def handle(self, event: PresenceEvent) -> None:
        if not self._running:
            logger.debug("[session] dormant; ignoring %s", type(event).__name__)
            return
        if isinstance(event, PersonArrived):
            self._on_arrived(event)
        elif isinstance(event, PersonUnknownConfirmed):
            self._on_unknown(event)
        elif isinstance(event, PersonAbsentTick):
            self._on_absent()
        else:
            raise TypeError(f"unsupported presence event: {event!r}")

    def deny_consent(self) -> None:
        if not self.consent.open:
            return
        self.consent.deny()

    async def approve_consent(self, name: str, bio: str = "", contact: str = "") -> bool:
        """Enroll the pending face as ``name`` and start their session.

        Returns False, leaving the dialog as it is, when there is nothing to
        approve, no face could be enrolled, or the dialog moved on while the
        enrollment was running.
        """
        name = (name or "").strip()
        if not name or not self.consent.open:
            return False
        serial = self.consent.serial
        image = self.consent.pending_image or b""
        try:
            identity = await asyncio.to_thread(
                self._enroller.enroll, name, image, bio.strip() or "New Person", contact.strip()
            )
        except Exception as exc:
            logger.warning("[consent] could not enroll %s: %s", name, exc)
            return False
        if identity is None:
            logger.info("[consent] no usable face in the pending frame for %s", name)
            return False
        if not self._running or not self.consent.is_current(serial):
            logger.info("[consent] dialog closed while enrolling %s; not starting a session", name)
            return False
        self.consent.close()
        self._on_arrived(PersonArrived(identity, image))
        return True

    # ---- Transitions ----
    def _on_arrived(self, event: PersonArrived) -> None:
        identity = event.identity
        if self.consent.open or self.consent.denied_this_streak:
            self.consent.reset()

        if self._active is not None and self._active.name == identity.name:
            if self._loss_timer is not None:
                logger.info("[session] %s is back", identity.name)
            self._cancel_loss_timer()
            if self._lane.claimed != self._token:
                logger.info("[session] retrying recording for %s", identity.name)
                self._lane.start(self._token)
            return

        if self._active is not None:
            logger.info("[session] switching from %s to %s", self._active.name, identity.name)
            self._finalize()
        self._begin(identity, event.image)

    def _on_absent(self) -> None:
        if self.consent.open or self.consent.denied_this_streak:
            self.consent.reset()
        if self._active is None or self._loss_timer is not None:
            return
        grace = self._settings.current.grace_period_s
        loop = asyncio.get_running_loop()
        self._loss_timer = loop.call_later(grace, self._on_grace_expired, self._token)
        logger.info("[session] lost sight of %s; waiting %.1fs", self._active.name, grace)

    def _on_grace_expired(self, token: Optional[SessionToken]) -> None:
        if token is None or token != self._token or self._loss_timer is None:
            logger.debug("[session] stale loss timer for %s", token)
            return
        self._loss_timer = None
        logger.info("[session] %s left", token.name)
        self._finalize()

    def _on_unknown(self, event: PersonUnknownConfirmed) -> None:
        if not self.consent.eligible:
            return
        if self._active is not None:
            self._finalize()
        else:
            self._arbiter.stop()
        self._lane.reset()
        self.consent.open_for(event.image)

    def _begin(self, identity: Identity, image: bytes) -> None:
        self._serial += 1
        token = SessionToken(identity.name, self._serial)
        self._active = identity
        self._token = token
        self._last_emotion = self._moods.get(identity.name, identity.last_emotion)
        self._lane.start(token)
        task = asyncio.create_task(self._greet(token, identity, image))
        self._greetings.add(task)
        task.add_done_callback(self._greetings.discard)
        logger.info("[session] tracking %s", identity.name)

    def _finalize(self) -> None:
        token = self._token
        self._cancel_loss_timer()
        self._cancel_greetings()
        self._arbiter.stop()
        if token is not None:
            self._lane.stop(token)
        self._active = None
        self._token = None
        self._last_emotion = None

    async def _greet(self, token: SessionToken, identity: Identity, image: bytes) -> None:
        try:
            text = await self._greeter.greet(identity, image)
        except Exception as exc:
            logger.warning("[session] greeting failed for %s: %s", identity.name, exc)
            text = fallback_greeting(identity.name)
        if token != self._token:
            logger.debug("[session] discarding greeting for %s; session moved on", identity.name)
            return
        self._arbiter.speak(text)

    # ---- Async results ----
    def _on_recording_stopped(self, token: SessionToken, text: str) -> None:
        self._memory.submit(token, text)

    def _on_recording_failed(self, token: SessionToken) -> None:
        if token == self._token:
            logger.warning("[session] no recording for %s; retrying on next sighting", token.name)

    def _on_consolidated(self, token: SessionToken, result: ConsolidationResult) -> None:
        # Keyed by name: the session that produced this result has already ended.
        self._moods[token.name] = result.emotion
        if self._active is not None and self._active.name == token.name:
            self._last_emotion = result.emotion

    # ---- Lifecycle ----
    def activate(self) -> None:
        if not self._running:
            logger.info("[session] active")
        self._running = True

    def deactivate(self) -> None:
        """Flush the open recording and drop all session state.

        Runs to completion without awaiting, so it is safe to call from
        shutdown paths where nothing else will get a chance to run.
        """
        self._cancel_loss_timer()
        owner = self._lane.owner
        if owner is not None:
            self._memory.submit(owner, self._transcriber.snapshot())
        self._lane.abandon()
        self._transcriber.abort()
        self._arbiter.stop()
        self._cancel_greetings()
        self.consent.reset()
        self._debouncer.reset()
        self._active = None
        self._token = None
        self._last_emotion = None
        if self._running:
            logger.info("[session] deactivated")
        self._running = False

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued recording work and background consolidations."""
        try:
            await asyncio.wait_for(self._lane.idle(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("[session] recording lane still busy after %.1fs", timeout or 0.0)
        return await self._memory.drain(timeout)

    # ---- Helpers ----
    def _cancel_loss_timer(self) -> None:
        if self._loss_timer is not None:
            self._loss_timer.cancel()
            self._loss_timer = None

    def _cancel_greetings(self) -> None:
        for task in list(self._greetings):
            task.cancel()
        self._greetings.clear()


__all__ = [
    "Phase",
    "RecordingLane",
    "Session",
    "SessionOrchestrator",
    "SessionToken",
    "SessionView",
]
