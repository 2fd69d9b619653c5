#!/usr/bin/env python3
"""Run the bedside memory aid: watch the camera, listen, greet and remember."""
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
import threading
from typing import List, Optional

from reminisce.config import ConfigHolder
from reminisce.consolidator import MemoryConsolidator
from reminisce.greeting import Greeter
from reminisce.identity_store import IdentityStore
from reminisce.llm import LLMClient
from reminisce.logging_utils import configure_logging
from reminisce.reminders import ReminderScheduler
from reminisce.speech import SpeechSynthesizer

from .audio import AudioPlayer
from .camera import Camera
from .enrollment import FaceEnroller
from .monitor import PresenceMonitor
from .orchestrator import SessionOrchestrator
from .recognizer import FaceRecognizer
from .transcription import TranscribeSession

logger = logging.getLogger(__name__)

SHUTDOWN_DRAIN_S = 15.0


def _start_stdin_reader(loop: asyncio.AbstractEventLoop, queue: asyncio.Queue) -> None:
    """Forward stdin lines to ``queue`` from a daemon thread.

    A daemon thread (not the default executor) so a pending ``input`` never
    holds up interpreter exit.
    """

    def _pump() -> None:
        for line in sys.stdin:
            loop.call_soon_threadsafe(queue.put_nowait, line.rstrip("\n"))
        loop.call_soon_threadsafe(queue.put_nowait, None)

    threading.Thread(target=_pump, name="stdin-reader", daemon=True).start()


class ConsolePrompter:
    """Ask the carer on the console whether to remember an unknown face."""

    def __init__(self, orchestrator: SessionOrchestrator) -> None:
        self._orchestrator = orchestrator
        self._lines: asyncio.Queue = asyncio.Queue()

    async def _answer(self, serial: int, stop_event: asyncio.Event) -> Optional[str]:
        consent = self._orchestrator.consent
        while not stop_event.is_set():
            if not consent.is_current(serial):
                return None
            try:
                return await asyncio.wait_for(self._lines.get(), timeout=0.5)
            except asyncio.TimeoutError:
                continue
        return None

    async def run(self, stop_event: asyncio.Event) -> None:
        _start_stdin_reader(asyncio.get_running_loop(), self._lines)
        consent = self._orchestrator.consent
        while not stop_event.is_set():
            if not consent.open:
                await asyncio.sleep(0.2)
                continue
            serial = consent.serial
            print("\nSomeone new is here. Who is this? (blank to skip)", flush=True)
            name = await self._answer(serial, stop_event)
            if name is None:
                if not stop_event.is_set():
                    print("(never mind, they have gone)", flush=True)
                continue
            if not name.strip():
                self._orchestrator.deny_consent()
                print("OK, I won't remember them.", flush=True)
                continue
            print(f"A few words about {name.strip()}? (blank to skip)", flush=True)
            bio = await self._answer(serial, stop_event) or ""
            if not await self._orchestrator.approve_consent(name, bio=bio):
                if consent.is_current(serial):
                    print("I couldn't get a clear look at their face. Try again.", flush=True)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config", help="Path to client_params.yaml")
    parser.add_argument("--camera-index", type=int, help="OpenCV camera index")
    parser.add_argument("--mic-index", type=int, help="sounddevice input device index")
    parser.add_argument("--voice", help="Polly voice id")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (use -vv for debug)",
    )
    return parser


def _apply_overrides(settings: ConfigHolder, args: argparse.Namespace) -> None:
    changes = {}
    if args.camera_index is not None:
        changes["camera_index"] = args.camera_index
    if args.mic_index is not None:
        changes["mic_index"] = args.mic_index
    if args.voice:
        changes["voice_id"] = args.voice
    if changes:
        settings.update(**changes)


def _notify(message: str) -> None:
    print(f"\n[reminder] {message}", flush=True)


async def _run(settings: ConfigHolder) -> None:
    cfg = settings.current
    store = IdentityStore(cfg.identity_table, cfg.region_name)
    identities = await asyncio.to_thread(store.list_identities)
    recognizer = FaceRecognizer(settings, identities)
    camera = Camera(cfg.camera_index)
    llm = LLMClient(settings)
    orchestrator = SessionOrchestrator(
        settings=settings,
        transcriber=TranscribeSession(settings),
        synthesizer=SpeechSynthesizer(settings),
        player=AudioPlayer(),
        greeter=Greeter(llm, store),
        consolidator=MemoryConsolidator(llm),
        store=store,
        enroller=FaceEnroller(recognizer, store),
    )
    monitor = PresenceMonitor(camera, recognizer, orchestrator, settings)
    reminders = ReminderScheduler(settings, _notify)
    prompter = ConsolePrompter(orchestrator)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, stop_event.set)
        loop.add_signal_handler(signal.SIGTERM, stop_event.set)
        loop.add_signal_handler(signal.SIGHUP, settings.reload)
    except (NotImplementedError, AttributeError):  # pragma: no cover - Windows
        pass

    print("Watching for visitors. Press Ctrl+C to stop.", flush=True)
    try:
        await asyncio.gather(
            monitor.run(stop_event),
            reminders.run(stop_event),
            prompter.run(stop_event),
        )
    finally:
        orchestrator.deactivate()
        await orchestrator.drain(timeout=SHUTDOWN_DRAIN_S)
        camera.release()


def main(argv: Optional[List[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    settings = ConfigHolder(path=args.config)
    _apply_overrides(settings, args)
    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
