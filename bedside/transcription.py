"""Speech capture via Amazon Transcribe Streaming and a sounddevice mic stream."""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Optional

import sounddevice as sd
from amazon_transcribe.client import TranscribeStreamingClient

from reminisce.config import ConfigHolder

from .transcript import TranscriptBuffer

logger = logging.getLogger(__name__)

RATE = 16000
CHANNELS = 1
CHUNK_SECONDS = 0.1
DRAIN_TIMEOUT_S = 3.0


class TranscribeSession:
    """One open-ended recording at a time.

    ``start``/``stop`` are driven by the orchestrator's recording lane, which
    never overlaps them. ``pause``/``resume`` swap mic audio for silence
    while the device is speaking so the stream stays open but the device
    does not transcribe its own voice. The pause survives ``start`` so a
    greeting that began before the stream opened stays muted; only the
    playback arbiter clears it.
    """

    def __init__(self, settings: ConfigHolder, buffer: TranscriptBuffer | None = None) -> None:
        self._settings = settings
        self.buffer = buffer or TranscriptBuffer()
        self._paused = threading.Event()
        self._mic: Optional[sd.RawInputStream] = None
        self._queue: Optional[asyncio.Queue] = None
        self._sender: Optional[asyncio.Task] = None
        self._reader: Optional[asyncio.Task] = None

    @property
    def is_open(self) -> bool:
        return self._mic is not None

    async def start(self) -> None:
        if self.is_open:
            logger.warning("[transcribe] start requested while already recording; ignoring")
            return
        cfg = self._settings.current
        self.buffer.clear()

        client = TranscribeStreamingClient(region=cfg.region_name)
        stream = await client.start_stream_transcription(
            language_code=cfg.language_code,
            media_sample_rate_hz=RATE,
            media_encoding="pcm",
        )

        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        paused = self._paused

        def _on_audio(indata, frames, time_info, status) -> None:
            if status:
                logger.debug("[transcribe] mic status: %s", status)
            chunk = bytes(indata)
            if paused.is_set():
                chunk = bytes(len(chunk))
            loop.call_soon_threadsafe(queue.put_nowait, chunk)

        mic = sd.RawInputStream(
            samplerate=RATE,
            channels=CHANNELS,
            dtype="int16",
            blocksize=int(RATE * CHUNK_SECONDS),
            device=cfg.mic_index,
            callback=_on_audio,
        )
        mic.start()
        self._mic = mic
        self._queue = queue
        self._sender = asyncio.create_task(self._send(stream, queue))
        self._reader = asyncio.create_task(self._read(stream))
        logger.info("[transcribe] recording started")

    async def _send(self, stream, queue: asyncio.Queue) -> None:
        while True:
            chunk = await queue.get()
            if chunk is None:
                break
            await stream.input_stream.send_audio_event(audio_chunk=chunk)
        await stream.input_stream.end_stream()

    async def _read(self, stream) -> None:
        async for event in stream.output_stream:
            transcript = getattr(event, "transcript", None)
            if transcript is None:
                continue
            for result in transcript.results:
                if not result.alternatives:
                    continue
                text = result.alternatives[0].transcript
                if result.is_partial:
                    self.buffer.add_interim(result.result_id, text)
                else:
                    self.buffer.add_final(result.result_id, text)

    def _close_mic(self) -> None:
        mic, self._mic = self._mic, None
        if mic is None:
            return
        try:
            mic.stop()
            mic.close()
        except sd.PortAudioError as exc:
            logger.debug("[transcribe] mic close failed: %s", exc)

    async def stop(self) -> str:
        """Close the recording and return its committed text ("" when idle)."""
        if not self.is_open:
            return ""
        self._close_mic()
        if self._queue is not None:
            self._queue.put_nowait(None)
        tasks = [t for t in (self._sender, self._reader) if t is not None]
        try:
            await asyncio.wait_for(asyncio.gather(*tasks), timeout=DRAIN_TIMEOUT_S)
        except asyncio.TimeoutError:
            logger.warning("[transcribe] stream did not drain within %.1fs", DRAIN_TIMEOUT_S)
        except Exception as exc:
            logger.warning("[transcribe] stream ended with error: %s", exc)
        finally:
            for task in tasks:
                task.cancel()
            self._sender = self._reader = None
            self._queue = None
        # Anything the provider never finalised still counts.
        self.buffer.promote_interim()
        text = self.buffer.committed
        logger.info("[transcribe] recording stopped (%d chars)", len(text))
        return text

    @property
    def live(self) -> str:
        return self.buffer.live

    def snapshot(self) -> str:
        return self.buffer.snapshot()

    def abort(self) -> None:
        """Synchronous best-effort teardown; buffered text is left for the caller."""
        self._close_mic()
        for task in (self._sender, self._reader):
            if task is not None:
                task.cancel()
        self._sender = self._reader = None
        self._queue = None

    def reset(self) -> None:
        self.buffer.clear()

    def pause(self) -> None:
        self._paused.set()

    def resume(self) -> None:
        self._paused.clear()


__all__ = ["TranscribeSession"]
