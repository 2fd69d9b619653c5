"""Speaker output for synthesized MP3 utterances."""
from __future__ import annotations

import asyncio
import io
import logging
import threading
from dataclasses import dataclass
from typing import Optional

import numpy as np
import sounddevice as sd
from pydub import AudioSegment

logger = logging.getLogger(__name__)

POLL_S = 0.05
TAIL_S = 0.25


@dataclass(frozen=True)
class Clip:
    samples: np.ndarray  # float32, shape (frames, channels)
    rate: int

    @property
    def seconds(self) -> float:
        return self.samples.shape[0] / float(self.rate) if self.rate else 0.0


def mp3_to_clip(data: bytes) -> Clip:
    seg = AudioSegment.from_file(io.BytesIO(data), format="mp3")
    raw = np.asarray(seg.get_array_of_samples(), dtype=np.float32)
    full_scale = float(2 ** (8 * seg.sample_width - 1))
    return Clip(samples=(raw / full_scale).reshape(-1, max(seg.channels, 1)), rate=int(seg.frame_rate))


def resample(clip: Clip, rate: int) -> Clip:
    """Linear-interpolate every channel onto ``rate``."""
    if rate <= 0 or rate == clip.rate:
        return clip
    frames = clip.samples.shape[0]
    out_frames = int(round(frames * rate / float(clip.rate)))
    if out_frames <= 0:
        return clip
    src = np.arange(frames, dtype=np.float64) / frames
    dst = np.arange(out_frames, dtype=np.float64) / out_frames
    channels = [np.interp(dst, src, clip.samples[:, ch]) for ch in range(clip.samples.shape[1])]
    return Clip(samples=np.column_stack(channels).astype(np.float32), rate=rate)


class AudioPlayer:
    """Plays one clip at a time on the output device.

    ``stop`` may be called from any thread; ``play`` notices within one poll
    interval and silences the device.
    """

    def __init__(self, device: Optional[int] = None) -> None:
        self._device = device
        self._decode_warned = False
        self._halt = threading.Event()

    def _device_rate(self, fallback: int) -> int:
        try:
            return int(sd.query_devices(self._device, kind="output")["default_samplerate"])
        except (sd.PortAudioError, ValueError, KeyError):
            return fallback

    def _prepare(self, data: bytes) -> Optional[Clip]:
        try:
            clip = mp3_to_clip(data)
        except Exception as exc:
            if not self._decode_warned:
                logger.warning("[audio] cannot decode mp3, is ffmpeg installed? %s", exc)
                self._decode_warned = True
            return None
        return resample(clip, self._device_rate(clip.rate))

    async def play(self, data: bytes) -> bool:
        """Play MP3 ``data`` to the end, or until stopped or cancelled.

        Returns False when the audio could not be decoded.
        """
        self._halt.clear()
        clip = await asyncio.to_thread(self._prepare, data)
        if clip is None:
            return False
        loop = asyncio.get_running_loop()
        deadline = loop.time() + clip.seconds + TAIL_S
        sd.play(clip.samples, clip.rate, device=self._device)
        try:
            while not self._halt.is_set() and loop.time() < deadline:
                await asyncio.sleep(POLL_S)
        finally:
            sd.stop()
        return True

    def stop(self) -> None:
        self._halt.set()


__all__ = ["AudioPlayer", "Clip", "mp3_to_clip", "resample"]
