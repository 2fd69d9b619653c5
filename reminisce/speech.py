"""Text-to-speech helpers using Amazon Polly."""
from __future__ import annotations

from contextlib import closing
from typing import Any, Dict
from xml.sax.saxutils import escape

import boto3

from .config import ConfigHolder


def slow_ssml(text: str) -> str:
    """Wrap ``text`` so Polly reads it slower and a little lower."""
    return f'<speak><prosody rate="slow" pitch="-6%">{escape(text)}</prosody></speak>'


class SpeechSynthesizer:
    """Polly MP3 synthesis; voice and region come from ``settings`` per call."""

    def __init__(self, settings: ConfigHolder) -> None:
        self._settings = settings
        self._clients: Dict[str, Any] = {}

    def _polly(self, region_name: str):
        client = self._clients.get(region_name)
        if client is None:
            client = self._clients[region_name] = boto3.client("polly", region_name=region_name)
        return client

    def synthesize(self, text: str, *, voice_id: str | None = None) -> bytes:
        """Return MP3 bytes for ``text`` spoken by ``voice_id`` (or the configured voice)."""
        cfg = self._settings.current
        reply = self._polly(cfg.region_name).synthesize_speech(
            Text=slow_ssml(text),
            TextType="ssml",
            VoiceId=voice_id or cfg.voice_id,
            OutputFormat="mp3",
        )
        with closing(reply["AudioStream"]) as body:
            return body.read()


__all__ = ["SpeechSynthesizer", "slow_ssml"]
