"""Runtime configuration for the bedside device and admin tools."""
from __future__ import annotations

import logging
import os
import re
import threading
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from .prompts import find_config_file, load_mapping

logger = logging.getLogger(__name__)

_CLOCK_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
_PROVIDERS = ("bedrock", "openai")

# field name -> environment variable
_ENV_NAMES: dict[str, str] = {
    "region_name": "AWS_REGION",
    "identity_table": "IDENTITY_TABLE",
    "voice_id": "POLLY_VOICE",
    "llm_provider": "LLM_PROVIDER",
    "llm_model_id": "MODEL_ID",
    "secrets_id": "LLM_SECRET_ID",
    "language_code": "LANGUAGE_CODE",
    "camera_index": "CAMERA_INDEX",
    "mic_index": "MIC_INDEX",
    "tick_interval_s": "TICK_INTERVAL_S",
    "unknown_streak_threshold": "UNKNOWN_STREAK_THRESHOLD",
    "grace_period_s": "GRACE_PERIOD_S",
    "min_transcript_chars": "MIN_TRANSCRIPT_CHARS",
    "max_tags": "MAX_TAGS",
    "history_limit": "HISTORY_LIMIT",
    "match_tolerance": "FACE_MATCH_TOLERANCE",
    "min_face_width_px": "MIN_FACE_WIDTH_PX",
    "reminder_interval_s": "REMINDER_INTERVAL_S",
    "wake_time": "WAKE_TIME",
    "sleep_time": "SLEEP_TIME",
    "reminder_message": "REMINDER_MESSAGE",
    "prompts_path": "PROMPTS_CONFIG",
}


def parse_clock(value: str) -> tuple[int, int]:
    match = _CLOCK_RE.match(str(value).strip())
    if not match:
        raise RuntimeError(f"Expected HH:MM time, got {value!r}")
    return int(match.group(1)), int(match.group(2))


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    """Settings read by the orchestrator, adapters and schedulers at call time."""

    region_name: str = "us-east-1"
    identity_table: str = "reminisce-identities"
    voice_id: str = "Joanna"
    llm_provider: str = "bedrock"
    llm_model_id: str = "anthropic.claude-3-haiku-20240307-v1:0"
    secrets_id: str = ""
    language_code: str = "en-US"
    camera_index: int = 0
    mic_index: Optional[int] = None
    tick_interval_s: float = 0.35
    unknown_streak_threshold: int = 5
    grace_period_s: float = 5.0
    min_transcript_chars: int = 10
    max_tags: int = 8
    history_limit: int = 50
    match_tolerance: float = 0.50
    min_face_width_px: int = 60
    reminder_interval_s: float = 3600.0
    wake_time: str = "08:00"
    sleep_time: str = "21:00"
    reminder_message: str = "It's a good time for a glass of water."
    prompts_path: str = ""

    @classmethod
    def load(
        cls,
        path: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "RuntimeConfig":
        """Build a config from defaults, then client_params.yaml, then the environment."""
        env = os.environ if environ is None else environ
        config_path = Path(path) if path else find_config_file("client_params.yaml")
        raw: dict[str, Any] = dict(load_mapping(config_path))
        for name, env_name in _ENV_NAMES.items():
            if env_name in env and env[env_name] != "":
                raw[name] = env[env_name]
        if not raw.get("prompts_path"):
            raw["prompts_path"] = str(find_config_file("prompts.yaml"))
        return cls.from_mapping(raw)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RuntimeConfig":
        known = {f.name: f for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                logger.warning("Ignoring unknown config key %r", key)
                continue
            kwargs[key] = _coerce(known[key].type, value, key)
        config = cls(**kwargs)
        config.validate()
        return config

    def validate(self) -> None:
        if self.llm_provider not in _PROVIDERS:
            raise RuntimeError(
                f"LLM_PROVIDER must be one of {', '.join(_PROVIDERS)}; got {self.llm_provider!r}"
            )
        parse_clock(self.wake_time)
        parse_clock(self.sleep_time)
        for name in ("tick_interval_s", "grace_period_s", "reminder_interval_s"):
            if getattr(self, name) <= 0:
                raise RuntimeError(f"{name} must be positive")
        if self.unknown_streak_threshold < 0:
            raise RuntimeError("unknown_streak_threshold must not be negative")
        if not 0.0 < self.match_tolerance <= 1.0:
            raise RuntimeError("match_tolerance must be in (0, 1]")


def _coerce(annotation: Any, value: Any, key: str) -> Any:
    # ``from __future__ import annotations`` leaves field types as strings.
    kind = str(annotation)
    if value is None or (isinstance(value, str) and value.strip().lower() in ("", "none")):
        if kind.startswith("Optional"):
            return None
    try:
        if "int" in kind:
            return int(value)
        if "float" in kind:
            return float(value)
    except (TypeError, ValueError) as exc:
        raise RuntimeError(f"Config value {key}={value!r} is not a valid {kind}") from exc
    return str(value)


class ConfigHolder:
    """Live configuration handle shared by every component.

    Components keep the holder and read ``current`` whenever they need a
    value, so ``update`` and ``reload`` take effect on the next tick without
    restarting anything.
    """

    def __init__(
        self,
        config: RuntimeConfig | None = None,
        *,
        path: str | Path | None = None,
    ) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._config = config if config is not None else RuntimeConfig.load(path)

    @property
    def current(self) -> RuntimeConfig:
        return self._config

    def update(self, **changes: Any) -> RuntimeConfig:
        with self._lock:
            updated = replace(self._config, **changes)
            updated.validate()
            self._config = updated
        logger.info("[config] updated %s", ", ".join(sorted(changes)))
        return updated

    def reload(self) -> RuntimeConfig:
        fresh = RuntimeConfig.load(self._path)
        with self._lock:
            self._config = fresh
        logger.info("[config] reloaded")
        return fresh


__all__ = ["ConfigHolder", "RuntimeConfig", "parse_clock"]
