"""Prompt and config-file helpers."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import yaml

from .schema import MemoryEntry


def load_mapping(path: Path) -> dict[str, Any]:
    """Read a YAML mapping; a missing file reads as empty."""
    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - config error path
        raise RuntimeError(f"Failed to parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise RuntimeError(f"{path} must be a mapping of keys to values.")
    return data


def find_config_file(filename: str) -> Path:
    """Locate a config file by walking up from this module's directory."""

    here = Path(__file__).resolve()
    for parent in [here.parent] + list(here.parents):
        candidate = parent / "config" / filename
        if candidate.exists():
            return candidate
    # Fallback to project root convention even if it doesn't exist yet
    return here.parent.parent / "config" / filename


@dataclass(frozen=True, slots=True)
class PromptSet:
    greeting: str
    summary: str


_DEFAULT_GREETING = """
You are a memory aid for a dementia patient. The patient is holding this device.
You see {name} in the camera.
About {name}: {bio}
Recent memories: {history}
History: {name} was feeling {last_mood} last time.

Task: Address the *patient* (the user).
Tell them who is here ({name}) and offer a gentle reminder of who they are or how they felt last time.
Do NOT say "Hello {name}". Say "Look, it's {name}..." or "Your friend {name} is here...".
Keep it warm and short (1 sentence).
""".strip()

_DEFAULT_SUMMARY = """
Analyze this conversation transcript.
Speaker: {name}
Transcript: "{transcript}"

1. Use the provided transcript as the ground truth.
2. Detect the primary emotion: one of Happy, Sad, Angry, Neutral, Excited.
3. Summarize what was said in 2 sentences.
4. Pick up to 5 short topic tags (single words or short phrases).

Reply with JSON only, no prose:
{{"emotion": "...", "summary": "...", "tags": ["..."]}}
""".strip()


def _clean_prompt(value: Any, fallback: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return fallback


def load_prompt_set(path: str | None = None) -> PromptSet:
    """Load the prompt set from config with sensible defaults."""

    config_path = Path(path) if path else find_config_file("prompts.yaml")
    data = load_mapping(config_path)
    return PromptSet(
        greeting=_clean_prompt(data.get("greeting_prompt"), _DEFAULT_GREETING),
        summary=_clean_prompt(data.get("summary_prompt"), _DEFAULT_SUMMARY),
    )


def _format_history(entries: Iterable[MemoryEntry]) -> str:
    lines = [f"- {e.timestamp[:10]} ({e.emotion.value}): {e.summary}" for e in entries]
    return "\n".join(lines) if lines else "none yet"


def build_greeting_prompt(
    prompts: PromptSet,
    *,
    name: str,
    bio: str,
    history: Iterable[MemoryEntry],
    last_mood: str,
) -> str:
    return prompts.greeting.format(
        name=name,
        bio=bio or "unknown",
        history=_format_history(history),
        last_mood=last_mood,
    )


def build_summary_prompt(prompts: PromptSet, *, name: str, transcript: str) -> str:
    return prompts.summary.format(name=name, transcript=transcript.replace('"', "'"))


__all__ = [
    "PromptSet",
    "build_greeting_prompt",
    "build_summary_prompt",
    "find_config_file",
    "load_mapping",
    "load_prompt_set",
]
