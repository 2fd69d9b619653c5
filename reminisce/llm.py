"""Wrapper around LLM providers (OpenAI and Bedrock) for greetings and summaries."""
from __future__ import annotations

import base64
import json
import logging
import re
from typing import Any, Iterable

import boto3
from openai import OpenAI

from .config import ConfigHolder, RuntimeConfig
from .prompts import PromptSet, build_greeting_prompt, build_summary_prompt, load_prompt_set
from .schema import MemoryEntry

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"\{.*\}", re.DOTALL)


def parse_json_reply(text: str) -> dict[str, Any]:
    """Extract the JSON object from a model reply.

    Models sometimes wrap JSON in prose or ```json fences; take the outermost
    braces and parse that.
    """
    if not text or not text.strip():
        raise ValueError("empty model reply")
    match = _JSON_BLOCK.search(text)
    if not match:
        raise ValueError(f"no JSON object in model reply: {text[:80]!r}")
    data = json.loads(match.group(0))
    if not isinstance(data, dict):
        raise ValueError("model reply JSON is not an object")
    return data


class LLMClient:
    """Helper around OpenAI Chat Completions and Bedrock Converse.

    Provider, model, secret and prompt file are read from ``settings`` on
    every call, so a config reload switches them without a restart. SDK
    clients are created on first use and kept per region or secret.
    """

    def __init__(self, settings: ConfigHolder) -> None:
        self._settings = settings
        self._bedrock: dict[str, Any] = {}
        self._openai: dict[str, OpenAI] = {}
        self._prompts: tuple[str, PromptSet] | None = None

    def _prompt_set(self) -> PromptSet:
        path = self._settings.current.prompts_path
        if self._prompts is None or self._prompts[0] != path:
            self._prompts = (path, load_prompt_set(path or None))
        return self._prompts[1]

    # ---- OpenAI ----
    def _openai_client(self, secret_id: str, region_name: str) -> OpenAI:
        client = self._openai.get(secret_id)
        if client is not None:
            return client
        if not secret_id:
            raise RuntimeError("OpenAI provider selected but LLM_SECRET_ID is not configured.")
        secrets = boto3.client("secretsmanager", region_name=region_name)
        secret = secrets.get_secret_value(SecretId=secret_id)
        payload = secret.get("SecretString")
        if not payload:
            raise RuntimeError("SecretString missing from Secrets Manager response")
        data = json.loads(payload)
        api_key = data.get("api_key") or data.get("openai_api_key")
        if not api_key:
            raise RuntimeError(
                "Secrets Manager payload must contain 'api_key' or 'openai_api_key'."
            )
        client = self._openai[secret_id] = OpenAI(api_key=api_key)
        return client

    def _complete_openai(
        self, cfg: RuntimeConfig, prompt: str, image_jpeg: bytes | None, *, json_mode: bool
    ) -> str:
        client = self._openai_client(cfg.secrets_id.strip(), cfg.region_name)
        content: list[dict[str, Any]] = [{"type": "text", "text": prompt}]
        if image_jpeg:
            encoded = base64.b64encode(image_jpeg).decode("ascii")
            content.append(
                {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{encoded}"}}
            )
        kwargs: dict[str, Any] = {
            "model": cfg.llm_model_id or "gpt-4o-mini",
            "messages": [{"role": "user", "content": content}],
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response = client.chat.completions.create(**kwargs)
        return response.choices[0].message.content or ""

    # ---- Bedrock ----
    def _complete_converse(self, cfg: RuntimeConfig, prompt: str, image_jpeg: bytes | None) -> str:
        """Model-agnostic Bedrock Converse call with an optional image block."""
        model_id = (cfg.llm_model_id or "").strip()
        if not model_id:
            raise RuntimeError("MODEL_ID must be set for Bedrock provider.")
        bedrock = self._bedrock.get(cfg.region_name)
        if bedrock is None:
            bedrock = self._bedrock[cfg.region_name] = boto3.client(
                "bedrock-runtime", region_name=cfg.region_name
            )

        content: list[dict[str, Any]] = [{"text": prompt}]
        if image_jpeg:
            content.append({"image": {"format": "jpeg", "source": {"bytes": image_jpeg}}})
        out = bedrock.converse(
            modelId=model_id,
            messages=[{"role": "user", "content": content}],
            inferenceConfig={"maxTokens": 300, "temperature": 0.4, "topP": 0.9},
        )
        blocks = out["output"]["message"]["content"]
        return "".join(block.get("text", "") for block in blocks)

    def _complete(self, prompt: str, image_jpeg: bytes | None = None, *, json_mode: bool = False) -> str:
        cfg = self._settings.current
        if cfg.llm_provider == "openai":
            return self._complete_openai(cfg, prompt, image_jpeg, json_mode=json_mode)
        return self._complete_converse(cfg, prompt, image_jpeg)

    # ---- Public API ----
    def greet(
        self,
        *,
        name: str,
        bio: str,
        history: Iterable[MemoryEntry],
        last_mood: str,
        image_jpeg: bytes | None = None,
    ) -> str:
        """One warm sentence telling the patient who is in front of them."""
        prompt = build_greeting_prompt(
            self._prompt_set(), name=name, bio=bio, history=history, last_mood=last_mood
        )
        text = self._complete(prompt, image_jpeg).strip()
        logger.debug("greeting for %s: %r", name, text)
        return text

    def summarize(self, *, name: str, transcript: str) -> dict[str, Any]:
        """Ask for {emotion, summary, tags} describing one conversation."""
        prompt = build_summary_prompt(self._prompt_set(), name=name, transcript=transcript)
        reply = self._complete(prompt, json_mode=True)
        return parse_json_reply(reply)


__all__ = ["LLMClient", "parse_json_reply"]
