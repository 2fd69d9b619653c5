import pytest

from conftest import make_settings
from reminisce.llm import LLMClient, parse_json_reply
from reminisce.prompts import (
    build_greeting_prompt,
    build_summary_prompt,
    find_config_file,
    load_prompt_set,
)
from reminisce.schema import Emotion, MemoryEntry


def test_parse_json_reply_handles_fenced_output():
    reply = 'Sure!\n```json\n{"emotion": "Happy", "summary": "Fine.", "tags": ["tea"]}\n```'
    assert parse_json_reply(reply) == {"emotion": "Happy", "summary": "Fine.", "tags": ["tea"]}


@pytest.mark.parametrize("reply", ["", "no json here", "[1, 2, 3]"])
def test_parse_json_reply_rejects_non_objects(reply):
    with pytest.raises(ValueError):
        parse_json_reply(reply)


def test_shipped_prompts_render():
    prompts = load_prompt_set(str(find_config_file("prompts.yaml")))
    greeting = build_greeting_prompt(
        prompts,
        name="Ada",
        bio="Granddaughter",
        history=[MemoryEntry(summary="Talked about school", emotion=Emotion.HAPPY, timestamp="2024-05-01T10:00:00")],
        last_mood="Happy",
    )
    assert "You see Ada in the camera." in greeting
    assert "2024-05-01 (Happy): Talked about school" in greeting
    summary = build_summary_prompt(prompts, name="Ada", transcript='she said "hi"')
    assert "Speaker: Ada" in summary
    assert '{"emotion": "...", "summary": "...", "tags": ["..."]}' in summary
    assert "she said 'hi'" in summary


def test_missing_prompt_file_falls_back_to_defaults(tmp_path):
    prompts = load_prompt_set(str(tmp_path / "nope.yaml"))
    text = build_greeting_prompt(prompts, name="Ben", bio="", history=[], last_mood="Neutral")
    assert "Ben was feeling Neutral last time" in text
    assert "none yet" in text


class FakeBedrock:
    def __init__(self):
        self.models = []
        self.contents = []

    def converse(self, modelId, messages, inferenceConfig):
        self.models.append(modelId)
        self.contents.append(messages[0]["content"])
        return {"output": {"message": {"content": [{"text": " Look, it's Ada. "}]}}}


def test_llm_client_reads_model_at_call_time(monkeypatch):
    bedrock = FakeBedrock()
    monkeypatch.setattr("reminisce.llm.boto3.client", lambda service, region_name=None: bedrock)
    settings = make_settings(llm_model_id="model-a")
    client = LLMClient(settings)
    assert client.greet(name="Ada", bio="", history=[], last_mood="Neutral", image_jpeg=b"jpg") == "Look, it's Ada."
    settings.update(llm_model_id="model-b")
    client.greet(name="Ada", bio="", history=[], last_mood="Neutral")
    assert bedrock.models == ["model-a", "model-b"]
    assert bedrock.contents[0][1] == {"image": {"format": "jpeg", "source": {"bytes": b"jpg"}}}
    assert len(bedrock.contents[1]) == 1


def test_openai_provider_requires_secret(monkeypatch):
    monkeypatch.setattr("reminisce.llm.boto3.client", lambda service, region_name=None: FakeBedrock())
    settings = make_settings()
    client = LLMClient(settings)
    settings.update(llm_provider="openai", secrets_id="")
    with pytest.raises(RuntimeError, match="LLM_SECRET_ID"):
        client.summarize(name="Ada", transcript="we talked")
