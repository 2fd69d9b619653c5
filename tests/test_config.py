import pytest

from reminisce.config import ConfigHolder, RuntimeConfig


def _write(tmp_path, text):
    path = tmp_path / "client_params.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_match_documented_values():
    cfg = RuntimeConfig()
    assert cfg.tick_interval_s == 0.35
    assert cfg.unknown_streak_threshold == 5
    assert cfg.grace_period_s == 5.0
    assert cfg.min_transcript_chars == 10
    assert cfg.max_tags == 8
    assert cfg.match_tolerance == 0.5
    assert cfg.min_face_width_px == 60


def test_file_values_are_overridden_by_environment(tmp_path):
    path = _write(tmp_path, "grace_period_s: 3\nvoice_id: Amy\nmic_index: null\n")
    cfg = RuntimeConfig.load(path, environ={"POLLY_VOICE": "Brian", "MIC_INDEX": "2"})
    assert cfg.grace_period_s == 3.0
    assert cfg.voice_id == "Brian"
    assert cfg.mic_index == 2
    assert cfg.prompts_path.endswith("prompts.yaml")


def test_missing_file_uses_defaults(tmp_path):
    cfg = RuntimeConfig.load(tmp_path / "absent.yaml", environ={})
    assert cfg.identity_table == "reminisce-identities"
    assert cfg.mic_index is None


def test_invalid_values_are_rejected(tmp_path):
    with pytest.raises(RuntimeError):
        RuntimeConfig.load(_write(tmp_path, "llm_provider: gemini\n"), environ={})
    with pytest.raises(RuntimeError):
        RuntimeConfig.load(_write(tmp_path, "wake_time: '25:00'\n"), environ={})
    with pytest.raises(RuntimeError):
        RuntimeConfig.load(_write(tmp_path, "tick_interval_s: lots\n"), environ={})


def test_holder_update_validates_and_reload_rereads(tmp_path):
    path = _write(tmp_path, "grace_period_s: 4\n")
    holder = ConfigHolder(path=path)
    assert holder.current.grace_period_s == 4.0
    holder.update(grace_period_s=2.5)
    assert holder.current.grace_period_s == 2.5
    with pytest.raises(RuntimeError):
        holder.update(tick_interval_s=0)
    assert holder.current.tick_interval_s == 0.35
    path.write_text("grace_period_s: 6\n", encoding="utf-8")
    holder.reload()
    assert holder.current.grace_period_s == 6.0
