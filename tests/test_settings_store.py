import json

import pytest

from studio_engine.app.catalog import OPENAI_TTS_VOICE_PRESETS
from studio_engine.app.settings_store import SettingsStore


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "STUDIO_BACKEND",
        "STUDIO_PERSONA",
        "STUDIO_VOICE",
        "STUDIO_LOG_PATH",
        "STUDIO_THINKING_BUDGET",
        "STUDIO_GEMINI_CHAT_MODEL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_creates_file_with_defaults(tmp_path) -> None:
    path = tmp_path / "settings.json"
    s = SettingsStore(path=path).get()

    assert path.exists()
    assert s.provider.backend == "gemini"
    assert s.chat.default_persona_id == "default"
    assert s.audio.default_voice_id == "Kore"
    assert s.audio.playback_sample_rate == 24000
    assert json.loads(path.read_text(encoding="utf-8"))["provider"]["backend"] == "gemini"


def test_env_overrides_defaults(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("STUDIO_BACKEND", "openai")
    monkeypatch.setenv("STUDIO_PERSONA", "coder")
    monkeypatch.setenv("STUDIO_GEMINI_CHAT_MODEL", "gemini-test")
    s = SettingsStore(path=tmp_path / "settings.json").get()
    assert s.provider.backend == "openai"
    assert s.provider.backend_options[0] == "openai"
    assert s.chat.default_persona_id == "coder"
    assert s.provider.gemini_chat_model == "gemini-test"


def test_file_values_are_merged_and_normalized(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps(
            {
                "provider": {"backend": "bogus", "gemini_thinking_budget": -5, "openai_tts_voice": "Robot"},
                "chat": {"default_persona_id": "nope", "attachment_placeholder_text": ""},
                "audio": {"default_voice_id": "fenrir", "record_sample_rate": 1000, "record_channels": 6},
            }
        ),
        encoding="utf-8",
    )
    s = SettingsStore(path=path).get()

    assert s.provider.backend == "gemini"
    assert s.provider.gemini_thinking_budget == 0
    assert s.provider.openai_tts_voice == "alloy"
    assert s.provider.gemini_chat_model == "gemini-2.5-flash"
    assert s.chat.default_persona_id == "default"
    assert s.chat.attachment_placeholder_text == " "
    assert s.audio.default_voice_id == "Fenrir"
    assert s.audio.record_sample_rate == 8000
    assert s.audio.record_channels == 2


def test_corrupt_file_is_rewritten(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    s = SettingsStore(path=path).get()
    assert s.provider.backend == "gemini"
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1


def test_update_persists_and_returns_copy(tmp_path) -> None:
    path = tmp_path / "settings.json"
    store = SettingsStore(path=path)

    updated = store.update({"chat": {"default_persona_id": "analyst"}, "audio": {"default_voice_id": "zephyr"}})
    assert updated.chat.default_persona_id == "analyst"
    assert updated.audio.default_voice_id == "Zephyr"

    updated.chat.default_persona_id = "coder"
    assert store.get().chat.default_persona_id == "analyst"
    assert SettingsStore(path=path).get().chat.default_persona_id == "analyst"


def test_openai_voice_presets_are_shared(tmp_path) -> None:
    store = SettingsStore(path=tmp_path / "settings.json")
    for preset in sorted(OPENAI_TTS_VOICE_PRESETS):
        assert store.update({"provider": {"openai_tts_voice": preset.upper()}}).provider.openai_tts_voice == preset
