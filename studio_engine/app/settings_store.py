from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from studio_engine.app.catalog import (
    DEFAULT_PERSONA_ID,
    DEFAULT_VOICE_ID,
    OPENAI_TTS_VOICE_PRESETS,
    PERSONAS,
    VOICES,
)
from studio_engine.app.settings import AppSettings


_BACKENDS = {"gemini", "openai"}


def _atomic_write_json(path: Path, obj: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(obj, ensure_ascii=True, indent=2) + "\n", encoding="utf-8")
    tmp.replace(path)


def _deep_merge(a: dict, b: dict) -> dict:
    """Merge b into a recursively (dicts only)."""
    out = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _normalize_settings(settings: AppSettings) -> AppSettings:
    def _mru(items: list[str], current: str, *, limit: int = 10) -> list[str]:
        cur = str(current or "").strip()
        xs: list[str] = []
        for x in items:
            s = str(x or "").strip()
            if s and s not in xs:
                xs.append(s)
        if cur:
            xs = [cur] + [x for x in xs if x != cur]
        return xs[: max(1, int(limit))]

    backend = str(settings.provider.backend or "").strip().lower()
    if backend not in _BACKENDS:
        backend = "gemini"
    settings.provider.backend = backend
    settings.provider.backend_options = _mru(settings.provider.backend_options, backend, limit=4)
    settings.provider.gemini_thinking_budget = max(0, int(settings.provider.gemini_thinking_budget))

    voice = str(settings.provider.openai_tts_voice or "").strip().lower()
    settings.provider.openai_tts_voice = voice if voice in OPENAI_TTS_VOICE_PRESETS else "alloy"

    persona_id = str(settings.chat.default_persona_id or "").strip().lower()
    if persona_id not in {p.id for p in PERSONAS}:
        persona_id = DEFAULT_PERSONA_ID
    settings.chat.default_persona_id = persona_id

    # An empty placeholder would produce a zero-part request for attachment-only sends.
    if not settings.chat.attachment_placeholder_text:
        settings.chat.attachment_placeholder_text = " "
    if not settings.chat.fallback_message.strip():
        settings.chat.fallback_message = "Sorry, I encountered an error. Please try again."

    voice_id = str(settings.audio.default_voice_id or "").strip().lower()
    matched = [v.id for v in VOICES if v.id.lower() == voice_id]
    settings.audio.default_voice_id = matched[0] if matched else DEFAULT_VOICE_ID

    settings.audio.playback_sample_rate = max(8000, min(48000, int(settings.audio.playback_sample_rate)))
    settings.audio.record_sample_rate = max(8000, min(48000, int(settings.audio.record_sample_rate)))
    settings.audio.record_channels = max(1, min(2, int(settings.audio.record_channels)))

    return settings


@dataclass
class SettingsStore:
    path: Path

    def __post_init__(self) -> None:
        self._lock = threading.Lock()
        self._settings = self._load_or_init()

    def _load_or_init(self) -> AppSettings:
        # Start from env defaults so existing .env workflows keep working.
        defaults = AppSettings()
        p = defaults.provider
        p.backend = os.environ.get("STUDIO_BACKEND", p.backend)
        p.gemini_chat_model = os.environ.get("STUDIO_GEMINI_CHAT_MODEL", p.gemini_chat_model)
        p.gemini_image_model = os.environ.get("STUDIO_GEMINI_IMAGE_MODEL", p.gemini_image_model)
        p.gemini_tts_model = os.environ.get("STUDIO_GEMINI_TTS_MODEL", p.gemini_tts_model)
        p.gemini_thinking_budget = int(os.environ.get("STUDIO_THINKING_BUDGET", str(p.gemini_thinking_budget)))
        p.openai_chat_model = os.environ.get("STUDIO_OPENAI_CHAT_MODEL", p.openai_chat_model)
        p.openai_image_model = os.environ.get("STUDIO_OPENAI_IMAGE_MODEL", p.openai_image_model)
        p.openai_tts_model = os.environ.get("STUDIO_OPENAI_TTS_MODEL", p.openai_tts_model)
        p.openai_tts_voice = os.environ.get("STUDIO_OPENAI_TTS_VOICE", p.openai_tts_voice)

        defaults.chat.default_persona_id = os.environ.get("STUDIO_PERSONA", defaults.chat.default_persona_id)
        defaults.audio.default_voice_id = os.environ.get("STUDIO_VOICE", defaults.audio.default_voice_id)
        defaults.log_path = os.environ.get("STUDIO_LOG_PATH", defaults.log_path)

        if not self.path.exists():
            defaults = _normalize_settings(defaults)
            _atomic_write_json(self.path, defaults.model_dump())
            return defaults

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            defaults = _normalize_settings(defaults)
            _atomic_write_json(self.path, defaults.model_dump())
            return defaults

        # Merge to allow forward-compatible additions.
        merged = _deep_merge(defaults.model_dump(), raw if isinstance(raw, dict) else {})
        settings = _normalize_settings(AppSettings.model_validate(merged))
        # Normalize: always write back once so file is self-healing.
        _atomic_write_json(self.path, settings.model_dump())
        return settings

    def get(self) -> AppSettings:
        with self._lock:
            return AppSettings.model_validate(self._settings.model_dump())

    def update(self, patch: dict[str, Any]) -> AppSettings:
        with self._lock:
            merged = _deep_merge(self._settings.model_dump(), patch)
            settings = _normalize_settings(AppSettings.model_validate(merged))
            self._settings = settings
            _atomic_write_json(self.path, settings.model_dump())
            # Return a detached copy while still under lock; calling self.get()
            # here would attempt to re-acquire the same non-reentrant lock.
            return AppSettings.model_validate(settings.model_dump())
