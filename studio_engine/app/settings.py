from __future__ import annotations

from pydantic import BaseModel, Field


class ProviderSettings(BaseModel):
    # Generative backend:
    # - gemini: google-genai SDK (chat, image and TTS models below)
    # - openai: OpenAI API key mode
    backend: str = "gemini"
    backend_options: list[str] = Field(default_factory=lambda: ["gemini", "openai"])

    gemini_chat_model: str = "gemini-2.5-flash"
    # Thinking tokens per reply; 0 disables thinking.
    gemini_thinking_budget: int = 1024
    gemini_image_model: str = "gemini-2.5-flash-image"
    gemini_image_aspect_ratio: str = "1:1"
    gemini_tts_model: str = "gemini-2.5-flash-preview-tts"

    openai_chat_model: str = "gpt-4o-mini"
    openai_image_model: str = "gpt-image-1"
    openai_image_size: str = "1024x1024"
    openai_tts_model: str = "gpt-4o-mini-tts"
    # Used when the selected catalog voice is not an OpenAI preset.
    openai_tts_voice: str = "alloy"


class ChatSettings(BaseModel):
    default_persona_id: str = "default"
    greeting_template: str = (
        "Hello! I'm your {name} ({description}). I can chat, look at images, listen to audio, "
        "and help you with various tasks."
    )
    fallback_message: str = "Sorry, I encountered an error. Please try again."
    # Text part sent with attachment-only messages; must be non-empty.
    attachment_placeholder_text: str = " "


class AudioSettings(BaseModel):
    default_voice_id: str = "Kore"
    # Decoded TTS audio is resampled to this rate before playback.
    playback_sample_rate: int = 24000
    record_sample_rate: int = 16000
    record_channels: int = 1
    image_save_dir: str = "data/images"


class AppSettings(BaseModel):
    version: int = 1
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    chat: ChatSettings = Field(default_factory=ChatSettings)
    audio: AudioSettings = Field(default_factory=AudioSettings)
    log_path: str = "data/events.jsonl"
