from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import openai
from openai import AsyncOpenAI

from studio_engine.app.catalog import OPENAI_TTS_VOICE_PRESETS
from studio_engine.chat.types import BinaryPart, RequestPart, TextPart
from studio_engine.errors import AuthError, GenerationError, StudioError
from studio_engine.llm.provider import GeneratedMedia, resolve_api_key
from studio_engine.media.codec import b64decode, b64encode, classify_media_kind, to_data_uri


# Chat completions only accept these input_audio formats.
_AUDIO_FORMATS = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
}


@dataclass
class OpenAIChatSession:
    system_instruction: str
    history: list[dict[str, Any]] = field(default_factory=list)


def _translate(e: Exception, *, what: str) -> StudioError:
    if isinstance(e, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AuthError(f"{what} rejected the API key: {e}")
    return GenerationError(f"{what} failed: {e}")


def _to_content_part(part: RequestPart) -> dict[str, Any]:
    if isinstance(part, TextPart):
        return {"type": "text", "text": part.text}
    if isinstance(part, BinaryPart):
        if classify_media_kind(part.mime_type) == "image":
            return {"type": "image_url", "image_url": {"url": to_data_uri(part.mime_type, part.data)}}
        base = part.mime_type.split(";", 1)[0].strip().lower()
        fmt = _AUDIO_FORMATS.get(base)
        if fmt is None:
            raise GenerationError(f"Audio format {part.mime_type!r} is not supported by the OpenAI backend.")
        return {"type": "input_audio", "input_audio": {"data": b64encode(part.data), "format": fmt}}
    raise TypeError(f"Unsupported request part: {type(part).__name__}")


@dataclass
class OpenAIProvider:
    """OpenAI backed implementation of studio_engine.llm.provider.GenerativeProvider."""

    chat_model: str = "gpt-4o-mini"
    image_model: str = "gpt-image-1"
    image_size: str = "1024x1024"
    tts_model: str = "gpt-4o-mini-tts"
    default_voice: str = "alloy"
    api_key: str | None = None
    base_url: str | None = None
    _clients: dict[str, AsyncOpenAI] = field(default_factory=dict, init=False, repr=False)

    def _client(self) -> AsyncOpenAI:
        key = resolve_api_key(self.api_key, ("OPENAI_API_KEY",))
        client = self._clients.get(key)
        if client is None:
            base_url = self.base_url or os.environ.get("OPENAI_BASE_URL")
            if base_url is not None and not str(base_url).strip():
                # Treat empty as unset to avoid httpx UnsupportedProtocol errors.
                base_url = None
            client = AsyncOpenAI(api_key=key, base_url=base_url)
            self._clients = {key: client}
        return client

    def create_session(self, system_instruction: str) -> OpenAIChatSession:
        # Validate the credential now; the conversation itself lives client-side.
        self._client()
        return OpenAIChatSession(system_instruction=system_instruction)

    async def send_streaming(self, handle: OpenAIChatSession, parts: list[RequestPart]) -> AsyncIterator[str]:
        if not parts:
            raise GenerationError("Request must contain at least one part.")
        client = self._client()
        user_msg = {"role": "user", "content": [_to_content_part(p) for p in parts]}
        messages = [{"role": "system", "content": handle.system_instruction}, *handle.history, user_msg]

        chunks: list[str] = []
        try:
            stream = await client.chat.completions.create(model=self.chat_model, messages=messages, stream=True)
            async for event in stream:
                choices = getattr(event, "choices", None) or []
                delta = getattr(choices[0], "delta", None) if choices else None
                text = getattr(delta, "content", None)
                if text:
                    chunks.append(text)
                    yield text
        except openai.OpenAIError as e:
            raise _translate(e, what="Chat") from e
        if not chunks:
            raise GenerationError("No content generated")
        # Only completed turns become part of the session memory.
        handle.history.extend([user_msg, {"role": "assistant", "content": "".join(chunks)}])

    async def generate_image(self, prompt: str) -> GeneratedMedia:
        client = self._client()
        try:
            resp = await client.images.generate(model=self.image_model, prompt=prompt, size=self.image_size, n=1)
        except openai.OpenAIError as e:
            raise _translate(e, what="Image generation") from e
        data = list(getattr(resp, "data", None) or [])
        if not data:
            raise GenerationError("No content generated")
        b64 = getattr(data[0], "b64_json", None)
        if not b64:
            raise GenerationError("No image data found in response")
        return GeneratedMedia(data=b64decode(b64), mime_type="image/png")

    async def generate_speech(self, text: str, voice_id: str) -> GeneratedMedia:
        client = self._client()
        voice = str(voice_id or "").strip().lower()
        if voice not in OPENAI_TTS_VOICE_PRESETS:
            voice = self.default_voice
        try:
            resp = await client.audio.speech.create(
                model=self.tts_model,
                voice=voice,
                input=text,
                response_format="wav",
            )
        except openai.OpenAIError as e:
            raise _translate(e, what="Speech generation") from e
        audio = getattr(resp, "content", None)
        if not audio:
            raise GenerationError("No audio generated")
        return GeneratedMedia(data=bytes(audio), mime_type="audio/wav")
