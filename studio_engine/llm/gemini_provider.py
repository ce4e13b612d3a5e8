from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from studio_engine.chat.types import BinaryPart, RequestPart, TextPart
from studio_engine.errors import AuthError, GenerationError, StudioError
from studio_engine.llm.provider import GeneratedMedia, resolve_api_key


_KEY_ENV_NAMES = ("GEMINI_API_KEY", "API_KEY", "GOOGLE_API_KEY")


@dataclass
class GeminiChatSession:
    chat: Any  # google.genai AsyncChat
    system_instruction: str


def _translate(e: Exception, *, what: str) -> StudioError:
    code = getattr(e, "code", None)
    if isinstance(e, genai_errors.APIError) and code in (401, 403):
        return AuthError(f"{what} rejected the API key: {getattr(e, 'message', '') or e}")
    return GenerationError(f"{what} failed: {e}")


def _to_genai_part(part: RequestPart) -> types.Part:
    if isinstance(part, TextPart):
        return types.Part.from_text(text=part.text)
    if isinstance(part, BinaryPart):
        return types.Part.from_bytes(data=part.data, mime_type=part.mime_type)
    raise TypeError(f"Unsupported request part: {type(part).__name__}")


def _response_parts(response: Any) -> list[Any]:
    """`candidates[0].content.parts`, or [] when any level is missing."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    return list(getattr(content, "parts", None) or [])


def _first_inline_data(parts: list[Any]) -> Any | None:
    for part in parts:
        inline = getattr(part, "inline_data", None)
        if inline is not None and getattr(inline, "data", None):
            return inline
    return None


@dataclass
class GeminiProvider:
    """google-genai backed implementation of studio_engine.llm.provider.GenerativeProvider."""

    chat_model: str = "gemini-2.5-flash"
    thinking_budget: int = 1024
    image_model: str = "gemini-2.5-flash-image"
    image_aspect_ratio: str = "1:1"
    tts_model: str = "gemini-2.5-flash-preview-tts"
    api_key: str | None = None
    _clients: dict[str, Any] = field(default_factory=dict, init=False, repr=False)

    def _client(self) -> Any:
        # Resolve on every call so a key provided after startup is picked up.
        key = resolve_api_key(self.api_key, _KEY_ENV_NAMES)
        client = self._clients.get(key)
        if client is None:
            client = genai.Client(api_key=key)
            self._clients = {key: client}
        return client

    def create_session(self, system_instruction: str) -> GeminiChatSession:
        client = self._client()
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            thinking_config=types.ThinkingConfig(thinking_budget=int(self.thinking_budget)),
        )
        chat = client.aio.chats.create(model=self.chat_model, config=config)
        return GeminiChatSession(chat=chat, system_instruction=system_instruction)

    async def send_streaming(self, handle: GeminiChatSession, parts: list[RequestPart]) -> AsyncIterator[str]:
        if not parts:
            raise GenerationError("Request must contain at least one part.")
        message = [_to_genai_part(p) for p in parts]
        produced = 0
        try:
            stream = await handle.chat.send_message_stream(message=message)
            async for chunk in stream:
                text = getattr(chunk, "text", None)
                if text:
                    produced += 1
                    yield text
        except genai_errors.APIError as e:
            raise _translate(e, what="Chat") from e
        except (httpx.HTTPError, OSError, ValueError) as e:
            raise GenerationError(f"Chat failed: {e}") from e
        if produced == 0:
            raise GenerationError("No content generated")

    async def generate_image(self, prompt: str) -> GeneratedMedia:
        client = self._client()
        try:
            response = await client.aio.models.generate_content(
                model=self.image_model,
                contents=[types.Part.from_text(text=prompt)],
                config=types.GenerateContentConfig(
                    image_config=types.ImageConfig(aspect_ratio=self.image_aspect_ratio),
                ),
            )
        except genai_errors.APIError as e:
            raise _translate(e, what="Image generation") from e
        except (httpx.HTTPError, OSError, ValueError) as e:
            raise GenerationError(f"Image generation failed: {e}") from e
        return parse_image_response(response)

    async def generate_speech(self, text: str, voice_id: str) -> GeneratedMedia:
        client = self._client()
        try:
            response = await client.aio.models.generate_content(
                model=self.tts_model,
                contents=[types.Content(role="user", parts=[types.Part.from_text(text=text)])],
                config=types.GenerateContentConfig(
                    response_modalities=["AUDIO"],
                    speech_config=types.SpeechConfig(
                        voice_config=types.VoiceConfig(
                            prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice_id),
                        ),
                    ),
                ),
            )
        except genai_errors.APIError as e:
            raise _translate(e, what="Speech generation") from e
        except (httpx.HTTPError, OSError, ValueError) as e:
            raise GenerationError(f"Speech generation failed: {e}") from e
        return parse_speech_response(response)


def parse_image_response(response: Any) -> GeneratedMedia:
    parts = _response_parts(response)
    if not parts:
        raise GenerationError("No content generated")
    inline = _first_inline_data(parts)
    if inline is None:
        raise GenerationError("No image data found in response")
    return GeneratedMedia(data=bytes(inline.data), mime_type=getattr(inline, "mime_type", None) or "image/png")


def parse_speech_response(response: Any) -> GeneratedMedia:
    parts = _response_parts(response)
    inline = getattr(parts[0], "inline_data", None) if parts else None
    if inline is None or not getattr(inline, "data", None):
        raise GenerationError("No audio generated")
    # The TTS models return headerless 16-bit PCM at 24 kHz.
    mime = getattr(inline, "mime_type", None) or "audio/L16;codec=pcm;rate=24000"
    return GeneratedMedia(data=bytes(inline.data), mime_type=mime)
