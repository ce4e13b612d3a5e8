from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, AsyncIterator, Protocol

from studio_engine.chat.types import RequestPart
from studio_engine.errors import AuthError
from studio_engine.media.codec import b64encode, to_data_uri


@dataclass(frozen=True)
class GeneratedMedia:
    data: bytes
    mime_type: str

    @property
    def b64(self) -> str:
        return b64encode(self.data)

    @property
    def data_uri(self) -> str:
        return to_data_uri(self.mime_type, self.data)


class GenerativeProvider(Protocol):
    """Boundary to the external generative API.

    Implementations translate SDK failures into AuthError / GenerationError;
    nothing else may escape these methods.
    """

    def create_session(self, system_instruction: str) -> Any: ...

    def send_streaming(self, handle: Any, parts: list[RequestPart]) -> AsyncIterator[str]: ...

    async def generate_image(self, prompt: str) -> GeneratedMedia: ...

    async def generate_speech(self, text: str, voice_id: str) -> GeneratedMedia: ...


def resolve_api_key(explicit: str | None, env_names: tuple[str, ...]) -> str:
    """Return the first non-blank credential, or raise AuthError."""
    key = str(explicit or "").strip()
    if key:
        return key
    for name in env_names:
        v = str(os.environ.get(name) or "").strip()
        if v:
            return v
    raise AuthError(f"Missing API key. Set {' or '.join(env_names)}.")
