"""Test doubles for the provider, audio devices and alerts."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable

import numpy as np

from studio_engine.chat.types import RequestPart
from studio_engine.errors import AuthError, GenerationError
from studio_engine.llm.provider import GeneratedMedia


END = object()


@dataclass
class CollectingNotifier:
    messages: list[str] = field(default_factory=list)

    def alert(self, message: str) -> None:
        self.messages.append(message)


@dataclass
class FakeProvider:
    """Scripted provider.

    Each send consumes one entry of `streams`: a list of fragments (an
    Exception item is raised in place), or an asyncio.Queue fed by the test
    and terminated with END.
    """

    streams: list[Any] = field(default_factory=list)
    auth_error: bool = False
    image: GeneratedMedia | Exception | None = None
    speech: GeneratedMedia | Exception | None = None
    sessions: list[str] = field(default_factory=list)
    sent: list[list[RequestPart]] = field(default_factory=list)
    speech_calls: list[tuple[str, str]] = field(default_factory=list)

    def create_session(self, system_instruction: str) -> str:
        if self.auth_error:
            raise AuthError("Missing API key. Set GEMINI_API_KEY.")
        self.sessions.append(system_instruction)
        return f"session-{len(self.sessions)}"

    async def send_streaming(self, handle: Any, parts: list[RequestPart]):
        self.sent.append(list(parts))
        script = self.streams.pop(0)
        if isinstance(script, asyncio.Queue):
            while True:
                item = await script.get()
                if item is END:
                    return
                if isinstance(item, Exception):
                    raise item
                yield item
        for item in script:
            await asyncio.sleep(0)
            if isinstance(item, Exception):
                raise item
            yield item

    async def generate_image(self, prompt: str) -> GeneratedMedia:
        if isinstance(self.image, Exception):
            raise self.image
        if self.image is None:
            raise GenerationError("No image data found in response")
        return self.image

    async def generate_speech(self, text: str, voice_id: str) -> GeneratedMedia:
        self.speech_calls.append((text, voice_id))
        if isinstance(self.speech, Exception):
            raise self.speech
        if self.speech is None:
            raise GenerationError("No audio generated")
        return self.speech


@dataclass
class FakeInputStream:
    on_chunk: Callable[[np.ndarray], None]
    stopped: bool = False
    closed: bool = False

    def stop(self) -> None:
        self.stopped = True

    def close(self) -> None:
        self.closed = True


@dataclass
class FakeInputFactory:
    error: Exception | None = None
    streams: list[FakeInputStream] = field(default_factory=list)

    def __call__(self, *, sample_rate: int, channels: int, on_chunk: Callable[[np.ndarray], None]) -> FakeInputStream:
        if self.error is not None:
            raise self.error
        stream = FakeInputStream(on_chunk=on_chunk)
        self.streams.append(stream)
        return stream


@dataclass
class FakeOutputStream:
    samples: np.ndarray
    on_finished: Callable[[], None]
    started: bool = False
    aborted: bool = False
    closed: bool = False
    abort_error: Exception | None = None

    def start(self) -> None:
        self.started = True

    def abort(self) -> None:
        if self.abort_error is not None:
            raise self.abort_error
        self.aborted = True

    def close(self) -> None:
        self.closed = True


@dataclass
class FakeOutputFactory:
    streams: list[FakeOutputStream] = field(default_factory=list)

    def __call__(self, samples: np.ndarray, *, sample_rate: int, on_finished: Callable[[], None]) -> FakeOutputStream:
        stream = FakeOutputStream(samples=samples, on_finished=on_finished)
        self.streams.append(stream)
        return stream


async def settle(cond: Callable[[], bool] | None = None, *, rounds: int = 200) -> None:
    """Yield to the event loop until `cond()` holds (or a fixed number of rounds)."""
    for _ in range(rounds):
        if cond is not None and cond():
            return
        await asyncio.sleep(0)
    if cond is not None:
        assert cond(), "condition not reached"
