from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import numpy as np

from studio_engine.app.alerts import Notifier
from studio_engine.chat.types import Attachment
from studio_engine.errors import MicrophonePermissionError
from studio_engine.logging.events import EventLogger
from studio_engine.media import devices
from studio_engine.media.codec import encode_wav, guess_mime_type


def attachment_from_bytes(data: bytes, mime_type: str) -> Attachment:
    return Attachment.from_bytes(data, mime_type)


async def load_attachment(path: str | Path, mime_type: str | None = None) -> Attachment:
    """Read a user-selected file fully into memory and classify it."""
    p = Path(path).expanduser()
    data = await asyncio.to_thread(p.read_bytes)
    return Attachment.from_bytes(data, mime_type or guess_mime_type(p))


InputStreamFactory = Callable[..., Any]


@dataclass
class MicrophoneRecorder:
    """Single-shot microphone capture producing a WAV attachment.

    Only one recording at a time; the input device is released on every stop.
    """

    notifier: Notifier
    sample_rate: int = 16000
    channels: int = 1
    stream_factory: InputStreamFactory = devices.open_input_stream
    logger: EventLogger | None = None
    conversation_id: str = "local"
    _stream: Any = field(default=None, init=False, repr=False)
    _chunks: list[np.ndarray] = field(default_factory=list, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def is_recording(self) -> bool:
        return self._stream is not None

    def _on_chunk(self, chunk: np.ndarray) -> None:
        with self._lock:
            self._chunks.append(chunk)

    def start(self) -> bool:
        if self.is_recording:
            return True
        with self._lock:
            self._chunks = []
        try:
            stream = self.stream_factory(
                sample_rate=self.sample_rate,
                channels=self.channels,
                on_chunk=self._on_chunk,
            )
        except MicrophonePermissionError as e:
            if self.logger is not None:
                self.logger.error(self.conversation_id, "microphone_denied", {"error": str(e)})
            self.notifier.alert("Could not access microphone. Please check permissions.")
            return False
        self._stream = stream
        if self.logger is not None:
            self.logger.event(self.conversation_id, "recording_started", {"sample_rate": self.sample_rate})
        return True

    def stop(self) -> Attachment | None:
        stream = self._stream
        if stream is None:
            return None
        self._stream = None
        try:
            stream.stop()
        finally:
            stream.close()

        with self._lock:
            chunks, self._chunks = self._chunks, []
        if chunks:
            samples = np.concatenate(chunks, axis=0)
        else:
            samples = np.zeros((0, self.channels), dtype=np.int16)
        payload = encode_wav(samples, self.sample_rate)
        if self.logger is not None:
            self.logger.event(
                self.conversation_id,
                "recording_finished",
                {"frames": int(samples.shape[0]), "bytes": len(payload)},
            )
        return Attachment(data=payload, mime_type="audio/wav", kind="audio")
