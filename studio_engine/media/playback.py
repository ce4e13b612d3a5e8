from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

import numpy as np

from studio_engine.errors import AudioDeviceError, DecodeError
from studio_engine.logging.events import EventLogger
from studio_engine.media import devices
from studio_engine.media.codec import decode_audio


class PlaybackState(str, Enum):
    STOPPED = "stopped"
    DECODING = "decoding"
    PLAYING = "playing"


OutputStreamFactory = Callable[..., Any]


@dataclass
class _Source:
    stream: Any
    frames: int


@dataclass
class AudioPlaybackEngine:
    """Decode-and-play for generated speech, one source at a time.

    Device callbacks arrive on the audio thread and are marshalled onto the
    event loop; state is only ever changed from the loop.
    """

    sample_rate: int = 24000
    output_factory: OutputStreamFactory = devices.open_output_stream
    on_ended: Callable[[], None] | None = None
    logger: EventLogger | None = None
    conversation_id: str = "local"
    state: PlaybackState = field(default=PlaybackState.STOPPED, init=False)
    _source: _Source | None = field(default=None, init=False, repr=False)
    _generation: int = field(default=0, init=False, repr=False)

    @property
    def is_playing(self) -> bool:
        return self.state == PlaybackState.PLAYING

    async def play(self, payload: bytes, mime_type: str = "audio/wav") -> None:
        self.stop()
        self._generation += 1
        generation = self._generation
        self.state = PlaybackState.DECODING
        try:
            samples = await asyncio.to_thread(decode_audio, payload, mime_type, self.sample_rate)
        except DecodeError as e:
            if generation == self._generation:
                self.state = PlaybackState.STOPPED
            if self.logger is not None:
                self.logger.error(self.conversation_id, "audio_decode_failed", {"error": str(e), "mime": mime_type})
            raise
        if generation != self._generation:
            # Superseded by stop() or another play() while decoding.
            return
        self._start(samples)

    def _start(self, samples: np.ndarray) -> None:
        loop = asyncio.get_running_loop()
        holder: list[_Source] = []

        def finished() -> None:  # audio thread
            if holder:
                loop.call_soon_threadsafe(self._on_source_ended, holder[0])

        try:
            stream = self.output_factory(samples, sample_rate=self.sample_rate, on_finished=finished)
        except AudioDeviceError:
            self.state = PlaybackState.STOPPED
            raise
        source = _Source(stream=stream, frames=int(samples.size))
        holder.append(source)
        self._source = source
        self.state = PlaybackState.PLAYING
        try:
            stream.start()
        except Exception as e:
            self._source = None
            self.state = PlaybackState.STOPPED
            stream.close()
            raise AudioDeviceError(f"Audio output failed to start: {e}") from e
        if self.logger is not None:
            self.logger.event(
                self.conversation_id,
                "playback_started",
                {"frames": source.frames, "seconds": round(source.frames / float(self.sample_rate), 3)},
            )

    def stop(self) -> None:
        # Invalidate any decode in flight as well as the active source.
        self._generation += 1
        source, self._source = self._source, None
        self.state = PlaybackState.STOPPED
        if source is None:
            return
        try:
            source.stream.abort()
        except Exception:  # already stopped
            pass
        try:
            source.stream.close()
        except Exception:  # already closed
            pass

    def _on_source_ended(self, source: _Source) -> None:
        if source is not self._source:
            return
        self._source = None
        self.state = PlaybackState.STOPPED
        try:
            source.stream.close()
        except Exception:  # already closed
            pass
        if self.on_ended is not None:
            self.on_ended()
