from __future__ import annotations

import threading
from typing import Any, Callable

import numpy as np

from studio_engine.errors import AudioDeviceError, MicrophonePermissionError


def _sounddevice() -> Any:
    # Imported lazily: loading sounddevice requires the PortAudio shared library.
    try:
        import sounddevice as sd  # type: ignore
    except OSError as e:
        raise AudioDeviceError(f"PortAudio is not available: {e}") from e
    return sd


def open_input_stream(*, sample_rate: int, channels: int, on_chunk: Callable[[np.ndarray], None]) -> Any:
    """Open (and start) a microphone stream delivering int16 chunks to `on_chunk`.

    Raises MicrophonePermissionError when the device cannot be opened.
    """
    try:
        sd = _sounddevice()
    except AudioDeviceError as e:
        raise MicrophonePermissionError(str(e)) from e

    def callback(indata, frames, time_info, status):  # PortAudio thread
        on_chunk(indata.copy())

    try:
        stream = sd.InputStream(samplerate=sample_rate, channels=channels, dtype="int16", callback=callback)
    except sd.PortAudioError as e:
        raise MicrophonePermissionError(f"Microphone unavailable: {e}") from e
    try:
        stream.start()
    except sd.PortAudioError as e:
        stream.close()
        raise MicrophonePermissionError(f"Microphone unavailable: {e}") from e
    return stream


class _BufferSource:
    """Feeds a fixed float32 buffer to an output stream, then stops it."""

    def __init__(self, samples: np.ndarray, callback_stop: type[BaseException]) -> None:
        self._samples = samples
        self._pos = 0
        self._lock = threading.Lock()
        self._callback_stop = callback_stop

    def __call__(self, outdata, frames, time_info, status):  # PortAudio thread
        with self._lock:
            chunk = self._samples[self._pos : self._pos + frames]
            self._pos += len(chunk)
        outdata[: len(chunk), 0] = chunk
        if len(chunk) < frames:
            outdata[len(chunk) :, 0] = 0.0
            raise self._callback_stop()


def open_output_stream(samples: np.ndarray, *, sample_rate: int, on_finished: Callable[[], None]) -> Any:
    """Create an unstarted mono float32 output stream that plays `samples` once.

    `on_finished` runs on the audio thread after natural end, stop() or abort().
    """
    sd = _sounddevice()
    try:
        return sd.OutputStream(
            samplerate=sample_rate,
            channels=1,
            dtype="float32",
            callback=_BufferSource(samples, sd.CallbackStop),
            finished_callback=on_finished,
        )
    except sd.PortAudioError as e:
        raise AudioDeviceError(f"Audio output unavailable: {e}") from e
