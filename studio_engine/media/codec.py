from __future__ import annotations

import base64
import io
import mimetypes
from pathlib import Path
from typing import Literal

import numpy as np
import soundfile as sf

from studio_engine.errors import DecodeError


MediaKind = Literal["image", "audio"]

_RAW_PCM_TYPES = {"audio/l16", "audio/pcm", "audio/raw"}


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(text: str) -> bytes:
    # Accept a full data URI as well as bare base64.
    if text.startswith("data:") and "," in text:
        text = text.split(",", 1)[1]
    return base64.b64decode(text)


def to_data_uri(mime_type: str, data: bytes) -> str:
    return f"data:{mime_type};base64,{b64encode(data)}"


def classify_media_kind(mime_type: str) -> MediaKind:
    """`audio/*` is audio; anything else is treated as an image."""
    return "audio" if str(mime_type or "").strip().lower().startswith("audio/") else "image"


# Recorder containers; mimetypes reports .webm as video/webm.
_RECORDER_CONTAINERS = {
    ".webm": "audio/webm",
    ".opus": "audio/ogg",
}


def guess_mime_type(path: Path) -> str:
    ext = path.suffix.lower()
    if ext in _RECORDER_CONTAINERS:
        return _RECORDER_CONTAINERS[ext]
    mime, _ = mimetypes.guess_type(path.name)
    return mime or "application/octet-stream"


def guess_extension(mime_type: str, fallback: str = ".bin") -> str:
    base = str(mime_type or "").split(";", 1)[0].strip().lower()
    ext = mimetypes.guess_extension(base)
    return ext or fallback


def _mime_params(mime_type: str) -> tuple[str, dict[str, str]]:
    pieces = [p.strip() for p in str(mime_type or "").split(";")]
    base = pieces[0].lower() if pieces else ""
    params: dict[str, str] = {}
    for p in pieces[1:]:
        if "=" not in p:
            continue
        k, v = p.split("=", 1)
        params[k.strip().lower()] = v.strip()
    return base, params


def _resample(samples: np.ndarray, src_rate: int, dst_rate: int) -> np.ndarray:
    if src_rate == dst_rate or samples.size == 0:
        return samples
    n_out = max(1, int(round(samples.size * dst_rate / src_rate)))
    x_old = np.linspace(0.0, 1.0, num=samples.size, endpoint=False)
    x_new = np.linspace(0.0, 1.0, num=n_out, endpoint=False)
    return np.interp(x_new, x_old, samples).astype(np.float32)


def _decode_raw_pcm(payload: bytes, params: dict[str, str], default_rate: int) -> tuple[np.ndarray, int]:
    if len(payload) % 2 != 0:
        raise DecodeError("Raw PCM payload has an odd byte count.")
    try:
        rate = int(params.get("rate") or default_rate)
    except ValueError as e:
        raise DecodeError(f"Invalid PCM rate: {params.get('rate')!r}") from e
    if rate <= 0:
        raise DecodeError(f"Invalid PCM rate: {rate}")
    pcm = np.frombuffer(payload, dtype="<i2").astype(np.float32) / 32768.0
    return pcm, rate


def decode_audio(payload: bytes, mime_type: str, target_rate: int = 24000) -> np.ndarray:
    """Decode an audio payload into mono float32 samples at `target_rate`."""
    if not payload:
        raise DecodeError("Audio payload is empty.")

    base, params = _mime_params(mime_type)
    if base in _RAW_PCM_TYPES:
        samples, rate = _decode_raw_pcm(payload, params, target_rate)
    else:
        try:
            data, rate = sf.read(io.BytesIO(payload), dtype="float32", always_2d=True)
        except (RuntimeError, TypeError, ValueError) as e:
            raise DecodeError(f"Unable to decode audio ({base or 'unknown type'}): {e}") from e
        samples = data.mean(axis=1).astype(np.float32)

    if samples.size == 0:
        raise DecodeError("Audio payload contains no frames.")
    return _resample(samples, int(rate), int(target_rate))


def encode_wav(samples: np.ndarray, sample_rate: int) -> bytes:
    bio = io.BytesIO()
    sf.write(bio, samples, sample_rate, format="WAV", subtype="PCM_16")
    return bio.getvalue()
