from __future__ import annotations


class StudioError(Exception):
    """Base class for every recoverable failure surfaced to the user."""


class AuthError(StudioError):
    """Missing or rejected API credential. Never retried."""


class GenerationError(StudioError):
    """Upstream call failed or returned no usable payload."""


class DecodeError(StudioError):
    """Audio payload could not be decoded."""


class MicrophonePermissionError(StudioError, PermissionError):
    """Microphone access denied or no input device available."""


class AudioDeviceError(StudioError):
    """Audio output device could not be opened."""
