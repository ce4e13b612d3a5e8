from __future__ import annotations

from dataclasses import dataclass, field

from studio_engine.app.alerts import Notifier
from studio_engine.app.catalog import DEFAULT_VOICE_ID, VoiceDescriptor, get_voice
from studio_engine.errors import AudioDeviceError, DecodeError, StudioError
from studio_engine.llm.provider import GenerativeProvider
from studio_engine.logging.events import EventLogger
from studio_engine.media.playback import AudioPlaybackEngine


@dataclass
class SpeechPanel:
    provider: GenerativeProvider
    playback: AudioPlaybackEngine
    notifier: Notifier
    logger: EventLogger | None = None
    conversation_id: str = "speech"
    voice: VoiceDescriptor = field(default_factory=lambda: get_voice(DEFAULT_VOICE_ID))
    is_generating: bool = field(default=False, init=False)

    @property
    def is_playing(self) -> bool:
        return self.playback.is_playing

    def select_voice(self, voice_id: str) -> VoiceDescriptor:
        self.voice = get_voice(voice_id)
        return self.voice

    def stop(self) -> None:
        self.playback.stop()

    async def press(self, text: str) -> None:
        """Play/stop button: stops when playing, otherwise generates."""
        if self.playback.is_playing:
            self.stop()
            return
        await self.generate(text)

    async def generate(self, text: str) -> bool:
        if not text.strip() or self.is_generating:
            return False

        self.is_generating = True
        try:
            try:
                media = await self.provider.generate_speech(text, self.voice.id)
            except StudioError as e:
                if self.logger is not None:
                    self.logger.error(self.conversation_id, "speech_failed", {"voice": self.voice.id, "error": str(e)})
                self.notifier.alert("Failed to generate speech")
                return False

            if self.logger is not None:
                self.logger.event(
                    self.conversation_id,
                    "speech_generated",
                    {"voice": self.voice.id, "mime": media.mime_type, "bytes": len(media.data)},
                )
            try:
                await self.playback.play(media.data, media.mime_type)
            except (DecodeError, AudioDeviceError) as e:
                self.notifier.alert(f"Failed to play audio: {e}")
                return False
            return True
        finally:
            self.is_generating = False
