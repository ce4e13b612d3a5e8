from __future__ import annotations

import argparse
import asyncio
import os
import shlex
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from studio_engine.app.alerts import ConsoleNotifier
from studio_engine.app.catalog import PERSONAS, VOICES
from studio_engine.app.settings import AppSettings
from studio_engine.app.settings_store import SettingsStore
from studio_engine.chat.controller import SessionController
from studio_engine.chat.types import TranscriptEntry
from studio_engine.llm.gemini_provider import GeminiProvider
from studio_engine.llm.openai_provider import OpenAIProvider
from studio_engine.logging.events import EventLogger
from studio_engine.media.attachments import MicrophoneRecorder
from studio_engine.media.playback import AudioPlaybackEngine
from studio_engine.panels.image_panel import ImagePanel
from studio_engine.panels.speech_panel import SpeechPanel


class AppMode(str, Enum):
    CHAT = "chat"
    IMAGE = "image"
    SPEECH = "speech"


HELP = {
    AppMode.CHAT: (
        "chat: type a message, or /persona <id>, /personas, /attach <path> [mime], /discard, "
        "/record, /stop, /transcript"
    ),
    AppMode.IMAGE: "image: type a prompt, or /save [dir]",
    AppMode.SPEECH: "speech: type text to speak, or /voice <name>, /voices, /stop",
}


def _try_load_dotenv() -> None:
    root = Path(__file__).resolve().parents[1]
    # Do not clobber existing env vars (e.g. when running under a process manager).
    load_dotenv(dotenv_path=root / ".env", override=False)

    # openai-python treats OPENAI_BASE_URL as authoritative if present.
    base_url = os.environ.get("OPENAI_BASE_URL")
    if base_url is not None and not base_url.strip():
        os.environ.pop("OPENAI_BASE_URL", None)


def _build_provider(settings: AppSettings) -> Any:
    p = settings.provider
    if p.backend == "openai":
        print(f"[llm] Using openai ({p.openai_chat_model})")
        return OpenAIProvider(
            chat_model=p.openai_chat_model,
            image_model=p.openai_image_model,
            image_size=p.openai_image_size,
            tts_model=p.openai_tts_model,
            default_voice=p.openai_tts_voice,
        )
    print(f"[llm] Using gemini ({p.gemini_chat_model})")
    return GeminiProvider(
        chat_model=p.gemini_chat_model,
        thinking_budget=p.gemini_thinking_budget,
        image_model=p.gemini_image_model,
        image_aspect_ratio=p.gemini_image_aspect_ratio,
        tts_model=p.gemini_tts_model,
    )


class TextShell:
    """Tabbed terminal front-end; reads controller state, forwards commands."""

    def __init__(
        self,
        *,
        settings: AppSettings,
        chat: SessionController,
        image: ImagePanel,
        speech: SpeechPanel,
        mode: AppMode,
    ) -> None:
        self.settings = settings
        self.chat = chat
        self.image = image
        self.speech = speech
        self.mode = mode
        self._printed: dict[int, int] = {}
        chat.on_change = self._render_entry

    def _render_entry(self, entry: TranscriptEntry) -> None:
        # Streamed entries print only the newly appended tail.
        shown = self._printed.get(entry.id)
        if shown is None:
            who = "you" if entry.role == "user" else "model"
            tag = f" [{entry.attachment.kind}: {entry.attachment.mime_type}]" if entry.attachment else ""
            print(f"\n{who}>{tag} {entry.content}", end="", flush=True)
            self._printed[entry.id] = len(entry.content)
            return
        print(entry.content[shown:], end="", flush=True)
        self._printed[entry.id] = len(entry.content)

    def _prompt(self) -> str:
        if self.mode == AppMode.CHAT:
            persona = self.chat.persona.id if self.chat.persona else "-"
            flags = ""
            if self.chat.pending_attachment is not None:
                flags += "+att"
            if self.chat.is_recording:
                flags += "+rec"
            return f"\n[chat:{persona}{flags}]> "
        if self.mode == AppMode.SPEECH:
            return f"\n[speech:{self.speech.voice.id}]> "
        return "\n[image]> "

    async def run(self) -> None:
        print("Studio text mode. Tabs: /chat /image /speech; /help; Ctrl+D to exit.")
        self.chat.init(self.settings.chat.default_persona_id)
        while True:
            try:
                line = await asyncio.to_thread(input, self._prompt())
            except EOFError:
                break
            line = line.strip()
            if not line:
                continue
            if line in ("/quit", "/exit"):
                break
            await self.handle(line)
        self.speech.stop()
        self.chat.teardown()

    async def handle(self, line: str) -> None:
        if line.startswith("/"):
            try:
                cmd, *args = shlex.split(line)
            except ValueError as e:
                print(f"Could not parse command: {e}")
                return
            tab = cmd[1:]
            if tab in {m.value for m in AppMode}:
                self.mode = AppMode(tab)
                print(HELP[self.mode])
                return
            if cmd == "/help":
                print(HELP[self.mode])
                return
            if self.mode == AppMode.CHAT:
                await self._chat_command(cmd, args)
            elif self.mode == AppMode.IMAGE:
                self._image_command(cmd, args)
            else:
                self._speech_command(cmd, args)
            return

        if self.mode == AppMode.CHAT:
            if self.chat.is_recording:
                print("Stop the recording first (/stop).")
                return
            await self.chat.submit(line)
            print()
        elif self.mode == AppMode.IMAGE:
            result = await self.image.generate(line)
            if result is not None:
                print(f"image ready: {result.media.mime_type}, {len(result.media.data)} bytes (/save to write it)")
            elif self.image.error:
                print(f"image error: {self.image.error}")
        else:
            await self.speech.press(line)

    async def _chat_command(self, cmd: str, args: list[str]) -> None:
        if cmd == "/personas":
            for p in PERSONAS:
                print(f"  {p.id:<10} {p.name} - {p.description}")
        elif cmd == "/persona" and args:
            try:
                self.chat.on_persona_change(args[0])
            except KeyError as e:
                print(str(e))
            else:
                live = {e.id for e in self.chat.transcript}
                self._printed = {k: v for k, v in self._printed.items() if k in live}
            print()
        elif cmd == "/attach" and args:
            try:
                att = await self.chat.attach_file(args[0], args[1] if len(args) > 1 else None)
            except OSError as e:
                print(f"Could not read attachment: {e}")
                return
            print(f"attached {att.kind} ({att.mime_type}, {len(att.data)} bytes)")
        elif cmd == "/discard":
            self.chat.discard_attachment()
        elif cmd == "/record":
            if self.chat.is_recording:
                self.chat.stop_recording()
            elif self.chat.start_recording():
                print("recording... (/stop to finish)")
        elif cmd == "/stop":
            att = self.chat.stop_recording()
            if att is not None:
                print(f"recorded audio attached ({len(att.data)} bytes)")
        elif cmd == "/transcript":
            for e in self.chat.transcript:
                print(f"  #{e.id} {e.role}: {e.content}")
        else:
            print(HELP[self.mode])

    def _image_command(self, cmd: str, args: list[str]) -> None:
        if cmd == "/save":
            path = self.image.save(args[0] if args else self.settings.audio.image_save_dir)
            print(f"saved {path}" if path else "Nothing to save yet.")
        else:
            print(HELP[self.mode])

    def _speech_command(self, cmd: str, args: list[str]) -> None:
        if cmd == "/voices":
            for v in VOICES:
                print(f"  {v.id:<8} {v.gender:<7} {v.style}")
        elif cmd == "/voice" and args:
            try:
                print(f"voice: {self.speech.select_voice(args[0]).id}")
            except KeyError as e:
                print(str(e))
        elif cmd == "/stop":
            self.speech.stop()
        else:
            print(HELP[self.mode])


def main():
    _try_load_dotenv()

    root = Path(__file__).resolve().parents[1]
    (root / "data").mkdir(parents=True, exist_ok=True)
    settings_store = SettingsStore(path=root / "data" / "settings.json")
    stored = settings_store.get()
    ap = argparse.ArgumentParser()
    ap.add_argument("--mode", choices=[m.value for m in AppMode], default=AppMode.CHAT.value)
    ap.add_argument("--backend", choices=stored.provider.backend_options, default=stored.provider.backend)
    ap.add_argument("--persona", default=stored.chat.default_persona_id)
    ap.add_argument("--voice", default=stored.audio.default_voice_id)
    args = ap.parse_args()

    # Persist CLI overrides so the next run starts from the same choices.
    patch: dict[str, Any] = {}
    if args.backend != stored.provider.backend:
        patch["provider"] = {"backend": args.backend}
    if args.persona != stored.chat.default_persona_id:
        patch["chat"] = {"default_persona_id": args.persona}
    if args.voice != stored.audio.default_voice_id:
        patch["audio"] = {"default_voice_id": args.voice}
    if patch:
        settings_store.update(patch)

    # Refresh local settings snapshot after applying CLI overrides.
    settings = settings_store.get()

    log_path = Path(settings.log_path)
    logger = EventLogger(path=log_path if log_path.is_absolute() else root / log_path)
    notifier = ConsoleNotifier()
    provider = _build_provider(settings)

    chat = SessionController(
        provider=provider,
        settings=settings.chat,
        logger=logger,
        recorder=MicrophoneRecorder(
            notifier=notifier,
            sample_rate=settings.audio.record_sample_rate,
            channels=settings.audio.record_channels,
            logger=logger,
        ),
    )
    image = ImagePanel(provider=provider, logger=logger)
    speech = SpeechPanel(
        provider=provider,
        playback=AudioPlaybackEngine(sample_rate=settings.audio.playback_sample_rate, logger=logger),
        notifier=notifier,
        logger=logger,
    )
    speech.select_voice(settings.audio.default_voice_id)

    shell = TextShell(settings=settings, chat=chat, image=image, speech=speech, mode=AppMode(args.mode))
    try:
        asyncio.run(shell.run())
    except KeyboardInterrupt:
        print()


if __name__ == "__main__":
    main()
