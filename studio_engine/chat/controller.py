from __future__ import annotations

import itertools
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from studio_engine.app.catalog import DEFAULT_PERSONA_ID, Persona, get_persona
from studio_engine.app.settings import ChatSettings
from studio_engine.chat.stream import CancelToken, FragmentStream, StreamTag
from studio_engine.chat.types import (
    Attachment,
    BinaryPart,
    ChatState,
    Role,
    TranscriptEntry,
    build_request_parts,
)
from studio_engine.errors import AuthError, StudioError
from studio_engine.llm.provider import GenerativeProvider
from studio_engine.logging.events import EventLogger
from studio_engine.media.attachments import MicrophoneRecorder, load_attachment


@dataclass
class SessionController:
    """Owns one conversation: transcript, backend session, pending attachment.

    Key properties:
    - At most one send is outstanding; submit() is a no-op otherwise.
    - Every stream is tagged with the session serial and placeholder entry it
      targets. Fragments whose tag no longer matches are dropped, which is how a
      persona switch "cancels" an in-flight reply.
    - Provider failures never escape; they become transcript entries.
    """

    provider: GenerativeProvider
    settings: ChatSettings = field(default_factory=ChatSettings)
    logger: EventLogger | None = None
    recorder: MicrophoneRecorder | None = None
    on_change: Callable[[TranscriptEntry], None] | None = None
    conversation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    transcript: list[TranscriptEntry] = field(default_factory=list, init=False)
    persona: Persona | None = field(default=None, init=False)
    handle: Any = field(default=None, init=False)
    pending_attachment: Attachment | None = field(default=None, init=False)
    input_text: str = field(default="", init=False)
    state: ChatState = field(default=ChatState.IDLE, init=False)
    session_serial: int = field(default=0, init=False)
    _ids: Any = field(default_factory=lambda: itertools.count(1), init=False, repr=False)
    _active: StreamTag | None = field(default=None, init=False, repr=False)

    # -------------------- lifecycle --------------------

    def init(self, persona_id: str | None = None) -> None:
        self.on_persona_change(persona_id or self.settings.default_persona_id or DEFAULT_PERSONA_ID)

    def on_persona_change(self, persona_id: str) -> None:
        persona = get_persona(persona_id)
        self._invalidate_active("persona_change")
        self.session_serial += 1
        self.persona = persona
        self.handle = None
        self.pending_attachment = None
        self.input_text = ""
        self.state = ChatState.IDLE
        if self.recorder is not None and self.recorder.is_recording:
            self.recorder.stop()

        try:
            self.handle = self.provider.create_session(persona.system_instruction)
        except AuthError as e:
            if self.logger is not None:
                self.logger.error(self.conversation_id, "session_create_failed", {"persona_id": persona.id, "error": str(e)})
            self.transcript = []
            self._append("model", str(e))
            return

        if self.logger is not None:
            self.logger.session_created(self.conversation_id, persona_id=persona.id, session_serial=self.session_serial)
        self.transcript = []
        self._append("model", self.settings.greeting_template.format(name=persona.name, description=persona.description))

    def teardown(self) -> None:
        self._invalidate_active("teardown")
        if self.recorder is not None and self.recorder.is_recording:
            self.recorder.stop()
        self.handle = None
        self.pending_attachment = None
        self.state = ChatState.IDLE

    # -------------------- input --------------------

    @property
    def is_busy(self) -> bool:
        return self.state in (ChatState.AWAITING_FIRST_BYTE, ChatState.STREAMING)

    @property
    def is_recording(self) -> bool:
        return self.recorder is not None and self.recorder.is_recording

    def attach(self, attachment: Attachment) -> None:
        self.pending_attachment = attachment

    async def attach_file(self, path: str | Path, mime_type: str | None = None) -> Attachment:
        attachment = await load_attachment(path, mime_type)
        self.pending_attachment = attachment
        return attachment

    def discard_attachment(self) -> None:
        self.pending_attachment = None

    def start_recording(self) -> bool:
        if self.recorder is None or self.is_busy:
            return False
        return self.recorder.start()

    def stop_recording(self) -> Attachment | None:
        if self.recorder is None:
            return None
        attachment = self.recorder.stop()
        if attachment is not None:
            self.pending_attachment = attachment
        return attachment

    # -------------------- sending --------------------

    async def submit(self, text: str | None = None) -> TranscriptEntry | None:
        """Send the current input; returns the model placeholder, or None if rejected."""
        if text is not None:
            self.input_text = text
        body = self.input_text
        attachment = self.pending_attachment
        if (not body.strip() and attachment is None) or self.handle is None or self.is_busy or self.is_recording:
            return None

        self._append("user", body, attachment)
        self.input_text = ""
        self.pending_attachment = None
        placeholder = self._append("model", "")

        parts = build_request_parts(body, attachment, placeholder_text=self.settings.attachment_placeholder_text)
        tag = StreamTag(session_serial=self.session_serial, entry_id=placeholder.id, token=CancelToken())
        self._active = tag
        self.state = ChatState.AWAITING_FIRST_BYTE
        if self.logger is not None:
            self.logger.send_started(
                self.conversation_id,
                entry_id=placeholder.id,
                parts=[p.mime_type if isinstance(p, BinaryPart) else "text" for p in parts],
            )

        started = time.perf_counter()
        stream = FragmentStream(source=self.provider.send_streaming(self.handle, parts), tag=tag)
        try:
            async for fragment in stream:
                if not self._apply_fragment(tag, fragment):
                    await stream.aclose()
                    break
        except StudioError as e:
            if self._is_current(tag):
                self.state = ChatState.FAILED
                if self.logger is not None:
                    self.logger.error(self.conversation_id, "send_failed", {"entry_id": placeholder.id, "error": str(e)})
                self._append("model", self.settings.fallback_message)
        finally:
            if self._active is tag:
                self._active = None
                self.state = ChatState.IDLE
        if self.logger is not None:
            self.logger.send_finished(
                self.conversation_id,
                entry_id=placeholder.id,
                fragments=stream.received,
                latency_ms=int((time.perf_counter() - started) * 1000),
            )
        return placeholder

    # -------------------- internals --------------------

    def entry(self, entry_id: int) -> TranscriptEntry | None:
        for e in self.transcript:
            if e.id == entry_id:
                return e
        return None

    def _append(self, role: Role, content: str, attachment: Attachment | None = None) -> TranscriptEntry:
        entry = TranscriptEntry(id=next(self._ids), role=role, content=content, attachment=attachment)
        self.transcript.append(entry)
        self._notify(entry)
        return entry

    def _is_current(self, tag: StreamTag) -> bool:
        return (
            not tag.token.cancelled
            and tag.session_serial == self.session_serial
            and self.entry(tag.entry_id) is not None
        )

    def _apply_fragment(self, tag: StreamTag, fragment: str) -> bool:
        target = self.entry(tag.entry_id) if self._is_current(tag) else None
        if target is None:
            if self.logger is not None:
                self.logger.fragment_discarded(
                    self.conversation_id, entry_id=tag.entry_id, reason=tag.token.reason or "stale"
                )
            return False
        self.state = ChatState.STREAMING
        target.append(fragment)
        self._notify(target)
        return True

    def _invalidate_active(self, reason: str) -> None:
        if self._active is not None:
            self._active.token.cancel(reason)
            self._active = None

    def _notify(self, entry: TranscriptEntry) -> None:
        if self.on_change is not None:
            self.on_change(entry)
