from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path


@dataclass
class EventLogger:
    path: Path

    def _write(self, conversation_id: str, kind: str, payload: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        rec = {
            "ts": time.time(),
            "kind": kind,
            "conversation_id": conversation_id,
            "payload": payload,
        }
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(rec, default=str) + "\n")

    def event(self, conversation_id: str, kind: str, payload: dict) -> None:
        self._write(conversation_id, kind, payload)

    def error(self, conversation_id: str, kind: str, payload: dict) -> None:
        self._write(conversation_id, f"error:{kind}", payload)

    def session_created(self, conversation_id: str, *, persona_id: str, session_serial: int) -> None:
        self._write(conversation_id, "session_created", {"persona_id": persona_id, "session_serial": session_serial})

    def send_started(self, conversation_id: str, *, entry_id: int, parts: list[str]) -> None:
        self._write(conversation_id, "send_started", {"entry_id": entry_id, "parts": parts})

    def send_finished(self, conversation_id: str, *, entry_id: int, fragments: int, latency_ms: int) -> None:
        self._write(
            conversation_id,
            "send_finished",
            {"entry_id": entry_id, "fragments": fragments, "latency_ms": latency_ms},
        )

    def fragment_discarded(self, conversation_id: str, *, entry_id: int, reason: str) -> None:
        self._write(conversation_id, "fragment_discarded", {"entry_id": entry_id, "reason": reason})
