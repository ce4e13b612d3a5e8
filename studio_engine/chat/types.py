from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Union

from studio_engine.media.codec import MediaKind, b64encode, classify_media_kind, to_data_uri


Role = Literal["user", "model"]


class ChatState(str, Enum):
    IDLE = "idle"
    AWAITING_FIRST_BYTE = "awaiting_first_byte"
    STREAMING = "streaming"
    FAILED = "failed"


@dataclass(frozen=True)
class Attachment:
    data: bytes
    mime_type: str
    kind: MediaKind

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> "Attachment":
        return cls(data=data, mime_type=mime_type, kind=classify_media_kind(mime_type))

    @property
    def b64(self) -> str:
        return b64encode(self.data)

    @property
    def data_uri(self) -> str:
        return to_data_uri(self.mime_type, self.data)


@dataclass
class TranscriptEntry:
    """One message in the transcript.

    Only model entries grow after creation (streamed fragments are appended);
    role and attachment are fixed.
    """

    id: int
    role: Role
    content: str = ""
    attachment: Attachment | None = None

    def append(self, fragment: str) -> None:
        if self.role != "model":
            raise ValueError("Only model entries accept streamed fragments.")
        self.content += fragment


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class BinaryPart:
    data: bytes
    mime_type: str


RequestPart = Union[TextPart, BinaryPart]


def build_request_parts(
    text: str | None,
    attachment: Attachment | None,
    *,
    placeholder_text: str = " ",
) -> list[RequestPart]:
    """Compose the ordered request parts for one send.

    The result is never empty: an attachment-only message gets `placeholder_text`
    as its text part since the API rejects requests without one.
    """
    body = text or ""
    if not body.strip() and attachment is None:
        raise ValueError("A request needs text or an attachment.")
    if not placeholder_text:
        raise ValueError("placeholder_text must be non-empty.")

    parts: list[RequestPart] = []
    if attachment is None:
        parts.append(TextPart(body))
        return parts
    parts.append(TextPart(body if body.strip() else placeholder_text))
    parts.append(BinaryPart(data=attachment.data, mime_type=attachment.mime_type))
    return parts
