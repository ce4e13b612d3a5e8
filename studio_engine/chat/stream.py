from __future__ import annotations

from dataclasses import dataclass, field
from typing import AsyncIterator


@dataclass
class CancelToken:
    cancelled: bool = False
    reason: str = ""

    def cancel(self, reason: str = "") -> None:
        self.cancelled = True
        self.reason = reason


@dataclass(frozen=True)
class StreamTag:
    """Identifies what an in-flight stream is allowed to mutate."""

    session_serial: int
    entry_id: int
    token: CancelToken = field(default_factory=CancelToken)


@dataclass
class FragmentStream:
    """Async iterator over text fragments bound to one placeholder entry.

    No further fragments are requested once the tag's token is cancelled;
    a fragment already in flight is still handed out and must be checked
    against the tag by the consumer. Empty fragments are skipped.
    """

    source: AsyncIterator[str]
    tag: StreamTag
    received: int = 0

    def __aiter__(self) -> "FragmentStream":
        return self

    async def __anext__(self) -> str:
        while True:
            if self.tag.token.cancelled:
                await self.aclose()
                raise StopAsyncIteration
            fragment = await self.source.__anext__()
            if not fragment:
                continue
            self.received += 1
            return fragment

    async def aclose(self) -> None:
        closer = getattr(self.source, "aclose", None)
        if closer is not None:
            await closer()
