from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class Notifier(Protocol):
    def alert(self, message: str) -> None: ...


@dataclass
class ConsoleNotifier(Notifier):
    prefix: str = "[alert]"

    def alert(self, message: str) -> None:
        print(f"{self.prefix} {message}")
