from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, List, Tuple


def format_timestamp(now: datetime | None = None) -> str:
    if now is None:
        now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.%f")


class LogBuffer:
    """
    Ordered, append-only in-memory log.

    Lines are stamped when they are recorded, not when they are written; the
    buffer itself never touches the filesystem.
    """

    def __init__(self, clock: Callable[[], str] = format_timestamp) -> None:
        self._clock = clock
        self._lines: List[str] = []

    def log(self, message: str) -> str:
        line = f"{self._clock()} {message}"
        self._lines.append(line)
        return line

    @property
    def lines(self) -> Tuple[str, ...]:
        return tuple(self._lines)

    def __len__(self) -> int:
        return len(self._lines)
