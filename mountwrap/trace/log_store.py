from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from mountwrap.core.errors import LogWriteError, os_error_data


class LogStore:
    """
    Append-only text log.

    Each record (line plus newline) goes out in a single write(2) on an
    O_APPEND descriptor so concurrent wrapper runs never tear each other's lines.
    """

    def __init__(self, path: Path, mode: int = 0o644):
        self._path = path
        self._mode = mode

    @property
    def path(self) -> Path:
        return self._path

    def flush(self, lines: Iterable[str]) -> int:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self._path, os.O_CREAT | os.O_WRONLY | os.O_APPEND, self._mode)
        except OSError as e:
            raise LogWriteError(
                code="log.open_failed",
                message="Failed to open log file",
                data=os_error_data(e, path=str(self._path)),
            ) from e

        written = 0
        try:
            for line in lines:
                data = (line + "\n").encode("ascii", errors="replace")
                try:
                    n = os.write(fd, data)
                except OSError as e:
                    raise LogWriteError(
                        code="log.write_failed",
                        message="Failed to write to log file",
                        data=os_error_data(e, path=str(self._path)),
                    ) from e
                if n != len(data):
                    raise LogWriteError(
                        code="log.write_failed",
                        message="Failed to write to log file",
                        data={"path": str(self._path), "strerror": f"short write ({n} of {len(data)} bytes)"},
                    )
                written += 1
        finally:
            os.close(fd)
        return written
