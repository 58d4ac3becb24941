from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class WrapperError(Exception):
    code: str
    message: str
    data: dict[str, Any] | None = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    @property
    def strerror(self) -> str | None:
        if isinstance(self.data, dict) and isinstance(self.data.get("strerror"), str):
            return self.data["strerror"]
        return None


class LaunchError(WrapperError):
    pass


class SupervisionError(WrapperError):
    pass


class LogWriteError(WrapperError):
    pass


def os_error_data(e: OSError, **extra: Any) -> dict[str, Any]:
    data: dict[str, Any] = {"errno": e.errno, "strerror": e.strerror or str(e)}
    data.update(extra)
    return data
