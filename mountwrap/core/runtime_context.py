from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence


LOG_PATH_ENV = "WRAPPER_OUTPUT"
DEFAULT_LOG_PATH = "/var/lib/storageos/logs/mountwrapper.log"

TARGET_BINARY_ENV = "WRAPPER_BINARY"
DEFAULT_TARGET_BINARY = "/usr/bin/mount.real"

CAPTURE_ENVIRONMENT_ENV = "WRAPPER_ENVIRONMENT"

MAX_ENV_VALUE_LENGTH = 40

# Reserved child exit status meaning "execv() failed"; mount(8) never uses it.
EXEC_FAILED_EXIT_CODE = 128
EXIT_FAILURE = 1


@dataclass(frozen=True)
class WrapperContext:
    """
    Immutable configuration resolved once at start-up.

    Hard rules:
    - Resolution reads only the environment and argv; no filesystem access.
    - Every component receives this object explicitly.
    """

    log_path: Path = Path(DEFAULT_LOG_PATH)
    target_binary: str = DEFAULT_TARGET_BINARY
    progname: str = "mountwrap"
    max_env_value_length: int = MAX_ENV_VALUE_LENGTH
    capture_environment: bool = True


def env_with_default(environ: Mapping[str, str], name: str, default: str) -> str:
    value = environ.get(name)
    if value is None or value == "":
        return default
    return value


def _env_flag(environ: Mapping[str, str], name: str, *, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


def program_name(argv: Sequence[str]) -> str:
    if not argv or not argv[0]:
        return "mountwrap"
    return os.path.basename(argv[0].rstrip("/")) or argv[0]


def resolve_context(argv: Sequence[str], environ: Mapping[str, str] | None = None) -> WrapperContext:
    if environ is None:
        environ = os.environ
    return WrapperContext(
        log_path=Path(env_with_default(environ, LOG_PATH_ENV, DEFAULT_LOG_PATH)),
        target_binary=env_with_default(environ, TARGET_BINARY_ENV, DEFAULT_TARGET_BINARY),
        progname=program_name(argv),
        capture_environment=_env_flag(environ, CAPTURE_ENVIRONMENT_ENV, default=True),
    )
