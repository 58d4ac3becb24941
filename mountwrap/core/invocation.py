from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence, Tuple, Union

from .runtime_context import WrapperContext


TRUNCATION_MARKER = b"..."
PLACEHOLDER = "."

BytesLike = Union[bytes, str]


def _as_bytes(value: BytesLike) -> bytes:
    if isinstance(value, bytes):
        return value
    return os.fsencode(value)


def _is_printable(b: int) -> bool:
    return 32 <= b < 127


def printable(value: BytesLike) -> str:
    """
    Replace every byte outside printable ASCII with '.'.
    """
    return "".join(chr(b) if _is_printable(b) else PLACEHOLDER for b in _as_bytes(value))


def canonicalize(value: BytesLike, max_length: int) -> str:
    """
    Bound an environment value for logging.

    Values longer than max_length keep their first (max_length - 3) bytes and
    end with "...". The result never exceeds max_length and is printable ASCII.
    """
    raw = _as_bytes(value)
    if len(raw) > max_length:
        keep = max(max_length - len(TRUNCATION_MARKER), 0)
        raw = raw[:keep] + TRUNCATION_MARKER[: max_length - keep]
    return printable(raw)


def quote_arg(value: BytesLike) -> str:
    out = ['"']
    for b in _as_bytes(value):
        if b == 0x5C:
            out.append("\\\\")
        elif b == 0x22:
            out.append('\\"')
        elif _is_printable(b):
            out.append(chr(b))
        else:
            out.append(f"\\x{b:02x}")
    out.append('"')
    return "".join(out)


def render_args(argv: Iterable[BytesLike]) -> str:
    return ",".join(quote_arg(a) for a in argv)


def render_environment(environment: Iterable[Tuple[str, str]]) -> str:
    return ",".join(f"{k}={v}" for k, v in environment)


def new_run_id() -> str:
    ns = time.time_ns()
    return f"{ns // 1_000_000_000}.{ns % 1_000_000_000:09d}"


@dataclass(frozen=True)
class InvocationRecord:
    run_id: str
    target_binary: str
    argv: Tuple[str, ...]
    environment: Optional[Tuple[Tuple[str, str], ...]] = None


def snapshot_environment(environb: Mapping[bytes, bytes], max_length: int) -> Tuple[Tuple[str, str], ...]:
    items = sorted(environb.items())
    return tuple((printable(k), canonicalize(v, max_length)) for k, v in items)


def capture_invocation(
    ctx: WrapperContext,
    argv: Sequence[str],
    environb: Mapping[bytes, bytes] | None = None,
    *,
    run_id: str | None = None,
) -> InvocationRecord:
    """
    Copy argv and (optionally) the environment into an in-memory record.
    Performs no I/O.
    """
    environment = None  # type: Optional[Tuple[Tuple[str, str], ...]]
    if ctx.capture_environment:
        if environb is None:
            environb = os.environb
        environment = snapshot_environment(environb, ctx.max_env_value_length)
    return InvocationRecord(
        run_id=run_id if run_id is not None else new_run_id(),
        target_binary=ctx.target_binary,
        argv=tuple(argv),
        environment=environment,
    )


def describe_start(record: InvocationRecord) -> str:
    msg = f"runtimestamp {record.run_id} execute '{printable(record.target_binary)}' argv:[{render_args(record.argv)}]"
    if record.environment is not None:
        msg += f" environment:[{render_environment(record.environment)}]"
    return msg
