from __future__ import annotations

import os
from typing import Mapping, Optional, Sequence

from mountwrap.trace.log_buffer import LogBuffer
from mountwrap.trace.log_store import LogStore

from .invocation import InvocationRecord, capture_invocation, describe_start
from .launcher import Launcher
from .runtime_context import WrapperContext
from .supervisor import ChildOutcome, Supervisor, describe_completion


class Kernel:
    """
    Capture -> Launch -> Supervise -> Flush.

    Hard rules:
    - nothing is written to the log until the child has been reaped.
    - a fork failure propagates before the log is ever opened.
    - the returned exit code comes from the child's outcome.
    """

    def __init__(
        self,
        ctx: WrapperContext,
        *,
        launcher: Optional[Launcher] = None,
        supervisor: Optional[Supervisor] = None,
        store: Optional[LogStore] = None,
        buffer: Optional[LogBuffer] = None,
    ):
        self._ctx = ctx
        self._launcher = launcher or Launcher(ctx)
        self._supervisor = supervisor or Supervisor()
        self._store = store or LogStore(ctx.log_path)
        self._buffer = buffer if buffer is not None else LogBuffer()
        self.record = None  # type: Optional[InvocationRecord]
        self.outcome = None  # type: Optional[ChildOutcome]

    @property
    def buffer(self) -> LogBuffer:
        return self._buffer

    def run(self, argv: Sequence[str], environb: Mapping[bytes, bytes] | None = None) -> int:
        record = capture_invocation(self._ctx, argv, environb)
        self.record = record
        self._buffer.log(describe_start(record))

        pid = self._launcher.spawn(record)
        outcome = self._supervisor.wait(pid)
        self.outcome = outcome
        self._buffer.log(describe_completion(record, outcome))

        # Raceable work is over; only now touch the log file.
        self._store.flush(self._buffer.lines)
        return outcome.exit_code


def run_wrapped(ctx: WrapperContext, argv: Sequence[str]) -> int:
    return Kernel(ctx).run(argv, os.environb)
