from __future__ import annotations

import os
import signal
from typing import Callable, NoReturn

from .errors import LaunchError, os_error_data
from .invocation import InvocationRecord
from .runtime_context import EXEC_FAILED_EXIT_CODE, WrapperContext


# The interpreter ignores these at start-up and ignored dispositions survive exec.
_RESTORED_SIGNALS = tuple(getattr(signal, name) for name in ("SIGPIPE", "SIGXFSZ") if hasattr(signal, name))


class Launcher:
    """
    fork() once, then execv() the target in the child.

    The child branch never returns: it either becomes the target binary or
    exits with EXEC_FAILED_EXIT_CODE via os._exit(), bypassing interpreter
    cleanup, buffered stdio and anything the parent still owns.
    """

    def __init__(
        self,
        ctx: WrapperContext,
        *,
        fork: Callable[[], int] = os.fork,
        execv: Callable[..., NoReturn] = os.execv,
    ):
        self._ctx = ctx
        self._fork = fork
        self._execv = execv

    def spawn(self, record: InvocationRecord) -> int:
        try:
            pid = self._fork()
        except OSError as e:
            raise LaunchError(code="launch.fork_failed", message="fork() failed", data=os_error_data(e)) from e
        if pid == 0:
            self._exec_child(record)
        return pid

    def _exec_child(self, record: InvocationRecord) -> NoReturn:
        try:
            for sig in _RESTORED_SIGNALS:
                signal.signal(sig, signal.SIG_DFL)
            # argv[0] stays the wrapper's own invocation path.
            self._execv(record.target_binary, list(record.argv))
            reason = "execv() returned"
        except (OSError, ValueError) as e:
            reason = getattr(e, "strerror", None) or str(e)
        except BaseException as e:  # noqa: BLE001
            reason = repr(e)
        try:
            os.write(2, f"{self._ctx.progname} (wrapper): execv() failed: {reason}\n".encode("utf-8", errors="replace"))
        finally:
            os._exit(EXEC_FAILED_EXIT_CODE)
