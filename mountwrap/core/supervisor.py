from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Tuple, Union

from .errors import SupervisionError, os_error_data
from .invocation import InvocationRecord, printable, render_args
from .runtime_context import EXEC_FAILED_EXIT_CODE, EXIT_FAILURE


@dataclass(frozen=True)
class NormalExit:
    code: int

    @property
    def exec_failed(self) -> bool:
        return self.code == EXEC_FAILED_EXIT_CODE

    @property
    def exit_code(self) -> int:
        return self.code

    def describe(self) -> str:
        if self.exec_failed:
            return f"failed to execv(2) (ec=={EXEC_FAILED_EXIT_CODE})"
        return f"exit with code {self.code}"


@dataclass(frozen=True)
class KilledBySignal:
    signal_number: int

    @property
    def exit_code(self) -> int:
        return EXIT_FAILURE

    def describe(self) -> str:
        return f"exit with signal {self.signal_number}"


@dataclass(frozen=True)
class Anomalous:
    raw_status: int

    @property
    def exit_code(self) -> int:
        return EXIT_FAILURE

    def describe(self) -> str:
        return f"stopped with unknown status {self.raw_status}"


ChildOutcome = Union[NormalExit, KilledBySignal, Anomalous]


def classify_status(status: int) -> ChildOutcome:
    if os.WIFEXITED(status):
        return NormalExit(os.WEXITSTATUS(status))
    if os.WIFSIGNALED(status):
        return KilledBySignal(os.WTERMSIG(status))
    return Anomalous(status)


def describe_completion(record: InvocationRecord, outcome: ChildOutcome) -> str:
    return (
        f"runtimestamp {record.run_id} completed '{printable(record.target_binary)}' "
        f"args:[{render_args(record.argv)}] {outcome.describe()}"
    )


class Supervisor:
    """
    Waits, without timeout, for the single child to terminate.
    """

    def __init__(self, *, waitpid: Callable[[int, int], Tuple[int, int]] = os.waitpid):
        self._waitpid = waitpid

    def wait(self, pid: int) -> ChildOutcome:
        try:
            _, status = self._waitpid(pid, 0)
        except OSError as e:
            raise SupervisionError(code="supervise.wait_failed", message="waitpid() failed", data=os_error_data(e, pid=pid)) from e
        return classify_status(status)
