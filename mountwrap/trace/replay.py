from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from mountwrap.core.runtime_context import EXEC_FAILED_EXIT_CODE, EXIT_FAILURE


_HEAD_RE = re.compile(r"^(?P<ts>\S+) runtimestamp (?P<run_id>\S+) (?P<kind>execute|completed) '")
_ENV_SPLIT_RE = re.compile(r",(?=[^,=]+=)")
_EXIT_CODE_RE = re.compile(r"^exit with code (\d+)$")
_SIGNAL_RE = re.compile(r"^exit with signal (\d+)$")


@dataclass(frozen=True)
class LogEvent:
    """
    One parsed log record.

    `argv` is exact: arguments are escaped on write and decoded back with the
    filesystem encoding. `environment` is a best-effort parse: the record
    joins `name=value` pairs with ',' unescaped, so a value such as
    `rw,uid=1000` splits into extra keys.
    """

    ts: str
    run_id: str
    kind: str
    binary: str
    argv: Tuple[str, ...]
    environment: Optional[Dict[str, str]] = None
    outcome: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "ts": self.ts,
            "run_id": self.run_id,
            "kind": self.kind,
            "binary": self.binary,
            "argv": list(self.argv),
        }
        if self.environment is not None:
            d["environment"] = dict(self.environment)
        if self.outcome is not None:
            d["outcome"] = self.outcome
        return d


def _unescape(raw: str) -> str:
    out = bytearray()
    i = 0
    while i < len(raw):
        c = raw[i]
        if c == "\\" and i + 1 < len(raw):
            nxt = raw[i + 1]
            if nxt == "x" and i + 3 < len(raw):
                out.append(int(raw[i + 2 : i + 4], 16))
                i += 4
                continue
            out.extend(nxt.encode("ascii", errors="replace"))
            i += 2
            continue
        out.extend(c.encode("ascii", errors="replace"))
        i += 1
    return os.fsdecode(bytes(out))


def _parse_quoted_list(text: str, pos: int) -> Tuple[List[str], int]:
    """
    Parse `"a","b"]` starting at pos; return the items and the index after ']'.
    """
    items: List[str] = []
    while pos < len(text):
        if text[pos] == "]":
            return items, pos + 1
        if text[pos] == ",":
            pos += 1
            continue
        if text[pos] != '"':
            raise ValueError(f"unexpected character at {pos}")
        end = pos + 1
        while end < len(text) and text[end] != '"':
            end += 2 if text[end] == "\\" else 1
        if end >= len(text):
            raise ValueError("unterminated argument")
        items.append(_unescape(text[pos + 1 : end]))
        pos = end + 1
    raise ValueError("unterminated argument list")


def _parse_environment(raw: str) -> Dict[str, str]:
    # Best-effort: values may themselves contain ',' and '='.
    env: Dict[str, str] = {}
    if not raw:
        return env
    for part in _ENV_SPLIT_RE.split(raw):
        k, _, v = part.partition("=")
        env[k] = v
    return env


def parse_line(text: str) -> Optional[LogEvent]:
    text = text.rstrip("\n")
    m = _HEAD_RE.match(text)
    if m is None:
        return None
    kind = m.group("kind")
    marker = "' argv:[" if kind == "execute" else "' args:["
    start = m.end()
    idx = text.find(marker, start)
    if idx < 0:
        return None
    binary = text[start:idx]
    try:
        argv, pos = _parse_quoted_list(text, idx + len(marker))
    except ValueError:
        return None

    rest = text[pos:]
    environment = None  # type: Optional[Dict[str, str]]
    outcome = None  # type: Optional[str]
    if kind == "execute":
        if rest.startswith(" environment:[") and rest.endswith("]"):
            environment = _parse_environment(rest[len(" environment:[") : -1])
        elif rest:
            return None
    else:
        outcome = rest.strip() or None

    return LogEvent(
        ts=m.group("ts"),
        run_id=m.group("run_id"),
        kind=kind,
        binary=binary,
        argv=tuple(argv),
        environment=environment,
        outcome=outcome,
    )


def outcome_exit_code(outcome: Optional[str]) -> Optional[int]:
    """
    The wrapper exit code implied by a completion record's outcome text.
    """
    if outcome is None:
        return None
    m = _EXIT_CODE_RE.match(outcome)
    if m:
        return int(m.group(1))
    if outcome.startswith("failed to execv(2)"):
        return EXEC_FAILED_EXIT_CODE
    if _SIGNAL_RE.match(outcome) or outcome.startswith("stopped with unknown status"):
        return EXIT_FAILURE
    return None


@dataclass
class RunSummary:
    run_id: str
    binary: str
    argv: Tuple[str, ...]
    started: Optional[str] = None
    completed: Optional[str] = None
    outcome: Optional[str] = None
    environment: Optional[Dict[str, str]] = field(default=None, repr=False)

    @property
    def status(self) -> str:
        return "completed" if self.completed is not None else "pending"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "binary": self.binary,
            "argv": list(self.argv),
            "started": self.started,
            "completed": self.completed,
            "outcome": self.outcome,
            "exit_code": outcome_exit_code(self.outcome),
            "environment": dict(self.environment) if self.environment is not None else None,
        }


def pair_runs(events: Iterable[LogEvent]) -> List[RunSummary]:
    runs: Dict[str, RunSummary] = {}
    for e in events:
        run = runs.get(e.run_id)
        if run is None:
            run = RunSummary(run_id=e.run_id, binary=e.binary, argv=e.argv)
            runs[e.run_id] = run
        if e.kind == "execute":
            run.started = e.ts
            run.environment = e.environment
        else:
            run.completed = e.ts
            run.outcome = e.outcome
    return list(runs.values())


class Replay:
    """
    Minimal log reader; unparseable lines are skipped.
    """

    def __init__(self, path: Path):
        self._path = path

    def iter_events(self) -> Iterable[LogEvent]:
        if not self._path.exists():
            return
        with self._path.open("r", encoding="ascii", errors="replace") as f:
            for line in f:
                if not line.strip():
                    continue
                event = parse_line(line)
                if event is not None:
                    yield event
