from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List

import yaml

from mountwrap.core.errors import WrapperError
from mountwrap.core.runtime_context import DEFAULT_LOG_PATH, LOG_PATH_ENV, env_with_default
from mountwrap.trace.replay import Replay, pair_runs


def _default_log_path() -> str:
    return env_with_default(os.environ, LOG_PATH_ENV, DEFAULT_LOG_PATH)


def _format_cli_error(e: Exception) -> str:
    if isinstance(e, WrapperError) and isinstance(e.data, dict) and e.data:
        return str(e) + "\n" + json.dumps(e.data, ensure_ascii=False, indent=2)
    return str(e)


def _render(items: List[Dict[str, Any]], fmt: str) -> None:
    if fmt == "yaml":
        if items:
            print(yaml.safe_dump(items, sort_keys=False, allow_unicode=True), end="")
        return
    for item in items:
        # argv may carry surrogate-escaped bytes; keep stdout ASCII.
        print(json.dumps(item))


def cmd_show_log(args: argparse.Namespace) -> int:
    path = Path(args.log)
    if not path.exists():
        raise WrapperError(code="log.not_found", message=f"Log file not found: {path}", data={"path": str(path)})

    events = list(Replay(path).iter_events())
    if args.run_id:
        events = [e for e in events if e.run_id == args.run_id]

    if args.runs:
        items = [r.to_dict() for r in pair_runs(events)]
    else:
        items = [e.to_dict() for e in events]

    if args.tail is not None and args.tail >= 0:
        items = items[-args.tail :] if args.tail else []

    _render(items, args.format)
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="mountwrap-log",
        description="Inspect a mountwrap invocation log",
        epilog="argv is reconstructed exactly; environment is a best-effort parse, since values containing ',name=' are indistinguishable from extra variables.",
    )
    parser.add_argument("--log", default=_default_log_path(), help=f"Log path (default: ${LOG_PATH_ENV} or {DEFAULT_LOG_PATH})")
    parser.add_argument("--run-id", help="Only records for this runtimestamp")
    parser.add_argument("--tail", type=int, help="Show only the last N records (or runs with --runs)")
    parser.add_argument("--runs", action="store_true", help="Pair start/completion records into one summary per run")
    parser.add_argument("--format", choices=["json", "yaml"], default="json", help="Output format (default: json lines)")
    parser.set_defaults(func=cmd_show_log)

    ns = parser.parse_args(argv)
    try:
        return int(ns.func(ns))
    except Exception as e:  # noqa: BLE001
        print(_format_cli_error(e), file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
