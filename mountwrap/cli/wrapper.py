"""
mountwrap entry point.

The target binary receives sys.argv[0] as its own argv[0]. Install the
`mountwrap` console script (or a symlink to it) in place of the wrapped
binary: under `python -m mountwrap`, sys.argv[0] is the path of
mountwrap/__main__.py and that is what the target will see.
"""

from __future__ import annotations

import sys
from typing import Sequence

from mountwrap.core.errors import WrapperError
from mountwrap.core.kernel import run_wrapped
from mountwrap.core.runtime_context import EXIT_FAILURE, resolve_context


def format_wrapper_error(progname: str, e: Exception) -> str:
    """
    "<prog> (wrapper): <message>: <strerror>"
    """
    if isinstance(e, WrapperError):
        detail = e.strerror
        if detail:
            return f"{progname} (wrapper): {e.message}: {detail}"
        return f"{progname} (wrapper): {e.message}"
    return f"{progname} (wrapper): {e}"


def main(argv: Sequence[str] | None = None) -> int:
    # No flags: argv is forwarded to the target untouched.
    if argv is None:
        argv = sys.argv
    ctx = resolve_context(argv)
    try:
        return run_wrapped(ctx, argv)
    except WrapperError as e:
        print(format_wrapper_error(ctx.progname, e), file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
