from .runtime_context import WrapperContext, resolve_context
from .invocation import InvocationRecord, canonicalize, capture_invocation
from .launcher import Launcher
from .supervisor import Anomalous, ChildOutcome, KilledBySignal, NormalExit, Supervisor, classify_status

__all__ = [
  "WrapperContext",
  "resolve_context",
  "InvocationRecord",
  "canonicalize",
  "capture_invocation",
  "Launcher",
  "Supervisor",
  "ChildOutcome",
  "NormalExit",
  "KilledBySignal",
  "Anomalous",
  "classify_status",
]
