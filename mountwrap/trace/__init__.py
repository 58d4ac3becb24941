from .log_buffer import LogBuffer
from .log_store import LogStore
from .replay import Replay

__all__ = ["LogBuffer", "LogStore", "Replay"]
