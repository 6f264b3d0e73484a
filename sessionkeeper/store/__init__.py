"""Session directories, part files and the writer that fills them."""

from .layout import (
    RUNNING_MARKER,
    SessionEntry,
    discover_sessions,
    is_running_name,
    prepare_log_root,
)
from .models import PartFile, Session, SessionState
from .session import DEFAULT_MAX_LINES, SessionWriter

__all__ = [
    "DEFAULT_MAX_LINES",
    "PartFile",
    "RUNNING_MARKER",
    "Session",
    "SessionEntry",
    "SessionState",
    "SessionWriter",
    "discover_sessions",
    "is_running_name",
    "prepare_log_root",
]
