"""Rotating JSON log sessions with crash-safe finalisation and retention pruning."""

from importlib import metadata

from .retention import PruneReport, RetentionPolicy, RetentionPruner, prune_sessions
from .shutdown import ShutdownCoordinator
from .store import RUNNING_MARKER, SessionWriter, prepare_log_root

try:
    __version__ = metadata.version("sessionkeeper")
except metadata.PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    "PruneReport",
    "RUNNING_MARKER",
    "RetentionPolicy",
    "RetentionPruner",
    "SessionWriter",
    "ShutdownCoordinator",
    "prepare_log_root",
    "prune_sessions",
]
