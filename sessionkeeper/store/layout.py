"""On-disk naming of session directories and part files.

Writer and pruner agree on a single convention: a session directory carries
``RUNNING_MARKER`` in its name for as long as its owning process has not
finalised it. Nothing else signals liveness.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

RUNNING_MARKER = "running-"
DEFAULT_SESSION_PREFIX = "log"
LOG_EXTENSION = ".jsonl"
PART_PADDING = 3

_SESSION_NAME_RE = re.compile(
    r"^(?P<prefix>.+?)-(?P<pid>\d+)-(?P<running>running-)?"
    r"(?P<time>\d{6})-(?P<date>\d{8})(?:-(?P<suffix>\d+))?$"
)


def format_stamp(moment: datetime) -> str:
    """``HHMMSS-YYYYMMDD`` for ``moment``."""
    return f"{moment:%H%M%S}-{moment:%Y%m%d}"


def running_dir_name(prefix: str, pid: int, started_at: datetime) -> str:
    return f"{prefix}-{pid}-{RUNNING_MARKER}{format_stamp(started_at)}"


def finished_dir_name(prefix: str, pid: int, finished_at: datetime) -> str:
    return f"{prefix}-{pid}-{format_stamp(finished_at)}"


def part_file_name(prefix: str, part_index: int) -> str:
    return f"{prefix}_part{part_index:0{PART_PADDING}d}{LOG_EXTENSION}"


def is_running_name(name: str) -> bool:
    return RUNNING_MARKER in name


def validate_prefix(prefix: str) -> str:
    """Reject prefixes that would break the naming contract."""
    if not prefix:
        raise ValueError("session prefix must not be empty")
    if "/" in prefix or "\\" in prefix:
        raise ValueError(f"session prefix must not contain a path separator: {prefix!r}")
    # a trailing "running" plus the "-" before the pid spells the marker
    if RUNNING_MARKER in f"{prefix}-":
        raise ValueError(f"session prefix must not contain {RUNNING_MARKER!r}: {prefix!r}")
    return prefix


def prepare_log_root(root: Path) -> Path:
    """Create ``root`` and any missing parents; an existing directory is fine."""
    root = root.expanduser()
    root.mkdir(parents=True, exist_ok=True)
    return root


@dataclass
class SessionEntry:
    path: Path
    prefix: str
    pid: int
    running: bool
    stamp: Optional[datetime]
    part_files: List[Path] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.path.name


def parse_session_name(name: str) -> Optional[dict]:
    match = _SESSION_NAME_RE.match(name)
    if match is None:
        return None
    try:
        stamp: Optional[datetime] = datetime.strptime(
            f"{match['date']}{match['time']}", "%Y%m%d%H%M%S"
        )
    except ValueError:
        stamp = None
    return {
        "prefix": match["prefix"],
        "pid": int(match["pid"]),
        "running": match["running"] is not None,
        "stamp": stamp,
    }


def _part_index(path: Path) -> int:
    digits = path.stem.rpartition("_part")[2]
    return int(digits) if digits.isdigit() else 0


def discover_sessions(root: Path) -> List[SessionEntry]:
    root = root.expanduser()
    if not root.is_dir():
        return []

    entries: List[SessionEntry] = []
    for path in sorted(root.iterdir()):
        if not path.is_dir():
            continue
        parsed = parse_session_name(path.name)
        if parsed is None:
            continue
        parts = sorted(path.glob(f"{parsed['prefix']}_part*{LOG_EXTENSION}"), key=_part_index)
        entries.append(SessionEntry(path=path, part_files=parts, **parsed))
    return entries


__all__ = [
    "RUNNING_MARKER",
    "DEFAULT_SESSION_PREFIX",
    "LOG_EXTENSION",
    "SessionEntry",
    "discover_sessions",
    "finished_dir_name",
    "format_stamp",
    "is_running_name",
    "parse_session_name",
    "part_file_name",
    "prepare_log_root",
    "running_dir_name",
    "validate_prefix",
]
