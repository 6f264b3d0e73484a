"""Data model for one logging session and its part files."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from .layout import part_file_name


class SessionState(Enum):
    RUNNING = "running"
    FINISHED = "finished"


@dataclass
class PartFile:
    """One append-only chunk of a session, bounded by the rotation threshold."""

    index: int
    path: Path
    line_count: int = 0

    @classmethod
    def first(cls, directory: Path, prefix: str) -> "PartFile":
        return cls(index=1, path=directory / part_file_name(prefix, 1))

    def successor(self) -> "PartFile":
        index = self.index + 1
        return PartFile(index=index, path=self.path.with_name(part_file_name(self.prefix, index)))

    @property
    def prefix(self) -> str:
        return self.path.name.rpartition("_part")[0]


@dataclass
class Session:
    """Everything one process run writes, rooted at ``directory``."""

    root_dir: Path
    prefix: str
    pid: int
    started_at: datetime
    directory: Path
    finished_at: Optional[datetime] = None
    state: SessionState = SessionState.RUNNING

    @property
    def running(self) -> bool:
        return self.state is SessionState.RUNNING


__all__ = ["PartFile", "Session", "SessionState"]
