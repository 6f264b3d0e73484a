"""Session-scoped rotating JSONL writer."""
from __future__ import annotations

import logging
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from ..errors import ConfigurationError, FinalizeError
from ..records import Record, format_record
from .layout import (
    DEFAULT_SESSION_PREFIX,
    finished_dir_name,
    prepare_log_root,
    running_dir_name,
    validate_prefix,
)
from .models import PartFile, Session, SessionState

logger = logging.getLogger(__name__)

DEFAULT_MAX_LINES = 1000


class SessionWriter:
    """Append records to the current part file and finalise the session once.

    The session directory is created before the constructor returns and keeps
    its running name until :meth:`close`. Part files are opened per append, so
    nothing is buffered in memory and an unclean exit leaves every completed
    line on disk.
    """

    def __init__(
        self,
        root_dir: Path,
        max_lines: int = DEFAULT_MAX_LINES,
        session_prefix: Optional[str] = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        prefix = session_prefix if session_prefix is not None else DEFAULT_SESSION_PREFIX
        try:
            validate_prefix(prefix)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

        self.max_lines = max(int(max_lines), 1)
        self._clock = clock
        self._closed = False
        self._close_callbacks: List[Callable[[], None]] = []

        root = Path(root_dir).expanduser()
        started_at = clock()
        pid = os.getpid()
        try:
            prepare_log_root(root)
            directory = self._create_running_dir(root, running_dir_name(prefix, pid, started_at))
        except OSError as exc:
            raise ConfigurationError(f"cannot create log session under {root}: {exc}") from exc

        self.session = Session(
            root_dir=root,
            prefix=prefix,
            pid=pid,
            started_at=started_at,
            directory=directory,
        )
        self.part = PartFile.first(directory, prefix)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def session_dir(self) -> Path:
        return self.session.directory

    @property
    def current_path(self) -> Path:
        return self.part.path

    @property
    def part_index(self) -> int:
        return self.part.index

    @property
    def line_count(self) -> int:
        return self.part.line_count

    def on_close(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` once the session has been finalised."""
        self._close_callbacks.append(callback)

    def write(self, record: Record) -> None:
        if self._closed:
            return

        line = format_record(record)
        with self.part.path.open("a", encoding="utf-8") as fh:
            fh.write(line)
        self.part.line_count += 1

        if self.part.line_count >= self.max_lines:
            self.part = self.part.successor()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        try:
            self._finalize()
        finally:
            callbacks, self._close_callbacks = self._close_callbacks, []
            for callback in callbacks:
                callback()

    def __enter__(self) -> "SessionWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _finalize(self) -> None:
        session = self.session
        finished_at = self._clock()
        session.finished_at = finished_at
        session.state = SessionState.FINISHED

        running_dir = session.directory
        if not running_dir.is_dir():
            logger.debug("Session directory %s already gone; nothing to finalise", running_dir)
            return

        target = session.root_dir / finished_dir_name(session.prefix, session.pid, finished_at)
        try:
            _rename_dir(running_dir, target)
        except OSError:
            if not running_dir.is_dir():
                return
            fallback = target.with_name(f"{target.name}-{time.time_ns()}")
            logger.warning("Finished session name %s is taken, using %s", target.name, fallback.name)
            try:
                _rename_dir(running_dir, fallback)
            except OSError as exc:
                raise FinalizeError(f"cannot finalise session {running_dir}: {exc}") from exc
            target = fallback

        session.directory = target
        self.part.path = target / self.part.path.name
        logger.debug("Finalised session %s", target)

    @staticmethod
    def _create_running_dir(root: Path, name: str) -> Path:
        session_dir = root / name
        suffix = 1
        while True:
            try:
                session_dir.mkdir(exist_ok=False)
                return session_dir
            except FileExistsError:
                suffix += 1
                session_dir = root / f"{name}-{suffix}"


def _rename_dir(source: Path, target: Path) -> None:
    # rename(2) silently replaces an empty target directory on POSIX.
    if target.exists():
        raise FileExistsError(f"{target} already exists")
    source.rename(target)


__all__ = ["SessionWriter", "DEFAULT_MAX_LINES"]
