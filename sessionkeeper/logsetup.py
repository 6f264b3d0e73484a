"""Wire stdlib logging to the console and to a JSON session on disk."""
from __future__ import annotations

import json
import logging
import os
import socket
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import KeeperSettings
from .shutdown import ShutdownCoordinator
from .store.session import SessionWriter

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class JsonLineFormatter(logging.Formatter):
    """Render a record as one JSON object without a trailing newline."""

    def __init__(self) -> None:
        super().__init__()
        self._hostname = socket.gethostname()

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelno,
            "levelname": record.levelname.lower(),
            "time": int(record.created * 1000),
            "pid": record.process if record.process is not None else os.getpid(),
            "hostname": self._hostname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["err"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["err"] = record.exc_text
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in payload:
                payload[key] = value
        return json.dumps(payload, ensure_ascii=False, default=str)


class SessionLogHandler(logging.Handler):
    """Logging handler that appends each record to a :class:`SessionWriter`."""

    def __init__(self, writer: SessionWriter, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.writer = writer
        self.setFormatter(JsonLineFormatter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.writer.write(self.format(record))
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        try:
            self.writer.close()
        finally:
            super().close()


@dataclass
class LoggingSession:
    """Handles created by :func:`configure_logging`."""

    logger: logging.Logger
    handlers: List[logging.Handler] = field(default_factory=list)
    writer: Optional[SessionWriter] = None
    coordinator: Optional[ShutdownCoordinator] = None

    def close(self) -> None:
        for handler in self.handlers:
            self.logger.removeHandler(handler)
            handler.close()
        self.handlers = []


def resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(
    settings: KeeperSettings,
    *,
    logger_name: Optional[str] = None,
    console: Optional[Console] = None,
    install_shutdown_hooks: bool = True,
) -> LoggingSession:
    """Attach console output and, when enabled, a JSON file session to a logger."""
    level = resolve_level(settings.log_level)
    target = logging.getLogger(logger_name)
    target.setLevel(level)

    if console is None:
        console = Console(stderr=True, no_color=not settings.use_color)
    console_handler = RichHandler(
        console=console,
        level=level,
        show_path=False,
        log_time_format="[%H:%M:%S | %d.%m.%Y]",
    )
    session = LoggingSession(logger=target, handlers=[console_handler])

    if settings.preserve_logs:
        writer = SessionWriter(
            settings.log_directory,
            settings.log_max_lines,
            settings.log_session_prefix,
        )
        if install_shutdown_hooks:
            session.coordinator = ShutdownCoordinator(writer).install()
        session.writer = writer
        session.handlers.append(SessionLogHandler(writer, level=level))

    for handler in session.handlers:
        target.addHandler(handler)

    if settings.preserve_logs:
        target.info(
            "Logger initialized at %s level (console + JSON files, %d lines per file)",
            settings.log_level,
            settings.log_max_lines,
        )
    else:
        target.info("Logger initialized at %s level (console only)", settings.log_level)
    return session


__all__ = [
    "JsonLineFormatter",
    "LoggingSession",
    "SessionLogHandler",
    "configure_logging",
    "resolve_level",
]
