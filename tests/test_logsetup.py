import io
import json
import logging
import uuid
from pathlib import Path

from rich.console import Console

from sessionkeeper.config import KeeperSettings
from sessionkeeper.logsetup import JsonLineFormatter, SessionLogHandler, configure_logging
from sessionkeeper.store import RUNNING_MARKER, SessionWriter


def _read_lines(session_dir: Path) -> list:
    lines = []
    for part in sorted(session_dir.glob("*_part*.jsonl")):
        lines.extend(json.loads(line) for line in part.read_text(encoding="utf-8").splitlines())
    return lines


def _logger_name() -> str:
    return f"tests.sessionkeeper.{uuid.uuid4().hex[:8]}"


def test_configure_logging_writes_console_and_json_session(tmp_path: Path) -> None:
    settings = KeeperSettings(log_directory=tmp_path, log_max_lines=2, log_session_prefix="api")
    buffer = io.StringIO()

    session = configure_logging(
        settings,
        logger_name=_logger_name(),
        console=Console(file=buffer, width=200),
        install_shutdown_hooks=False,
    )
    session.logger.info("request handled", extra={"requestId": "abc", "statusCode": 200})
    session.logger.warning("slow response %dms", 1200)
    session.logger.debug("not recorded")
    session.close()

    assert "request handled" in buffer.getvalue()
    writer = session.writer
    assert writer is not None and writer.closed
    assert RUNNING_MARKER not in writer.session_dir.name
    assert [path.name for path in sorted(writer.session_dir.iterdir())] == ["api_part001.jsonl", "api_part002.jsonl"]

    records = _read_lines(writer.session_dir)
    assert [record["msg"] for record in records] == [
        "Logger initialized at info level (console + JSON files, 2 lines per file)",
        "request handled",
        "slow response 1200ms",
    ]
    assert records[1]["requestId"] == "abc"
    assert records[1]["statusCode"] == 200
    assert records[2]["level"] == logging.WARNING
    assert records[2]["levelname"] == "warning"
    assert {"time", "pid", "hostname", "name"} <= set(records[0])


def test_console_only_when_preserve_logs_disabled(tmp_path: Path) -> None:
    settings = KeeperSettings(log_directory=tmp_path / "logs", preserve_logs=False)
    buffer = io.StringIO()

    session = configure_logging(settings, logger_name=_logger_name(), console=Console(file=buffer, width=200))
    session.close()

    assert session.writer is None
    assert session.coordinator is None
    assert "console only" in buffer.getvalue()
    assert not (tmp_path / "logs").exists()


def test_configure_logging_installs_and_releases_shutdown_hooks(tmp_path: Path) -> None:
    settings = KeeperSettings(log_directory=tmp_path)
    session = configure_logging(settings, logger_name=_logger_name(), console=Console(file=io.StringIO()))

    assert session.coordinator is not None and session.coordinator.installed
    session.close()
    assert not session.coordinator.installed


def test_handler_records_exceptions(tmp_path: Path) -> None:
    writer = SessionWriter(tmp_path, max_lines=10)
    handler = SessionLogHandler(writer)
    logger = logging.getLogger(_logger_name())
    logger.propagate = False
    logger.addHandler(handler)
    try:
        try:
            raise ValueError("broken input")
        except ValueError:
            logger.exception("request failed")
    finally:
        logger.removeHandler(handler)
        handler.close()

    (record,) = _read_lines(writer.session_dir)
    assert record["msg"] == "request failed"
    assert "ValueError: broken input" in record["err"]


def test_handler_drops_records_after_close(tmp_path: Path) -> None:
    writer = SessionWriter(tmp_path, max_lines=10)
    handler = SessionLogHandler(writer)
    handler.close()

    handler.handle(logging.LogRecord("late", logging.INFO, __file__, 1, "too late", None, None))

    assert _read_lines(writer.session_dir) == []


def test_formatter_output_is_single_line() -> None:
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "multi\nline", None, None)
    line = JsonLineFormatter().format(record)

    assert "\n" not in line
    assert json.loads(line)["msg"] == "multi\nline"
