"""Entry point for the sessionkeeper command line."""
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import ConfigLoadResult, KeeperSettings, load_config
from .errors import ConfigurationError, SessionKeeperError
from .logsetup import configure_logging, resolve_level
from .retention import RetentionPolicy, RetentionPruner, summarize
from .shutdown import ShutdownCoordinator
from .store import SessionWriter, discover_sessions, prepare_log_root

app = typer.Typer(add_completion=False, rich_markup_mode="rich", no_args_is_help=True)


def _create_console(use_color: bool) -> Console:
    return Console(no_color=not use_color, highlight=use_color)


def _echo(console: Console, line: str) -> None:
    console.print(line, markup=False, highlight=False, soft_wrap=True)


def _loaded(ctx: typer.Context) -> ConfigLoadResult:
    return ctx.obj


def _settings(ctx: typer.Context) -> KeeperSettings:
    return _loaded(ctx).settings


@app.callback()
def _root(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Settings file to read before the default locations.",
    ),
    color: Optional[bool] = typer.Option(
        None,
        "--color/--no-color",
        help="Force coloured output on or off.",
    ),
) -> None:
    """Manage rotating JSON log sessions and their retention."""
    try:
        loaded = load_config(config_path)
    except ConfigurationError as exc:
        typer.echo(f"configuration error: {exc}", err=True)
        raise typer.Exit(code=2) from exc

    if color is not None:
        loaded.settings = loaded.settings.model_copy(update={"use_color": color})
    ctx.obj = loaded


@app.command()
def prepare(ctx: typer.Context) -> None:
    """Create the log root directory if it does not exist yet."""
    settings = _settings(ctx)
    console = _create_console(settings.use_color)
    root = prepare_log_root(settings.log_directory)
    _echo(console, f"[logs] ensured directory exists at {root}")


@app.command()
def prune(
    ctx: typer.Context,
    older_than_days: Optional[int] = typer.Option(
        None,
        "--older-than-days",
        "-d",
        help="Override the configured retention age for this sweep.",
    ),
) -> None:
    """Delete finished sessions older than the retention age."""
    settings = _settings(ctx)
    console = _create_console(settings.use_color)
    policy = settings.retention_policy()
    if older_than_days is not None:
        policy = RetentionPolicy(root_dir=policy.root_dir, max_age_days=older_than_days, enabled=policy.enabled)

    try:
        report = RetentionPruner(policy).prune()
    except OSError as exc:
        typer.echo(f"[logs] cannot list {policy.root_dir}: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    for line in summarize(report):
        _echo(console, line)


@app.command()
def sessions(ctx: typer.Context) -> None:
    """List session directories under the log root."""
    settings = _settings(ctx)
    console = _create_console(settings.use_color)
    entries = discover_sessions(settings.log_directory)
    if not entries:
        _echo(console, f"No log sessions under {settings.log_directory}")
        return

    table = Table(title=str(settings.log_directory))
    table.add_column("session")
    table.add_column("state")
    table.add_column("pid", justify="right")
    table.add_column("time")
    table.add_column("parts", justify="right")
    for entry in entries:
        stamp = entry.stamp.strftime("%Y-%m-%d %H:%M:%S") if entry.stamp else "?"
        state = "running" if entry.running else "finished"
        table.add_row(entry.name, state, str(entry.pid), stamp, str(len(entry.part_files)))
    console.print(table)


@app.command()
def capture(
    ctx: typer.Context,
    prefix: Optional[str] = typer.Option(None, "--prefix", "-p", help="Session prefix for this capture."),
    max_lines: Optional[int] = typer.Option(None, "--max-lines", "-n", min=1, help="Lines per part file."),
    tee: bool = typer.Option(False, "--tee", help="Echo every captured line to stdout."),
) -> None:
    """Write lines from standard input into a new log session."""
    settings = _settings(ctx)
    console = _create_console(settings.use_color)
    if not settings.preserve_logs:
        _echo(console, "[logs] preserve_logs disabled; nothing captured")
        return

    try:
        writer = SessionWriter(
            settings.log_directory,
            max_lines if max_lines is not None else settings.log_max_lines,
            prefix if prefix is not None else settings.log_session_prefix,
        )
    except ConfigurationError as exc:
        typer.echo(f"configuration error: {exc}", err=True)
        raise typer.Exit(code=2) from exc

    ShutdownCoordinator(writer).install()
    count = 0
    try:
        for line in sys.stdin:
            writer.write(line)
            count += 1
            if tee:
                sys.stdout.write(line)
    finally:
        writer.close()

    _echo(console, f"[logs] captured {count} line{'' if count == 1 else 's'} into {writer.session_dir}")


@app.command("config")
def show_config(ctx: typer.Context) -> None:
    """Print the effective configuration."""
    loaded = _loaded(ctx)
    console = _create_console(loaded.settings.use_color)
    payload = json.dumps(loaded.settings.to_dict(), indent=2, ensure_ascii=False)
    source = str(loaded.source) if loaded.source else "defaults"
    console.print(Panel(payload, title="configuration", subtitle=source, highlight=loaded.settings.use_color))


@app.command()
def emit(
    ctx: typer.Context,
    message: str = typer.Argument(..., help="Message to log."),
    level: str = typer.Option("info", "--level", "-l", help="Level to log the message at."),
) -> None:
    """Log one message through the configured console and file targets."""
    settings = _settings(ctx)
    session = configure_logging(settings, logger_name="sessionkeeper.emit")
    try:
        session.logger.log(resolve_level(level), message)
    finally:
        session.close()
    if session.writer is not None:
        _echo(_create_console(settings.use_color), f"[logs] wrote to {session.writer.session_dir}")


def entrypoint() -> None:
    """Typer entrypoint for `sessionkeeper`."""
    try:
        app()
    except SessionKeeperError as exc:
        typer.echo(f"sessionkeeper: {exc}", err=True)
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    entrypoint()
