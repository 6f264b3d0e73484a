"""Runtime configuration helpers for sessionkeeper."""
from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigurationError
from .retention import RetentionPolicy
from .store.layout import DEFAULT_SESSION_PREFIX, validate_prefix

ENV_PREFIX = "SESSIONKEEPER_"
CONFIG_PATH_ENV = f"{ENV_PREFIX}CONFIG_PATH"


def _default_config_files() -> List[Path]:
    return [
        Path.cwd() / ".sessionkeeper.toml",
        Path.home() / ".config" / "sessionkeeper" / "config.toml",
    ]


class KeeperSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")
    log_level: str = Field(default="info", description="Minimum level for console and file output")
    log_directory: Path = Field(default_factory=lambda: Path("logs"), description="Root directory for session directories")
    log_max_lines: int = Field(default=1000, ge=1, description="Lines per part file before rotating")
    log_session_prefix: str = Field(default=DEFAULT_SESSION_PREFIX, description="Stream name used in directory and part names")
    preserve_logs: bool = Field(default=True, description="Write JSON session files at all")
    delete_logs_older_than_days: int = Field(default=14, ge=0, description="Retention age in days, 0 keeps everything")
    use_color: bool = Field(default=False, description="Colour console output")

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in {"debug", "info", "warning", "warn", "error", "critical"}:
            raise ValueError(f"unknown log level: {value!r}")
        return "warning" if value == "warn" else value

    @field_validator("log_session_prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        return validate_prefix(value)

    @model_validator(mode="after")
    def _normalize_paths(self) -> "KeeperSettings":
        self.log_directory = self.log_directory.expanduser()
        return self

    def retention_policy(self) -> RetentionPolicy:
        return RetentionPolicy(
            root_dir=self.log_directory,
            max_age_days=self.delete_logs_older_than_days,
            enabled=self.preserve_logs,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["log_directory"] = str(self.log_directory)
        return data


@dataclass
class ConfigLoadResult:
    settings: KeeperSettings
    source: Optional[Path]
    searched: List[Path]


def _load_toml(path: Path) -> Dict[str, Any]:
    with path.open("rb") as fh:
        data = tomllib.load(fh)
    # accept either a flat file or a [sessionkeeper] table
    section = data.get("sessionkeeper")
    return dict(section) if isinstance(section, dict) else data


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    for name in KeeperSettings.model_fields:
        value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value:
            overrides[name] = value
    return overrides


def load_config(
    explicit_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ConfigLoadResult:
    """Load configuration from the first available location, then apply env overrides."""
    environ = os.environ if environ is None else environ

    candidates: List[Path] = []
    if explicit_path is not None:
        candidates.append(explicit_path.expanduser())
    if environ.get(CONFIG_PATH_ENV):
        candidates.append(Path(environ[CONFIG_PATH_ENV]).expanduser())
    candidates.extend(_default_config_files())

    config_data: Dict[str, Any] = {}
    loaded_from: Optional[Path] = None
    for candidate in candidates:
        if candidate.is_file():
            try:
                config_data = _load_toml(candidate)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigurationError(f"{candidate}: {exc}") from exc
            loaded_from = candidate
            break

    config_data.update(_env_overrides(environ))
    try:
        settings = KeeperSettings(**config_data)
    except ValidationError as exc:
        source = loaded_from or "defaults"
        raise ConfigurationError(f"invalid configuration ({source}): {exc}") from exc

    return ConfigLoadResult(settings=settings, source=loaded_from, searched=candidates)


__all__ = ["KeeperSettings", "ConfigLoadResult", "load_config", "ENV_PREFIX", "CONFIG_PATH_ENV"]
