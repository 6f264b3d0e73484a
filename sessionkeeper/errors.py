"""Exception types raised by sessionkeeper."""
from __future__ import annotations


class SessionKeeperError(Exception):
    """Base class for all sessionkeeper failures."""


class ConfigurationError(SessionKeeperError):
    """Settings are invalid or the log root cannot be used."""


class FinalizeError(SessionKeeperError):
    """A session directory could not be renamed to its finished name."""


__all__ = ["SessionKeeperError", "ConfigurationError", "FinalizeError"]
