"""Normalise arbitrary records into newline-terminated lines."""
from __future__ import annotations

import json
from typing import Any, Mapping, Union

Record = Union[str, bytes, bytearray, Mapping[str, Any]]


def ensure_trailing_newline(payload: str) -> str:
    return payload if payload.endswith("\n") else payload + "\n"


def format_record(record: Record) -> str:
    """Return ``record`` as a single line ending in exactly one newline."""
    if isinstance(record, (bytes, bytearray)):
        text = bytes(record).decode("utf-8", errors="replace")
    elif isinstance(record, Mapping):
        text = json.dumps(dict(record), ensure_ascii=False, default=str)
    else:
        text = str(record)
    return ensure_trailing_newline(text)


__all__ = ["Record", "ensure_trailing_newline", "format_record"]
