"""Age-based removal of finished session directories.

The sweep runs in its own short-lived process. It never talks to a writer:
the running marker in a directory name is the only liveness signal it reads,
and any directory carrying it is left alone regardless of age.
"""
from __future__ import annotations

import logging
import os
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from .store.layout import is_running_name

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86_400


@dataclass(frozen=True)
class RetentionPolicy:
    root_dir: Path
    max_age_days: int
    enabled: bool = True

    @property
    def active(self) -> bool:
        return self.enabled and self.max_age_days > 0


@dataclass
class PruneAnomaly:
    path: Path
    reason: str


@dataclass
class PruneReport:
    """Outcome of one retention sweep."""

    policy: RetentionPolicy
    removed: List[Path] = field(default_factory=list)
    skipped_running: List[Path] = field(default_factory=list)
    anomalies: List[PruneAnomaly] = field(default_factory=list)
    root_missing: bool = False

    @property
    def removed_count(self) -> int:
        return len(self.removed)

    @property
    def disabled(self) -> bool:
        return not self.policy.active


class RetentionPruner:
    """Delete finished sessions whose directory mtime is older than the policy allows."""

    def __init__(self, policy: RetentionPolicy, *, clock: Callable[[], float] = time.time) -> None:
        self.policy = policy
        self._clock = clock

    def prune(self) -> PruneReport:
        policy = self.policy
        report = PruneReport(policy=policy)
        if not policy.active:
            return report

        root = Path(policy.root_dir).expanduser()
        try:
            entries = _scan(root)
        except FileNotFoundError:
            report.root_missing = True
            return report

        cutoff = self._clock() - policy.max_age_days * SECONDS_PER_DAY
        for entry in entries:
            path = Path(entry.path)
            try:
                if not entry.is_dir(follow_symlinks=False):
                    continue
                if is_running_name(entry.name):
                    report.skipped_running.append(path)
                    continue
                if entry.stat(follow_symlinks=False).st_mtime > cutoff:
                    continue
                shutil.rmtree(path)
            except OSError as exc:
                logger.warning("Skipping %s: %s", path, exc)
                report.anomalies.append(PruneAnomaly(path=path, reason=str(exc)))
                continue
            logger.debug("Removed log session %s", path)
            report.removed.append(path)

        return report


def _scan(root: Path) -> List[os.DirEntry]:
    with os.scandir(root) as scanner:
        return sorted(scanner, key=lambda entry: entry.name)


def prune_sessions(
    root_dir: Path,
    max_age_days: int,
    *,
    enabled: bool = True,
    clock: Optional[Callable[[], float]] = None,
) -> PruneReport:
    """Run one sweep over ``root_dir`` and return what happened."""
    policy = RetentionPolicy(root_dir=Path(root_dir), max_age_days=max_age_days, enabled=enabled)
    pruner = RetentionPruner(policy) if clock is None else RetentionPruner(policy, clock=clock)
    return pruner.prune()


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def summarize(report: PruneReport) -> List[str]:
    """Human readable lines describing ``report``."""
    policy = report.policy
    if not policy.enabled:
        return ["[logs] preserve_logs disabled; skipping prune step"]
    if policy.max_age_days <= 0:
        return ["[logs] log retention disabled; nothing to prune"]
    if report.root_missing:
        return [f"[logs] directory {policy.root_dir} missing; nothing to prune"]

    lines = [
        f"[logs] pruned {_plural(report.removed_count, 'log session')} "
        f"older than {_plural(policy.max_age_days, 'day')}"
    ]
    if report.skipped_running:
        lines.append(f"[logs] left {_plural(len(report.skipped_running), 'running session')} untouched")
    for anomaly in report.anomalies:
        lines.append(f"[logs] could not prune {anomaly.path}: {anomaly.reason}")
    return lines


__all__ = [
    "PruneAnomaly",
    "PruneReport",
    "RetentionPolicy",
    "RetentionPruner",
    "prune_sessions",
    "summarize",
]
