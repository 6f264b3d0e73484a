import os
import shutil
from pathlib import Path

import pytest

from sessionkeeper import retention
from sessionkeeper.retention import (
    RetentionPolicy,
    RetentionPruner,
    prune_sessions,
    summarize,
)
from sessionkeeper.store import SessionWriter

NOW = 1_700_000_000.0
DAY = 86_400


def _make_session(root: Path, name: str, age_days: float) -> Path:
    path = root / name
    path.mkdir(parents=True)
    (path / "log_part001.jsonl").write_text('{"msg": "x"}\n', encoding="utf-8")
    stamp = NOW - age_days * DAY
    os.utime(path, (stamp, stamp))
    return path


def _pruner(root: Path, days: int, enabled: bool = True) -> RetentionPruner:
    return RetentionPruner(RetentionPolicy(root_dir=root, max_age_days=days, enabled=enabled), clock=lambda: NOW)


def test_prunes_only_sessions_older_than_cutoff(tmp_path: Path) -> None:
    for age in (0, 1, 2, 5):
        _make_session(tmp_path, f"log-100{age}-120000-20240101", age)

    report = _pruner(tmp_path, 3).prune()

    assert report.removed_count == 1
    assert [path.name for path in report.removed] == ["log-1005-120000-20240101"]
    assert sorted(path.name for path in tmp_path.iterdir()) == [
        "log-1000-120000-20240101",
        "log-1001-120000-20240101",
        "log-1002-120000-20240101",
    ]


def test_running_sessions_are_never_pruned(tmp_path: Path) -> None:
    for age in (0, 1, 2):
        _make_session(tmp_path, f"log-100{age}-120000-20240101", age)
    stuck = _make_session(tmp_path, "log-1005-running-120000-20240101", 5)

    report = _pruner(tmp_path, 3).prune()

    assert report.removed_count == 0
    assert report.skipped_running == [stuck]
    assert stuck.is_dir()


def test_age_equal_to_limit_is_pruned(tmp_path: Path) -> None:
    _make_session(tmp_path, "log-1-000000-20240101", 3)

    assert _pruner(tmp_path, 3).prune().removed_count == 1


def test_missing_root_reports_zero(tmp_path: Path) -> None:
    report = _pruner(tmp_path / "absent", 3).prune()

    assert report.removed_count == 0
    assert report.root_missing
    assert not (tmp_path / "absent").exists()


@pytest.mark.parametrize(("days", "enabled"), [(0, True), (-2, True), (3, False)])
def test_disabled_policy_does_not_touch_filesystem(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, days: int, enabled: bool
) -> None:
    _make_session(tmp_path, "log-1-000000-20240101", 30)

    def forbidden(*args, **kwargs):
        raise AssertionError("filesystem inspected")

    monkeypatch.setattr(retention, "_scan", forbidden)

    report = _pruner(tmp_path, days, enabled).prune()

    assert report.removed_count == 0
    assert report.disabled


def test_files_in_root_are_ignored(tmp_path: Path) -> None:
    stray = tmp_path / "notes.txt"
    stray.write_text("keep me", encoding="utf-8")
    os.utime(stray, (NOW - 90 * DAY, NOW - 90 * DAY))

    report = _pruner(tmp_path, 1).prune()

    assert report.removed_count == 0
    assert stray.exists()


def test_per_entry_failure_does_not_abort_sweep(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    blocked = _make_session(tmp_path, "log-1-000000-20240101", 10)
    _make_session(tmp_path, "log-2-000000-20240101", 10)
    real_rmtree = shutil.rmtree

    def flaky_rmtree(path, *args, **kwargs):
        if Path(path) == blocked:
            raise PermissionError("denied")
        return real_rmtree(path, *args, **kwargs)

    monkeypatch.setattr(retention.shutil, "rmtree", flaky_rmtree)

    report = _pruner(tmp_path, 3).prune()

    assert report.removed_count == 1
    assert [anomaly.path for anomaly in report.anomalies] == [blocked]
    assert "denied" in report.anomalies[0].reason
    assert blocked.is_dir()


def test_root_listing_failure_is_fatal(tmp_path: Path) -> None:
    root_file = tmp_path / "root"
    root_file.write_text("", encoding="utf-8")

    with pytest.raises(NotADirectoryError):
        _pruner(root_file, 3).prune()


def test_finished_writer_session_is_pruned_but_live_one_is_not(tmp_path: Path) -> None:
    finished = SessionWriter(tmp_path, max_lines=5, session_prefix="old")
    finished.write("done")
    finished.close()
    live = SessionWriter(tmp_path, max_lines=5, session_prefix="live")
    live.write("still going")

    old = NOW - 10 * DAY
    for path in (finished.session_dir, live.session_dir):
        os.utime(path, (old, old))

    report = prune_sessions(tmp_path, 3, clock=lambda: NOW)

    assert report.removed == [finished.session_dir]
    assert live.session_dir.is_dir()
    live.close()


def test_summary_lines() -> None:
    policy = RetentionPolicy(root_dir=Path("logs"), max_age_days=1)
    report = retention.PruneReport(policy=policy, removed=[Path("logs/a")])
    assert summarize(report) == ["[logs] pruned 1 log session older than 1 day"]

    report = retention.PruneReport(policy=RetentionPolicy(root_dir=Path("logs"), max_age_days=7))
    assert summarize(report) == ["[logs] pruned 0 log sessions older than 7 days"]

    disabled = retention.PruneReport(policy=RetentionPolicy(root_dir=Path("logs"), max_age_days=0))
    assert summarize(disabled) == ["[logs] log retention disabled; nothing to prune"]

    off = retention.PruneReport(policy=RetentionPolicy(root_dir=Path("logs"), max_age_days=3, enabled=False))
    assert summarize(off) == ["[logs] preserve_logs disabled; skipping prune step"]
