from __future__ import annotations

import os
from datetime import datetime, timedelta
from pathlib import Path

from resize_kro import runtime_logging


def _write_file_with_mtime(path: Path, mtime: datetime) -> None:
    path.write_text("x", encoding="utf-8")
    ts = mtime.timestamp()
    os.utime(path, (ts, ts))


def test_get_default_log_dir_windows_uses_localappdata(tmp_path: Path) -> None:
    env = {"LOCALAPPDATA": str(tmp_path / "LocalAppData")}
    result = runtime_logging.get_default_log_dir(os_name="nt", env=env, home=tmp_path / "home")
    assert result == Path(env["LOCALAPPDATA"]) / "ResizeKro" / "logs"


def test_get_default_log_dir_unix_uses_xdg_state_home(tmp_path: Path) -> None:
    env = {"XDG_STATE_HOME": str(tmp_path / "state")}
    result = runtime_logging.get_default_log_dir(os_name="posix", env=env, home=tmp_path / "home")
    assert result == Path(env["XDG_STATE_HOME"]) / "resize-kro" / "logs"


def test_get_default_log_dir_unix_fallback(tmp_path: Path) -> None:
    home = tmp_path / "home"
    result = runtime_logging.get_default_log_dir(os_name="posix", env={}, home=home)
    assert result == home / ".local" / "state" / "resize-kro" / "logs"


def test_get_default_log_dir_env_override(tmp_path: Path) -> None:
    env = {
        runtime_logging.LOG_DIR_ENV: str(tmp_path / "custom"),
        "XDG_STATE_HOME": str(tmp_path / "state"),
    }
    result = runtime_logging.get_default_log_dir(os_name="posix", env=env, home=tmp_path)
    assert result == tmp_path / "custom"


def test_create_run_log_artifacts_uses_timestamp(tmp_path: Path) -> None:
    now = datetime(2026, 2, 12, 9, 30, 5)
    artifacts = runtime_logging.create_run_log_artifacts(log_dir=tmp_path / "logs", now=now)

    assert artifacts.run_id == "20260212_093005"
    assert artifacts.log_dir.is_dir()
    assert artifacts.run_log_path == tmp_path / "logs" / "run_20260212_093005.log"


def test_prune_run_files_removes_expired_files(tmp_path: Path) -> None:
    now = datetime(2026, 2, 12, 12, 0, 0)
    old_log = tmp_path / "run_20251220_120000.log"
    new_log = tmp_path / "run_20260209_120000.log"
    ignore_file = tmp_path / "misc.log"
    bad_id = tmp_path / "run_notatime.log"

    _write_file_with_mtime(old_log, now - timedelta(days=45))
    _write_file_with_mtime(new_log, now - timedelta(days=3))
    _write_file_with_mtime(bad_id, now - timedelta(days=45))
    ignore_file.write_text("keep", encoding="utf-8")

    removed = runtime_logging.prune_run_files(tmp_path, retention_days=30, max_files=100, now=now)

    assert {p.name for p in removed} == {"run_20251220_120000.log"}
    assert new_log.exists()
    assert ignore_file.exists()
    assert bad_id.exists()


def test_prune_run_files_respects_max_files(tmp_path: Path) -> None:
    now = datetime(2026, 2, 12, 12, 0, 0)

    # mtimeが古い順に並ぶよう作成
    for idx in range(1, 6):
        file_path = tmp_path / f"run_2026020{idx}_120000.log"
        _write_file_with_mtime(file_path, now - timedelta(days=idx))

    runtime_logging.prune_run_files(tmp_path, retention_days=365, max_files=2, now=now)

    remaining = sorted(p.name for p in tmp_path.glob("run_*.log"))
    assert remaining == ["run_20260201_120000.log", "run_20260202_120000.log"]


def test_setup_logging_writes_run_log(tmp_path: Path) -> None:
    from loguru import logger

    artifacts = runtime_logging.setup_logging("WARNING", "DEBUG", log_dir=tmp_path)
    logger.info("ログ出力テスト")
    logger.remove()

    assert "ログ出力テスト" in artifacts.run_log_path.read_text(encoding="utf-8")
