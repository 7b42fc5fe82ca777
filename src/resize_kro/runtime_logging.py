"""ランタイムログの保存先・保持ポリシーと loguru の設定。"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Mapping, Optional

from loguru import logger

DEFAULT_RETENTION_DAYS = 30
DEFAULT_MAX_FILES = 100
LOG_DIR_ENV = "RESIZE_KRO_LOG_DIR"
_RUN_LOG_PREFIX = "run_"
_RUN_LOG_SUFFIX = ".log"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{function}</cyan>: <white>{message}</white>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}: {message}"


@dataclass(frozen=True)
class RunLogArtifacts:
    run_id: str
    log_dir: Path
    run_log_path: Path


def get_default_log_dir(
    app_name: str = "ResizeKro",
    app_slug: str = "resize-kro",
    *,
    os_name: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """OSごとの標準ログディレクトリを返す。環境変数で上書き可能。"""
    resolved_os_name = os_name or os.name
    resolved_env = env if env is not None else os.environ
    resolved_home = home or Path.home()
    app_dir_name = app_name.strip().replace(" ", "")

    override = resolved_env.get(LOG_DIR_ENV)
    if override:
        return Path(override)

    if resolved_os_name == "nt":
        local_app_data = resolved_env.get("LOCALAPPDATA") or resolved_env.get("APPDATA")
        if local_app_data:
            return Path(local_app_data) / app_dir_name / "logs"
        return resolved_home / f".{app_slug}" / "logs"

    state_home = resolved_env.get("XDG_STATE_HOME")
    if state_home:
        return Path(state_home) / app_slug / "logs"

    return resolved_home / ".local" / "state" / app_slug / "logs"


def create_run_log_artifacts(
    app_name: str = "ResizeKro",
    *,
    log_dir: Optional[Path] = None,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    max_files: int = DEFAULT_MAX_FILES,
    now: Optional[datetime] = None,
) -> RunLogArtifacts:
    """実行ごとのログファイルパスを作成して返す。"""
    now_dt = now or datetime.now()
    run_id = now_dt.strftime("%Y%m%d_%H%M%S")
    resolved_dir = log_dir or get_default_log_dir(app_name=app_name)
    resolved_dir.mkdir(parents=True, exist_ok=True)
    prune_run_files(resolved_dir, retention_days=retention_days, max_files=max_files, now=now_dt)
    return RunLogArtifacts(
        run_id=run_id,
        log_dir=resolved_dir,
        run_log_path=resolved_dir / f"{_RUN_LOG_PREFIX}{run_id}{_RUN_LOG_SUFFIX}",
    )


def setup_logging(console_level: str = "INFO", file_level: str = "DEBUG", *, log_dir: Optional[Path] = None) -> RunLogArtifacts:
    """ロギングの設定を行います"""
    artifacts = create_run_log_artifacts(log_dir=log_dir)
    logger.remove()  # デフォルト設定を削除
    logger.add(sys.stderr, format=CONSOLE_FORMAT, colorize=True, level=console_level)
    logger.add(artifacts.run_log_path, format=FILE_FORMAT, level=file_level, encoding="utf-8")
    logger.debug(f"ログ出力先: {artifacts.run_log_path}")
    return artifacts


def prune_run_files(
    log_dir: Path,
    *,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    max_files: int = DEFAULT_MAX_FILES,
    now: Optional[datetime] = None,
) -> list[Path]:
    """保持日数・保持件数を超える実行ログを削除する。"""
    now_dt = now or datetime.now()
    cutoff = now_dt - timedelta(days=max(0, retention_days))

    removed: list[Path] = []
    for path in _list_run_files(log_dir):
        try:
            modified_at = datetime.fromtimestamp(path.stat().st_mtime)
        except OSError:
            continue
        if modified_at < cutoff and _safe_unlink(path):
            removed.append(path)

    remaining = _list_run_files(log_dir)
    if max_files > 0 and len(remaining) > max_files:
        for path in remaining[: len(remaining) - max_files]:
            if _safe_unlink(path):
                removed.append(path)

    return removed


def _list_run_files(log_dir: Path) -> list[Path]:
    try:
        files = [path for path in log_dir.iterdir() if _is_run_file(path)]
    except OSError:
        return []
    return sorted(files, key=lambda p: p.stat().st_mtime)


def _is_run_file(path: Path) -> bool:
    if not path.is_file():
        return False
    name = path.name
    if not (name.startswith(_RUN_LOG_PREFIX) and name.endswith(_RUN_LOG_SUFFIX)):
        return False
    run_id = name[len(_RUN_LOG_PREFIX) : -len(_RUN_LOG_SUFFIX)]
    try:
        datetime.strptime(run_id, "%Y%m%d_%H%M%S")
    except ValueError:
        return False
    return True


def _safe_unlink(path: Path) -> bool:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        return False
    return True
