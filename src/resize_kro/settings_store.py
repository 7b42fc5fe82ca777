"""アプリ設定の永続化ストア。"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from loguru import logger

from .models import DEFAULT_OUTPUT_FILENAME
from .resize_core import INITIAL_QUALITY, MAX_ITERATION, RESIZE_QUALITY

SCHEMA_VERSION = 1
_SETTINGS_FILENAME = "settings.json"
_APP_DIR_NAME = "ResizeKro"


def default_settings() -> dict[str, Any]:
    """設定のデフォルト値を返す。"""
    return {
        "schema_version": SCHEMA_VERSION,
        "maintain_aspect_ratio": True,
        "resize_quality": RESIZE_QUALITY,
        "compress_initial_quality": INITIAL_QUALITY,
        "compress_max_iteration": MAX_ITERATION,
        "output_filename": DEFAULT_OUTPUT_FILENAME,
        "last_input_dir": "",
        "last_output_dir": "",
        "appearance_mode": "system",
        "window_geometry": "960x820",
        "log_level": "INFO",
    }


@dataclass(frozen=True)
class AppConfig:
    maintain_aspect_ratio: bool = True
    resize_quality: int = RESIZE_QUALITY
    compress_initial_quality: float = INITIAL_QUALITY
    compress_max_iteration: int = MAX_ITERATION
    output_filename: str = DEFAULT_OUTPUT_FILENAME
    log_level: str = "INFO"

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "AppConfig":
        """設定辞書から作成。不正な値はデフォルトに戻す"""
        defaults = cls()
        return cls(
            maintain_aspect_ratio=bool(settings.get("maintain_aspect_ratio", defaults.maintain_aspect_ratio)),
            resize_quality=_clamp_int(settings.get("resize_quality"), 1, 100, defaults.resize_quality),
            compress_initial_quality=_clamp_float(
                settings.get("compress_initial_quality"), 0.01, 1.0, defaults.compress_initial_quality
            ),
            compress_max_iteration=_clamp_int(
                settings.get("compress_max_iteration"), 1, 50, defaults.compress_max_iteration
            ),
            output_filename=str(settings.get("output_filename") or defaults.output_filename),
            log_level=str(settings.get("log_level") or defaults.log_level).upper(),
        )


class SettingsStore:
    """設定のロード/保存を行う。"""

    def __init__(self, settings_path: Optional[Path] = None) -> None:
        self.settings_path = settings_path or self._build_default_settings_path()

    def load(self) -> dict[str, Any]:
        """設定を読み込む。ファイルがない/壊れている場合はデフォルト値。"""
        settings = default_settings()
        loaded = self._read_json(self.settings_path)
        if loaded is not None:
            settings.update(loaded)
        settings["schema_version"] = SCHEMA_VERSION
        return settings

    def save(self, settings: Mapping[str, Any]) -> None:
        """設定を保存する。"""
        payload = default_settings()
        payload.update(dict(settings))
        payload["schema_version"] = SCHEMA_VERSION

        self.settings_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.settings_path.with_suffix(f"{self.settings_path.suffix}.tmp")
        with tmp_path.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, ensure_ascii=False, indent=2)
        tmp_path.replace(self.settings_path)

    def update(self, **changes: Any) -> dict[str, Any]:
        settings = self.load()
        settings.update(changes)
        self.save(settings)
        return settings

    @staticmethod
    def _read_json(path: Path) -> Optional[dict[str, Any]]:
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            logger.warning(f"設定ファイルを読み込めません: {path} - {e}")
            return None
        if not isinstance(data, dict):
            return None
        return data

    @staticmethod
    def _build_default_settings_path() -> Path:
        if os.name == "nt":
            app_data = os.environ.get("APPDATA")
            if app_data:
                return Path(app_data) / _APP_DIR_NAME / _SETTINGS_FILENAME
            return Path.home() / ".resize-kro" / _SETTINGS_FILENAME

        config_home = os.environ.get("XDG_CONFIG_HOME")
        if config_home:
            return Path(config_home) / "resize-kro" / _SETTINGS_FILENAME
        return Path.home() / ".config" / "resize-kro" / _SETTINGS_FILENAME


def load_app_config(store: Optional[SettingsStore] = None) -> AppConfig:
    return AppConfig.from_settings((store or SettingsStore()).load())


def _clamp_int(value: Any, lower: int, upper: int, fallback: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return fallback
    return max(lower, min(upper, number))


def _clamp_float(value: Any, lower: float, upper: float, fallback: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return max(lower, min(upper, number))
