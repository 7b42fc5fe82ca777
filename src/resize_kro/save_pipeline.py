"""処理結果の保存（ダウンロード）パイプライン。

一時ファイルに書き込んでから置換し、壊れた最終ファイルを残さない。
"""

from __future__ import annotations

import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from loguru import logger

from .errors import SaveError
from .models import ProcessedArtifact

_WINDOWS_LONG_PATH_PREFIX = 260
_WINDOWS_RETRYABLE_CODES = {32, 33}


@dataclass(frozen=True)
class SaveResult:
    output_path: Path
    size_bytes: int


def _normalize_windows_long_path(path: Path) -> Path:
    """Windowsの長いパス向けに `\\\\?\\` プレフィックスを付与する。"""
    if os.name != "nt":
        return path

    path_str = os.path.abspath(str(path))
    if path_str.startswith("\\\\?\\"):
        return Path(path_str)

    if len(path_str) < _WINDOWS_LONG_PATH_PREFIX - 4:
        return Path(path_str)

    if path_str.startswith("\\\\"):
        return Path("\\\\?\\UNC\\" + path_str[2:])

    return Path("\\\\?\\" + path_str)


def _build_temp_save_path(target_path: Path) -> Path:
    """同一ディレクトリ内の一時保存パスを作る。"""
    base_name = target_path.name or "resize_kro_output"
    token = f"{os.getpid()}_{time.time_ns()}_{uuid.uuid4().hex[:10]}"
    return target_path.with_name(f".{base_name}.{token}.tmp")


def analyze_file_error(error: BaseException) -> Tuple[Optional[int], str, bool, str]:
    """ファイル保存に使えるエラー分類を返す。

    Returns:
        (error_code, error_category, retryable, guidance)
    """
    if not isinstance(error, OSError):
        return None, "unknown", False, "再試行しても解決しない場合は保存先を変更してください。"

    win_error = getattr(error, "winerror", None)
    if os.name == "nt" and win_error:
        code = int(win_error)
        if code in _WINDOWS_RETRYABLE_CODES:
            return (
                code,
                "sharing_violation",
                True,
                "他のアプリによるロックが疑われます。数秒後に再試行するか、関連アプリを閉じてください。",
            )
        if code == 206:
            return code, "path_too_long", False, "保存先のパスが長すぎる可能性があります。短いパスに変更してください。"

    errno = getattr(error, "errno", None)
    code = int(errno) if isinstance(errno, int) else None
    if isinstance(error, PermissionError) or code in {13, 5, 30}:
        return code, "permission_denied", False, "保存先の書き込み権限を確認してください。"
    if isinstance(error, FileNotFoundError) or code == 2:
        return code, "not_found", False, "保存先フォルダが見つかりません。保存先フォルダを確認してください。"
    if code in {28, 122, 112}:
        return code, "no_space", False, "保存先の空き容量不足が疑われます。空き容量を確認してください。"
    if code == 36:
        return code, "path_too_long", False, "ファイル名が長すぎます。短い名前に変更してください。"

    return code, "unknown", False, "再試行しても解決しない場合は保存先を変更してください。"


def default_destination(artifact: ProcessedArtifact, directory: Union[str, Path]) -> Path:
    return Path(directory) / artifact.filename


def save_artifact(artifact: ProcessedArtifact, destination: Union[str, Path]) -> SaveResult:
    """処理結果をファイルに保存する。

    Raises:
        SaveError: 書き込みに失敗した場合（分類とガイダンス付き）
    """
    final_path = Path(destination)
    if final_path.is_dir():
        final_path = default_destination(artifact, final_path)
    write_path = _normalize_windows_long_path(final_path)
    tmp_path = _build_temp_save_path(write_path)

    try:
        with tmp_path.open("wb") as fh:
            fh.write(artifact.data)
        os.replace(str(tmp_path), str(write_path))
    except OSError as e:
        code, category, _retryable, guidance = analyze_file_error(e)
        logger.error(f"保存に失敗しました: {final_path} ({category}) - {e}")
        raise SaveError(
            f"保存に失敗しました: {final_path}",
            category=category,
            error_code=code,
            guidance=guidance,
        ) from e
    finally:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                logger.warning(f"一時保存ファイルの削除に失敗: {tmp_path}")

    logger.info(f"保存完了: {final_path} ({artifact.size_bytes} bytes, origin={artifact.origin})")
    return SaveResult(output_path=final_path, size_bytes=artifact.size_bytes)
