"""Pure text builders for GUI labels and notices."""

from __future__ import annotations

import math
from typing import Optional

from .dimension_model import get_aspect_ratio
from .errors import ResizeKroError
from .models import ProcessedArtifact, SourceImage

_ORIGIN_LABELS = {
    "resize": "リサイズ",
    "compress": "圧縮",
}


def build_source_details_text(source: Optional[SourceImage], *, pending_name: Optional[str] = None) -> str:
    """元画像の詳細（サイズ・解像度・アスペクト比）"""
    if source is None:
        if pending_name:
            return f"読み込み中: {pending_name}"
        return "画像が選択されていません"
    lines = [
        f"ファイル: {source.name}",
        f"サイズ: {source.size_kb}KB",
        f"解像度: {source.width} x {source.height}",
        f"アスペクト比: {get_aspect_ratio(source.width, source.height)}",
    ]
    return "\n".join(lines)


def build_artifact_caption(artifact: Optional[ProcessedArtifact]) -> str:
    if artifact is None:
        return ""
    origin = _ORIGIN_LABELS.get(artifact.origin, artifact.origin)
    return f"処理結果（{origin}）: {artifact.width} x {artifact.height} / {artifact.size_kb}KB"


def build_compression_notice(achieved_kb: int, target_kb: Optional[float] = None) -> str:
    """圧縮後の実サイズ通知"""
    message = f"圧縮後のサイズ: {achieved_kb}KB"
    if target_kb is not None and achieved_kb > target_kb:
        message += f"\n目標 ({target_kb:g}KB) には届きませんでした"
    return message


def build_error_text(error: BaseException) -> str:
    """例外からユーザー向けのメッセージを作る"""
    if isinstance(error, ResizeKroError):
        lines = [error.user_message]
        lines.extend(f"・{suggestion}" for suggestion in error.suggestions)
        return "\n".join(lines)
    return f"予期しないエラー: {error}"


def parse_dimension_value(text: str) -> Optional[int]:
    """入力欄の文字列を0以上の整数に変換。変換できなければ None"""
    text = text.strip()
    if not text:
        return None
    try:
        value = int(float(text))
    except (ValueError, OverflowError):
        return None
    return value if value >= 0 else None


def parse_target_kb(text: str) -> Optional[float]:
    """目標サイズ欄の文字列を KB に変換。空・0以下・数値以外・無限大は None"""
    text = text.strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value
