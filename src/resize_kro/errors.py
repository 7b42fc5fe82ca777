"""
エラー分類とユーザー向けメッセージ

各アクションの失敗はそのアクションだけで完結させ、セッションは継続させる。
"""

from __future__ import annotations

from typing import Optional, Sequence


class ResizeKroError(Exception):
    """アプリ共通の基底例外"""

    default_message = "予期しないエラーが発生しました"
    default_suggestions: tuple[str, ...] = (
        "ログを確認してください",
        "別の画像で再試行してください",
    )

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        user_message: Optional[str] = None,
        suggestions: Optional[Sequence[str]] = None,
    ) -> None:
        super().__init__(message or self.default_message)
        self.user_message = user_message or self.default_message
        self.suggestions = tuple(suggestions) if suggestions is not None else self.default_suggestions


class DecodeError(ResizeKroError):
    """画像として読み込めない"""

    default_message = "画像ファイルとして認識できません"
    default_suggestions = (
        "JPEG / PNG / WebP などの画像ファイルを選択してください",
        "ファイルが破損していないか確認してください",
    )


class RenderError(ResizeKroError):
    """リサイズ（描画・エンコード）の失敗"""

    default_message = "画像のリサイズに失敗しました"
    default_suggestions = (
        "幅と高さに1以上の値を入力してください",
        "別の画像形式で試してください",
    )


class CompressionError(ResizeKroError):
    """目標サイズ圧縮の失敗"""

    default_message = "画像の圧縮に失敗しました。目標サイズを大きくしてお試しください"
    default_suggestions = (
        "目標サイズ (KB) を大きくしてください",
        "先にリサイズして画素数を減らしてください",
    )


class InvalidInputError(ResizeKroError, ValueError):
    """無効な入力値（通常はUI側で操作が無効化される）"""

    default_message = "無効な値が入力されました"
    default_suggestions = ("1以上の数値を入力してください",)


class SaveError(ResizeKroError):
    """処理結果の保存に失敗"""

    default_message = "画像の保存に失敗しました"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        category: str = "unknown",
        error_code: Optional[int] = None,
        guidance: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            suggestions=(guidance,) if guidance else None,
        )
        self.category = category
        self.error_code = error_code
        self.guidance = guidance
