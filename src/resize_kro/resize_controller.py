"""
リサイズ処理のコントローラー
"""

from __future__ import annotations

from typing import Callable, Optional

from loguru import logger

from .dimension_model import Dimensions
from .errors import RenderError
from .models import DEFAULT_OUTPUT_FILENAME, ProcessedArtifact, SourceImage
from .resize_core import RESIZE_QUALITY, rasterize

Rasterizer = Callable[[SourceImage, int, int, int], bytes]


class ResizeController:
    """指定サイズへの描画を依頼し、処理結果を返す"""

    def __init__(
        self,
        quality: int = RESIZE_QUALITY,
        output_filename: str = DEFAULT_OUTPUT_FILENAME,
        rasterizer: Optional[Rasterizer] = None,
    ) -> None:
        self.quality = quality
        self.output_filename = output_filename
        self._rasterize = rasterizer or rasterize

    def resize(self, source: Optional[SourceImage], target: Dimensions) -> ProcessedArtifact:
        """
        元画像を target のサイズで描画する

        Args:
            source: 読み込み済みの元画像
            target: 出力サイズ（両辺とも1以上）

        Returns:
            ProcessedArtifact: origin="resize" の処理結果

        Raises:
            RenderError: 前提条件を満たさない、または描画に失敗した場合
        """
        # 副作用の前に検証する
        if source is None or not source.dimensions.is_known:
            raise RenderError("画像が読み込まれていません")
        if not target.is_known:
            raise RenderError(f"無効なサイズです: {target.width}x{target.height}")

        logger.info(f"リサイズ開始: {source.name} {source.width}x{source.height} -> {target.width}x{target.height}")
        try:
            data = self._rasterize(source, target.width, target.height, self.quality)
        except RenderError:
            raise
        except Exception as e:
            logger.exception("リサイズ中に予期しないエラー")
            raise RenderError(f"リサイズに失敗しました: {e}") from e

        return ProcessedArtifact(
            data=data,
            origin="resize",
            width=target.width,
            height=target.height,
            filename=self.output_filename,
        )
