"""
目標サイズ圧縮のコントローラー
"""

from __future__ import annotations

import io
import math
from typing import Callable, Optional

from PIL import Image, ImageOps
from loguru import logger

from .errors import CompressionError, InvalidInputError
from .models import (
    DEFAULT_OUTPUT_FILENAME,
    CompressionResult,
    ProcessedArtifact,
    SourceImage,
    bytes_to_kb,
)
from .resize_core import (
    INITIAL_QUALITY,
    MAX_ITERATION,
    CompressionOptions,
    compress_image,
    extension_for_format,
    update_extension,
)

Compressor = Callable[[bytes, CompressionOptions], bytes]


class CompressionController:
    """目標サイズ (KB) を圧縮処理の制約に変換して実行する"""

    def __init__(
        self,
        initial_quality: float = INITIAL_QUALITY,
        max_iteration: int = MAX_ITERATION,
        output_filename: str = DEFAULT_OUTPUT_FILENAME,
        compressor: Optional[Compressor] = None,
    ) -> None:
        self.initial_quality = initial_quality
        self.max_iteration = max_iteration
        self.output_filename = output_filename
        self._compress = compressor or compress_image

    def build_options(self, source: SourceImage, target_kb: float) -> CompressionOptions:
        """KB 指定を圧縮オプションに変換（最大辺は元画像以下に制限）"""
        return CompressionOptions(
            max_size_mb=target_kb / 1024,
            max_width_or_height=max(source.width, source.height),
            initial_quality=self.initial_quality,
            max_iteration=self.max_iteration,
        )

    def compress_to_target(self, source: Optional[SourceImage], target_kb: Optional[float]) -> CompressionResult:
        """
        元画像を目標サイズに向けて圧縮する

        目標は保証ではないため、実際のサイズを ``achieved_kb`` として返す。

        Raises:
            InvalidInputError: 目標サイズが未設定・0以下・有限でない、または画像が未読み込みの場合
            CompressionError: 圧縮処理が失敗した場合
        """
        if target_kb is None or not math.isfinite(target_kb) or target_kb <= 0:
            raise InvalidInputError(f"無効な目標サイズです: {target_kb}")
        if source is None or not source.dimensions.is_known:
            raise InvalidInputError("画像が読み込まれていません")

        options = self.build_options(source, target_kb)
        logger.info(
            f"圧縮開始: {source.name} {source.size_kb}KB -> 目標 {target_kb}KB "
            f"(最大辺 {options.max_width_or_height}px)"
        )
        try:
            data = self._compress(source.data, options)
            with Image.open(io.BytesIO(data)) as img:
                output_format = img.format or "JPEG"
                width, height = ImageOps.exif_transpose(img).size
        except Exception as e:
            logger.error(f"圧縮に失敗しました: {e}")
            raise CompressionError(f"圧縮に失敗しました: {e}") from e

        achieved_kb = bytes_to_kb(len(data))
        logger.info(f"圧縮完了: {achieved_kb}KB ({width}x{height})")
        artifact = ProcessedArtifact(
            data=data,
            origin="compress",
            width=width,
            height=height,
            filename=update_extension(self.output_filename, extension_for_format(output_format)),
            format=output_format,
        )
        return CompressionResult(artifact=artifact, achieved_kb=achieved_kb, target_kb=target_kb)
