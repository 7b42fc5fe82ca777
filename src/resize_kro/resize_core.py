#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
画像のデコード・リサイズ・目標サイズ圧縮を行うコア機能モジュール

UI からは ``ResizeController`` / ``CompressionController`` 経由で利用します。
出力は JPEG です（圧縮時、目標サイズ以下の元データはそのままの形式で返します）。
"""

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from PIL import Image, ImageOps, UnidentifiedImageError
from loguru import logger

from .errors import DecodeError, RenderError
from .models import SourceImage

# リサイズ時の JPEG 品質（UI からは変更しない）
RESIZE_QUALITY = 90
# 圧縮の初期品質 (0.0-1.0)
INITIAL_QUALITY = 0.9
# 圧縮の最大試行回数
MAX_ITERATION = 10
# 1回の試行ごとの縮小率（品質・画素数）
STEP_RATIO = 0.95

_DECODE_ERRORS = (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError, MemoryError)
_FORMAT_EXTENSIONS = {
    "JPEG": ".jpg",
    "MPO": ".jpg",
    "PNG": ".png",
    "WEBP": ".webp",
    "GIF": ".gif",
    "BMP": ".bmp",
    "TIFF": ".tif",
}


@dataclass(frozen=True)
class CompressionOptions:
    """圧縮処理に渡す制約"""

    max_size_mb: float
    max_width_or_height: int
    initial_quality: float = INITIAL_QUALITY
    max_iteration: int = MAX_ITERATION

    @property
    def max_size_bytes(self) -> int:
        return int(self.max_size_mb * 1024 * 1024)


def format_file_size(size_in_bytes):
    """
    ファイルサイズを読みやすい形式に変換します

    Args:
        size_in_bytes: バイト単位のサイズ

    Returns:
        str: 人間が読みやすい形式（例: 1.2 MB）
    """
    for unit in ["B", "KB", "MB", "GB"]:
        if size_in_bytes < 1024.0 or unit == "GB":
            break
        size_in_bytes /= 1024.0
    return f"{size_in_bytes:.1f} {unit}"


def update_extension(file_path: Union[str, Path], new_ext: str) -> str:
    """ファイルパスの拡張子を更新します。

    Parameters
    ----------
    file_path : Union[str, Path]
        元のファイルパス
    new_ext : str
        新しい拡張子 (ドット付き, 例: '.jpg')
    """
    path_obj = Path(file_path)
    return str(path_obj.parent / f"{path_obj.stem}{new_ext}")


def extension_for_format(image_format: Optional[str]) -> str:
    """Pillow の形式名に対応する拡張子（不明なら .jpg）"""
    fmt = (image_format or "JPEG").upper()
    if fmt in _FORMAT_EXTENSIONS:
        return _FORMAT_EXTENSIONS[fmt]
    for ext, registered in Image.registered_extensions().items():
        if registered == fmt:
            return ext
    return ".jpg"


def _open_oriented(data: bytes) -> Image.Image:
    """バイト列から画像を開き、EXIF の向きを反映して読み込む"""
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        return ImageOps.exif_transpose(img)


def _to_rgb(img: Image.Image) -> Image.Image:
    """JPEG 保存用に RGB へ変換する（透過は白背景で合成）"""
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[3])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def _quality_to_int(quality: float) -> int:
    return max(1, min(100, int(round(quality * 100))))


def _encode_jpeg(img: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()


def decode_image(data: bytes, name: str = "image") -> SourceImage:
    """画像をデコードして元サイズを取得する

    Raises:
        DecodeError: 画像として認識できない場合
    """
    if not data:
        raise DecodeError(f"空のファイルです: {name}")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            img_format = img.format
            oriented = ImageOps.exif_transpose(img)
            width, height = oriented.size
    except _DECODE_ERRORS as e:
        logger.error(f"画像のデコードに失敗しました: {name} - {e}")
        raise DecodeError(f"画像のデコードに失敗しました: {name}") from e

    logger.debug(f"デコード完了: {name} ({width}x{height}, {img_format})")
    return SourceImage(name=name, data=data, width=width, height=height, format=img_format)


def load_source_file(path: Union[str, Path]) -> SourceImage:
    """ファイルを読み込んでデコードする"""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.error(f"ファイルを読み込めません: {path} - {e}")
        raise DecodeError(f"ファイルを読み込めません: {path}") from e
    return decode_image(data, name=path.name)


def rasterize(source: SourceImage, width: int, height: int, quality: int = RESIZE_QUALITY) -> bytes:
    """元画像を指定サイズぴったりに描画し、JPEG にエンコードする

    Raises:
        RenderError: サイズが不正、またはデコード/エンコードに失敗した場合
    """
    if width <= 0 or height <= 0:
        raise RenderError(f"無効なサイズです: {width}x{height}")

    try:
        img = _to_rgb(_open_oriented(source.data))
        resized = img.resize((width, height), Image.Resampling.LANCZOS)
        data = _encode_jpeg(resized, quality)
    except _DECODE_ERRORS as e:
        logger.error(f"リサイズ処理中にエラーが発生しました: {e}")
        raise RenderError(f"リサイズに失敗しました: {source.name}") from e

    logger.debug(f"リサイズ完了: {source.width}x{source.height} -> {width}x{height} ({len(data)} bytes)")
    return data


def compress_image(data: bytes, options: CompressionOptions) -> bytes:
    """目標サイズに向けて品質と画素数を段階的に下げて圧縮する

    元データがすでに目標サイズ以下で、最大辺の制約も満たしている場合は
    そのまま返します。試行回数内に目標へ届かない場合は最後の結果を返すため、
    戻り値が目標を超えることがあります。
    """
    budget = options.max_size_bytes
    source_size = len(data)
    img = _open_oriented(data)

    exceeds_budget = source_size > budget
    width, height = img.size
    needs_resize = max(width, height) > options.max_width_or_height

    if not exceeds_budget and not needs_resize:
        logger.debug(f"目標サイズ以下のため圧縮をスキップ: {source_size} <= {budget}")
        return data

    if needs_resize:
        scale = options.max_width_or_height / max(width, height)
        img = img.resize(
            (max(1, int(round(width * scale))), max(1, int(round(height * scale)))),
            Image.Resampling.LANCZOS,
        )

    work = _to_rgb(img)
    quality = options.initial_quality
    output = _encode_jpeg(work, _quality_to_int(quality))
    logger.debug(f"初回エンコード: 品質{_quality_to_int(quality)} -> {len(output)} bytes")

    remaining = options.max_iteration
    while remaining > 0 and (len(output) > budget or len(output) > source_size):
        remaining -= 1
        if exceeds_budget:
            new_size = (
                max(1, int(work.width * STEP_RATIO)),
                max(1, int(work.height * STEP_RATIO)),
            )
            work = work.resize(new_size, Image.Resampling.LANCZOS)
        quality *= STEP_RATIO
        output = _encode_jpeg(work, _quality_to_int(quality))
        logger.debug(
            f"試行 {options.max_iteration - remaining}/{options.max_iteration}: "
            f"{work.width}x{work.height} 品質{_quality_to_int(quality)} -> {len(output)} bytes"
        )

    if len(output) > budget:
        logger.warning(f"目標サイズに届きませんでした: {len(output)} > {budget} bytes")
    return output
