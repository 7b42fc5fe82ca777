"""
セッションで扱うデータモデル
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Literal, Optional

from .dimension_model import Dimensions, round_half_up

ArtifactOrigin = Literal["resize", "compress"]

DEFAULT_OUTPUT_FILENAME = "processed-image.jpg"


def bytes_to_kb(size_in_bytes: int) -> int:
    """バイト数を KB（四捨五入）に変換"""
    return round_half_up(size_in_bytes / 1024)


@dataclass(frozen=True)
class SourceImage:
    """読み込んだ元画像（セッション中は不変）"""

    name: str
    data: bytes = field(repr=False)
    width: int
    height: int
    format: Optional[str] = None

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(width=self.width, height=self.height)

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def size_kb(self) -> int:
        return bytes_to_kb(self.size_bytes)


@dataclass(frozen=True)
class CompressionTarget:
    target_kb: Optional[float] = None

    @property
    def is_set(self) -> bool:
        return self.target_kb is not None and math.isfinite(self.target_kb) and self.target_kb > 0


@dataclass(frozen=True)
class ProcessedArtifact:
    """処理結果の画像（単一スロット）"""

    data: bytes = field(repr=False)
    origin: ArtifactOrigin
    width: int
    height: int
    filename: str = DEFAULT_OUTPUT_FILENAME
    format: str = "JPEG"

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def size_kb(self) -> int:
        return bytes_to_kb(self.size_bytes)


@dataclass(frozen=True)
class CompressionResult:
    """圧縮結果と実際に達成したサイズ"""

    artifact: ProcessedArtifact
    achieved_kb: int
    target_kb: float

    @property
    def target_achieved(self) -> bool:
        return self.artifact.size_bytes <= self.target_kb * 1024
