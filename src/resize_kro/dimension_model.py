"""
画像サイズ（幅・高さ）とアスペクト比ロックのモデル

状態はイミュータブルで、各操作は新しい ``DimensionState`` を返す。
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Literal, Optional

from .errors import InvalidInputError

Axis = Literal["width", "height"]


@dataclass(frozen=True)
class Dimensions:
    """ピクセル単位の幅と高さ"""

    width: int = 0
    height: int = 0

    @property
    def is_known(self) -> bool:
        """両辺が正の値かどうか（読み込み前は (0, 0)）"""
        return self.width > 0 and self.height > 0

    @property
    def longest_side(self) -> int:
        return max(self.width, self.height)


@dataclass(frozen=True)
class DimensionState:
    original: Dimensions = Dimensions()
    current: Dimensions = Dimensions()
    lock_aspect_ratio: bool = True
    dirty: bool = False

    @property
    def ratio(self) -> Optional[float]:
        """元画像の幅/高さ。元サイズが不明なら None"""
        if not self.original.is_known:
            return None
        return self.original.width / self.original.height


def round_half_up(value: float) -> int:
    """0.5 を切り上げる丸め（非負の値が前提）"""
    return int(math.floor(value + 0.5))


def get_aspect_ratio(width: int, height: int) -> str:
    """最大公約数で約分したアスペクト比を "W:H" 形式で返す

    >>> get_aspect_ratio(1920, 1080)
    '16:9'
    """
    divisor = math.gcd(int(width), int(height))
    if divisor == 0:
        return ""
    return f"{width // divisor}:{height // divisor}"


def from_original(width: int, height: int, lock_aspect_ratio: bool = True) -> DimensionState:
    """読み込み直後の状態を作る"""
    dims = Dimensions(width=width, height=height)
    return DimensionState(
        original=dims,
        current=dims,
        lock_aspect_ratio=lock_aspect_ratio,
        dirty=False,
    )


def set_dimension(state: DimensionState, axis: Axis, value: int) -> DimensionState:
    """片方の辺を変更する

    ロック中は元画像の比率からもう片方の辺を計算する。
    元サイズが不明な場合はロックを無視する。
    """
    if axis not in ("width", "height"):
        raise InvalidInputError(f"不明な軸です: {axis}")
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"整数を指定してください: {value!r}")
    if value < 0:
        raise InvalidInputError(f"負の値は指定できません: {value}")

    ratio = state.ratio if state.lock_aspect_ratio else None

    if ratio is not None:
        if axis == "width":
            current = Dimensions(width=value, height=round_half_up(value / ratio))
        else:
            current = Dimensions(width=round_half_up(value * ratio), height=value)
    elif axis == "width":
        current = replace(state.current, width=value)
    else:
        current = replace(state.current, height=value)

    return replace(state, current=current, dirty=True)


def set_lock(state: DimensionState, locked: bool) -> DimensionState:
    return replace(state, lock_aspect_ratio=bool(locked))


def reset_to_original(state: DimensionState) -> DimensionState:
    """現在のサイズを元サイズに戻し、変更フラグを下ろす"""
    return replace(state, current=state.original, dirty=False)
