"""
1枚の画像を扱うセッション状態と、その遷移関数

状態はイミュータブルで、すべての遷移は新しい ``SessionState`` を返す。
``generation`` は画像の読み込みごとに増え、非同期処理の古い完了を捨てるために使う。
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from loguru import logger

from . import dimension_model
from .dimension_model import Axis, DimensionState
from .models import CompressionTarget, ProcessedArtifact, SourceImage


@dataclass(frozen=True)
class SessionState:
    source: Optional[SourceImage] = None
    pending_name: Optional[str] = None
    generation: int = 0
    dimensions: DimensionState = DimensionState()
    target: CompressionTarget = CompressionTarget()
    artifact: Optional[ProcessedArtifact] = None

    @property
    def is_loaded(self) -> bool:
        """デコード済みの画像があるか"""
        return self.source is not None and self.dimensions.original.is_known

    @property
    def is_decoding(self) -> bool:
        return self.pending_name is not None


def initial_state(lock_aspect_ratio: bool = True) -> SessionState:
    return SessionState(dimensions=DimensionState(lock_aspect_ratio=lock_aspect_ratio))


def begin_load(state: SessionState, name: str) -> SessionState:
    """ファイル選択直後。デコード完了まではサイズ不明 (0, 0) として扱う"""
    return SessionState(
        source=None,
        pending_name=name,
        generation=state.generation + 1,
        dimensions=DimensionState(lock_aspect_ratio=state.dimensions.lock_aspect_ratio),
        target=CompressionTarget(),
        artifact=None,
    )


def complete_load(state: SessionState, source: SourceImage, generation: int) -> SessionState:
    if generation != state.generation:
        logger.debug(f"古い読み込み結果を破棄: {source.name} (gen {generation} != {state.generation})")
        return state
    return replace(
        state,
        source=source,
        pending_name=None,
        dimensions=dimension_model.from_original(
            source.width,
            source.height,
            lock_aspect_ratio=state.dimensions.lock_aspect_ratio,
        ),
        target=CompressionTarget(),
        artifact=None,
    )


def fail_load(state: SessionState, generation: int) -> SessionState:
    """デコード失敗。読み込み前の状態に戻す"""
    if generation != state.generation:
        return state
    return replace(
        state,
        source=None,
        pending_name=None,
        dimensions=DimensionState(lock_aspect_ratio=state.dimensions.lock_aspect_ratio),
        target=CompressionTarget(),
        artifact=None,
    )


def set_dimension(state: SessionState, axis: Axis, value: int) -> SessionState:
    if not state.is_loaded:
        logger.debug("画像未読み込みのためサイズ変更を無視")
        return state
    return replace(state, dimensions=dimension_model.set_dimension(state.dimensions, axis, value))


def set_lock(state: SessionState, locked: bool) -> SessionState:
    return replace(state, dimensions=dimension_model.set_lock(state.dimensions, locked))


def set_compression_target(state: SessionState, target_kb: Optional[float]) -> SessionState:
    if not state.is_loaded:
        return state
    return replace(state, target=CompressionTarget(target_kb=target_kb))


def can_resize(state: SessionState) -> bool:
    return state.is_loaded and state.dimensions.dirty and state.dimensions.current.is_known


def can_compress(state: SessionState) -> bool:
    return state.is_loaded and state.target.is_set


def apply_artifact(state: SessionState, artifact: ProcessedArtifact, generation: int) -> SessionState:
    """処理結果を差し替える（単一スロット、最後の処理が勝つ）"""
    if generation != state.generation:
        logger.debug(f"古い処理結果を破棄: origin={artifact.origin}")
        return state
    return replace(state, artifact=artifact)


def reset_resize(state: SessionState) -> SessionState:
    """サイズを元に戻す。圧縮の目標や圧縮結果には触れない"""
    artifact = state.artifact
    if artifact is not None and artifact.origin == "resize":
        artifact = None
    return replace(
        state,
        dimensions=dimension_model.reset_to_original(state.dimensions),
        artifact=artifact,
    )


def reset_compress(state: SessionState) -> SessionState:
    """目標サイズをクリアする。リサイズ結果は残す"""
    artifact = state.artifact
    if artifact is not None and artifact.origin == "compress":
        artifact = None
    return replace(state, target=CompressionTarget(), artifact=artifact)
