"""
セッションのオーケストレーション

デコード・リサイズ・圧縮は「開始」「重い処理」「反映」の3段階に分かれる。
開始と反映（状態の遷移）は呼び出し元のスレッドだけで行い、
重い処理 (``PendingAction.run``) だけを別スレッドで実行する。
``asyncio`` から使う場合は ``load_image`` / ``resize`` / ``compress`` が
``asyncio.to_thread`` でこの3段階をまとめて実行する。
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any, Callable, List, Literal, Optional, Union

from loguru import logger

from . import session_state
from .compression_controller import CompressionController
from .dimension_model import Axis
from .errors import InvalidInputError
from .models import CompressionResult
from .resize_controller import ResizeController
from .resize_core import decode_image, load_source_file
from .save_pipeline import SaveResult, save_artifact
from .session_state import SessionState
from .settings_store import AppConfig

StateListener = Callable[[SessionState], None]
ActionKind = Literal["load", "resize", "compress"]


@dataclass(frozen=True)
class PendingAction:
    """開始済みの処理。``run`` は状態に触れないのでどのスレッドで実行してもよい"""

    kind: ActionKind
    generation: int
    run: Callable[[], Any]


class Session:
    """1枚の画像に対する操作をまとめるクラス"""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        *,
        resize_controller: Optional[ResizeController] = None,
        compression_controller: Optional[CompressionController] = None,
    ) -> None:
        self.config = config or AppConfig()
        self.resize_controller = resize_controller or ResizeController(
            quality=self.config.resize_quality,
            output_filename=self.config.output_filename,
        )
        self.compression_controller = compression_controller or CompressionController(
            initial_quality=self.config.compress_initial_quality,
            max_iteration=self.config.compress_max_iteration,
            output_filename=self.config.output_filename,
        )
        self._state = session_state.initial_state(self.config.maintain_aspect_ratio)
        self._busy = False
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_busy(self) -> bool:
        """リサイズ/圧縮の処理中フラグ"""
        return self._busy

    @property
    def can_resize(self) -> bool:
        return not self._busy and session_state.can_resize(self._state)

    @property
    def can_compress(self) -> bool:
        return not self._busy and session_state.can_compress(self._state)

    def subscribe(self, listener: StateListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _set_state(self, new_state: SessionState) -> SessionState:
        if new_state is self._state:
            return new_state
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("状態リスナーでエラーが発生しました")
        return new_state

    # 編集
    def set_dimension(self, axis: Axis, value: int) -> SessionState:
        return self._set_state(session_state.set_dimension(self._state, axis, value))

    def set_lock(self, locked: bool) -> SessionState:
        return self._set_state(session_state.set_lock(self._state, locked))

    def set_compression_target(self, target_kb: Optional[float]) -> SessionState:
        return self._set_state(session_state.set_compression_target(self._state, target_kb))

    def reset_resize(self) -> SessionState:
        return self._set_state(session_state.reset_resize(self._state))

    def reset_compress(self) -> SessionState:
        return self._set_state(session_state.reset_compress(self._state))

    # 処理の開始
    def start_load_image(self, path: Union[str, Path]) -> PendingAction:
        path = Path(path)
        self._set_state(session_state.begin_load(self._state, path.name))
        return PendingAction("load", self._state.generation, partial(load_source_file, path))

    def start_load_bytes(self, name: str, data: bytes) -> PendingAction:
        self._set_state(session_state.begin_load(self._state, name))
        return PendingAction("load", self._state.generation, partial(decode_image, data, name))

    def start_resize(self) -> Optional[PendingAction]:
        """現在のサイズでのリサイズを開始する。無効な状態では None"""
        if self._busy:
            logger.warning("処理中のためリサイズを受け付けません")
            return None
        if not session_state.can_resize(self._state):
            logger.info("リサイズは無効です（サイズ未変更または画像未読み込み）")
            return None
        state = self._state
        self._busy = True
        return PendingAction(
            "resize",
            state.generation,
            partial(self.resize_controller.resize, state.source, state.dimensions.current),
        )

    def start_compress(self) -> Optional[PendingAction]:
        """目標サイズでの圧縮を開始する。無効な状態では None"""
        if self._busy:
            logger.warning("処理中のため圧縮を受け付けません")
            return None
        if not session_state.can_compress(self._state):
            logger.info("圧縮は無効です（目標サイズ未設定または画像未読み込み）")
            return None
        state = self._state
        self._busy = True
        return PendingAction(
            "compress",
            state.generation,
            partial(self.compression_controller.compress_to_target, state.source, state.target.target_kb),
        )

    # 処理結果の反映
    def complete(self, action: PendingAction, outcome: Any) -> Any:
        """``action.run()`` の戻り値を状態に反映する

        Returns:
            load/resize は新しい状態、compress は反映された ``CompressionResult``
            （古い結果として破棄された場合は None）
        """
        if action.kind == "load":
            logger.info(f"画像を読み込みました: {outcome.name} ({outcome.width}x{outcome.height}, {outcome.size_kb}KB)")
            return self._set_state(session_state.complete_load(self._state, outcome, action.generation))

        self._busy = False
        if action.kind == "resize":
            return self._set_state(session_state.apply_artifact(self._state, outcome, action.generation))

        result: CompressionResult = outcome
        new_state = self._set_state(session_state.apply_artifact(self._state, result.artifact, action.generation))
        if new_state.artifact is not result.artifact:
            return None
        return result

    def fail(self, action: PendingAction) -> SessionState:
        """``action.run()`` が失敗した。読み込みなら読み込み前に戻し、処理結果は変更しない"""
        if action.kind == "load":
            return self._set_state(session_state.fail_load(self._state, action.generation))
        self._busy = False
        return self._state

    async def _execute(self, action: PendingAction) -> Any:
        try:
            outcome = await asyncio.to_thread(action.run)
        except Exception:
            self.fail(action)
            raise
        return self.complete(action, outcome)

    # 非同期 API
    async def load_image(self, path: Union[str, Path]) -> SessionState:
        """ファイルを読み込んでデコードする

        Raises:
            DecodeError: 読み込みまたはデコードに失敗した場合（状態は読み込み前に戻る）
        """
        return await self._execute(self.start_load_image(path))

    async def load_bytes(self, name: str, data: bytes) -> SessionState:
        return await self._execute(self.start_load_bytes(name, data))

    async def resize(self) -> SessionState:
        """
        Raises:
            RenderError: 描画に失敗した場合（処理結果は変更されない）
        """
        action = self.start_resize()
        if action is None:
            return self._state
        return await self._execute(action)

    async def compress(self) -> Optional[CompressionResult]:
        """目標サイズで圧縮する。反映されなかった場合は None

        Raises:
            CompressionError: 圧縮に失敗した場合（処理結果は変更されない）
        """
        action = self.start_compress()
        if action is None:
            return None
        return await self._execute(action)

    def save(self, destination: Union[str, Path]) -> SaveResult:
        """処理結果を保存する"""
        artifact = self._state.artifact
        if artifact is None:
            raise InvalidInputError("保存する処理結果がありません")
        return save_artifact(artifact, destination)
