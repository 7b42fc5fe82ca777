from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class OperationScopeHooks:
    set_controls_enabled: Callable[[bool], None]
    show_status: Callable[[str], None]
    hide_status: Callable[[], None]


class OperationScope:
    """処理中は操作を無効化し、完了時に戻す"""

    def __init__(self, *, hooks: OperationScopeHooks, status_text: str) -> None:
        self._hooks = hooks
        self._status_text = status_text
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def status_text(self) -> str:
        return self._status_text

    def begin(self) -> None:
        if self._active:
            return
        self._hooks.set_controls_enabled(False)
        if self._status_text:
            self._hooks.show_status(self._status_text)
        self._active = True

    def set_status(self, status_text: str) -> None:
        self._status_text = status_text
        if not self._active:
            return
        if status_text:
            self._hooks.show_status(status_text)
        else:
            self._hooks.hide_status()

    def close(self) -> None:
        if not self._active:
            return
        self._hooks.set_controls_enabled(True)
        self._hooks.hide_status()
        self._active = False

    def __enter__(self) -> "OperationScope":
        self.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False
