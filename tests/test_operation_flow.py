from __future__ import annotations

import pytest

from resize_kro.operation_flow import OperationScope, OperationScopeHooks


def _recording_hooks(events: list[tuple]) -> OperationScopeHooks:
    return OperationScopeHooks(
        set_controls_enabled=lambda enabled: events.append(("controls", enabled)),
        show_status=lambda text: events.append(("show_status", text)),
        hide_status=lambda: events.append(("hide_status",)),
    )


def test_operation_scope_begin_and_close() -> None:
    events: list[tuple] = []
    scope = OperationScope(hooks=_recording_hooks(events), status_text="圧縮中...")

    scope.begin()
    assert scope.active
    scope.close()

    assert events == [
        ("controls", False),
        ("show_status", "圧縮中..."),
        ("controls", True),
        ("hide_status",),
    ]
    assert not scope.active


def test_operation_scope_set_status_after_begin() -> None:
    events: list[tuple] = []
    scope = OperationScope(hooks=_recording_hooks(events), status_text="読み込み中...")

    scope.begin()
    scope.set_status("デコード中...")
    scope.close()

    assert ("show_status", "読み込み中...") in events
    assert ("show_status", "デコード中...") in events
    assert scope.status_text == "デコード中..."


def test_operation_scope_set_status_before_begin_is_deferred() -> None:
    events: list[tuple] = []
    scope = OperationScope(hooks=_recording_hooks(events), status_text="")

    scope.set_status("保存中...")
    assert events == []

    scope.begin()
    assert events == [("controls", False), ("show_status", "保存中...")]


def test_operation_scope_is_idempotent() -> None:
    events: list[tuple] = []
    scope = OperationScope(hooks=_recording_hooks(events), status_text="リサイズ中...")

    scope.begin()
    scope.begin()
    scope.close()
    scope.close()

    assert events.count(("controls", False)) == 1
    assert events.count(("controls", True)) == 1
    assert events.count(("hide_status",)) == 1


def test_operation_scope_closes_on_exception() -> None:
    events: list[tuple] = []

    with pytest.raises(RuntimeError):
        with OperationScope(hooks=_recording_hooks(events), status_text="圧縮中..."):
            raise RuntimeError("boom")

    assert events[-2:] == [("controls", True), ("hide_status",)]
