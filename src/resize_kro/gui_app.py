"""Image Resize Kro のデスクトップ GUI。

1枚の画像を読み込み、サイズ変更（アスペクト比ロック可）と目標サイズへの圧縮を行い、
結果を保存する。

Usage:
    python -m resize_kro.gui_app
"""
from __future__ import annotations

import io
import threading
from pathlib import Path
from queue import Empty, Queue
from tkinter import filedialog, messagebox
from typing import Any, Callable, Optional

import customtkinter as ctk
from PIL import Image
from loguru import logger

from .errors import ResizeKroError
from .operation_flow import OperationScope, OperationScopeHooks
from .runtime_logging import setup_logging
from .session import PendingAction, Session
from .session_state import SessionState
from .settings_store import SettingsStore, load_app_config
from .ui_text_presenter import (
    build_artifact_caption,
    build_compression_notice,
    build_error_text,
    build_source_details_text,
    parse_dimension_value,
    parse_target_kb,
)

PREVIEW_SIZE = (420, 420)
QUEUE_CHECK_INTERVAL_MS = 50
IMAGE_FILETYPES = [
    ("画像ファイル", "*.jpg *.jpeg *.png *.webp *.bmp *.gif *.tif *.tiff"),
    ("すべてのファイル", "*.*"),
]


def _preview_image(data: bytes) -> ctk.CTkImage:
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        preview = img.copy()
    preview.thumbnail(PREVIEW_SIZE)
    return ctk.CTkImage(light_image=preview, dark_image=preview, size=preview.size)


class ResizeKroApp(ctk.CTk):
    def __init__(self, session: Session, store: SettingsStore, settings: dict[str, Any]) -> None:
        super().__init__()
        self.session = session
        self.store = store
        self.settings = settings

        self.title("Image Resize Kro")
        self.geometry(str(settings.get("window_geometry") or "960x820"))

        # ワーカースレッドの結果はキュー経由でUIスレッドに渡し、状態の遷移はUIスレッドだけで行う
        self._ui_queue: Queue[Callable[[], None]] = Queue()

        self._syncing_fields = False
        self._controls_enabled = True
        self._scope_hooks = OperationScopeHooks(
            set_controls_enabled=self._set_controls_enabled,
            show_status=lambda text: self.status_label.configure(text=text),
            hide_status=lambda: self.status_label.configure(text=""),
        )
        self._original_preview: Optional[ctk.CTkImage] = None
        self._processed_preview: Optional[ctk.CTkImage] = None
        self._preview_source = None
        self._preview_artifact = None

        self._build_widgets()
        self.session.subscribe(lambda _state: self._ui_queue.put(self._refresh))
        self.protocol("WM_DELETE_WINDOW", self._on_close)
        self.after(QUEUE_CHECK_INTERVAL_MS, self._check_queue)
        self._refresh()

    # -------------------- 画面構築 --------------------
    def _build_widgets(self) -> None:
        container = ctk.CTkScrollableFrame(self)
        container.pack(fill="both", expand=True, padx=12, pady=12)

        ctk.CTkLabel(container, text="Image Resize Kro", font=ctk.CTkFont(size=24, weight="bold")).pack(pady=(0, 12))
        self.select_button = ctk.CTkButton(container, text="📂 画像を選択", command=self._select_image)
        self.select_button.pack(fill="x")

        self.details_label = ctk.CTkLabel(container, text="", justify="left", anchor="w")
        self.details_label.pack(fill="x", pady=8)

        # リサイズ
        resize_frame = ctk.CTkFrame(container)
        resize_frame.pack(fill="x", pady=6)
        ctk.CTkLabel(resize_frame, text="リサイズ", font=ctk.CTkFont(size=16, weight="bold")).pack(anchor="w", padx=8)
        self.lock_var = ctk.BooleanVar(value=self.session.state.dimensions.lock_aspect_ratio)
        self.lock_check = ctk.CTkCheckBox(
            resize_frame, text="アスペクト比を維持", variable=self.lock_var, command=self._on_lock_changed
        )
        self.lock_check.pack(anchor="w", padx=8, pady=4)

        row = ctk.CTkFrame(resize_frame, fg_color="transparent")
        row.pack(fill="x", padx=8, pady=4)
        self.width_var = ctk.StringVar()
        self.height_var = ctk.StringVar()
        ctk.CTkLabel(row, text="幅").pack(side="left")
        self.width_entry = ctk.CTkEntry(row, textvariable=self.width_var, width=90)
        self.width_entry.pack(side="left", padx=(4, 12))
        ctk.CTkLabel(row, text="高さ").pack(side="left")
        self.height_entry = ctk.CTkEntry(row, textvariable=self.height_var, width=90)
        self.height_entry.pack(side="left", padx=(4, 12))
        self.resize_button = ctk.CTkButton(row, text="リサイズ", command=self._resize, width=100)
        self.resize_button.pack(side="left", padx=4)
        self.reset_resize_button = ctk.CTkButton(
            row, text="サイズを戻す", command=self._reset_resize, width=100, fg_color="gray"
        )
        self.reset_resize_button.pack(side="left", padx=4)
        self.width_var.trace_add("write", lambda *_: self._on_dimension_edited("width", self.width_var))
        self.height_var.trace_add("write", lambda *_: self._on_dimension_edited("height", self.height_var))

        # 圧縮
        compress_frame = ctk.CTkFrame(container)
        compress_frame.pack(fill="x", pady=6)
        ctk.CTkLabel(compress_frame, text="圧縮", font=ctk.CTkFont(size=16, weight="bold")).pack(anchor="w", padx=8)
        row = ctk.CTkFrame(compress_frame, fg_color="transparent")
        row.pack(fill="x", padx=8, pady=4)
        ctk.CTkLabel(row, text="目標サイズ (KB)").pack(side="left")
        self.target_var = ctk.StringVar()
        self.target_entry = ctk.CTkEntry(row, textvariable=self.target_var, width=110)
        self.target_entry.pack(side="left", padx=(4, 12))
        self.compress_button = ctk.CTkButton(row, text="目標サイズに圧縮", command=self._compress, width=140)
        self.compress_button.pack(side="left", padx=4)
        self.reset_compress_button = ctk.CTkButton(
            row, text="圧縮をリセット", command=self._reset_compress, width=110, fg_color="gray"
        )
        self.reset_compress_button.pack(side="left", padx=4)
        self.target_var.trace_add("write", lambda *_: self._on_target_edited())

        self.status_label = ctk.CTkLabel(container, text="", anchor="w")
        self.status_label.pack(fill="x", pady=4)

        # プレビュー
        previews = ctk.CTkFrame(container, fg_color="transparent")
        previews.pack(fill="both", expand=True, pady=6)
        left = ctk.CTkFrame(previews)
        left.pack(side="left", fill="both", expand=True, padx=4)
        ctk.CTkLabel(left, text="元画像").pack()
        self.original_label = ctk.CTkLabel(left, text="")
        self.original_label.pack(padx=4, pady=4)

        right = ctk.CTkFrame(previews)
        right.pack(side="left", fill="both", expand=True, padx=4)
        ctk.CTkLabel(right, text="処理結果").pack()
        self.processed_label = ctk.CTkLabel(right, text="")
        self.processed_label.pack(padx=4, pady=4)
        self.artifact_caption = ctk.CTkLabel(right, text="")
        self.artifact_caption.pack()
        self.download_button = ctk.CTkButton(right, text="💾 ダウンロード", command=self._download)
        self.download_button.pack(pady=6)

    # -------------------- 状態の反映 --------------------
    def _check_queue(self) -> None:
        try:
            while True:
                try:
                    task = self._ui_queue.get_nowait()
                except Empty:
                    break
                task()
        finally:
            self.after(QUEUE_CHECK_INTERVAL_MS, self._check_queue)

    def _refresh(self) -> None:
        state = self.session.state
        self.details_label.configure(text=build_source_details_text(state.source, pending_name=state.pending_name))
        self._sync_dimension_fields(state)
        self._update_previews(state)
        self._update_buttons()

    def _sync_dimension_fields(self, state: SessionState) -> None:
        current = state.dimensions.current
        self._syncing_fields = True
        try:
            for var, value in ((self.width_var, current.width), (self.height_var, current.height)):
                text = str(value) if state.is_loaded else ""
                if parse_dimension_value(var.get()) != (value if state.is_loaded else None):
                    var.set(text)
        finally:
            self._syncing_fields = False

    def _update_previews(self, state: SessionState) -> None:
        source = state.source
        if source is None:
            self._original_preview = None
            self._preview_source = None
            self.original_label.configure(image=None, text="")
        elif self._preview_source is not source:
            self._original_preview = _preview_image(source.data)
            self._preview_source = source
            self.original_label.configure(image=self._original_preview, text="")

        artifact = state.artifact
        if artifact is None:
            self._processed_preview = None
            self._preview_artifact = None
            self.processed_label.configure(image=None, text="")
        elif self._preview_artifact is not artifact:
            self._processed_preview = _preview_image(artifact.data)
            self._preview_artifact = artifact
            self.processed_label.configure(image=self._processed_preview, text="")
        self.artifact_caption.configure(text=build_artifact_caption(artifact))

    def _update_buttons(self) -> None:
        enabled = self._controls_enabled
        state = self.session.state

        def _state(flag: bool) -> str:
            return "normal" if enabled and flag else "disabled"

        self.select_button.configure(state=_state(True))
        self.resize_button.configure(state=_state(self.session.can_resize))
        self.reset_resize_button.configure(state=_state(state.is_loaded))
        self.compress_button.configure(state=_state(self.session.can_compress))
        self.reset_compress_button.configure(state=_state(state.is_loaded))
        self.download_button.configure(state=_state(state.artifact is not None))
        self.lock_check.configure(state=_state(True))
        for entry in (self.width_entry, self.height_entry, self.target_entry):
            entry.configure(state=_state(state.is_loaded))

    def _set_controls_enabled(self, enabled: bool) -> None:
        self._controls_enabled = enabled
        self._update_buttons()

    # -------------------- バックグラウンド処理 --------------------
    def _submit(
        self,
        action: Optional[PendingAction],
        status_text: str,
        on_success: Optional[Callable[[Any], None]] = None,
    ) -> None:
        """重い処理だけをワーカースレッドで実行し、結果の反映はUIスレッドで行う"""
        if action is None:
            return
        scope = OperationScope(hooks=self._scope_hooks, status_text=status_text)
        scope.begin()

        def worker() -> None:
            try:
                outcome: tuple[Any, Optional[BaseException]] = (action.run(), None)
            except Exception as e:
                outcome = (None, e)
            self._ui_queue.put(lambda: self._finish(scope, action, outcome, on_success))

        threading.Thread(target=worker, daemon=True).start()

    def _finish(
        self,
        scope: OperationScope,
        action: PendingAction,
        outcome: tuple[Any, Optional[BaseException]],
        on_success: Optional[Callable[[Any], None]],
    ) -> None:
        scope.close()
        result, error = outcome
        if error is None:
            applied = self.session.complete(action, result)
            if on_success is not None:
                on_success(applied)
        else:
            self.session.fail(action)
            if isinstance(error, ResizeKroError):
                logger.error(f"{type(error).__name__}: {error}")
            else:
                logger.opt(exception=error).error("予期しないエラー")
            messagebox.showerror("エラー", build_error_text(error))
        self._refresh()

    # -------------------- イベント --------------------
    def _select_image(self) -> None:
        path = filedialog.askopenfilename(
            title="画像を選択",
            initialdir=self.settings.get("last_input_dir") or None,
            filetypes=IMAGE_FILETYPES,
        )
        if not path:
            return
        self.settings = self.store.update(last_input_dir=str(Path(path).parent))
        self.target_var.set("")
        self._submit(self.session.start_load_image(path), "画像を読み込み中…")

    def _on_dimension_edited(self, axis: str, var: ctk.StringVar) -> None:
        if self._syncing_fields:
            return
        value = parse_dimension_value(var.get())
        if value is None:
            return
        self.session.set_dimension(axis, value)  # type: ignore[arg-type]

    def _on_lock_changed(self) -> None:
        locked = bool(self.lock_var.get())
        self.session.set_lock(locked)
        self.settings = self.store.update(maintain_aspect_ratio=locked)

    def _on_target_edited(self) -> None:
        if self._syncing_fields:
            return
        self.session.set_compression_target(parse_target_kb(self.target_var.get()))
        self._update_buttons()

    def _resize(self) -> None:
        if not self.session.can_resize:
            return
        self._submit(self.session.start_resize(), "リサイズ中…")

    def _compress(self) -> None:
        if not self.session.can_compress:
            return

        def _notify(result) -> None:
            if result is not None:
                messagebox.showinfo("圧縮完了", build_compression_notice(result.achieved_kb, result.target_kb))

        self._submit(self.session.start_compress(), "圧縮中…", on_success=_notify)

    def _reset_resize(self) -> None:
        self.session.reset_resize()

    def _reset_compress(self) -> None:
        self._syncing_fields = True
        try:
            self.target_var.set("")
        finally:
            self._syncing_fields = False
        self.session.reset_compress()

    def _download(self) -> None:
        artifact = self.session.state.artifact
        if artifact is None:
            return
        path = filedialog.asksaveasfilename(
            title="保存先を選択",
            initialdir=self.settings.get("last_output_dir") or None,
            initialfile=artifact.filename,
            defaultextension=Path(artifact.filename).suffix,
            filetypes=[(artifact.format, f"*{Path(artifact.filename).suffix}")],
        )
        if not path:
            return
        try:
            result = self.session.save(path)
        except ResizeKroError as e:
            messagebox.showerror("保存エラー", build_error_text(e))
            return
        self.settings = self.store.update(last_output_dir=str(result.output_path.parent))
        self.status_label.configure(text=f"保存しました: {result.output_path}")

    def _on_close(self) -> None:
        try:
            self.store.update(window_geometry=self.geometry())
        except OSError as e:
            logger.warning(f"設定の保存に失敗しました: {e}")
        self.destroy()


def main() -> None:
    store = SettingsStore()
    settings = store.load()
    config = load_app_config(store)
    setup_logging(console_level=config.log_level)
    ctk.set_appearance_mode(str(settings.get("appearance_mode") or "system"))

    app = ResizeKroApp(Session(config), store, settings)
    app.mainloop()


if __name__ == "__main__":
    main()
