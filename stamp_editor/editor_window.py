import logging
import os

from PyQt6.QtWidgets import (
    QMainWindow, QFileDialog, QStatusBar, QToolBar, QMessageBox,
)
from PyQt6.QtGui import QAction, QKeySequence
from PyQt6.QtCore import Qt, QTimer

from .brush_images import BrushImageLoader, find_brush_files
from .brush_panel import BrushPanel
from .canvas import Canvas
from .document import Document
from .history import HistoryManager
from .preferences import Preferences
from .stroke import StrokeEngine

log = logging.getLogger(__name__)


class EditorWindow(QMainWindow):
    def __init__(self, preferences: Preferences | None = None):
        super().__init__()
        self.setWindowTitle("Stamp Editor")
        self.resize(1280, 800)

        self._prefs = preferences or Preferences()
        self._document = Document(self)
        self._engine = StrokeEngine(self._document,
                                    history=HistoryManager(self._prefs.history_dir),
                                    parent=self)
        self._canvas = Canvas(self._engine, self)
        self.setCentralWidget(self._canvas)

        self._brush_panel = BrushPanel(self._engine, self)
        self.addDockWidget(Qt.DockWidgetArea.LeftDockWidgetArea, self._brush_panel)

        self._loader = BrushImageLoader()

        self._setup_menu()
        self._setup_toolbar()
        self._setup_statusbar()

        self._canvas.mouse_moved.connect(self._on_mouse_moved)
        self._engine.color_picked.connect(self._on_color_picked)
        self._engine.history_changed.connect(self._on_history_changed)
        self._engine.history_error.connect(self._on_history_error)
        self._brush_panel.tool_changed.connect(
            lambda tool: self._statusbar.showMessage(f"Tool: {tool.value}", 2000))
        self._on_history_changed(False, False)

        self._poll_timer = QTimer(self)
        self._poll_timer.timeout.connect(self._poll_loader)
        self._poll_timer.start(50)

        self._load_brush_dirs(self._prefs.brush_dirs)

    @property
    def engine(self) -> StrokeEngine:
        return self._engine

    def _setup_menu(self):
        menubar = self.menuBar()

        file_menu = menubar.addMenu("&File")
        open_action = QAction("&Open Image...", self)
        open_action.setShortcut(QKeySequence.StandardKey.Open)
        open_action.triggered.connect(self.open_image)
        file_menu.addAction(open_action)

        new_action = QAction("&New Canvas", self)
        new_action.setShortcut(QKeySequence.StandardKey.New)
        new_action.triggered.connect(lambda: self.new_canvas())
        file_menu.addAction(new_action)

        export_action = QAction("&Export Image...", self)
        export_action.setShortcut(QKeySequence("Ctrl+E"))
        export_action.triggered.connect(self.export_image)
        file_menu.addAction(export_action)

        file_menu.addSeparator()
        brushes_action = QAction("Load &Brush Folder...", self)
        brushes_action.triggered.connect(self.load_brush_folder)
        file_menu.addAction(brushes_action)

        file_menu.addSeparator()
        quit_action = QAction("&Quit", self)
        quit_action.setShortcut(QKeySequence("Ctrl+Q"))
        quit_action.triggered.connect(self.close)
        file_menu.addAction(quit_action)

        edit_menu = menubar.addMenu("&Edit")
        self._undo_action = QAction("&Undo", self)
        self._undo_action.setShortcut(QKeySequence.StandardKey.Undo)
        self._undo_action.triggered.connect(self._engine.undo)
        edit_menu.addAction(self._undo_action)

        self._redo_action = QAction("&Redo", self)
        self._redo_action.setShortcut(QKeySequence.StandardKey.Redo)
        self._redo_action.triggered.connect(self._engine.redo)
        edit_menu.addAction(self._redo_action)

    def _setup_toolbar(self):
        toolbar = QToolBar("Main")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        toolbar.addAction(self._undo_action)
        toolbar.addAction(self._redo_action)
        toolbar.addSeparator()

        fit_action = QAction("Fit", self)
        fit_action.triggered.connect(self._canvas.fit_in_view)
        toolbar.addAction(fit_action)

    def _setup_statusbar(self):
        self._statusbar = QStatusBar()
        self.setStatusBar(self._statusbar)
        self._statusbar.showMessage("Ready")

    def _on_mouse_moved(self, x, y):
        size = self._canvas.image_size()
        if size is None:
            return
        w, h = size
        brush_size = self._engine.settings.size
        if 0 <= x < w and 0 <= y < h:
            self._statusbar.showMessage(f"{w}x{h}  |  ({x}, {y})  |  Brush: {brush_size}px")
        else:
            self._statusbar.showMessage(f"{w}x{h}  |  Brush: {brush_size}px")

    # --- Files ---

    def _remember_dir(self, path):
        self._prefs.last_dir = os.path.dirname(path)

    def open_image(self):
        path, _ = QFileDialog.getOpenFileName(
            self, "Open Image", self._prefs.last_dir,
            "Images (*.png *.jpg *.jpeg *.bmp *.tiff *.webp);;All Files (*)",
        )
        if not path:
            return
        self._remember_dir(path)
        self.open_image_path(path)

    def open_image_path(self, path: str):
        try:
            self._document.load_image(path)
        except (OSError, ValueError) as e:
            QMessageBox.critical(self, "Open Image Error",
                                 f"Failed to open image:\n{e}")
            return
        self._engine.clear_history()
        self._canvas.fit_in_view()
        self.setWindowTitle(f"Stamp Editor - {os.path.basename(path)}")
        log.info("opened %s (%dx%d)", path, self._document.width, self._document.height)

    def new_canvas(self, width: int = 1024, height: int = 1024):
        self._document.new_blank(width, height)
        self._engine.clear_history()
        self._canvas.fit_in_view()
        self.setWindowTitle("Stamp Editor")

    def export_image(self):
        if self._document.is_empty:
            return
        path, _ = QFileDialog.getSaveFileName(
            self, "Export Image", self._prefs.last_dir,
            "PNG (*.png);;JPEG (*.jpg *.jpeg);;BMP (*.bmp);;All Files (*)",
        )
        if not path:
            return
        self._remember_dir(path)
        try:
            self._document.export_image(path)
        except (OSError, ValueError) as e:
            QMessageBox.critical(self, "Export Error",
                                 f"Failed to export image:\n{e}")
            return
        self._statusbar.showMessage(f"Saved: {path}", 3000)

    # --- Brush images ---

    def load_brush_folder(self):
        directory = QFileDialog.getExistingDirectory(self, "Brush Folder", self._prefs.last_dir)
        if not directory:
            return
        self._prefs.add_brush_dir(directory)
        self._load_brush_dirs([directory])

    def _load_brush_dirs(self, dirs):
        paths = []
        for directory in dirs:
            try:
                paths.extend(find_brush_files(directory))
            except OSError as e:
                log.warning("cannot read brush folder %s: %s", directory, e)
        if not paths:
            return
        if not self._loader.submit(paths):
            self._statusbar.showMessage("Brush images are still loading", 3000)
            return
        self._statusbar.showMessage(f"Loading {len(paths)} brush images...")

    def _poll_loader(self):
        if self._loader.is_busy:
            done, total = self._loader.progress
            self._statusbar.showMessage(f"Loading brush images {done}/{total}...")
            return
        brushes, skipped, error = self._loader.poll()
        if error:
            self._statusbar.showMessage(f"Brush loading error: {error[:80]}", 5000)
            return
        if brushes is None:
            return
        self._engine.brushes.extend(brushes)
        self._brush_panel.refresh_brushes()
        message = f"Loaded {len(brushes)} brush images"
        if skipped:
            message += f", skipped {len(skipped)}"
        self._statusbar.showMessage(message, 3000)
        log.info("%s", message)

    # --- Engine signals ---

    def _on_color_picked(self, r, g, b, a):
        self._brush_panel.set_color(r, g, b)

    def _on_history_changed(self, can_undo, can_redo):
        self._undo_action.setEnabled(can_undo)
        self._redo_action.setEnabled(can_redo)

    def _on_history_error(self, message):
        QMessageBox.warning(self, "History Error", message)

    def closeEvent(self, event):
        self._poll_timer.stop()
        self._loader.cancel()
        self._engine.close()
        self._prefs.sync()
        super().closeEvent(event)
