import logging
import math
import random
from enum import Enum

from PyQt6.QtCore import QObject, pyqtSignal

from .brush_images import BrushLibrary
from .compositing import Compositor, prepare_stamp, union_rect
from .document import Document
from .history import HistoryError, HistoryManager
from .jitter import JitterEngine
from .pressure import resolve_clamped
from .settings import BrushSettings, Smoothing, SymmetryMode, Tool, resolve_density
from .spacing import StrokeSpacer
from .symmetry import SymmetryEngine
from .view import ViewTransform

log = logging.getLogger(__name__)


class PointerButton(Enum):
    LEFT = "left"
    RIGHT = "right"
    MIDDLE = "middle"


class StrokeEngine(QObject):
    """Turns pointer input into stamps on a Document.

    Runs synchronously on the UI thread: every stamp of a pointer event is
    fully composited before the event handler returns.
    """

    settings_changed = pyqtSignal()
    history_changed = pyqtSignal(bool, bool)   # can_undo, can_redo
    history_error = pyqtSignal(str)
    color_picked = pyqtSignal(int, int, int, int)
    symmetry_changed = pyqtSignal()

    def __init__(self, document: Document, settings: BrushSettings | None = None,
                 history: HistoryManager | None = None,
                 rng: random.Random | None = None, parent=None):
        super().__init__(parent)
        self.document = document
        self._settings = settings or BrushSettings()
        self._history = history or HistoryManager()
        self.brushes = BrushLibrary()
        self.view = ViewTransform(document.width, document.height)
        self.symmetry = SymmetryEngine(self._settings.symmetry,
                                       (document.width / 2, document.height / 2))
        self.tool = Tool.BRUSH
        self._jitter = JitterEngine(rng)
        self._spacer = StrokeSpacer()
        self._compositor: Compositor | None = None
        self._pressure: float | None = None
        self._drawing = False
        self._last_pointer = None
        document.changed.connect(self._on_document_changed)

    # --- Session state ---

    @property
    def settings(self) -> BrushSettings:
        return self._settings

    @settings.setter
    def settings(self, settings: BrushSettings):
        self._settings = settings
        self.symmetry.mode = settings.symmetry

    @property
    def history(self) -> HistoryManager:
        return self._history

    @property
    def is_drawing(self) -> bool:
        return self._drawing

    @property
    def pressure(self) -> float | None:
        return self._pressure

    def set_pressure(self, ratio: float | None):
        self._pressure = None if ratio is None else max(0.0, min(float(ratio), 1.0))

    def _on_document_changed(self):
        w, h = self.document.width, self.document.height
        if (w, h) != (self.view.canvas_width, self.view.canvas_height):
            self.view.set_canvas_size(w, h)
            self.symmetry.set_origin(w / 2, h / 2)
            self.symmetry.clear_points()

    # --- Pointer input (screen coordinates) ---

    def pointer_down(self, x: float, y: float, button: PointerButton = PointerButton.LEFT):
        if self.document.is_empty:
            return
        cx, cy = self.view.screen_to_canvas(x, y)

        if self.tool == Tool.SET_SYMMETRY_ORIGIN:
            self._place_symmetry(cx, cy, button)
        elif self.tool == Tool.COLOR_PICKER:
            if button == PointerButton.LEFT:
                self.pick_color(cx, cy)
        elif button == PointerButton.LEFT:
            self._last_pointer = (x, y)
            self._begin_stroke(cx, cy)

    def pointer_move(self, x: float, y: float):
        if not self._drawing:
            return
        cx, cy = self.view.screen_to_canvas(x, y)
        s = self._settings
        ratio = self._pressure

        size = resolve_clamped(s, "size", ratio)
        if s.automatic_density:
            density = resolve_density(s, size)
        else:
            density = resolve_clamped(s, "density", ratio)
        min_distance = resolve_clamped(s, "min_draw_distance", ratio)

        points = self._spacer.place((cx, cy), size, density, min_distance,
                                    snap=self._snaps(size))
        # heading is taken on screen, the stamp rotation is view-relative
        direction = None
        lx, ly = self._last_pointer
        if (x, y) != (lx, ly):
            direction = math.degrees(math.atan2(y - ly, x - lx))
        self._last_pointer = (x, y)

        self._draw_points(points, direction)

    def pointer_up(self):
        if self._drawing:
            log.debug("stroke finished")
        self.abort_stroke()

    def abort_stroke(self):
        self._drawing = False
        self._compositor = None
        self._last_pointer = None
        self._spacer.reset()
        self._history.end_stroke()

    # --- Tools ---

    def pick_color(self, x: float, y: float):
        pixel = self.document.pixel(math.floor(x), math.floor(y))
        if pixel is not None:
            self.color_picked.emit(*pixel)

    def _place_symmetry(self, x, y, button):
        if self._settings.symmetry == SymmetryMode.SET_POINTS:
            if button == PointerButton.LEFT:
                self.symmetry.add_point(x, y, self.view.rotation)
            elif button == PointerButton.RIGHT:
                self.symmetry.clear_points()
        elif button == PointerButton.LEFT:
            self.symmetry.set_origin(x, y)
        self.symmetry_changed.emit()

    # --- Drawing ---

    def _snaps(self, size):
        s = self._settings
        return s.smoothing == Smoothing.JAGGED or (size == 1 and s.automatic_density)

    def _begin_stroke(self, x, y):
        s = self._settings
        try:
            self._history.begin_stroke(self.document.image)
        except HistoryError as e:
            self._report(e)
        self._emit_history()

        self.symmetry.mode = s.symmetry
        self._compositor = Compositor.for_stroke(self.tool, s)
        self._drawing = True

        if s.orient_to_mouse:
            # no heading yet; the first stamp waits for movement
            self._spacer.begin((x, y), placed=False)
            return
        if self._snaps(resolve_clamped(s, "size", self._pressure)):
            x, y = math.floor(x), math.floor(y)
        self._spacer.begin((x, y))
        self._draw_points([(x, y)], None)

    def _draw_points(self, points, direction):
        if not points:
            return
        before = (self._settings.size, self._settings.alpha, self._settings.rotation)
        rect = None
        for x, y in points:
            rect = union_rect(rect, self._stamp(x, y, direction))
        if rect is not None:
            self.document.mark_dirty(rect)
        if (self._settings.size, self._settings.alpha, self._settings.rotation) != before:
            self.settings_changed.emit()
        log.debug("placed %d stamps", len(points))

    def _stamp(self, x, y, direction):
        s = self._settings
        doc = self.document
        params = self._jitter.next_stamp(s, self._pressure, (doc.width, doc.height), direction)
        if params.size <= 0:
            return None

        brush = self.brushes.get(s.brush_image).image
        targets = self.symmetry.expand(x + params.offset[0], y + params.offset[1],
                                       self.view.rotation)

        stamps = {}
        rect = None
        for target in targets:
            key = (target.flip_x, target.flip_y)
            if key not in stamps:
                stamps[key] = prepare_stamp(brush, params.size,
                                            self._stamp_rotation(params.rotation, *key),
                                            target.flip_x, target.flip_y, s.smoothing)
            stamp = stamps[key]
            if stamp is None:
                continue
            drawn = self._compositor.draw(doc.image, stamp, (target.x, target.y),
                                          params.color, params.alpha, doc.original)
            rect = union_rect(rect, drawn)
        return rect

    def _stamp_rotation(self, rotation, flip_x, flip_y):
        """Canvas-space rotation of a stamp whose image is flipped before rotating.

        Stamp rotation is relative to the view. A single-axis mirror turns the
        brush the other way; flipping both axes is a half turn and keeps it.
        """
        if flip_x != flip_y:
            rotation = -rotation
        return rotation - self.view.rotation

    # --- History ---

    def undo(self) -> bool:
        return self._step_history(self._history.undo)

    def redo(self) -> bool:
        return self._step_history(self._history.redo)

    def _step_history(self, step) -> bool:
        self.abort_stroke()
        if self.document.is_empty:
            return False
        try:
            changed = step(self.document.image)
        except HistoryError as e:
            self._report(e)
            return False
        if changed:
            self.document.mark_dirty()
        self._emit_history()
        return changed

    def clear_history(self):
        self.abort_stroke()
        self._history.clear()
        self._emit_history()

    def _emit_history(self):
        self.history_changed.emit(self._history.can_undo, self._history.can_redo)

    def _report(self, error: HistoryError):
        log.error("%s", error)
        self.history_error.emit(str(error))

    def close(self):
        self.abort_stroke()
        self._history.close()
