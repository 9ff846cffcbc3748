from PyQt6.QtWidgets import QWidget
from PyQt6.QtCore import Qt, QEvent, QPointF, QRectF, pyqtSignal
from PyQt6.QtGui import QPainter, QImage, QPen, QColor, QTabletEvent

from .settings import SymmetryMode, set_setting
from .stroke import PointerButton, StrokeEngine

_BUTTONS = {
    Qt.MouseButton.LeftButton: PointerButton.LEFT,
    Qt.MouseButton.RightButton: PointerButton.RIGHT,
    Qt.MouseButton.MiddleButton: PointerButton.MIDDLE,
}


class Canvas(QWidget):
    mouse_moved = pyqtSignal(int, int)

    def __init__(self, engine: StrokeEngine, parent=None):
        super().__init__(parent)
        self._engine = engine
        self._document = engine.document
        self._qimage = None
        self._panning = False
        self._pan_last = QPointF()
        self._tablet_down = False
        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)

        self._document.changed.connect(self._on_document_changed)
        self._document.region_changed.connect(self._on_region_changed)
        self._engine.symmetry_changed.connect(self.update)

    @property
    def view(self):
        return self._engine.view

    def _on_document_changed(self):
        image = self._document.image
        if image is None:
            self._qimage = None
        else:
            h, w = image.shape[:2]
            # wraps the document buffer, so in-place stamps show up on repaint
            self._qimage = QImage(image.data, w, h, w * 4, QImage.Format.Format_RGBA8888)
        self.update()

    def _on_region_changed(self, x, y, w, h):
        if self._qimage is None:
            self._on_document_changed()
            return
        rect = self.view.to_qtransform().mapRect(QRectF(x, y, w, h))
        self.update(rect.toAlignedRect().adjusted(-2, -2, 2, 2))

    def fit_in_view(self):
        self.view.fit(self.width(), self.height())
        self.update()

    def image_size(self):
        if self._document.is_empty:
            return None
        return self._document.width, self._document.height

    def widget_to_image(self, pos: QPointF) -> tuple[int, int]:
        x, y = self.view.screen_to_canvas(pos.x(), pos.y())
        return int(x), int(y)

    # --- Symmetry guide ---

    def _draw_symmetry_guide(self, painter: QPainter):
        symmetry = self._engine.symmetry
        if self._engine.settings.symmetry == SymmetryMode.NONE:
            return
        ox, oy = self.view.canvas_to_screen(*symmetry.origin)
        pen = QPen(QColor(0, 200, 255, 180))
        pen.setWidth(1)
        painter.setPen(pen)
        painter.drawLine(QPointF(ox - 8, oy), QPointF(ox + 8, oy))
        painter.drawLine(QPointF(ox, oy - 8), QPointF(ox, oy + 8))
        if self._engine.settings.symmetry == SymmetryMode.SET_POINTS:
            for dx, dy in symmetry.offsets:
                painter.drawEllipse(QPointF(ox + dx * self.view.zoom,
                                            oy + dy * self.view.zoom), 4, 4)

    # --- Events ---

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, False)
        painter.fillRect(self.rect(), Qt.GlobalColor.darkGray)
        if self._qimage is not None:
            painter.save()
            painter.setTransform(self.view.to_qtransform())
            painter.drawImage(0, 0, self._qimage)
            painter.restore()
            self._draw_symmetry_guide(painter)
        painter.end()

    def wheelEvent(self, event):
        if self.image_size() is None:
            return
        pos = event.position()
        if event.modifiers() & Qt.KeyboardModifier.ControlModifier:
            self.view.rotate_by(15 if event.angleDelta().y() > 0 else -15)
        else:
            factor = 1.15 if event.angleDelta().y() > 0 else 1 / 1.15
            self.view.zoom_at(pos.x(), pos.y(), factor)
        self.update()

    def keyPressEvent(self, event):
        settings = self._engine.settings
        if event.key() == Qt.Key.Key_BracketRight:
            set_setting(settings, "size", settings.size + 5)
            self._engine.settings_changed.emit()
        elif event.key() == Qt.Key.Key_BracketLeft:
            set_setting(settings, "size", settings.size - 5)
            self._engine.settings_changed.emit()
        else:
            super().keyPressEvent(event)

    def tabletEvent(self, event: QTabletEvent):
        pos = event.position()
        kind = event.type()
        self._engine.set_pressure(event.pressure())
        if kind == QEvent.Type.TabletPress:
            self._tablet_down = True
            self._engine.pointer_down(pos.x(), pos.y(), _BUTTONS.get(event.button(), PointerButton.LEFT))
        elif kind == QEvent.Type.TabletMove and self._tablet_down:
            self._engine.pointer_move(pos.x(), pos.y())
        elif kind == QEvent.Type.TabletRelease:
            self._tablet_down = False
            self._engine.pointer_up()
        event.accept()

    def mousePressEvent(self, event):
        if event.button() == Qt.MouseButton.MiddleButton:
            self._panning = True
            self._pan_last = event.position()
            self.setCursor(Qt.CursorShape.ClosedHandCursor)
            return
        if self._tablet_down:
            return
        button = _BUTTONS.get(event.button())
        if button is not None:
            self._engine.set_pressure(None)
            self._engine.pointer_down(event.position().x(), event.position().y(), button)

    def mouseReleaseEvent(self, event):
        if event.button() == Qt.MouseButton.MiddleButton:
            self._panning = False
            self.setCursor(Qt.CursorShape.ArrowCursor)
        elif event.button() == Qt.MouseButton.LeftButton and not self._tablet_down:
            self._engine.pointer_up()

    def mouseMoveEvent(self, event):
        pos = event.position()
        if self._panning:
            delta = pos - self._pan_last
            self._pan_last = pos
            self.view.pan_by(delta.x(), delta.y())
            self.update()
        elif not self._tablet_down:
            self._engine.pointer_move(pos.x(), pos.y())

        if self.image_size() is not None:
            ix, iy = self.widget_to_image(pos)
            self.mouse_moved.emit(ix, iy)
