import math

from PyQt6.QtGui import QTransform

MIN_ZOOM = 0.01
MAX_ZOOM = 100.0


class ViewTransform:
    """Maps between widget (screen) coordinates and canvas pixels.

    screen = pan + zoom * (pivot + R(rotation) * (canvas - pivot))
    """

    def __init__(self, canvas_width: int = 0, canvas_height: int = 0,
                 zoom: float = 1.0, pan: tuple[float, float] = (0.0, 0.0),
                 rotation: float = 0.0, pivot: tuple[float, float] | None = None):
        self.canvas_width = canvas_width
        self.canvas_height = canvas_height
        self.zoom = zoom
        self.pan = (float(pan[0]), float(pan[1]))
        self.rotation = rotation
        self._pivot = pivot

    @property
    def pivot(self) -> tuple[float, float]:
        if self._pivot is not None:
            return self._pivot
        return self.canvas_width / 2, self.canvas_height / 2

    @pivot.setter
    def pivot(self, value: tuple[float, float] | None):
        self._pivot = value

    def set_canvas_size(self, width: int, height: int):
        self.canvas_width = width
        self.canvas_height = height

    def screen_to_canvas(self, x: float, y: float, clamp: bool = False) -> tuple[float, float]:
        px = (x - self.pan[0]) / self.zoom
        py = (y - self.pan[1]) / self.zoom
        cx, cy = self.pivot
        if self.rotation:
            dist = math.hypot(px - cx, py - cy)
            angle = math.atan2(py - cy, px - cx) - math.radians(self.rotation)
            px = cx + dist * math.cos(angle)
            py = cy + dist * math.sin(angle)
        if clamp:
            px = max(0.0, min(px, self.canvas_width - 1))
            py = max(0.0, min(py, self.canvas_height - 1))
        return px, py

    def canvas_to_screen(self, x: float, y: float) -> tuple[float, float]:
        cx, cy = self.pivot
        px, py = x, y
        if self.rotation:
            dist = math.hypot(x - cx, y - cy)
            angle = math.atan2(y - cy, x - cx) + math.radians(self.rotation)
            px = cx + dist * math.cos(angle)
            py = cy + dist * math.sin(angle)
        return px * self.zoom + self.pan[0], py * self.zoom + self.pan[1]

    def to_qtransform(self) -> QTransform:
        cx, cy = self.pivot
        t = QTransform()
        t.translate(self.pan[0], self.pan[1])
        t.scale(self.zoom, self.zoom)
        t.translate(cx, cy)
        t.rotate(self.rotation)
        t.translate(-cx, -cy)
        return t

    # --- View manipulation ---

    def pan_by(self, dx: float, dy: float):
        self.pan = (self.pan[0] + dx, self.pan[1] + dy)

    def zoom_at(self, x: float, y: float, factor: float):
        """Zoom by `factor`, keeping the canvas point under (x, y) fixed."""
        anchor = self.screen_to_canvas(x, y)
        self.zoom = max(MIN_ZOOM, min(self.zoom * factor, MAX_ZOOM))
        sx, sy = self.canvas_to_screen(*anchor)
        self.pan_by(x - sx, y - sy)

    def rotate_by(self, degrees: float):
        self.rotation = (self.rotation + degrees + 180) % 360 - 180

    def fit(self, widget_width: int, widget_height: int):
        w, h = self.canvas_width, self.canvas_height
        if w == 0 or h == 0 or widget_width == 0 or widget_height == 0:
            return
        self.zoom = min(widget_width / w, widget_height / h) * 0.95
        self.rotation = 0.0
        self.pan = (
            (widget_width - w * self.zoom) / 2,
            (widget_height - h * self.zoom) / 2,
        )
