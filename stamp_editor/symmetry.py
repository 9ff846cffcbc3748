import math
from dataclasses import dataclass

from .settings import SymmetryMode


@dataclass
class StampTarget:
    x: float
    y: float
    flip_x: bool = False
    flip_y: bool = False


def _rotate(dx, dy, degrees):
    if not degrees:
        return dx, dy
    rad = math.radians(degrees)
    cos, sin = math.cos(rad), math.sin(rad)
    return dx * cos - dy * sin, dx * sin + dy * cos


class SymmetryEngine:
    """Replicates one stamp position about the symmetry origin.

    Mirror axes and recorded offsets are aligned with the view, so when the
    canvas is rotated by `canvas_angle` they are rotated back into canvas
    space before use.
    """

    def __init__(self, mode: SymmetryMode = SymmetryMode.NONE,
                 origin: tuple[float, float] = (0.0, 0.0),
                 offsets: list[tuple[float, float]] | None = None):
        self.mode = SymmetryMode(mode)
        self.origin = (float(origin[0]), float(origin[1]))
        self.offsets: list[tuple[float, float]] = list(offsets or [])

    def set_origin(self, x: float, y: float):
        self.origin = (float(x), float(y))

    def add_point(self, x: float, y: float, canvas_angle: float = 0.0):
        """Record an offset for SET_POINTS from a canvas position."""
        dx, dy = _rotate(x - self.origin[0], y - self.origin[1], canvas_angle)
        self.offsets.append((dx, dy))

    def clear_points(self):
        self.offsets.clear()

    def expand(self, x: float, y: float, canvas_angle: float = 0.0) -> list[StampTarget]:
        mode = self.mode
        targets = [StampTarget(x, y)]
        if mode == SymmetryMode.NONE:
            return targets

        ox, oy = self.origin
        if mode in (SymmetryMode.HORIZONTAL, SymmetryMode.VERTICAL, SymmetryMode.STAR2):
            mirror_x = mode in (SymmetryMode.HORIZONTAL, SymmetryMode.STAR2)
            mirror_y = mode in (SymmetryMode.VERTICAL, SymmetryMode.STAR2)
            # into view-aligned space, reflect, and back
            vx, vy = _rotate(x - ox, y - oy, canvas_angle)
            if mirror_x:
                vx = -vx
            if mirror_y:
                vy = -vy
            dx, dy = _rotate(vx, vy, -canvas_angle)
            targets.append(StampTarget(ox + dx, oy + dy, mirror_x, mirror_y))
            return targets

        if mode == SymmetryMode.SET_POINTS:
            for off_x, off_y in self.offsets:
                dx, dy = _rotate(off_x, off_y, -canvas_angle)
                targets.append(StampTarget(x + dx, y + dy))
            return targets

        count = mode.point_count
        dist = math.hypot(x - ox, y - oy)
        angle = math.atan2(y - oy, x - ox)
        step = 2 * math.pi / count
        targets = []
        for i in range(count):
            a = angle + step * i
            targets.append(StampTarget(ox + dist * math.cos(a), oy + dist * math.sin(a)))
        return targets
