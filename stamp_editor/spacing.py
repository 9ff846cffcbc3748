import math

# Used in place of a non-positive step length.
MIN_STEP = 1.0


class StrokeSpacer:
    """Decides where stamps land along a pointer segment.

    Two positions are tracked: the effective previous position, which only
    advances by whole steps so the leftover distance carries into the next
    segment, and the last position a stamp was actually placed at, which is
    what the minimum draw distance is measured from.
    """

    def __init__(self):
        self._prev: tuple[float, float] | None = None
        self._anchor: tuple[float, float] | None = None

    @property
    def last_stamp(self) -> tuple[float, float] | None:
        return self._anchor

    @property
    def position(self) -> tuple[float, float] | None:
        return self._prev

    def begin(self, point, placed: bool = True):
        self._prev = (float(point[0]), float(point[1]))
        self._anchor = self._prev if placed else None

    def reset(self):
        self._prev = None
        self._anchor = None

    def place(self, current, brush_width: float, density: int,
              min_draw_distance: float = 0, snap: bool = False) -> list[tuple[float, float]]:
        cx, cy = float(current[0]), float(current[1])
        if self._prev is None:
            self.begin((cx, cy), placed=False)

        if min_draw_distance > 0 and self._anchor is not None:
            ax, ay = self._anchor
            if math.hypot(cx - ax, cy - ay) < min_draw_distance:
                return []

        if density <= 0:
            points = [(cx, cy)]
            self._prev = (cx, cy)
        else:
            points = self._interpolate(cx, cy, brush_width / density)

        if snap:
            points = [(math.floor(x), math.floor(y)) for x, y in points]
        if points:
            self._anchor = points[-1]
        return points

    def _interpolate(self, cx, cy, step):
        px, py = self._prev
        dx = cx - px
        dy = cy - py
        dist = math.hypot(dx, dy)
        if dist == 0:
            return []
        if not step > 0:
            step = MIN_STEP

        count = int(dist // step)
        if count == 0:
            return []

        ux = dx / dist * step
        uy = dy / dist * step
        points = [(px + ux * i, py + uy * i) for i in range(1, count + 1)]
        self._prev = points[-1]
        return points
