import colorsys
import random
from dataclasses import dataclass

from .pressure import resolve_setting
from .settings import (
    BrushSettings, SETTING_FIELDS, RGB_JITTER_FIELDS, HSV_JITTER_FIELDS,
    clamp, set_setting,
)


@dataclass
class StampParams:
    size: int
    rotation: float
    alpha: int
    color: tuple[int, int, int] | None
    offset: tuple[float, float] = (0.0, 0.0)


@dataclass
class ShiftState:
    """Oscillation direction of the size and alpha shift, per session."""
    size_growing: bool = True
    alpha_growing: bool = True


class JitterEngine:
    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()
        self.shift = ShiftState()

    def reset(self):
        self.shift = ShiftState()

    def next_stamp(self, settings: BrushSettings, ratio: float | None,
                   canvas_size: tuple[int, int],
                   direction: float | None = None) -> StampParams:
        """Advance shift sliders, then draw this stamp's jittered values.

        `direction` is the pointer heading in degrees, used when the brush
        orients to the mouse.
        """
        self._apply_shift(settings)
        return self._jitter(settings, ratio, canvas_size, direction)

    # --- Shift ---

    def _apply_shift(self, settings: BrushSettings):
        if settings.size_change != 0:
            settings.size, self.shift.size_growing = self._oscillate(
                settings.size, settings.size_change, self.shift.size_growing,
                SETTING_FIELDS["size"])
        if settings.alpha_change != 0:
            settings.alpha, self.shift.alpha_growing = self._oscillate(
                settings.alpha, settings.alpha_change, self.shift.alpha_growing,
                SETTING_FIELDS["alpha"])
        if settings.rotation_change != 0:
            rot = settings.rotation + settings.rotation_change
            limit = SETTING_FIELDS["rotation"].maximum
            if rot > limit:
                rot -= 2 * limit
            elif rot < -limit:
                rot += 2 * limit
            set_setting(settings, "rotation", rot)

    @staticmethod
    def _oscillate(value, change, growing, meta):
        value = value + change if growing else value - change
        # a negative change runs the other way, so either bound can flip it
        if value > meta.maximum:
            return meta.maximum, not growing
        if value < meta.minimum:
            return meta.minimum, not growing
        return value, growing

    # --- Jitter ---

    def _rand(self, bound: int) -> int:
        if bound <= 0:
            return 0
        return self.rng.randint(0, bound)

    def _bound(self, settings, name, ratio):
        meta = SETTING_FIELDS[name]
        return clamp(resolve_setting(settings, name, ratio), 0, meta.maximum)

    def _jitter(self, settings, ratio, canvas_size, direction):
        size_meta = SETTING_FIELDS["size"]
        size = clamp(resolve_setting(settings, "size", ratio),
                     size_meta.minimum, size_meta.maximum)
        size = clamp(size
                     - self._rand(self._bound(settings, "rand_min_size", ratio))
                     + self._rand(self._bound(settings, "rand_max_size", ratio)),
                     0, size_meta.maximum)

        rot_meta = SETTING_FIELDS["rotation"]
        rotation = clamp(resolve_setting(settings, "rotation", ratio),
                         rot_meta.minimum, rot_meta.maximum)
        rotation = (rotation
                    - self._rand(self._bound(settings, "rand_rot_left", ratio))
                    + self._rand(self._bound(settings, "rand_rot_right", ratio)))
        if settings.orient_to_mouse and direction is not None:
            rotation += direction

        alpha = clamp(resolve_setting(settings, "alpha", ratio), 0, 255)
        loss = self._rand(self._bound(settings, "rand_min_alpha", ratio))
        alpha = clamp(int(round(alpha * (100 - loss) / 100)), 0, 255)

        width, height = canvas_size
        offset = (self._shift_offset(width, self._bound(settings, "rand_horz_shift", ratio)),
                  self._shift_offset(height, self._bound(settings, "rand_vert_shift", ratio)))

        color = self._jitter_color(settings, ratio) if settings.colorize_brush else None
        return StampParams(size, float(rotation), alpha, color, offset)

    def _shift_offset(self, extent, percent):
        if percent <= 0:
            return 0.0
        return extent * (self._rand(percent) / 100 - percent / 200)

    def _jitter_color(self, settings, ratio):
        rgb_bounds = [(self._bound(settings, f"rand_min_{c}", ratio),
                       self._bound(settings, f"rand_max_{c}", ratio))
                      for c in RGB_JITTER_FIELDS]
        hsv_bounds = [(self._bound(settings, f"rand_min_{c}", ratio),
                       self._bound(settings, f"rand_max_{c}", ratio))
                      for c in HSV_JITTER_FIELDS]

        r, g, b = settings.color
        if any(lo or hi for lo, hi in rgb_bounds):
            r, g, b = (
                clamp(int(round(base + 2.55 * (self._rand(hi) - self._rand(lo)))), 0, 255)
                for base, (lo, hi) in zip((r, g, b), rgb_bounds))

        if any(lo or hi for lo, hi in hsv_bounds):
            h, s, v = colorsys.rgb_to_hsv(r / 255, g / 255, b / 255)
            (h_lo, h_hi), (s_lo, s_hi), (v_lo, v_hi) = hsv_bounds
            # hue bounds are percent of a full turn and wrap around
            h = (h + (self._rand(h_hi) - self._rand(h_lo)) / 100) % 1.0
            s = clamp(s + (self._rand(s_hi) - self._rand(s_lo)) / 100, 0.0, 1.0)
            v = clamp(v + (self._rand(v_hi) - self._rand(v_lo)) / 100, 0.0, 1.0)
            r, g, b = (clamp(int(round(c * 255)), 0, 255)
                       for c in colorsys.hsv_to_rgb(h, s, v))

        return (r, g, b)
