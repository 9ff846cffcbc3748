import math
from enum import Enum

import numpy as np
from PIL import Image

from .settings import BlendMode, BrushSettings, Smoothing, Tool

_RESAMPLE = {
    Smoothing.NORMAL: Image.Resampling.BILINEAR,
    Smoothing.HIGH: Image.Resampling.BICUBIC,
    Smoothing.JAGGED: Image.Resampling.NEAREST,
}


class CompositePath(Enum):
    MATRIX = "matrix"   # Pillow alpha_composite of a tinted stamp
    MASKED = "masked"   # per-pixel blend with the stamp as an alpha mask


def rotation_scale(rotation: float) -> float:
    """Growth of a square's bounding box when rotated by `rotation` degrees."""
    rad = math.radians(abs(rotation) % 90)
    return math.cos(rad) + math.sin(rad)


def alias_alpha(image: Image.Image) -> Image.Image:
    """Snap alpha to 0 or the image's max alpha."""
    arr = np.array(image, dtype=np.uint8)
    alpha = arr[:, :, 3]
    top = int(alpha.max()) if alpha.size else 0
    if top == 0:
        return image
    alpha[:] = np.where(alpha >= top / 2, top, 0)
    return Image.fromarray(arr, "RGBA")


def prepare_stamp(brush: Image.Image, size: int, rotation: float = 0.0,
                  flip_x: bool = False, flip_y: bool = False,
                  smoothing: Smoothing = Smoothing.NORMAL) -> Image.Image | None:
    """Flip, rotate and scale the brush image for one placement.

    The flips apply to the unrotated brush. Returns None when the stamp
    would be empty.
    """
    if size <= 0 or brush.width < 1 or brush.height < 1:
        return None
    scaled = int(size * rotation_scale(rotation))
    if scaled < 1:
        return None

    resample = _RESAMPLE[Smoothing(smoothing)]
    img = brush
    if flip_x:
        img = img.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
    if flip_y:
        img = img.transpose(Image.Transpose.FLIP_TOP_BOTTOM)
    if rotation % 360:
        # rotate premultiplied so transparent edges don't bleed dark
        img = img.convert("RGBa").rotate(-rotation, resample=resample, expand=True)
        img = img.convert("RGBA")
    if img.width < 1 or img.height < 1:
        return None
    img = img.resize((scaled, scaled), resample=resample)
    if smoothing == Smoothing.JAGGED:
        img = alias_alpha(img)
    return img


# --- Blend functions ---
# Every variant has the same shape: float arrays in [0, 1], dest and src are
# (h, w, 4) straight-alpha RGBA, mask is (h, w, 1). Returns the new dest.

def _over(dest, rgb, coverage):
    da = dest[..., 3:4]
    out_a = coverage + da * (1 - coverage)
    num = rgb * coverage + dest[..., :3] * da * (1 - coverage)
    out_rgb = np.divide(num, out_a, out=np.zeros_like(num), where=out_a > 0)
    return np.concatenate([out_rgb, out_a], axis=-1)


def blend_normal(dest, src, mask):
    return _over(dest, src[..., :3], src[..., 3:4] * mask)


def blend_overwrite(dest, src, mask):
    return np.where(mask > 0, src, dest)


def _separable(fn):
    def blend(dest, src, mask):
        cb = dest[..., :3]
        cs = src[..., :3]
        db = dest[..., 3:4]
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            mixed = np.clip(fn(cb, cs), 0.0, 1.0)
        # over a transparent backdrop the source colour shows unchanged
        rgb = (1 - db) * cs + db * mixed
        return _over(dest, rgb, src[..., 3:4] * mask)
    blend.__name__ = f"blend_{fn.__name__}"
    return blend


def _additive(b, s):
    return b + s


def _color_burn(b, s):
    return np.where(s <= 0, 0.0, 1 - (1 - b) / s)


def _color_dodge(b, s):
    return np.where(s >= 1, 1.0, b / (1 - s))


def _darken(b, s):
    return np.minimum(b, s)


def _difference(b, s):
    return np.abs(b - s)


def _glow(b, s):
    return np.where(b >= 1, 1.0, s * s / (1 - b))


def _lighten(b, s):
    return np.maximum(b, s)


def _multiply(b, s):
    return b * s


def _negation(b, s):
    return 1 - np.abs(1 - b - s)


def _overlay(b, s):
    return np.where(b < 0.5, 2 * b * s, 1 - 2 * (1 - b) * (1 - s))


def _reflect(b, s):
    return np.where(s >= 1, 1.0, b * b / (1 - s))


def _screen(b, s):
    return b + s - b * s


def _xor(b, s):
    bi = np.rint(b * 255).astype(np.uint8)
    si = np.rint(s * 255).astype(np.uint8)
    return np.bitwise_xor(bi, si).astype(np.float32) / 255


BLEND_FUNCTIONS = {
    BlendMode.NORMAL: blend_normal,
    BlendMode.OVERWRITE: blend_overwrite,
    BlendMode.ADDITIVE: _separable(_additive),
    BlendMode.COLOR_BURN: _separable(_color_burn),
    BlendMode.COLOR_DODGE: _separable(_color_dodge),
    BlendMode.DARKEN: _separable(_darken),
    BlendMode.DIFFERENCE: _separable(_difference),
    BlendMode.GLOW: _separable(_glow),
    BlendMode.LIGHTEN: _separable(_lighten),
    BlendMode.MULTIPLY: _separable(_multiply),
    BlendMode.NEGATION: _separable(_negation),
    BlendMode.OVERLAY: _separable(_overlay),
    BlendMode.REFLECT: _separable(_reflect),
    BlendMode.SCREEN: _separable(_screen),
    BlendMode.XOR: _separable(_xor),
}


def composite(mode: BlendMode, dest: np.ndarray, src: np.ndarray, mask: np.ndarray) -> np.ndarray:
    return BLEND_FUNCTIONS[BlendMode(mode)](dest, src, mask)


def erase(dest: np.ndarray, original: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """Move dest toward the unedited image by the mask's coverage."""
    return dest + mask * (original - dest)


# --- Channel locks ---

def rgb_to_hsv(rgb: np.ndarray) -> np.ndarray:
    """(..., 3) RGB floats in [0, 1] to HSV, hue in [0, 1) like colorsys."""
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    maxc = rgb.max(axis=-1)
    delta = maxc - rgb.min(axis=-1)
    s = np.divide(delta, maxc, out=np.zeros_like(maxc), where=maxc > 0)
    d = np.where(delta > 0, delta, 1.0)
    rc = (maxc - r) / d
    gc = (maxc - g) / d
    bc = (maxc - b) / d
    h = np.where(r == maxc, bc - gc, np.where(g == maxc, 2.0 + rc - bc, 4.0 + gc - rc))
    h = np.where(delta > 0, (h / 6.0) % 1.0, 0.0)
    return np.stack([h, s, maxc], axis=-1)


def hsv_to_rgb(hsv: np.ndarray) -> np.ndarray:
    h, s, v = hsv[..., 0], hsv[..., 1], hsv[..., 2]
    i = np.floor(h * 6.0)
    f = h * 6.0 - i
    i = i.astype(np.int64) % 6
    p = v * (1.0 - s)
    q = v * (1.0 - s * f)
    t = v * (1.0 - s * (1.0 - f))
    r = np.choose(i, [v, q, p, p, t, v])
    g = np.choose(i, [t, v, v, q, p, p])
    b = np.choose(i, [p, p, t, v, v, q])
    return np.stack([r, g, b], axis=-1)


def apply_channel_locks(out: np.ndarray, dest: np.ndarray, locks) -> np.ndarray:
    """Keep the locked channels of `dest` in a blended result.

    `locks` is (red, green, blue, hue, sat, val). HSV locks are applied
    first, then the RGB locks.
    """
    lock_r, lock_g, lock_b, *hsv_locks = locks
    if any(hsv_locks):
        new = rgb_to_hsv(out[..., :3])
        old = rgb_to_hsv(dest[..., :3])
        for i, locked in enumerate(hsv_locks):
            if locked:
                new[..., i] = old[..., i]
        out[..., :3] = hsv_to_rgb(new)
    for i, locked in enumerate((lock_r, lock_g, lock_b)):
        if locked:
            out[..., i] = dest[..., i]
    return out


# --- Placement ---

NO_LOCKS = (False,) * 6


def select_path(tool: Tool, blend_mode: BlendMode, lock_alpha: bool,
                channel_locks=NO_LOCKS, seamless: bool = False) -> CompositePath:
    if (tool == Tool.ERASER or blend_mode != BlendMode.NORMAL or lock_alpha
            or any(channel_locks) or seamless):
        return CompositePath.MASKED
    return CompositePath.MATRIX


def union_rect(a, b):
    if a is None:
        return b
    if b is None:
        return a
    x0 = min(a[0], b[0])
    y0 = min(a[1], b[1])
    x1 = max(a[0] + a[2], b[0] + b[2])
    y1 = max(a[1] + a[3], b[1] + b[3])
    return x0, y0, x1 - x0, y1 - y0


def _clip(sw, sh, iw, ih, x0, y0):
    """Visible part of a stamp at (x0, y0): (sx0, sy0, dx0, dy0, w, h)."""
    sx0 = max(0, -x0)
    sy0 = max(0, -y0)
    sx1 = min(sw, iw - x0)
    sy1 = min(sh, ih - y0)
    if sx0 >= sx1 or sy0 >= sy1:
        return None
    return sx0, sy0, max(0, x0), max(0, y0), sx1 - sx0, sy1 - sy0


def _tint(piece: Image.Image, color, alpha: int) -> Image.Image:
    r, g, b, a = piece.split()
    if color is not None:
        r, g, b = (Image.new("L", piece.size, int(c)) for c in color)
    if alpha < 255:
        a = a.point(lambda v: v * alpha // 255)
    return Image.merge("RGBA", (r, g, b, a))


class Compositor:
    """Draws prepared stamps onto an RGBA uint8 canvas.

    The path and blend are fixed for the lifetime of one stroke. With
    `seamless` set, the parts of a stamp that fall off one edge are drawn
    at the opposite edge; a stamp wider or taller than the canvas only
    wraps along the axes it fits in.
    """

    def __init__(self, path: CompositePath = CompositePath.MATRIX,
                 blend_mode: BlendMode = BlendMode.NORMAL,
                 lock_alpha: bool = False, eraser: bool = False,
                 channel_locks=NO_LOCKS, seamless: bool = False):
        channel_locks = tuple(bool(v) for v in channel_locks)
        if len(channel_locks) != 6:
            raise ValueError("channel_locks needs six entries (R, G, B, H, S, V)")
        if path == CompositePath.MATRIX and (
                eraser or lock_alpha or blend_mode != BlendMode.NORMAL
                or any(channel_locks) or seamless):
            raise ValueError("Matrix path only supports normal blending")
        self.path = path
        self.blend_mode = BlendMode(blend_mode)
        self.lock_alpha = lock_alpha
        self.eraser = eraser
        self.channel_locks = channel_locks
        self.seamless = seamless
        self._blend = BLEND_FUNCTIONS[self.blend_mode]

    @classmethod
    def for_stroke(cls, tool: Tool, settings: BrushSettings) -> "Compositor":
        locks = settings.channel_locks()
        path = select_path(tool, settings.blend_mode, settings.lock_alpha,
                           locks, settings.seamless_drawing)
        return cls(path, settings.blend_mode, settings.lock_alpha, tool == Tool.ERASER,
                   locks, settings.seamless_drawing)

    def draw(self, canvas: np.ndarray, stamp: Image.Image, center: tuple[float, float],
             color: tuple[int, int, int] | None = None, alpha: int = 255,
             original: np.ndarray | None = None) -> tuple[int, int, int, int] | None:
        """Composite `stamp` centred at `center`. Returns the touched rect."""
        if stamp is None or alpha <= 0:
            return None
        sw, sh = stamp.size
        ih, iw = canvas.shape[:2]
        x0 = math.floor(center[0] - sw / 2)
        y0 = math.floor(center[1] - sh / 2)

        shifts_x = shifts_y = (0,)
        if self.seamless:
            if sw <= iw:
                shifts_x = (0, -iw, iw)
            if sh <= ih:
                shifts_y = (0, -ih, ih)
        rect = None
        for oy in shifts_y:
            for ox in shifts_x:
                drawn = self._draw_at(canvas, stamp, x0 + ox, y0 + oy, color, alpha, original)
                rect = union_rect(rect, drawn)
        return rect

    def _draw_at(self, canvas, stamp, x0, y0, color, alpha, original):
        sw, sh = stamp.size
        ih, iw = canvas.shape[:2]
        region = _clip(sw, sh, iw, ih, x0, y0)
        if region is None:
            return None
        sx0, sy0, dx0, dy0, w, h = region
        piece = stamp.crop((sx0, sy0, sx0 + w, sy0 + h))

        if self.path == CompositePath.MATRIX:
            self._draw_matrix(canvas, piece, dx0, dy0, color, alpha)
        else:
            self._draw_masked(canvas, piece, dx0, dy0, color, alpha, original)
        return dx0, dy0, w, h

    def _draw_matrix(self, canvas, piece, dx0, dy0, color, alpha):
        w, h = piece.size
        dst = Image.fromarray(np.ascontiguousarray(canvas[dy0:dy0 + h, dx0:dx0 + w]), "RGBA")
        result = Image.alpha_composite(dst, _tint(piece, color, alpha))
        canvas[dy0:dy0 + h, dx0:dx0 + w] = np.asarray(result, dtype=np.uint8)

    def _draw_masked(self, canvas, piece, dx0, dy0, color, alpha, original):
        w, h = piece.size
        arr = np.asarray(piece, dtype=np.float32) / 255.0
        mask = arr[:, :, 3:4]
        dst = canvas[dy0:dy0 + h, dx0:dx0 + w].astype(np.float32) / 255.0

        if self.eraser:
            if original is None:
                orig = np.zeros_like(dst)
            else:
                orig = original[dy0:dy0 + h, dx0:dx0 + w].astype(np.float32) / 255.0
            out = erase(dst, orig, mask * (alpha / 255.0))
        else:
            src = np.empty_like(arr)
            if color is None:
                src[:, :, :3] = arr[:, :, :3]
            else:
                src[:, :, :3] = np.asarray(color, dtype=np.float32) / 255.0
            src[:, :, 3] = alpha / 255.0
            out = self._blend(dst, src, mask)

        out = np.array(out, dtype=np.float32)
        if any(self.channel_locks):
            out = apply_channel_locks(out, dst, self.channel_locks)
        if self.lock_alpha:
            out[:, :, 3] = dst[:, :, 3]
        canvas[dy0:dy0 + h, dx0:dx0 + w] = np.clip(np.rint(out * 255), 0, 255).astype(np.uint8)
