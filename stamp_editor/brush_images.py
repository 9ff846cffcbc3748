import logging
import os
import threading
from dataclasses import dataclass

import numpy as np
from PIL import Image

log = logging.getLogger(__name__)

DEFAULT_BRUSH = "Circle"
BRUSH_EXTENSIONS = (".png", ".bmp", ".jpg", ".jpeg", ".gif", ".tif", ".tiff", ".webp")


@dataclass
class BrushImage:
    name: str
    image: Image.Image   # square RGBA
    path: str | None = None


def circle_brush(size: int = 100, hardness: float = 0.8) -> Image.Image:
    """Round brush mask; hardness 0.0 is fully soft, 1.0 a hard edge."""
    d = max(1, int(size))
    y, x = np.ogrid[-d / 2:d / 2, -d / 2:d / 2]
    dist = np.sqrt(x * x + y * y)
    radius = d / 2

    if hardness >= 1.0:
        alpha_mask = (dist <= radius).astype(np.float32)
    else:
        inner = radius * hardness
        alpha_mask = np.clip((radius - dist) / max(radius - inner, 0.001), 0, 1)

    stamp = np.zeros((d, d, 4), dtype=np.uint8)
    stamp[:, :, 3] = (alpha_mask * 255).astype(np.uint8)
    return Image.fromarray(stamp, "RGBA")


def make_square(img: Image.Image) -> Image.Image:
    """Pad to a square, keeping the image centred."""
    w, h = img.size
    if w == h:
        return img
    side = max(w, h)
    square = Image.new("RGBA", (side, side), (0, 0, 0, 0))
    square.paste(img, ((side - w) // 2, (side - h) // 2))
    return square


def normalize_alpha(img: Image.Image) -> Image.Image:
    """Turn a fully opaque image into a mask where darker means more opaque."""
    img = img.convert("RGBA")
    arr = np.array(img, dtype=np.uint8)
    if arr[:, :, 3].min() < 255:
        return img
    gray = np.array(img.convert("L"), dtype=np.uint8)
    arr[:, :, :3] = 0
    arr[:, :, 3] = 255 - gray
    return Image.fromarray(arr, "RGBA")


def load_brush_image(path: str) -> BrushImage:
    with Image.open(path) as img:
        img.load()
        image = make_square(normalize_alpha(img))
    name = os.path.splitext(os.path.basename(path))[0]
    return BrushImage(name, image, path)


def find_brush_files(directory: str) -> list[str]:
    result = []
    for entry in sorted(os.listdir(directory)):
        if entry.lower().endswith(BRUSH_EXTENSIONS):
            result.append(os.path.join(directory, entry))
    return result


class BrushLibrary:
    def __init__(self):
        self._brushes: dict[str, BrushImage] = {}
        self.reset()

    def reset(self):
        self._brushes = {DEFAULT_BRUSH: BrushImage(DEFAULT_BRUSH, circle_brush())}

    def __contains__(self, name):
        return name in self._brushes

    def __len__(self):
        return len(self._brushes)

    def names(self) -> list[str]:
        return list(self._brushes)

    def get(self, name: str) -> BrushImage:
        return self._brushes.get(name) or self._brushes[DEFAULT_BRUSH]

    def add(self, brush: BrushImage) -> str:
        name = brush.name
        n = 2
        while name in self._brushes:
            name = f"{brush.name} ({n})"
            n += 1
        brush.name = name
        self._brushes[name] = brush
        return name

    def extend(self, brushes):
        for brush in brushes:
            self.add(brush)


class BrushImageLoader:
    """Decodes brush images on a background thread.

    Results are collected privately and only handed out by poll() once the
    whole batch finished, so a cancelled batch never touches a library.
    """

    def __init__(self):
        self._busy = False
        self._result = None
        self._error = None
        self._skipped: list[str] = []
        self._thread = None
        self._cancel = threading.Event()
        self._progress = (0, 0)
        self._lock = threading.Lock()
        self._cancelled = False

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def progress(self) -> tuple[int, int]:
        with self._lock:
            return self._progress

    def submit(self, paths: list[str]) -> bool:
        if self._busy:
            return False
        self._busy = True
        self._result = None
        self._error = None
        self._skipped = []
        self._cancel.clear()
        self._cancelled = False
        self._progress = (0, len(paths))
        self._thread = threading.Thread(target=self._run, args=(list(paths),), daemon=True)
        self._thread.start()
        return True

    def cancel(self):
        self._cancel.set()

    def wait(self, timeout: float | None = None):
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self, paths):
        loaded = []
        cancelled = False
        try:
            for i, path in enumerate(paths):
                if self._cancel.is_set():
                    log.info("brush loading cancelled after %d of %d files", i, len(paths))
                    cancelled = True
                    break
                try:
                    loaded.append(load_brush_image(path))
                except (OSError, ValueError, Image.DecompressionBombError) as e:
                    log.warning("skipping brush %s: %s", path, e)
                    self._skipped.append(path)
                with self._lock:
                    self._progress = (i + 1, len(paths))
            self._cancelled = cancelled
            self._result = [] if cancelled else loaded
        except Exception as e:
            log.exception("brush loading failed")
            self._error = str(e)
        self._busy = False

    @property
    def was_cancelled(self) -> bool:
        return self._cancelled

    def poll(self):
        """Check if the batch is done.

        Returns (brushes, skipped_paths, error), or (None, [], None) while
        busy or when nothing is pending. A cancelled batch yields no brushes.
        """
        if self._busy:
            return None, [], None
        result, error, skipped = self._result, self._error, self._skipped
        if result is None and error is None:
            return None, [], None
        self._result = None
        self._error = None
        self._skipped = []
        return result, skipped, error
