import numpy as np
from PIL import Image
from PyQt6.QtCore import QObject, pyqtSignal


class Document(QObject):
    """The single RGBA canvas buffer being painted on.

    `original` keeps the image as it was loaded; the eraser restores toward
    it rather than toward transparency.
    """

    changed = pyqtSignal()
    region_changed = pyqtSignal(int, int, int, int)  # x, y, w, h

    def __init__(self, parent=None):
        super().__init__(parent)
        self.image: np.ndarray | None = None
        self.original: np.ndarray | None = None
        self.path: str | None = None

    @property
    def width(self):
        return 0 if self.image is None else self.image.shape[1]

    @property
    def height(self):
        return 0 if self.image is None else self.image.shape[0]

    @property
    def is_empty(self) -> bool:
        return self.image is None

    def init_from_image(self, image: np.ndarray):
        if image.ndim != 3 or image.shape[2] != 4:
            raise ValueError(f"Expected an RGBA image, got shape {image.shape}")
        self.image = np.ascontiguousarray(image.astype(np.uint8))
        self.original = self.image.copy()
        self.changed.emit()

    def new_blank(self, width: int, height: int,
                  color: tuple[int, int, int, int] = (255, 255, 255, 255)):
        image = np.zeros((height, width, 4), dtype=np.uint8)
        image[:, :] = color
        self.path = None
        self.init_from_image(image)

    def load_image(self, path: str):
        with Image.open(path) as img:
            arr = np.array(img.convert("RGBA"), dtype=np.uint8)
        self.path = path
        self.init_from_image(arr)

    def export_image(self, path: str):
        if self.image is None:
            raise RuntimeError("Nothing to export")
        img = Image.fromarray(self.image, "RGBA")
        if path.lower().endswith((".jpg", ".jpeg", ".bmp")):
            img = img.convert("RGB")
        img.save(path)

    def restore(self, image: np.ndarray):
        """Overwrite the buffer in place, keeping `original` as it is."""
        if self.image is None or image.shape != self.image.shape:
            raise ValueError("Cannot restore an image of a different size")
        self.image[...] = image
        self.changed.emit()

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int] | None:
        if self.image is None:
            return None
        if 0 <= x < self.width and 0 <= y < self.height:
            r, g, b, a = self.image[y, x]
            return int(r), int(g), int(b), int(a)
        return None

    def mark_dirty(self, rect: tuple[int, int, int, int] | None = None):
        if rect is None:
            self.changed.emit()
        else:
            self.region_changed.emit(*rect)
