import logging
import os
import tempfile

import numpy as np
from PIL import Image

log = logging.getLogger(__name__)


class HistoryError(RuntimeError):
    pass


class HistoryManager:
    """Whole-canvas undo/redo backed by PNG snapshots in a temp directory.

    A snapshot is taken once per stroke, before its first stamp. Undo and
    redo save the current canvas onto the opposite stack before restoring,
    and leave both stacks untouched if any file operation fails.
    """

    def __init__(self, directory: str | None = None):
        self._tmp = tempfile.TemporaryDirectory(prefix="stamp_editor_", dir=directory or None)
        self._undo: list[str] = []
        self._redo: list[str] = []
        self._counter = 0
        self._stroke_open = False

    @property
    def directory(self) -> str:
        return self._tmp.name

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def stroke_open(self) -> bool:
        return self._stroke_open

    def _write(self, canvas: np.ndarray, kind: str) -> str:
        self._counter += 1
        path = os.path.join(self._tmp.name, f"history_{self._counter:05d}.{kind}.png")
        try:
            Image.fromarray(np.ascontiguousarray(canvas), "RGBA").save(path, compress_level=1)
        except OSError as e:
            raise HistoryError(f"Could not write history snapshot {path}: {e}") from e
        return path

    @staticmethod
    def _read(path: str, shape) -> np.ndarray:
        try:
            with Image.open(path) as img:
                arr = np.array(img.convert("RGBA"), dtype=np.uint8)
        except OSError as e:
            raise HistoryError(f"File could not be found for history: {path}") from e
        if arr.shape != tuple(shape):
            raise HistoryError(f"History snapshot {path} does not match the canvas size")
        return arr

    @staticmethod
    def _discard(paths):
        for path in paths:
            try:
                os.remove(path)
            except OSError as e:
                log.debug("could not remove snapshot %s: %s", path, e)
        paths.clear()

    def begin_stroke(self, canvas: np.ndarray) -> bool:
        """Snapshot the canvas if no stroke is open. Returns True if it did."""
        if self._stroke_open:
            return False
        path = self._write(canvas, "undo")
        self._undo.append(path)
        self._discard(self._redo)
        self._stroke_open = True
        log.debug("stroke snapshot %s (undo depth %d)", path, len(self._undo))
        return True

    def end_stroke(self):
        self._stroke_open = False

    def undo(self, canvas: np.ndarray) -> bool:
        return self._swap(canvas, self._undo, self._redo, "redo")

    def redo(self, canvas: np.ndarray) -> bool:
        return self._swap(canvas, self._redo, self._undo, "undo")

    def _swap(self, canvas, source, target, kind) -> bool:
        self._stroke_open = False
        if not source:
            return False
        path = source[-1]
        restored = self._read(path, canvas.shape)
        saved = self._write(canvas, kind)
        source.pop()
        target.append(saved)
        canvas[...] = restored
        try:
            os.remove(path)
        except OSError:
            log.warning("could not remove consumed snapshot %s", path)
        return True

    def clear(self):
        self._discard(self._undo)
        self._discard(self._redo)
        self._stroke_open = False

    def close(self):
        self._undo.clear()
        self._redo.clear()
        self._tmp.cleanup()
