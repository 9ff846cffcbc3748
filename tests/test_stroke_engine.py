import os
import random

import numpy as np
import pytest
from PIL import Image

from stamp_editor import stroke
from stamp_editor.brush_images import BrushImage
from stamp_editor.document import Document
from stamp_editor.history import HistoryManager
from stamp_editor.settings import BrushSettings, Smoothing, SymmetryMode, Tool, ValueHandlingMethod
from stamp_editor.stroke import PointerButton, StrokeEngine

RED = (255, 0, 0, 255)
WHITE = (255, 255, 255, 255)


@pytest.fixture
def doc():
    document = Document()
    document.new_blank(200, 200)
    return document


@pytest.fixture
def engine(doc, tmp_path):
    settings = BrushSettings(size=10, color=(255, 0, 0))
    engine = StrokeEngine(doc, settings, HistoryManager(str(tmp_path)), random.Random(0))
    yield engine
    engine.close()


def _record(signal):
    calls = []
    signal.connect(lambda *args: calls.append(args))
    return calls


def test_click_places_one_stamp(engine, doc):
    history = _record(engine.history_changed)
    engine.pointer_down(50, 50)
    engine.pointer_up()
    assert doc.pixel(50, 50) == RED
    assert doc.pixel(60, 50) == WHITE
    assert history[-1] == (True, False)


def test_drag_draws_a_continuous_line(engine, doc):
    regions = _record(doc.region_changed)
    engine.pointer_down(20, 100)
    engine.pointer_move(180, 100)
    engine.pointer_up()
    for x in range(20, 181, 4):
        assert doc.pixel(x, 100) == RED, x
    assert doc.pixel(100, 120) == WHITE
    # one repaint request per pointer event
    assert len(regions) == 2


def test_undo_redo_round_trip(engine, doc):
    blank = doc.image.copy()
    engine.pointer_down(20, 20)
    engine.pointer_move(80, 80)
    engine.pointer_up()
    painted = doc.image.copy()

    assert engine.undo()
    np.testing.assert_array_equal(doc.image, blank)
    assert engine.redo()
    np.testing.assert_array_equal(doc.image, painted)


def test_undo_aborts_the_stroke(engine, doc):
    engine.pointer_down(20, 20)
    assert engine.is_drawing
    engine.undo()
    assert not engine.is_drawing
    engine.pointer_move(80, 80)
    assert doc.pixel(80, 80) == WHITE


def test_history_error_is_reported(engine, doc):
    errors = _record(engine.history_error)
    engine.pointer_down(20, 20)
    engine.pointer_up()
    directory = engine.history.directory
    for name in os.listdir(directory):
        os.remove(os.path.join(directory, name))
    assert not engine.undo()
    assert len(errors) == 1
    assert engine.history.can_undo


def test_view_transform_maps_pointer(engine, doc):
    engine.view.zoom = 2.0
    engine.pointer_down(100, 100)
    engine.pointer_up()
    assert doc.pixel(50, 50) == RED


def test_horizontal_symmetry_mirrors_stamp(engine, doc):
    engine.settings.symmetry = SymmetryMode.HORIZONTAL
    engine.pointer_down(60, 100)
    engine.pointer_up()
    assert doc.pixel(60, 100) == RED
    assert doc.pixel(140, 100) == RED


def test_star_symmetry_places_copies(engine, doc):
    engine.settings.symmetry = SymmetryMode.STAR4
    engine.pointer_down(150, 100)
    engine.pointer_up()
    for x, y in ((150, 100), (100, 150), (50, 100), (100, 50)):
        assert doc.pixel(x, y) == RED, (x, y)


def test_eraser_restores_the_original(engine, doc):
    engine.pointer_down(50, 50)
    engine.pointer_up()
    engine.tool = Tool.ERASER
    engine.pointer_down(50, 50)
    engine.pointer_up()
    assert doc.pixel(50, 50) == WHITE


def test_color_picker(engine, doc):
    picked = _record(engine.color_picked)
    doc.image[10, 10] = (1, 2, 3, 4)
    engine.tool = Tool.COLOR_PICKER
    engine.pointer_down(10, 10)
    assert picked == [(1, 2, 3, 4)]
    assert not engine.history.can_undo


def test_symmetry_origin_tool(engine):
    engine.tool = Tool.SET_SYMMETRY_ORIGIN
    engine.pointer_down(30, 40)
    assert engine.symmetry.origin == (30, 40)


def test_set_points_tool_adds_and_clears(engine):
    engine.settings.symmetry = SymmetryMode.SET_POINTS
    engine.tool = Tool.SET_SYMMETRY_ORIGIN
    engine.pointer_down(110, 100)
    engine.pointer_down(100, 90)
    assert engine.symmetry.offsets == [pytest.approx((10, 0)), pytest.approx((0, -10))]
    engine.pointer_down(0, 0, PointerButton.RIGHT)
    assert engine.symmetry.offsets == []


def test_shift_reports_settings_change(engine):
    changed = _record(engine.settings_changed)
    engine.settings.size_change = 5
    engine.pointer_down(50, 50)
    engine.pointer_up()
    assert engine.settings.size == 15
    assert len(changed) == 1


def test_pressure_scales_size(engine, doc):
    engine.settings.set_pressure("size", ValueHandlingMethod.ADD, 30)
    engine.set_pressure(1.0)
    engine.pointer_down(100, 100)
    engine.pointer_up()
    assert doc.pixel(110, 100) == RED
    assert doc.pixel(125, 100) == WHITE


def test_orient_to_mouse_waits_for_movement(engine, doc):
    engine.settings.orient_to_mouse = True
    engine.pointer_down(50, 50)
    assert doc.pixel(50, 50) == WHITE
    engine.pointer_move(70, 50)
    engine.pointer_up()
    assert doc.pixel(70, 50) == RED


def test_right_button_does_not_draw(engine, doc):
    engine.pointer_down(50, 50, PointerButton.RIGHT)
    assert not engine.is_drawing
    assert doc.pixel(50, 50) == WHITE


def test_empty_document_is_ignored(tmp_path):
    engine = StrokeEngine(Document(), history=HistoryManager(str(tmp_path)))
    engine.pointer_down(1, 1)
    assert not engine.is_drawing
    assert not engine.undo()
    engine.close()


def test_new_image_recentres_symmetry(engine, doc):
    doc.new_blank(40, 60)
    assert engine.symmetry.origin == (20, 30)
    assert (engine.view.canvas_width, engine.view.canvas_height) == (40, 60)


def _spy_stamps(monkeypatch):
    """Record (rotation, flip_x, flip_y, stamp) for every prepared stamp."""
    calls = []
    real_prepare = stroke.prepare_stamp

    def prepare(brush, size, rotation, flip_x, flip_y, smoothing):
        stamp = real_prepare(brush, size, rotation, flip_x, flip_y, smoothing)
        calls.append((rotation, flip_x, flip_y, stamp))
        return stamp

    monkeypatch.setattr(stroke, "prepare_stamp", prepare)
    return calls


def test_orient_to_mouse_follows_the_screen_heading(engine, monkeypatch):
    calls = _spy_stamps(monkeypatch)
    engine.view.rotation = 90
    engine.settings.orient_to_mouse = True
    engine.pointer_down(60, 100)
    engine.pointer_move(140, 100)
    engine.pointer_up()
    assert calls
    for rotation, _, _, _ in calls:
        # dragging right on screen points the stamp right on screen
        assert (rotation + engine.view.rotation) % 360 == pytest.approx(0)


def test_mirror_copy_is_mirrored_on_screen_with_rotated_view(engine, monkeypatch):
    corner = Image.new("RGBA", (8, 8), (0, 0, 0, 0))
    corner.paste((0, 0, 0, 255), (0, 0, 3, 2))
    engine.brushes.add(BrushImage("corner", corner))
    engine.settings.brush_image = "corner"
    engine.settings.size = 8
    engine.settings.smoothing = Smoothing.JAGGED
    engine.settings.symmetry = SymmetryMode.HORIZONTAL
    engine.view.rotation = 90
    calls = _spy_stamps(monkeypatch)
    engine.pointer_down(100, 60)
    engine.pointer_up()

    stamps = {(fx, fy): np.asarray(stamp)[:, :, 3] for _, fx, fy, stamp in calls}
    # the view turns canvas content a quarter turn clockwise
    original = np.rot90(stamps[(False, False)], -1)
    mirrored = np.rot90(stamps[(True, False)], -1)
    np.testing.assert_array_equal(original, np.asarray(corner)[:, :, 3])
    np.testing.assert_array_equal(mirrored, np.fliplr(original))


def test_color_picker_misses_left_of_the_canvas(engine, doc):
    picked = _record(engine.color_picked)
    engine.tool = Tool.COLOR_PICKER
    engine.view.pan = (0.5, 0)
    engine.pointer_down(0, 5)
    assert picked == []
    engine.pointer_down(1, 5)
    assert picked == [WHITE]


def test_seamless_stroke_wraps_around_the_canvas(engine, doc):
    engine.settings.seamless_drawing = True
    engine.pointer_down(2, 100)
    engine.pointer_up()
    assert doc.pixel(2, 100) == RED
    assert doc.pixel(199, 100) != WHITE
    assert doc.pixel(150, 100) == WHITE
