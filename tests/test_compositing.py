import math

import numpy as np
import pytest
from PIL import Image

from stamp_editor.compositing import (
    CompositePath, Compositor, alias_alpha, apply_channel_locks, composite,
    hsv_to_rgb, prepare_stamp, rgb_to_hsv, rotation_scale, select_path,
)
from stamp_editor.settings import BlendMode, BrushSettings, Smoothing, Tool


def _solid_stamp(size, rgba=(0, 0, 0, 255)):
    return Image.new("RGBA", (size, size), rgba)


def _canvas(w=10, h=10, rgba=(255, 255, 255, 255)):
    canvas = np.zeros((h, w, 4), dtype=np.uint8)
    canvas[:, :] = rgba
    return canvas


def test_rotation_scale():
    assert rotation_scale(0) == pytest.approx(1.0)
    assert rotation_scale(45) == pytest.approx(math.sqrt(2))
    assert rotation_scale(-45) == pytest.approx(math.sqrt(2))
    assert rotation_scale(90) == pytest.approx(1.0)


def test_prepare_stamp_sizes():
    brush = _solid_stamp(100)
    assert prepare_stamp(brush, 0) is None
    assert prepare_stamp(brush, 20).size == (20, 20)
    assert prepare_stamp(brush, 20, rotation=45).size == (28, 28)


def test_prepare_stamp_flips():
    arr = np.zeros((4, 4, 4), dtype=np.uint8)
    arr[:, 0] = (0, 0, 0, 255)
    brush = Image.fromarray(arr, "RGBA")
    plain = np.asarray(prepare_stamp(brush, 4, smoothing=Smoothing.JAGGED))
    flipped = np.asarray(prepare_stamp(brush, 4, flip_x=True, smoothing=Smoothing.JAGGED))
    assert plain[:, 0, 3].min() == 255
    assert flipped[:, 3, 3].min() == 255
    assert flipped[:, 0, 3].max() == 0


def test_jagged_alias_is_binary():
    arr = np.zeros((8, 8, 4), dtype=np.uint8)
    arr[:, :, 3] = np.arange(8, dtype=np.uint8)[None, :] * 20
    aliased = np.asarray(alias_alpha(Image.fromarray(arr, "RGBA")))
    assert set(np.unique(aliased[:, :, 3])) <= {0, 140}


def test_select_path():
    assert select_path(Tool.BRUSH, BlendMode.NORMAL, False) == CompositePath.MATRIX
    assert select_path(Tool.ERASER, BlendMode.NORMAL, False) == CompositePath.MASKED
    assert select_path(Tool.BRUSH, BlendMode.MULTIPLY, False) == CompositePath.MASKED
    assert select_path(Tool.BRUSH, BlendMode.NORMAL, True) == CompositePath.MASKED


def test_matrix_path_rejects_masked_options():
    with pytest.raises(ValueError):
        Compositor(CompositePath.MATRIX, BlendMode.SCREEN)
    with pytest.raises(ValueError):
        Compositor(CompositePath.MATRIX, eraser=True)


def test_matrix_draw_places_stamp_by_centre():
    canvas = _canvas()
    rect = Compositor().draw(canvas, _solid_stamp(4), (5, 5), color=(255, 0, 0))
    assert rect == (3, 3, 4, 4)
    np.testing.assert_array_equal(canvas[3:7, 3:7], np.full((4, 4, 4), (255, 0, 0, 255)))
    np.testing.assert_array_equal(canvas[2, 2], (255, 255, 255, 255))


def test_draw_clips_at_edges():
    canvas = _canvas()
    assert Compositor().draw(canvas, _solid_stamp(4), (0, 0), color=(0, 0, 0)) == (0, 0, 2, 2)
    assert Compositor().draw(canvas, _solid_stamp(4), (50, 50), color=(0, 0, 0)) is None


def test_zero_alpha_draws_nothing():
    canvas = _canvas()
    assert Compositor().draw(canvas, _solid_stamp(4), (5, 5), alpha=0) is None
    np.testing.assert_array_equal(canvas, _canvas())


def test_masked_normal_matches_matrix():
    stamp = _solid_stamp(6, (0, 0, 0, 255))
    a, b = _canvas(), _canvas()
    Compositor(CompositePath.MATRIX).draw(a, stamp, (5, 5), (0, 0, 255), alpha=128)
    Compositor(CompositePath.MASKED).draw(b, stamp, (5, 5), (0, 0, 255), alpha=128)
    assert np.abs(a.astype(int) - b.astype(int)).max() <= 1


def test_colorize_off_uses_brush_colours():
    canvas = _canvas()
    Compositor().draw(canvas, _solid_stamp(2, (0, 200, 0, 255)), (5, 5), color=None)
    np.testing.assert_array_equal(canvas[5, 5], (0, 200, 0, 255))


def test_overwrite_replaces_where_mask_is_set():
    canvas = _canvas(rgba=(10, 20, 30, 255))
    Compositor(CompositePath.MASKED, BlendMode.OVERWRITE).draw(
        canvas, _solid_stamp(2), (5, 5), (200, 100, 50), alpha=64)
    np.testing.assert_array_equal(canvas[4, 4], (200, 100, 50, 64))
    np.testing.assert_array_equal(canvas[0, 0], (10, 20, 30, 255))


def test_multiply_over_white_gives_source():
    canvas = _canvas()
    Compositor(CompositePath.MASKED, BlendMode.MULTIPLY).draw(
        canvas, _solid_stamp(2), (5, 5), (100, 150, 200))
    np.testing.assert_array_equal(canvas[5, 5], (100, 150, 200, 255))


def test_darken_keeps_darker_channel():
    canvas = _canvas(rgba=(50, 200, 50, 255))
    Compositor(CompositePath.MASKED, BlendMode.DARKEN).draw(
        canvas, _solid_stamp(2), (5, 5), (100, 100, 100))
    np.testing.assert_array_equal(canvas[5, 5], (50, 100, 50, 255))


def test_every_blend_mode_stays_in_range():
    rng = np.random.default_rng(0)
    dest = rng.random((4, 4, 4))
    src = rng.random((4, 4, 4))
    mask = rng.random((4, 4, 1))
    for mode in BlendMode:
        out = composite(mode, dest, src, mask)
        assert out.shape == (4, 4, 4)
        assert np.all(np.isfinite(out))
        assert out.min() >= 0.0 and out.max() <= 1.0 + 1e-6


def test_eraser_restores_original_and_is_idempotent():
    original = _canvas(rgba=(0, 128, 255, 255))
    canvas = original.copy()
    Compositor().draw(canvas, _solid_stamp(4), (5, 5), (255, 0, 0))
    eraser = Compositor(CompositePath.MASKED, eraser=True)
    eraser.draw(canvas, _solid_stamp(4), (5, 5), original=original)
    np.testing.assert_array_equal(canvas, original)
    eraser.draw(canvas, _solid_stamp(4), (5, 5), original=original)
    np.testing.assert_array_equal(canvas, original)


def test_lock_alpha_keeps_transparency():
    canvas = _canvas(rgba=(0, 0, 0, 0))
    canvas[5, 5] = (255, 255, 255, 255)
    Compositor(CompositePath.MASKED, lock_alpha=True).draw(
        canvas, _solid_stamp(4), (5, 5), (255, 0, 0))
    assert canvas[:, :, 3].sum() == 255
    np.testing.assert_array_equal(canvas[5, 5], (255, 0, 0, 255))


def test_for_stroke_follows_settings():
    c = Compositor.for_stroke(Tool.BRUSH, BrushSettings(blend_mode=BlendMode.SCREEN))
    assert c.path == CompositePath.MASKED and c.blend_mode == BlendMode.SCREEN
    c = Compositor.for_stroke(Tool.ERASER, BrushSettings())
    assert c.eraser and c.path == CompositePath.MASKED


def test_locks_and_seamless_need_the_masked_path():
    locks = (False, False, False, True, False, False)
    assert select_path(Tool.BRUSH, BlendMode.NORMAL, False, locks) == CompositePath.MASKED
    assert select_path(Tool.BRUSH, BlendMode.NORMAL, False, seamless=True) == CompositePath.MASKED
    with pytest.raises(ValueError):
        Compositor(CompositePath.MATRIX, seamless=True)
    with pytest.raises(ValueError):
        Compositor(CompositePath.MATRIX, channel_locks=locks)
    with pytest.raises(ValueError):
        Compositor(CompositePath.MASKED, channel_locks=(True,))


def test_rgb_locks_keep_channels():
    canvas = _canvas(rgba=(0, 128, 255, 255))
    locks = (False, True, True, False, False, False)
    Compositor(CompositePath.MASKED, channel_locks=locks).draw(
        canvas, _solid_stamp(4), (5, 5), (255, 0, 0))
    np.testing.assert_array_equal(canvas[5, 5], (255, 128, 255, 255))
    np.testing.assert_array_equal(canvas[0, 0], (0, 128, 255, 255))


def test_hue_lock_keeps_hue():
    canvas = _canvas(rgba=(255, 0, 0, 255))
    locks = (False, False, False, True, False, False)
    Compositor(CompositePath.MASKED, channel_locks=locks).draw(
        canvas, _solid_stamp(4), (5, 5), (0, 0, 128))
    np.testing.assert_array_equal(canvas[5, 5], (128, 0, 0, 255))


def test_value_lock_keeps_brightness():
    canvas = _canvas()
    locks = (False, False, False, False, False, True)
    Compositor(CompositePath.MASKED, channel_locks=locks).draw(
        canvas, _solid_stamp(4), (5, 5), (0, 0, 128))
    np.testing.assert_array_equal(canvas[5, 5], (0, 0, 255, 255))


def test_hsv_helpers_agree_with_known_colors():
    rgb = np.array([[1.0, 0.0, 0.0], [0.0, 0.5, 0.0], [0.2, 0.2, 0.2], [0.0, 0.0, 0.0]])
    hsv = rgb_to_hsv(rgb)
    np.testing.assert_allclose(hsv[0], (0.0, 1.0, 1.0))
    np.testing.assert_allclose(hsv[1], (1 / 3, 1.0, 0.5))
    np.testing.assert_allclose(hsv[2], (0.0, 0.0, 0.2))
    np.testing.assert_allclose(hsv_to_rgb(hsv), rgb, atol=1e-9)


def test_unlocked_channels_pass_through():
    out = np.full((1, 1, 4), 0.25)
    dest = np.full((1, 1, 4), 0.75)
    result = apply_channel_locks(out.copy(), dest, (True, False, False, False, False, False))
    np.testing.assert_allclose(result[0, 0], (0.75, 0.25, 0.25, 0.25))


def test_seamless_wraps_to_the_opposite_edges():
    canvas = _canvas()
    rect = Compositor(CompositePath.MASKED, seamless=True).draw(
        canvas, _solid_stamp(4), (0, 0), (255, 0, 0))
    assert rect == (0, 0, 10, 10)
    for x, y in ((0, 0), (9, 0), (0, 9), (9, 9), (8, 8)):
        np.testing.assert_array_equal(canvas[y, x], (255, 0, 0, 255))
    np.testing.assert_array_equal(canvas[5, 5], (255, 255, 255, 255))
    np.testing.assert_array_equal(canvas[0, 5], (255, 255, 255, 255))


def test_seamless_skips_axes_the_stamp_does_not_fit():
    canvas = _canvas(w=20, h=4)
    Compositor(CompositePath.MASKED, BlendMode.OVERWRITE, seamless=True).draw(
        canvas, _solid_stamp(6), (1, 2), (255, 0, 0))
    assert canvas[:, :4, 1].max() == 0
    assert canvas[:, 18:, 1].max() == 0
    assert canvas[:, 4:18, 1].min() == 255


def test_for_stroke_carries_locks_and_seamless():
    c = Compositor.for_stroke(Tool.BRUSH, BrushSettings(lock_hue=True, seamless_drawing=True))
    assert c.path == CompositePath.MASKED
    assert c.channel_locks == (False, False, False, True, False, False)
    assert c.seamless
