# -*- coding: utf-8 -*-
"""Pixel transforms, their numeric properties and batch application."""

import math

import numpy as np
import pytest

import prism_colorengine as pce
from prism_colorengine import (
    M1_OKLAB_SRGB,
    M1_OKLAB_SRGB_INV,
    M2_OKLAB_SRGB,
    M2_OKLAB_SRGB_INV,
    ColorTransformEngine,
    TransformKind,
    channel_invert,
    hsl_hue_invert,
    oklab_axis_flip,
    oklab_axis_flip_fast,
    oklab_hue_invert,
    oklab_hue_invert_fast,
    rgb_to_hsl,
    rgb_to_oklab,
)

CANONICAL = [
    TransformKind.CHANNEL_INVERT,
    TransformKind.HSL_HUE_INVERT,
    TransformKind.OKLAB_HUE_INVERT,
    TransformKind.OKLAB_AXIS_FLIP,
]


def _random_rgb(n, seed=0, low=0, high=256):
    rng = np.random.default_rng(seed)
    return rng.integers(low, high, size=(n, 3), dtype=np.uint8)


def _apply_rgb(rgb, kind, parallel=False):
    """Runs a batch kernel on logical (r, g, b) rows; returns (r, g, b) rows."""
    bgr = np.ascontiguousarray(rgb[:, ::-1])
    ColorTransformEngine.apply(bgr, kind, parallel=parallel)
    return bgr[:, ::-1].astype(np.int64)


# ---------------------------------------------------------------------------
# Reference math (plain Python floats)
# ---------------------------------------------------------------------------

def _ref_to_linear(c):
    v = c / 255.0
    return v / 12.92 if v <= 0.0405 else ((v + 0.055) / 1.055) ** 2.4


def _ref_to_srgb(v):
    return 12.92 * v if v <= 0.0031308 else 1.055 * v ** (1.0 / 2.4) - 0.055


def _ref_to_channel(v):
    return int(min(max(v, 0.0), 255.0))


def _ref_oklab(r, g, b):
    lin = [_ref_to_linear(c) for c in (r, g, b)]
    lms = [sum(M1_OKLAB_SRGB[i, j] * lin[j] for j in range(3)) for i in range(3)]
    lms = [math.copysign(abs(v) ** (1.0 / 3.0), v) for v in lms]
    return [sum(M2_OKLAB_SRGB[i, j] * lms[j] for j in range(3)) for i in range(3)]


def _ref_rgb(L, A, B):
    lab = (L, A, B)
    lms = [sum(M2_OKLAB_SRGB_INV[i, j] * lab[j] for j in range(3)) ** 3 for i in range(3)]
    lin = [sum(M1_OKLAB_SRGB_INV[i, j] * lms[j] for j in range(3)) for i in range(3)]
    return tuple(_ref_to_channel(_ref_to_srgb(v) * 255.0) for v in lin)


def _ref_oklab_hue_invert(r, g, b):
    L, A, B = _ref_oklab(r, g, b)
    chroma = math.hypot(A, B)
    hue = math.atan2(B, A)
    hue = hue - math.pi if hue <= math.pi else hue + math.pi
    return _ref_rgb(L, chroma * math.cos(hue), chroma * math.sin(hue))


def _ref_oklab_axis_flip(r, g, b):
    L, A, B = _ref_oklab(r, g, b)
    return _ref_rgb(L, B, A)


# ---------------------------------------------------------------------------
# Channel invert
# ---------------------------------------------------------------------------

def test_channel_invert_values():
    assert channel_invert(0, 128, 255) == (255, 127, 0)
    assert channel_invert(12, 34, 56) == (243, 221, 199)


def test_channel_invert_is_an_involution_for_every_value():
    values = np.arange(256, dtype=np.uint8)
    rgb = np.stack([values, values[::-1], np.roll(values, 77)], axis=1)
    once = _apply_rgb(rgb, TransformKind.CHANNEL_INVERT)
    assert np.array_equal(once, 255 - rgb.astype(np.int64))
    twice = _apply_rgb(once.astype(np.uint8), TransformKind.CHANNEL_INVERT)
    assert np.array_equal(twice, rgb)


# ---------------------------------------------------------------------------
# HSL
# ---------------------------------------------------------------------------

def test_rgb_to_hsl_primaries():
    assert rgb_to_hsl(255, 0, 0) == (0.0, 1.0, 0.5)
    h, s, l = rgb_to_hsl(0, 255, 0)
    assert (h, s, l) == (120.0, 1.0, 0.5)
    h, s, l = rgb_to_hsl(0, 0, 255)
    assert (h, s, l) == (240.0, 1.0, 0.5)


def test_rgb_to_hsl_achromatic():
    assert rgb_to_hsl(0, 0, 0) == (0.0, 0.0, 0.0)
    assert rgb_to_hsl(255, 255, 255) == (0.0, 0.0, 1.0)
    h, s, _ = rgb_to_hsl(90, 90, 90)
    assert h == 0.0 and s == 0.0


def test_rgb_to_hsl_red_sector_may_be_negative():
    h, _, _ = rgb_to_hsl(255, 0, 51)
    assert -60.0 < h < 0.0


@pytest.mark.parametrize("rgb, expected", [
    ((255, 0, 0), (0, 255, 255)),
    ((0, 255, 255), (255, 0, 0)),
    ((0, 255, 0), (255, 0, 255)),
    ((0, 0, 255), (255, 255, 0)),
    ((0, 0, 0), (0, 0, 0)),
    ((255, 255, 255), (255, 255, 255)),
])
def test_hsl_hue_invert_known_values(rgb, expected):
    assert hsl_hue_invert(*rgb) == expected


def test_hsl_hue_invert_is_the_complement_within_the_channel_range():
    # A 180 degree HSL rotation maps c -> max + min - c; truncation may land
    # one code value low, never high.
    rgb = _random_rgb(4000, seed=1).astype(np.int64)
    expected = rgb.max(axis=1, keepdims=True) + rgb.min(axis=1, keepdims=True) - rgb
    out = _apply_rgb(rgb.astype(np.uint8), TransformKind.HSL_HUE_INVERT)
    diff = expected - out
    assert diff.min() >= 0
    assert diff.max() <= 1


@pytest.mark.parametrize("rgb", [
    (255, 128, 0), (255, 0, 77), (0, 200, 255), (13, 0, 255),
    (255, 255, 0), (0, 255, 1), (254, 0, 255),
])
def test_hsl_hue_invert_twice_restores_saturated_colors(rgb):
    twice = hsl_hue_invert(*hsl_hue_invert(*rgb))
    assert all(abs(a - b) <= 1 for a, b in zip(twice, rgb))


def test_hsl_hue_invert_twice_stays_within_two_code_values_below():
    # Each application truncates, so a double rotation lands up to two code
    # values low on some chromatic colours and never above the input.
    values = np.arange(256, dtype=np.uint8)
    g, b = np.meshgrid(values, values, indexing="ij")
    bgr = np.empty((256 * 256, 3), dtype=np.uint8)
    bgr[:, 1] = g.ravel()
    bgr[:, 0] = b.ravel()

    lowest = 0
    for r in range(256):
        bgr[:, 2] = r
        chromatic = bgr.max(axis=1) != bgr.min(axis=1)
        twice = ColorTransformEngine.apply(bgr.copy(), TransformKind.HSL_HUE_INVERT)
        ColorTransformEngine.apply(twice, TransformKind.HSL_HUE_INVERT)
        diff = twice[chromatic].astype(np.int16) - bgr[chromatic]
        assert diff.max() <= 0, r
        assert diff.min() >= -2, r
        lowest = min(lowest, int(diff.min()))
    assert lowest == -2


def test_hsl_hue_invert_keeps_fractional_hue():
    # hue 60/255 deg rotates to 180.235 deg; a whole-degree hue would give 255
    r, g, b = hsl_hue_invert(255, 1, 0)
    assert (r, b) == (0, 255)
    assert g in (253, 254)


# ---------------------------------------------------------------------------
# Oklab
# ---------------------------------------------------------------------------

def test_rgb_to_oklab_reference_points():
    L, a, b = rgb_to_oklab(255, 255, 255)
    assert L == pytest.approx(1.0, abs=1e-6)
    assert a == pytest.approx(0.0, abs=1e-6)
    assert b == pytest.approx(0.0, abs=1e-6)

    L, a, b = rgb_to_oklab(255, 0, 0)
    assert L == pytest.approx(0.62796, abs=1e-4)
    assert a == pytest.approx(0.22486, abs=1e-4)
    assert b == pytest.approx(0.12585, abs=1e-4)

    assert rgb_to_oklab(0, 0, 0) == (0.0, 0.0, 0.0)


@pytest.mark.parametrize("fn", [oklab_hue_invert, oklab_axis_flip,
                                oklab_hue_invert_fast, oklab_axis_flip_fast])
def test_oklab_transforms_keep_black(fn):
    assert fn(0, 0, 0) == (0, 0, 0)


@pytest.mark.parametrize("fn", [oklab_hue_invert, oklab_axis_flip])
@pytest.mark.parametrize("gray", [1, 17, 64, 128, 200, 254, 255])
def test_oklab_transforms_leave_grays_nearly_unchanged(fn, gray):
    out = fn(gray, gray, gray)
    assert all(abs(c - gray) <= 1 for c in out)


def test_oklab_hue_invert_matches_reference():
    for r, g, b in _random_rgb(300, seed=2).tolist():
        got = oklab_hue_invert(r, g, b)
        want = _ref_oklab_hue_invert(r, g, b)
        assert all(abs(x - y) <= 1 for x, y in zip(got, want)), (r, g, b, got, want)


def test_oklab_axis_flip_matches_reference():
    for r, g, b in _random_rgb(300, seed=3).tolist():
        got = oklab_axis_flip(r, g, b)
        want = _ref_oklab_axis_flip(r, g, b)
        assert all(abs(x - y) <= 1 for x, y in zip(got, want)), (r, g, b, got, want)


def test_oklab_hue_invert_moves_hue_by_half_a_turn():
    r, g, b = oklab_hue_invert(150, 110, 100)
    _, a0, b0 = rgb_to_oklab(150, 110, 100)
    _, a1, b1 = rgb_to_oklab(r, g, b)
    assert a0 * a1 < 0
    assert b0 * b1 < 0


def test_oklab_axis_flip_swaps_a_and_b():
    r, g, b = oklab_axis_flip(150, 110, 100)
    _, a0, b0 = rgb_to_oklab(150, 110, 100)
    _, a1, b1 = rgb_to_oklab(r, g, b)
    assert a1 == pytest.approx(b0, abs=1e-2)
    assert b1 == pytest.approx(a0, abs=1e-2)


def test_oklab_axis_flip_on_the_gray_axis():
    # Grays have a == b == 0, so the swap is a plain round trip; the published
    # inverse matrices plus truncation drop at least one channel by one.
    for v in range(1, 256):
        _, a, b = rgb_to_oklab(v, v, v)
        assert a == pytest.approx(b, abs=1e-6)
        out = oklab_axis_flip(v, v, v)
        assert all(c in (v - 1, v) for c in out), (v, out)
        assert min(out) == v - 1, (v, out)
    assert oklab_axis_flip(1, 1, 1) == (1, 0, 0)


@pytest.mark.parametrize("kind", [TransformKind.OKLAB_HUE_INVERT, TransformKind.OKLAB_AXIS_FLIP])
def test_oklab_transforms_twice_near_identity_for_low_chroma(kind):
    # Low-chroma colours stay inside the gamut, so only truncation separates
    # the round trip from the input.
    base = _random_rgb(500, seed=4, low=60, high=190).astype(np.int64)
    jitter = _random_rgb(500, seed=5, low=0, high=12).astype(np.int64)
    rgb = (base[:, :1] + jitter).astype(np.uint8)
    once = _apply_rgb(rgb, kind)
    twice = _apply_rgb(once.astype(np.uint8), kind)
    assert np.abs(twice - rgb.astype(np.int64)).max() <= 3


# ---------------------------------------------------------------------------
# Approximate variants
# ---------------------------------------------------------------------------

def test_fast_atan2_accuracy():
    for y in np.linspace(-1.0, 1.0, 41):
        for x in np.linspace(-1.0, 1.0, 41):
            approx = pce._fast_atan2(np.float32(y), np.float32(x))
            if x == 0.0 and y == 0.0:
                assert approx == 0.0
                continue
            exact = math.atan2(y, x)
            # the two branch cuts at +/-pi are the same angle
            delta = abs(approx - exact)
            assert min(delta, abs(delta - 2 * math.pi)) < 2e-5


def test_fast_atan2_first_octant_error_bound():
    t = np.linspace(0.0, 1.0, 10001)
    approx = np.array([pce._fast_atan2(np.float32(v), np.float32(1.0)) for v in t])
    assert np.abs(approx - np.arctan(t)).max() < 2e-5


@pytest.mark.parametrize("canonical", [TransformKind.OKLAB_HUE_INVERT, TransformKind.OKLAB_AXIS_FLIP])
def test_fast_variants_track_canonical(canonical):
    rgb = _random_rgb(2000, seed=6)
    exact = _apply_rgb(rgb, canonical)
    fast = _apply_rgb(rgb, canonical.fast_variant)
    diff = np.abs(exact - fast)
    assert diff.max() <= 3
    assert (diff <= 1).mean() > 0.95


def test_fast_variants_are_distinct_kinds():
    assert TransformKind.OKLAB_HUE_INVERT.fast_variant is TransformKind.OKLAB_HUE_INVERT_FAST
    assert TransformKind.OKLAB_AXIS_FLIP.fast_variant is TransformKind.OKLAB_AXIS_FLIP_FAST
    assert TransformKind.CHANNEL_INVERT.fast_variant is TransformKind.CHANNEL_INVERT
    assert TransformKind.HSL_HUE_INVERT.fast_variant is TransformKind.HSL_HUE_INVERT
    assert (TransformKind.OKLAB_HUE_INVERT.pixel_function
            is not TransformKind.OKLAB_HUE_INVERT_FAST.pixel_function)


# ---------------------------------------------------------------------------
# TransformKind & engine
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("name, kind, suffix", [
    ("invert-rgb", TransformKind.CHANNEL_INVERT, "RGBInverted"),
    ("invert-hue", TransformKind.HSL_HUE_INVERT, "HSLHueInverted"),
    ("invert-oklab", TransformKind.OKLAB_HUE_INVERT, "OklabHueInverted"),
    ("flip-oklab-channels", TransformKind.OKLAB_AXIS_FLIP, "OklabABFlipped"),
])
def test_symbolic_names(name, kind, suffix):
    assert TransformKind.from_name(name) is kind
    assert TransformKind.from_name(kind) is kind
    assert kind.suffix == suffix


def test_unknown_name():
    with pytest.raises(ValueError, match="Valid names"):
        TransformKind.from_name("sepia")


@pytest.mark.parametrize("kind", list(TransformKind))
def test_batch_matches_scalar(kind):
    rgb = _random_rgb(200, seed=7)
    batch = _apply_rgb(rgb, kind)
    scalar = np.array([kind.pixel_function(*px) for px in rgb.tolist()], dtype=np.int64)
    assert np.array_equal(batch, scalar)


@pytest.mark.parametrize("kind", CANONICAL)
def test_parallel_matches_serial(kind):
    grid = _random_rgb(64 * 48, seed=8).reshape(64, 48, 3)
    serial = grid.copy()
    parallel = grid.copy()
    ColorTransformEngine.apply(serial, kind, parallel=False)
    ColorTransformEngine.apply(parallel, kind, parallel=True)
    assert np.array_equal(serial, parallel)


def test_set_parallel_selects_kernel():
    try:
        pce.set_parallel(True)
        assert ColorTransformEngine.kernel_for("invert-rgb") is pce._KERNELS[(TransformKind.CHANNEL_INVERT, True)]
        pce.set_parallel(False)
        assert ColorTransformEngine.kernel_for("invert-rgb") is pce._KERNELS[(TransformKind.CHANNEL_INVERT, False)]
        assert ColorTransformEngine.kernel_for("invert-rgb", parallel=True) is pce._KERNELS[(TransformKind.CHANNEL_INVERT, True)]
    finally:
        pce.set_parallel(False)


def test_apply_reads_storage_order():
    # stored B, G, R: a pure red pixel
    px = np.array([0, 0, 255], dtype=np.uint8)
    ColorTransformEngine.apply(px, TransformKind.HSL_HUE_INVERT)
    # cyan, stored B, G, R
    assert px.tolist() == [255, 255, 0]


def test_apply_writes_through_views():
    grid = np.zeros((2, 4, 3), dtype=np.uint8)
    view = grid[:, 1:3]
    ColorTransformEngine.apply(view, TransformKind.CHANNEL_INVERT)
    assert grid[:, 1:3].min() == 255
    assert grid[:, 0].max() == 0 and grid[:, 3].max() == 0


def test_apply_rejects_bad_input():
    with pytest.raises(ValueError, match="uint8"):
        ColorTransformEngine.apply(np.zeros((2, 3), dtype=np.float64), "invert-rgb")
    with pytest.raises(ValueError, match="dimension"):
        ColorTransformEngine.apply(np.zeros((2, 4), dtype=np.uint8), "invert-rgb")
    ro = np.zeros((2, 3), dtype=np.uint8)
    ro.flags.writeable = False
    with pytest.raises(ValueError, match="read-only"):
        ColorTransformEngine.apply(ro, "invert-rgb")


def test_transform_pixel_returns_python_ints():
    out = ColorTransformEngine.transform_pixel("invert-rgb", 1, 2, 3)
    assert out == (254, 253, 252)
    assert all(type(c) is int for c in out)
