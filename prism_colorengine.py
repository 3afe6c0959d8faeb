# -*- coding: utf-8 -*-
"""
Prism: Recolouring legacy bitmaps through perceptual colour spaces
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Pixel Colour Engine
===================
Four pure, stateless pixel-to-pixel transforms over 8-bit (r, g, b) triples,
compiled with Numba and applied in place to a bitmap's pixel grid.

Transforms:
    channel_invert     c' = 255 - c for every channel (an involution).
    hsl_hue_invert     RGB -> HSL, hue + 180 deg (mod 360), HSL -> RGB.
    oklab_hue_invert   RGB -> Oklab, hue rotated by pi in the (a, b) plane,
                       Oklab -> RGB.
    oklab_axis_flip    RGB -> Oklab, swap a and b, Oklab -> RGB.

Precision contract:
    The canonical transforms run in float64 with exact ``math`` functions and
    ``fastmath=False``.  Every float -> 8-bit conversion truncates toward
    zero after scaling by 255; nothing is rounded.  Truncation means a
    forward/inverse round trip may land one code value low.

    ``oklab_hue_invert_fast`` and ``oklab_axis_flip_fast`` are the
    approximate variants: float32 arithmetic, ``fastmath=True`` and a
    polynomial ``atan2``.  They are separate ``TransformKind`` members and are
    never substituted for the canonical ones behind the caller's back.

Batch application:
    ``ColorTransformEngine.apply`` resolves the kernel once per call; the
    per-pixel loop runs inside a compiled kernel over a (rows, cols, 3) B,G,R
    view.  ``set_parallel(True)`` swaps in ``prange`` row-parallel kernels.
    Rows never overlap, so no synchronisation is needed.

References:
    - IEC 61966-2-1:1999 (sRGB Standard)
    - Ottosson, B. (2020). "A perceptual color space for image processing".
    - Abramowitz, M. & Stegun, I. A. (1964). "Handbook of Mathematical
      Functions", eq. 4.4.49.
"""

import math
from enum import Enum
from typing import Callable, Dict, Final, Optional, Tuple, Union

import numpy as np
from numba import njit, prange

__all__ = [
    # --- Type Aliases ---
    "RGBTuple",

    # --- Constants ---
    "M1_OKLAB_SRGB",
    "M2_OKLAB_SRGB",
    "M1_OKLAB_SRGB_INV",
    "M2_OKLAB_SRGB_INV",

    # --- Configuration ---
    "set_parallel",

    # --- Transforms ---
    "channel_invert",
    "hsl_hue_invert",
    "oklab_hue_invert",
    "oklab_axis_flip",
    "oklab_hue_invert_fast",
    "oklab_axis_flip_fast",

    # --- Conversions ---
    "rgb_to_hsl",
    "hsl_to_rgb",
    "rgb_to_oklab",
    "oklab_to_rgb",

    # --- Classes ---
    "TransformKind",
    "ColorTransformEngine",
]

RGBTuple = Tuple[int, int, int]

# --- Constants & Matrices ---

# Oklab Matrices (sRGB oriented)
# M1: linear sRGB -> cone response (LMS); M2: cube-rooted LMS -> (L, a, b).
M1_OKLAB_SRGB: Final[np.ndarray] = np.array([
    [0.4122214708, 0.5363325363, 0.0514459929],
    [0.2119034982, 0.6806995451, 0.1073969566],
    [0.0883024619, 0.2817188376, 0.6299787005]
], dtype=np.float64)

M2_OKLAB_SRGB: Final[np.ndarray] = np.array([
    [0.2104542553, 0.7936177850, -0.0040720468],
    [1.9779984951, -2.4285922050, 0.4505937099],
    [0.0259040371, 0.7827717662, -0.8086757660]
], dtype=np.float64)

# Published inverses (Ottosson 2020), not np.linalg.inv of the above.
# Bit-for-bit results depend on these exact coefficients.
M2_OKLAB_SRGB_INV: Final[np.ndarray] = np.array([
    [1.0,  0.3963377774,  0.2158037573],
    [1.0, -0.1055613458, -0.0638541728],
    [1.0, -0.0894841775, -1.2914855480]
], dtype=np.float64)

M1_OKLAB_SRGB_INV: Final[np.ndarray] = np.array([
    [ 4.0767416621, -3.3077115913,  0.2309699292],
    [-1.2684380046,  2.6097574011, -0.3413193965],
    [-0.0041960863, -0.7034186147,  1.7076147010]
], dtype=np.float64)

# float32 copies for the approximate kernels
_M1_F32: Final[np.ndarray] = M1_OKLAB_SRGB.astype(np.float32)
_M2_F32: Final[np.ndarray] = M2_OKLAB_SRGB.astype(np.float32)
_M1_INV_F32: Final[np.ndarray] = M1_OKLAB_SRGB_INV.astype(np.float32)
_M2_INV_F32: Final[np.ndarray] = M2_OKLAB_SRGB_INV.astype(np.float32)

# sRGB transfer thresholds.  The decode threshold is 0.0405 rather than the
# IEC 0.04045; both sides of the gap agree to ~1e-6 so no code value changes.
SRGB_DECODE_THRESHOLD: Final[float] = 0.0405
SRGB_ENCODE_THRESHOLD: Final[float] = 0.0031308

_F32_PI: Final[np.float32] = np.float32(math.pi)
_F32_HALF_PI: Final[np.float32] = np.float32(math.pi / 2.0)
_F32_ZERO: Final[np.float32] = np.float32(0.0)
_F32_ONE: Final[np.float32] = np.float32(1.0)
_F32_255: Final[np.float32] = np.float32(255.0)
_F32_DECODE_THRESHOLD: Final[np.float32] = np.float32(SRGB_DECODE_THRESHOLD)
_F32_ENCODE_THRESHOLD: Final[np.float32] = np.float32(SRGB_ENCODE_THRESHOLD)
_F32_12_92: Final[np.float32] = np.float32(12.92)
_F32_0_055: Final[np.float32] = np.float32(0.055)
_F32_1_055: Final[np.float32] = np.float32(1.055)
_F32_GAMMA: Final[np.float32] = np.float32(2.4)
_F32_INV_GAMMA: Final[np.float32] = np.float32(1.0 / 2.4)
_F32_THIRD: Final[np.float32] = np.float32(1.0 / 3.0)
# atan minimax coefficients (Abramowitz & Stegun 4.4.49), |error| <= 1e-5 rad on [0, 1]
_F32_ATAN_A1: Final[np.float32] = np.float32(0.9998660)
_F32_ATAN_A3: Final[np.float32] = np.float32(-0.3302995)
_F32_ATAN_A5: Final[np.float32] = np.float32(0.1801410)
_F32_ATAN_A7: Final[np.float32] = np.float32(-0.0851330)
_F32_ATAN_A9: Final[np.float32] = np.float32(0.0208351)


# --- Runtime Configuration ---
# When True, batch kernels distribute rows over threads with numba.prange.
#
# Toggle at runtime via:
#     import prism_colorengine as pce
#     pce.set_parallel(True)   # row-parallel kernels
#     pce.set_parallel(False)  # back to serial (default)
_PARALLEL: bool = False

def set_parallel(enabled: bool = True) -> None:
    """
    Toggle between serial (default) and row-parallel batch kernels.

    Args:
        enabled: If True, use ``prange`` kernels.
    """
    global _PARALLEL
    _PARALLEL = bool(enabled)


# =============================================================================
# 1. SHARED SCALAR HELPERS
# =============================================================================

@njit(cache=True)
def _to_channel(v):
    """Clamp to [0, 255] and truncate toward zero."""
    if v <= 0.0:
        return 0
    if v >= 255.0:
        return 255
    return int(v)


# =============================================================================
# 2. CHANNEL INVERT
# =============================================================================

@njit(cache=True)
def channel_invert(r, g, b):
    """Bitwise complement of each 8-bit channel."""
    return 255 - r, 255 - g, 255 - b


# =============================================================================
# 3. HSL
# =============================================================================

@njit(cache=True)
def rgb_to_hsl(r, g, b):
    """
    8-bit RGB -> (hue [deg], saturation, lightness).

    Hue is 0 for achromatic input.  The red-sector hue keeps the sign of
    ``fmod`` and may be slightly negative; the rotation below absorbs that.
    Saturation is 0 when max == min, which also covers pure black and white
    where both saturation denominators vanish.
    """
    xr = r / 255.0
    xg = g / 255.0
    xb = b / 255.0

    mx = max(xr, max(xg, xb))
    mn = min(xr, min(xg, xb))

    if mx == mn:
        hue = 0.0
    elif mx == xr:
        hue = np.fmod(60.0 * ((xg - xb) / (mx - mn)), 360.0)
    elif mx == xg:
        hue = 60.0 * ((xb - xr) / (mx - mn)) + 120.0
    else:
        hue = 60.0 * ((xr - xg) / (mx - mn)) + 240.0

    light = (mx + mn) / 2.0

    if mx == mn:
        saturation = 0.0
    elif light < 0.5:
        saturation = (mx - mn) / (mx + mn)
    else:
        saturation = (mx - mn) / (2.0 - mx - mn)

    return hue, saturation, light


@njit(cache=True)
def hsl_to_rgb(h, s, l):
    """(hue [deg], saturation, lightness) -> truncated 8-bit RGB."""
    chroma = (1.0 - abs(2.0 * l - 1.0)) * s
    intermediate = chroma * (1.0 - abs(np.fmod(h / 60.0, 2.0) - 1.0))

    xr = 0.0
    xg = 0.0
    xb = 0.0
    if h < 60.0:
        xr = chroma
        xg = intermediate
    elif h < 120.0:
        xr = intermediate
        xg = chroma
    elif h < 180.0:
        xg = chroma
        xb = intermediate
    elif h < 240.0:
        xg = intermediate
        xb = chroma
    elif h < 300.0:
        xr = intermediate
        xb = chroma
    else:
        xr = chroma
        xb = intermediate

    offset = l - chroma / 2.0
    return (_to_channel((xr + offset) * 255.0),
            _to_channel((xg + offset) * 255.0),
            _to_channel((xb + offset) * 255.0))


@njit(cache=True)
def hsl_hue_invert(r, g, b):
    """
    Rotates the HSL hue by 180 degrees.

    The rotated hue keeps its fractional part; it is not truncated to whole
    degrees before converting back.
    """
    hue, saturation, light = rgb_to_hsl(r, g, b)
    hue = np.fmod(hue + 180.0, 360.0)
    return hsl_to_rgb(hue, saturation, light)


# =============================================================================
# 4. OKLAB (canonical, float64)
# =============================================================================

@njit(cache=True)
def _srgb_to_linear(c):
    """sRGB EOTF on an 8-bit code value."""
    v = c / 255.0
    if v <= SRGB_DECODE_THRESHOLD:
        return v / 12.92
    return ((v + 0.055) / 1.055) ** 2.4

@njit(cache=True)
def _linear_to_srgb(v):
    """sRGB OETF, result in [0, 1] for in-gamut input."""
    if v <= SRGB_ENCODE_THRESHOLD:
        return 12.92 * v
    return 1.055 * (v ** (1.0 / 2.4)) - 0.055

@njit(cache=True)
def _cbrt(v):
    if v < 0.0:
        return -((-v) ** (1.0 / 3.0))
    return v ** (1.0 / 3.0)


@njit(cache=True)
def rgb_to_oklab(r, g, b):
    """8-bit sRGB -> Oklab (L, a, b)."""
    rl = _srgb_to_linear(r)
    gl = _srgb_to_linear(g)
    bl = _srgb_to_linear(b)

    M1 = M1_OKLAB_SRGB
    l = _cbrt(M1[0, 0] * rl + M1[0, 1] * gl + M1[0, 2] * bl)
    m = _cbrt(M1[1, 0] * rl + M1[1, 1] * gl + M1[1, 2] * bl)
    s = _cbrt(M1[2, 0] * rl + M1[2, 1] * gl + M1[2, 2] * bl)

    M2 = M2_OKLAB_SRGB
    return (M2[0, 0] * l + M2[0, 1] * m + M2[0, 2] * s,
            M2[1, 0] * l + M2[1, 1] * m + M2[1, 2] * s,
            M2[2, 0] * l + M2[2, 1] * m + M2[2, 2] * s)


@njit(cache=True)
def oklab_to_rgb(L, A, B):
    """Oklab -> 8-bit sRGB, clamped to [0, 255] then truncated."""
    M2i = M2_OKLAB_SRGB_INV
    l = M2i[0, 0] * L + M2i[0, 1] * A + M2i[0, 2] * B
    m = M2i[1, 0] * L + M2i[1, 1] * A + M2i[1, 2] * B
    s = M2i[2, 0] * L + M2i[2, 1] * A + M2i[2, 2] * B

    l = l * l * l
    m = m * m * m
    s = s * s * s

    M1i = M1_OKLAB_SRGB_INV
    rl = M1i[0, 0] * l + M1i[0, 1] * m + M1i[0, 2] * s
    gl = M1i[1, 0] * l + M1i[1, 1] * m + M1i[1, 2] * s
    bl = M1i[2, 0] * l + M1i[2, 1] * m + M1i[2, 2] * s

    return (_to_channel(_linear_to_srgb(rl) * 255.0),
            _to_channel(_linear_to_srgb(gl) * 255.0),
            _to_channel(_linear_to_srgb(bl) * 255.0))


@njit(cache=True)
def oklab_hue_invert(r, g, b):
    """
    Rotates the Oklab hue by pi at constant lightness and chroma.

    The rotation branches on ``hue <= pi`` instead of wrapping with a modulo;
    atan2 returns (-pi, pi], so the else-branch is only reached through
    floating-point edge cases and the boundary pixel keeps its exact value.
    """
    L, A, B = rgb_to_oklab(r, g, b)

    chroma = math.sqrt(A * A + B * B)
    hue = math.atan2(B, A)

    if hue <= math.pi:
        hue -= math.pi
    else:
        hue += math.pi

    return oklab_to_rgb(L, chroma * math.cos(hue), chroma * math.sin(hue))


@njit(cache=True)
def oklab_axis_flip(r, g, b):
    """Exchanges the Oklab a and b axes."""
    L, A, B = rgb_to_oklab(r, g, b)
    A, B = B, A
    return oklab_to_rgb(L, A, B)


# =============================================================================
# 5. OKLAB (approximate, float32)
# =============================================================================
# NOTE: fastmath=True allows reassociation and relaxed IEEE compliance.  These
# kernels trade accuracy for speed and can differ from the canonical ones by
# a few code values near gamut and hue boundaries.

@njit(cache=True, fastmath=True)
def _fast_atan2(y, x):
    """Polynomial atan2 in float32; returns 0 for the origin."""
    ax = abs(x)
    ay = abs(y)
    if ax == _F32_ZERO and ay == _F32_ZERO:
        return _F32_ZERO
    if ay > ax:
        t = ax / ay
    else:
        t = ay / ax
    t2 = t * t
    angle = ((((_F32_ATAN_A9 * t2 + _F32_ATAN_A7) * t2 + _F32_ATAN_A5) * t2
              + _F32_ATAN_A3) * t2 + _F32_ATAN_A1) * t
    if ay > ax:
        angle = _F32_HALF_PI - angle
    if x < _F32_ZERO:
        angle = _F32_PI - angle
    if y < _F32_ZERO:
        angle = -angle
    return angle

@njit(cache=True, fastmath=True)
def _srgb_to_linear_f32(c):
    v = np.float32(c) / _F32_255
    if v <= _F32_DECODE_THRESHOLD:
        return v / _F32_12_92
    return ((v + _F32_0_055) / _F32_1_055) ** _F32_GAMMA

@njit(cache=True, fastmath=True)
def _linear_to_srgb_f32(v):
    if v <= _F32_ENCODE_THRESHOLD:
        return _F32_12_92 * v
    return _F32_1_055 * (v ** _F32_INV_GAMMA) - _F32_0_055

@njit(cache=True, fastmath=True)
def _cbrt_f32(v):
    if v < _F32_ZERO:
        return -((-v) ** _F32_THIRD)
    return v ** _F32_THIRD

@njit(cache=True, fastmath=True)
def _rgb_to_oklab_f32(r, g, b):
    rl = _srgb_to_linear_f32(r)
    gl = _srgb_to_linear_f32(g)
    bl = _srgb_to_linear_f32(b)

    M1 = _M1_F32
    l = _cbrt_f32(M1[0, 0] * rl + M1[0, 1] * gl + M1[0, 2] * bl)
    m = _cbrt_f32(M1[1, 0] * rl + M1[1, 1] * gl + M1[1, 2] * bl)
    s = _cbrt_f32(M1[2, 0] * rl + M1[2, 1] * gl + M1[2, 2] * bl)

    M2 = _M2_F32
    return (M2[0, 0] * l + M2[0, 1] * m + M2[0, 2] * s,
            M2[1, 0] * l + M2[1, 1] * m + M2[1, 2] * s,
            M2[2, 0] * l + M2[2, 1] * m + M2[2, 2] * s)

@njit(cache=True, fastmath=True)
def _oklab_to_rgb_f32(L, A, B):
    M2i = _M2_INV_F32
    l = M2i[0, 0] * L + M2i[0, 1] * A + M2i[0, 2] * B
    m = M2i[1, 0] * L + M2i[1, 1] * A + M2i[1, 2] * B
    s = M2i[2, 0] * L + M2i[2, 1] * A + M2i[2, 2] * B

    l = l * l * l
    m = m * m * m
    s = s * s * s

    M1i = _M1_INV_F32
    rl = M1i[0, 0] * l + M1i[0, 1] * m + M1i[0, 2] * s
    gl = M1i[1, 0] * l + M1i[1, 1] * m + M1i[1, 2] * s
    bl = M1i[2, 0] * l + M1i[2, 1] * m + M1i[2, 2] * s

    return (_to_channel(_linear_to_srgb_f32(rl) * _F32_255),
            _to_channel(_linear_to_srgb_f32(gl) * _F32_255),
            _to_channel(_linear_to_srgb_f32(bl) * _F32_255))


@njit(cache=True, fastmath=True)
def oklab_hue_invert_fast(r, g, b):
    """Approximate ``oklab_hue_invert`` (float32, polynomial atan2)."""
    L, A, B = _rgb_to_oklab_f32(r, g, b)

    chroma = math.sqrt(A * A + B * B)
    hue = _fast_atan2(B, A)

    if hue <= _F32_PI:
        hue -= _F32_PI
    else:
        hue += _F32_PI

    return _oklab_to_rgb_f32(L, chroma * math.cos(hue), chroma * math.sin(hue))


@njit(cache=True, fastmath=True)
def oklab_axis_flip_fast(r, g, b):
    """Approximate ``oklab_axis_flip`` (float32)."""
    L, A, B = _rgb_to_oklab_f32(r, g, b)
    return _oklab_to_rgb_f32(L, B, A)


# =============================================================================
# 6. BATCH KERNELS
# =============================================================================

def _build_kernel(pixel_fn: Callable, parallel: bool) -> Callable:
    """
    Compiles an in-place kernel over a (rows, cols, 3) B,G,R uint8 array.

    The pixel function is bound at build time, so the inner loop has no
    dispatch.  Not cached to disk: numba cannot cache closures.
    """
    @njit(parallel=parallel)
    def _kernel(pixels):
        for y in prange(pixels.shape[0]):
            row = pixels[y]
            for x in range(row.shape[0]):
                px = row[x]
                r, g, b = pixel_fn(px[2], px[1], px[0])
                px[2] = r
                px[1] = g
                px[0] = b
    return _kernel


class TransformKind(Enum):
    """
    The closed set of pixel transforms.

    Values are stable symbolic names, suitable for command-line flags and
    configuration files.
    """
    CHANNEL_INVERT = "invert-rgb"
    HSL_HUE_INVERT = "invert-hue"
    OKLAB_HUE_INVERT = "invert-oklab"
    OKLAB_AXIS_FLIP = "flip-oklab-channels"
    OKLAB_HUE_INVERT_FAST = "invert-oklab-fast"
    OKLAB_AXIS_FLIP_FAST = "flip-oklab-channels-fast"

    @property
    def suffix(self) -> str:
        """Default output file-name suffix."""
        return _SUFFIXES[self]

    @property
    def pixel_function(self) -> Callable[[int, int, int], RGBTuple]:
        return _PIXEL_FUNCTIONS[self]

    @property
    def fast_variant(self) -> "TransformKind":
        """The approximate counterpart, or self when there is none."""
        return _FAST_VARIANTS.get(self, self)

    @classmethod
    def from_name(cls, name: Union[str, "TransformKind"]) -> "TransformKind":
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(f"Unknown transform '{name}'. Valid names: {valid}") from None


_SUFFIXES: Final[Dict[TransformKind, str]] = {
    TransformKind.CHANNEL_INVERT: "RGBInverted",
    TransformKind.HSL_HUE_INVERT: "HSLHueInverted",
    TransformKind.OKLAB_HUE_INVERT: "OklabHueInverted",
    TransformKind.OKLAB_AXIS_FLIP: "OklabABFlipped",
    TransformKind.OKLAB_HUE_INVERT_FAST: "OklabHueInvertedFast",
    TransformKind.OKLAB_AXIS_FLIP_FAST: "OklabABFlippedFast",
}

_PIXEL_FUNCTIONS: Final[Dict[TransformKind, Callable]] = {
    TransformKind.CHANNEL_INVERT: channel_invert,
    TransformKind.HSL_HUE_INVERT: hsl_hue_invert,
    TransformKind.OKLAB_HUE_INVERT: oklab_hue_invert,
    TransformKind.OKLAB_AXIS_FLIP: oklab_axis_flip,
    TransformKind.OKLAB_HUE_INVERT_FAST: oklab_hue_invert_fast,
    TransformKind.OKLAB_AXIS_FLIP_FAST: oklab_axis_flip_fast,
}

_FAST_VARIANTS: Final[Dict[TransformKind, TransformKind]] = {
    TransformKind.OKLAB_HUE_INVERT: TransformKind.OKLAB_HUE_INVERT_FAST,
    TransformKind.OKLAB_AXIS_FLIP: TransformKind.OKLAB_AXIS_FLIP_FAST,
}

# (kind, parallel) -> compiled-on-first-call kernel
_KERNELS: Final[Dict[Tuple[TransformKind, bool], Callable]] = {
    (kind, parallel): _build_kernel(fn, parallel)
    for kind, fn in _PIXEL_FUNCTIONS.items()
    for parallel in (False, True)
}


# =============================================================================
# 7. ENGINE
# =============================================================================

class ColorTransformEngine:
    """Static entry points for applying a ``TransformKind``."""

    @staticmethod
    def kernel_for(kind: Union[str, TransformKind], parallel: Optional[bool] = None) -> Callable:
        """Resolves the batch kernel once, honouring ``set_parallel`` by default."""
        kind = TransformKind.from_name(kind)
        if parallel is None:
            parallel = _PARALLEL
        return _KERNELS[(kind, bool(parallel))]

    @staticmethod
    def apply(pixels: np.ndarray, kind: Union[str, TransformKind],
              parallel: Optional[bool] = None) -> np.ndarray:
        """
        Transforms *pixels* in place and returns the same array.

        Args:
            pixels: uint8 array of shape (3,), (N, 3) or (rows, cols, 3),
                channels in storage order (blue, green, red).  Views are
                fine; writes go through to the underlying buffer.
            kind: Transform to apply (member or symbolic name).
            parallel: Override the module-wide ``set_parallel`` setting.
        """
        if pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 pixels, got {pixels.dtype}")
        if pixels.ndim not in (1, 2, 3) or pixels.shape[-1] != 3:
            raise ValueError(f"Expected last dimension size 3, got shape {pixels.shape}")
        if not pixels.flags.writeable:
            raise ValueError("Pixel array is read-only")

        kernel = ColorTransformEngine.kernel_for(kind, parallel)
        # Reshape to rows x cols x 3 through views so writes reach the caller.
        if pixels.ndim == 1:
            grid = pixels[np.newaxis, np.newaxis, :]
        elif pixels.ndim == 2:
            grid = pixels[np.newaxis, :, :]
        else:
            grid = pixels
        kernel(grid)
        return pixels

    @staticmethod
    def transform_pixel(kind: Union[str, TransformKind], r: int, g: int, b: int) -> RGBTuple:
        """Applies one transform to a single (r, g, b) triple."""
        kind = TransformKind.from_name(kind)
        nr, ng, nb = kind.pixel_function(r, g, b)
        return int(nr), int(ng), int(nb)
