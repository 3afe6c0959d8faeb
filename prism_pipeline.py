# -*- coding: utf-8 -*-
"""
Prism: Recolouring legacy bitmaps through perceptual colour spaces
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: Buffer-in, buffer-out recolouring pipeline.

    bytes -> decode -> require_valid -> RasterLayout -> pixel_view
          -> ColorTransformEngine.apply (in place) -> bytes

Every check runs before the first pixel is written, so a rejected buffer is
never partially modified.  Header bytes, row padding and the buffer length
are untouched; only pixel colour bytes change.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Optional, Union

from prism_bitmap import (
    BMP_SIGNATURE,
    FileHeader,
    InfoHeader,
    decode,
    require_valid,
)
from prism_colorengine import ColorTransformEngine, TransformKind
from prism_raster import RasterLayout, pixel_view

__all__ = [
    "BitmapImage",
    "load_bitmap",
    "recolor_inplace",
    "recolor",
]

logger = logging.getLogger(__name__)

BufferLike = Union[bytes, bytearray, memoryview]


@dataclass(slots=True, frozen=True)
class BitmapImage:
    """Decoded, validated headers plus the raster geometry they imply."""
    file_header: FileHeader
    info_header: InfoHeader
    layout:      RasterLayout


def load_bitmap(buffer: BufferLike) -> BitmapImage:
    """
    Decodes and validates *buffer* without touching pixel data.

    Raises:
        BufferTooSmall, UnsupportedShape, InconsistentHeader: header problems.
        UnsupportedRaster: valid headers describing a raster this package
            cannot address.
    """
    size = len(buffer)
    file_header, info_header = decode(buffer)
    require_valid(file_header, info_header, size)

    if file_header.signature != BMP_SIGNATURE:
        warnings.warn(
            f"Unexpected bitmap signature 0x{file_header.signature:04X} "
            f"(expected 0x{BMP_SIGNATURE:04X}); continuing.",
            stacklevel=2,
        )

    layout = RasterLayout.from_headers(file_header, info_header, size)
    logger.debug(
        "[Bitmap] %s, %dx%d, stride=%d (padding %d), data at %d",
        info_header.shape.label, layout.width, layout.height,
        layout.stride, layout.padding_bytes, layout.data_offset,
    )
    return BitmapImage(file_header, info_header, layout)


def recolor_inplace(buffer: bytearray, kind: Union[str, TransformKind],
                    parallel: Optional[bool] = None) -> BitmapImage:
    """
    Validates *buffer* and rewrites every pixel through *kind* in place.

    Args:
        buffer: Whole bitmap file contents; must be writable.
        kind: Transform to apply (member or symbolic name).
        parallel: Override ``prism_colorengine.set_parallel`` for this call.

    Returns:
        The decoded headers and layout, for reporting.
    """
    if not isinstance(buffer, bytearray):
        raise TypeError(f"In-place recolouring needs a bytearray, got {type(buffer).__name__}")

    kind = TransformKind.from_name(kind)
    image = load_bitmap(buffer)

    pixels = pixel_view(buffer, image.layout)
    logger.debug("[Pipeline] Applying %s to %d pixels", kind.value, image.layout.pixel_count)
    ColorTransformEngine.apply(pixels, kind, parallel)
    return image


def recolor(buffer: BufferLike, kind: Union[str, TransformKind],
            parallel: Optional[bool] = None) -> bytearray:
    """Returns a recoloured copy of *buffer*; the input is left untouched."""
    out = bytearray(buffer)
    recolor_inplace(out, kind, parallel)
    return out
