# -*- coding: utf-8 -*-
"""
Prism: Recolouring legacy bitmaps through perceptual colour spaces
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: Raster addressing for 24-bit row-padded pixel data.

Rows are padded to a multiple of 4 bytes:
    unpadded = width * bytes_per_pixel
    padding  = (4 - unpadded % 4) % 4
    stride   = unpadded + padding

Row ``y`` starts at ``data_offset + y * stride`` in buffer order.  The sign
of the header's height (bottom-up vs top-down storage) is never used to
re-order rows; every transform in this package is per-pixel, so the visual
orientation does not matter.  Negative heights are rejected instead.
"""

from __future__ import annotations

from typing import Final, NamedTuple, Tuple, Union

import numpy as np

from prism_bitmap import (
    FileHeader,
    InfoHeader,
    InfoHeaderV1,
    UnknownInfoHeader,
    UnsupportedRaster,
)

__all__ = [
    "BYTES_PER_PIXEL",
    "SUPPORTED_BIT_COUNT",
    "ROW_ALIGNMENT",
    "row_layout",
    "pixel_offset",
    "RasterLayout",
    "pixel_view",
]

SUPPORTED_BIT_COUNT: Final[int] = 24
BYTES_PER_PIXEL: Final[int] = SUPPORTED_BIT_COUNT // 8
ROW_ALIGNMENT: Final[int] = 4


def row_layout(width: int, bit_count: int) -> Tuple[int, int]:
    """Returns ``(unpadded_row_bytes, padding_bytes)`` for one row."""
    bytes_per_pixel = bit_count // 8
    unpadded = width * bytes_per_pixel
    padding = (ROW_ALIGNMENT - unpadded % ROW_ALIGNMENT) % ROW_ALIGNMENT
    return unpadded, padding


def pixel_offset(data_offset: int, stride: int, x: int, y: int,
                 bytes_per_pixel: int = BYTES_PER_PIXEL) -> int:
    """Byte offset of pixel (x, y).  No bounds check."""
    return data_offset + y * stride + x * bytes_per_pixel


class RasterLayout(NamedTuple):
    """
    Physical geometry of the pixel grid inside the buffer.

    Built once from validated headers; the pipeline relies on it to keep
    every access within ``[0, width) x [0, height)`` and inside the buffer.
    """
    width: int
    height: int
    bytes_per_pixel: int
    unpadded_row_bytes: int
    padding_bytes: int
    stride: int
    data_offset: int

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def offset(self, x: int, y: int) -> int:
        return pixel_offset(self.data_offset, self.stride, x, y, self.bytes_per_pixel)

    @classmethod
    def from_headers(cls, file_header: FileHeader, info_header: InfoHeader,
                     buffer_size: int) -> "RasterLayout":
        """
        Derives the layout and checks it is addressable.

        Raises:
            UnsupportedRaster: unknown header, bit depth other than 24,
                compressed data, negative dimensions, or rows that would run
                past the end of the buffer.
        """
        if isinstance(info_header, UnknownInfoHeader):
            raise UnsupportedRaster(
                f"Cannot address pixels behind an unknown {info_header.declared_size}-byte header."
            )
        if info_header.bit_count != SUPPORTED_BIT_COUNT:
            raise UnsupportedRaster(
                f"Only {SUPPORTED_BIT_COUNT}-bit rasters are supported, got {info_header.bit_count}."
            )
        if isinstance(info_header, InfoHeaderV1) and info_header.compression != 0:
            raise UnsupportedRaster(
                f"Compressed rasters are not supported (method {info_header.compression})."
            )
        if info_header.width < 0:
            raise UnsupportedRaster(f"Negative width {info_header.width}.")
        if info_header.height < 0:
            raise UnsupportedRaster(
                f"Top-down rasters (height {info_header.height}) are not supported."
            )

        width, height = info_header.width, info_header.height
        unpadded, padding = row_layout(width, info_header.bit_count)
        stride = unpadded + padding
        data_offset = file_header.data_offset

        # The last row's padding may be omitted by some writers.
        end = data_offset + (height - 1) * stride + unpadded if height > 0 else data_offset
        if end > buffer_size:
            raise UnsupportedRaster(
                f"Pixel rows need {end} bytes but the buffer holds {buffer_size}."
            )

        return cls(width, height, info_header.bit_count // 8,
                   unpadded, padding, stride, data_offset)


def pixel_view(buffer: Union[bytearray, memoryview, np.ndarray],
               layout: RasterLayout) -> np.ndarray:
    """
    Returns a ``(height, width, 3)`` uint8 view onto *buffer*.

    Channels are in storage order (blue, green, red).  Padding bytes are not
    part of the view.  Writes through the view land in *buffer* directly,
    so *buffer* must be writable for in-place transforms.
    """
    return np.ndarray(
        shape=(layout.height, layout.width, layout.bytes_per_pixel),
        dtype=np.uint8,
        buffer=buffer,
        offset=layout.data_offset,
        strides=(layout.stride, layout.bytes_per_pixel, 1),
    )
