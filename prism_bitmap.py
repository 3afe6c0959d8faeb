# -*- coding: utf-8 -*-
"""
Prism: Recolouring legacy bitmaps through perceptual colour spaces
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: Bitmap container decoder and validator.

Layout (little-endian, no padding between fields):
──────────────────────────────────────────────────
  File header (14 bytes):
      signature(2) file_size(4) reserved(4) data_offset(4)

  Info header, selected by its own leading ``declared_size`` field:
      CORE  (12)   declared_size, width(u16), height(u16), planes, bit_count
      V1    (40)   width/height become signed 32-bit, adds compression,
                   image_size, x/y pixels-per-metre, colors used/important
      V2    (52)   + red/green/blue masks
      V3    (56)   + alpha mask
      V4   (108)   + colour-space type, 3 endpoints (16.16 triads), 3 gammas
      V5   (124)   + rendering intent, ICC profile offset/size, reserved

Every field is read through a numpy structured dtype at an explicit offset,
width and byte order.  V1..V5 are strict byte-for-byte extensions of each
other, which the dataclass hierarchy mirrors (InfoHeaderV5 is-a InfoHeaderV4
is-a ... InfoHeaderV1).  CORE is a different layout and stands alone.

Validation is a single conjunction of seven invariants.  ``validate`` answers
pass/fail; ``check_invariants`` lists every failed invariant for diagnostics;
``require_valid`` turns a failure into a typed exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar, Dict, Final, List, Optional, Tuple, Type, Union

import numpy as np

__all__ = [
    # --- Constants ---
    "FILE_HEADER_SIZE",
    "MIN_BUFFER_SIZE",
    "BMP_SIGNATURE",
    "VALID_HEADER_SIZES",
    "VALID_DATA_OFFSETS",

    # --- Errors ---
    "BitmapFormatError",
    "BufferTooSmall",
    "UnsupportedShape",
    "InconsistentHeader",
    "UnsupportedRaster",

    # --- Types ---
    "InfoHeaderShape",
    "Invariant",
    "FileHeader",
    "ChannelEndpoint",
    "CoreInfoHeader",
    "InfoHeaderV1",
    "InfoHeaderV2",
    "InfoHeaderV3",
    "InfoHeaderV4",
    "InfoHeaderV5",
    "UnknownInfoHeader",
    "InfoHeader",

    # --- Operations ---
    "decode",
    "validate",
    "check_invariants",
    "require_valid",
]


# =============================================================================
# 1. ERRORS
# =============================================================================

class BitmapFormatError(ValueError):
    """Base class for every structural problem found in a bitmap buffer."""


class BufferTooSmall(BitmapFormatError):
    """The buffer cannot hold the headers it claims to contain."""

    def __init__(self, actual: int, required: int) -> None:
        self.actual = actual
        self.required = required
        super().__init__(
            f"Buffer holds {actual} bytes, at least {required} are required."
        )


class UnsupportedShape(BitmapFormatError):
    """The declared info-header size matches none of the six known shapes."""

    def __init__(self, declared_size: int) -> None:
        self.declared_size = declared_size
        super().__init__(
            f"Unsupported info header size {declared_size}; expected one of "
            f"{sorted(VALID_HEADER_SIZES)}."
        )


class InconsistentHeader(BitmapFormatError):
    """The shape is recognised but one or more invariants do not hold."""

    def __init__(self, failures: List["Invariant"]) -> None:
        self.failures = list(failures)
        details = "; ".join(f"#{int(f)} {f.description}" for f in self.failures)
        super().__init__(f"Inconsistent bitmap header: {details}")


class UnsupportedRaster(BitmapFormatError):
    """Headers are valid but the raster is not a 24-bit bottom-up grid we can address."""


# =============================================================================
# 2. SHAPES, INVARIANTS & CONSTANTS
# =============================================================================

class InfoHeaderShape(IntEnum):
    """Known info-header shapes; the value is the declared byte size."""
    CORE = 12
    V1 = 40
    V2 = 52
    V3 = 56
    V4 = 108
    V5 = 124

    @property
    def label(self) -> str:
        if self is InfoHeaderShape.CORE:
            return "Core Header"
        return f"Info Header {self.name.lower()}"


class Invariant(IntEnum):
    """The seven structural invariants checked before any pixel is touched."""
    FILE_SIZE = 1
    HEADER_SIZE = 2
    RESERVED = 3
    DATA_OFFSET = 4
    CORE_PLANES = 5
    EXTENDED_FORMAT = 6
    V5_RESERVED = 7

    @property
    def description(self) -> str:
        return _INVARIANT_DESCRIPTIONS[self]


_INVARIANT_DESCRIPTIONS: Final[Dict[Invariant, str]] = {
    Invariant.FILE_SIZE: "declared file size differs from the buffer length",
    Invariant.HEADER_SIZE: "info header size is not a known shape",
    Invariant.RESERVED: "file header reserved field is not zero",
    Invariant.DATA_OFFSET: "pixel data offset does not follow the info header",
    Invariant.CORE_PLANES: "core header must have exactly one colour plane",
    Invariant.EXTENDED_FORMAT: "expected 1 plane, 24 bits per pixel and no compression",
    Invariant.V5_RESERVED: "v5 header reserved field is not zero",
}

FILE_HEADER_SIZE: Final[int] = 14
# File header + smallest info header + the first 4 bytes of pixel data.
MIN_BUFFER_SIZE: Final[int] = FILE_HEADER_SIZE + InfoHeaderShape.CORE + 4
# "BM" read as a little-endian u16
BMP_SIGNATURE: Final[int] = 0x4D42

VALID_HEADER_SIZES: Final[frozenset[int]] = frozenset(int(s) for s in InfoHeaderShape)
VALID_DATA_OFFSETS: Final[frozenset[int]] = frozenset(
    FILE_HEADER_SIZE + size for size in VALID_HEADER_SIZES
)


# =============================================================================
# 3. WIRE LAYOUTS (numpy structured dtypes, packed, little-endian)
# =============================================================================

_FILE_HEADER_FIELDS = [
    ("signature", "<u2"),
    ("file_size", "<u4"),
    ("reserved", "<u4"),
    ("data_offset", "<u4"),
]

_CORE_FIELDS = [
    ("declared_size", "<u4"),
    ("width", "<u2"),
    ("height", "<u2"),
    ("planes", "<u2"),
    ("bit_count", "<u2"),
]

_V1_FIELDS = [
    ("declared_size", "<u4"),
    ("width", "<i4"),
    ("height", "<i4"),
    ("planes", "<u2"),
    ("bit_count", "<u2"),
    ("compression", "<u4"),
    ("image_size", "<u4"),
    ("x_pixels_per_m", "<u4"),
    ("y_pixels_per_m", "<u4"),
    ("colors_used", "<u4"),
    ("colors_important", "<u4"),
]

_V2_FIELDS = _V1_FIELDS + [
    ("red_mask", "<u4"),
    ("green_mask", "<u4"),
    ("blue_mask", "<u4"),
]

_V3_FIELDS = _V2_FIELDS + [
    ("alpha_mask", "<u4"),
]

_V4_FIELDS = _V3_FIELDS + [
    ("color_space_type", "<u4"),
    ("red_endpoint", "<u4", (3,)),
    ("green_endpoint", "<u4", (3,)),
    ("blue_endpoint", "<u4", (3,)),
    ("red_gamma", "<u4"),
    ("green_gamma", "<u4"),
    ("blue_gamma", "<u4"),
]

_V5_FIELDS = _V4_FIELDS + [
    ("intent", "<u4"),
    ("profile_data", "<u4"),
    ("profile_size", "<u4"),
    ("reserved", "<u4"),
]

FILE_HEADER_DTYPE: Final[np.dtype] = np.dtype(_FILE_HEADER_FIELDS)
_CORE_PREFIX_DTYPE: Final[np.dtype] = np.dtype(_CORE_FIELDS)

_SHAPE_DTYPES: Final[Dict[InfoHeaderShape, np.dtype]] = {
    InfoHeaderShape.CORE: np.dtype(_CORE_FIELDS),
    InfoHeaderShape.V1: np.dtype(_V1_FIELDS),
    InfoHeaderShape.V2: np.dtype(_V2_FIELDS),
    InfoHeaderShape.V3: np.dtype(_V3_FIELDS),
    InfoHeaderShape.V4: np.dtype(_V4_FIELDS),
    InfoHeaderShape.V5: np.dtype(_V5_FIELDS),
}


# =============================================================================
# 4. DECODED HEADERS
# =============================================================================

@dataclass(slots=True, frozen=True)
class FileHeader:
    """The fixed 14-byte file header."""
    signature:   int
    file_size:   int
    reserved:    int
    data_offset: int


@dataclass(slots=True, frozen=True)
class ChannelEndpoint:
    """One CIE XYZ endpoint triad, each coordinate raw 16.16 fixed point."""
    x: int
    y: int
    z: int


@dataclass(slots=True, frozen=True)
class _InfoHeaderBase:
    declared_size: int
    width:         int
    height:        int
    planes:        int
    bit_count:     int

    shape: ClassVar[Optional[InfoHeaderShape]] = None


@dataclass(slots=True, frozen=True)
class CoreInfoHeader(_InfoHeaderBase):
    """12-byte core header: 16-bit dimensions, no compression or density."""
    shape: ClassVar[Optional[InfoHeaderShape]] = InfoHeaderShape.CORE


@dataclass(slots=True, frozen=True)
class UnknownInfoHeader(_InfoHeaderBase):
    """
    Declared size matches no known shape.

    Only the core-sized prefix is decoded so that ``validate`` can still run
    every invariant and report the unknown size as the cause.
    """


@dataclass(slots=True, frozen=True)
class InfoHeaderV1(_InfoHeaderBase):
    compression:      int
    image_size:       int
    x_pixels_per_m:   int
    y_pixels_per_m:   int
    colors_used:      int
    colors_important: int

    shape: ClassVar[Optional[InfoHeaderShape]] = InfoHeaderShape.V1


@dataclass(slots=True, frozen=True)
class InfoHeaderV2(InfoHeaderV1):
    red_mask:   int
    green_mask: int
    blue_mask:  int

    shape: ClassVar[Optional[InfoHeaderShape]] = InfoHeaderShape.V2


@dataclass(slots=True, frozen=True)
class InfoHeaderV3(InfoHeaderV2):
    alpha_mask: int

    shape: ClassVar[Optional[InfoHeaderShape]] = InfoHeaderShape.V3


@dataclass(slots=True, frozen=True)
class InfoHeaderV4(InfoHeaderV3):
    color_space_type: int
    red_endpoint:     ChannelEndpoint
    green_endpoint:   ChannelEndpoint
    blue_endpoint:    ChannelEndpoint
    red_gamma:        int
    green_gamma:      int
    blue_gamma:       int

    shape: ClassVar[Optional[InfoHeaderShape]] = InfoHeaderShape.V4


@dataclass(slots=True, frozen=True)
class InfoHeaderV5(InfoHeaderV4):
    intent:       int
    profile_data: int
    profile_size: int
    reserved:     int

    shape: ClassVar[Optional[InfoHeaderShape]] = InfoHeaderShape.V5


InfoHeader = Union[
    CoreInfoHeader, InfoHeaderV1, InfoHeaderV2, InfoHeaderV3,
    InfoHeaderV4, InfoHeaderV5, UnknownInfoHeader,
]

_SHAPE_CLASSES: Final[Dict[InfoHeaderShape, Type[_InfoHeaderBase]]] = {
    InfoHeaderShape.CORE: CoreInfoHeader,
    InfoHeaderShape.V1: InfoHeaderV1,
    InfoHeaderShape.V2: InfoHeaderV2,
    InfoHeaderShape.V3: InfoHeaderV3,
    InfoHeaderShape.V4: InfoHeaderV4,
    InfoHeaderShape.V5: InfoHeaderV5,
}


# =============================================================================
# 5. DECODING
# =============================================================================

def _read_record(buffer: bytes, dtype: np.dtype, offset: int) -> Dict[str, object]:
    """Reads one packed record at *offset* and converts it to Python values."""
    record = np.frombuffer(buffer, dtype=dtype, count=1, offset=offset)[0]
    values: Dict[str, object] = {}
    for name in dtype.names:
        value = record[name]
        if dtype.fields[name][0].subdtype is not None:
            values[name] = ChannelEndpoint(*(int(v) for v in value))
        else:
            values[name] = int(value)
    return values


def decode(buffer: Union[bytes, bytearray, memoryview]) -> Tuple[FileHeader, InfoHeader]:
    """
    Interprets *buffer* as a file header followed by one info header.

    The info header's leading size field selects the shape.  Unknown sizes
    are not an error here; they decode to ``UnknownInfoHeader`` and are
    rejected by ``validate``.

    Raises:
        BufferTooSmall: fewer than ``MIN_BUFFER_SIZE`` bytes, or fewer than
            the recognised shape needs.
    """
    size = len(buffer)
    if size < MIN_BUFFER_SIZE:
        raise BufferTooSmall(size, MIN_BUFFER_SIZE)

    file_header = FileHeader(**_read_record(buffer, FILE_HEADER_DTYPE, 0))

    declared_size = int(np.frombuffer(buffer, dtype="<u4", count=1, offset=FILE_HEADER_SIZE)[0])
    if declared_size not in VALID_HEADER_SIZES:
        fields = _read_record(buffer, _CORE_PREFIX_DTYPE, FILE_HEADER_SIZE)
        return file_header, UnknownInfoHeader(**fields)

    shape = InfoHeaderShape(declared_size)
    required = FILE_HEADER_SIZE + declared_size
    if size < required:
        raise BufferTooSmall(size, required)

    fields = _read_record(buffer, _SHAPE_DTYPES[shape], FILE_HEADER_SIZE)
    return file_header, _SHAPE_CLASSES[shape](**fields)


# =============================================================================
# 6. VALIDATION
# =============================================================================

def check_invariants(file_header: FileHeader, info_header: InfoHeader,
                     actual_size: int) -> List[Invariant]:
    """Returns every violated invariant, in ascending order; empty if valid."""
    failures: List[Invariant] = []
    declared = info_header.declared_size
    shape = info_header.shape

    if file_header.file_size != actual_size:
        failures.append(Invariant.FILE_SIZE)
    if declared not in VALID_HEADER_SIZES:
        failures.append(Invariant.HEADER_SIZE)
    if file_header.reserved != 0:
        failures.append(Invariant.RESERVED)
    if (file_header.data_offset not in VALID_DATA_OFFSETS
            or file_header.data_offset != FILE_HEADER_SIZE + declared):
        failures.append(Invariant.DATA_OFFSET)

    if shape is InfoHeaderShape.CORE:
        if info_header.planes != 1:
            failures.append(Invariant.CORE_PLANES)
    elif shape is not None and shape <= InfoHeaderShape.V4:
        if not (info_header.planes == 1 and info_header.bit_count == 24
                and info_header.compression == 0):
            failures.append(Invariant.EXTENDED_FORMAT)
    elif shape is InfoHeaderShape.V5:
        if info_header.reserved != 0:
            failures.append(Invariant.V5_RESERVED)

    return failures


def validate(file_header: FileHeader, info_header: InfoHeader, actual_size: int) -> bool:
    """True only when all seven invariants hold."""
    return not check_invariants(file_header, info_header, actual_size)


def require_valid(file_header: FileHeader, info_header: InfoHeader, actual_size: int) -> None:
    """
    Raises the matching ``BitmapFormatError`` when validation fails.

    An unknown header size wins over any other failure because the remaining
    invariants are meaningless for a layout we cannot name.
    """
    failures = check_invariants(file_header, info_header, actual_size)
    if not failures:
        return
    if Invariant.HEADER_SIZE in failures:
        raise UnsupportedShape(info_header.declared_size)
    raise InconsistentHeader(failures)
