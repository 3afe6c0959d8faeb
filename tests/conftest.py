# -*- coding: utf-8 -*-
"""Synthetic bitmap builders shared by the test-suite."""

import struct
from typing import Optional, Sequence, Tuple

import pytest

Pixel = Tuple[int, int, int]  # stored order: (B, G, R)

FILE_HEADER = struct.Struct("<2sIII")
CORE_HEADER = struct.Struct("<IHHHH")
V1_HEADER = struct.Struct("<IiiHHIIIIII")

# 16.16 values: 0.64, 0.33, 0.03 and a 2.2 gamma
ENDPOINT_RED = (0x0000A3D7, 0x0000547B, 0x000007AE)
GAMMA_2_2 = 0x00023333


def build_bitmap(
    width: int,
    height: int,
    pixels: Optional[Sequence[Sequence[Pixel]]] = None,
    *,
    header_size: int = 40,
    signature: bytes = b"BM",
    file_size: Optional[int] = None,
    reserved: int = 0,
    data_offset: Optional[int] = None,
    planes: int = 1,
    bit_count: int = 24,
    compression: int = 0,
    intent: int = 4,
    v5_reserved: int = 0,
    pad_byte: int = 0xEE,
    trailing: bytes = b"",
) -> bytes:
    """
    Assembles a bitmap file.  *pixels* is a list of rows (buffer order) of
    stored (B, G, R) triples; defaults to a deterministic gradient.
    Padding bytes are filled with *pad_byte* so tests can see them survive.
    """
    if pixels is None:
        pixels = [[((x * 40) % 256, (y * 60) % 256, (x + y) * 25 % 256)
                   for x in range(width)] for y in range(height)]

    row_bytes = width * 3
    padding = (4 - row_bytes % 4) % 4
    body = bytearray()
    for row in pixels:
        for b, g, r in row:
            body += bytes((b, g, r))
        body += bytes([pad_byte]) * padding

    if header_size == 12:
        info = CORE_HEADER.pack(12, width, height, planes, bit_count)
    else:
        info = V1_HEADER.pack(header_size, width, height, planes, bit_count,
                              compression, len(body), 2835, 2835, 0, 0)
        if header_size >= 52:
            info += struct.pack("<III", 0x00FF0000, 0x0000FF00, 0x000000FF)
        if header_size >= 56:
            info += struct.pack("<I", 0xFF000000)
        if header_size >= 108:
            info += struct.pack("<I", 0x73524742)
            info += struct.pack("<9I", *ENDPOINT_RED, 0x00004CCD, 0x00009999,
                                0x00001EB8, 0x00002666, 0x00000F5C, 0x0000F333)
            info += struct.pack("<3I", GAMMA_2_2, GAMMA_2_2, GAMMA_2_2)
        if header_size >= 124:
            info += struct.pack("<4I", intent, 0, 0, v5_reserved)
        if len(info) < header_size:
            # Unknown shapes: zero-fill up to the declared size.
            info += bytes(header_size - len(info))

    offset = FILE_HEADER.size + len(info) if data_offset is None else data_offset
    total = FILE_HEADER.size + len(info) + len(body) + len(trailing)
    header = FILE_HEADER.pack(signature, total if file_size is None else file_size,
                              reserved, offset)
    return header + info + bytes(body) + trailing


@pytest.fixture
def make_bitmap():
    return build_bitmap


@pytest.fixture
def sample_bitmap() -> bytes:
    """2x2, v1 header, stride 8 (6 bytes of pixels + 2 padding)."""
    return build_bitmap(2, 2, [
        [(0, 0, 255), (255, 0, 0)],
        [(0, 255, 0), (255, 255, 255)],
    ])
