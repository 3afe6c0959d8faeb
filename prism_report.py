# -*- coding: utf-8 -*-
"""
Prism: Recolouring legacy bitmaps through perceptual colour spaces
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: Human-readable header report.

Pure formatting over decoded headers; no validation happens here.
"""

from __future__ import annotations

from typing import Dict, Final, List

from prism_bitmap import (
    ChannelEndpoint,
    FileHeader,
    InfoHeader,
    InfoHeaderShape,
    InfoHeaderV1,
    InfoHeaderV2,
    InfoHeaderV3,
    InfoHeaderV4,
    InfoHeaderV5,
)

__all__ = [
    "RENDERING_INTENTS",
    "fixed16_16_to_str",
    "format_file_header",
    "format_info_header",
    "format_header_report",
]

RENDERING_INTENTS: Final[Dict[int, str]] = {
    0x00000001: "Maintaining Saturation",
    0x00000002: "Maintaining Colorimetric Match",
    0x00000004: "Maintaining Contrast",
    0x00000008: "Maintaining White Point",
}

_FRACTION_DIGITS: Final[int] = 6
_FRACTION_SCALE: Final[int] = 10 ** _FRACTION_DIGITS


def fixed16_16_to_str(fx: int) -> str:
    """
    Renders an unsigned 16.16 fixed-point value with six decimals.

    The fraction is rounded half-up; a rounding carry moves into the
    integer part.
    """
    int_part = (fx >> 16) & 0xFFFF
    frac_part = fx & 0xFFFF

    frac_decimal = (frac_part * _FRACTION_SCALE + 32768) // 65536
    if frac_decimal == _FRACTION_SCALE:
        frac_decimal = 0
        int_part += 1

    return f"{int_part}.{frac_decimal:0{_FRACTION_DIGITS}d}"


def _endpoint_str(endpoint: ChannelEndpoint) -> str:
    return "; ".join(fixed16_16_to_str(v) for v in (endpoint.x, endpoint.y, endpoint.z))


def format_file_header(header: FileHeader) -> str:
    lines = [
        "=== BMP Header ===",
        f"Signature      : 0x{header.signature:04X}",
        f"File Size      : {header.file_size} bytes",
        f"Data Offset    : {header.data_offset} bytes",
    ]
    return "\n".join(lines)


def format_info_header(info: InfoHeader) -> str:
    shape = info.shape
    label = shape.label if shape is not None else "Unknown"
    lines: List[str] = [
        "=== BMP Info Header ===",
        f"Header Size        : {info.declared_size} bytes ({label})",
    ]

    if shape is InfoHeaderShape.CORE or shape is None:
        lines += [
            f"Image Width        : {info.width} px",
            f"Image Height       : {info.height} px",
            f"Bits per Pixel     : {info.bit_count}",
        ]
    if isinstance(info, InfoHeaderV1):
        lines += [
            f"Image Width        : {info.width} px",
            f"Image Height       : {info.height} px",
            f"Color Planes       : {info.planes}",
            f"Bits per Pixel     : {info.bit_count}",
            f"Compression        : {info.compression}",
            f"Image Size         : {info.image_size} bytes",
            f"X Pixels per Meter : {info.x_pixels_per_m}",
            f"Y Pixels per Meter : {info.y_pixels_per_m}",
            f"Colors Used        : {info.colors_used}",
            f"Important Colors   : {info.colors_important}",
        ]
    if isinstance(info, InfoHeaderV2):
        lines += [
            f"Red Mask           : 0x{info.red_mask:08X}",
            f"Green Mask         : 0x{info.green_mask:08X}",
            f"Blue Mask          : 0x{info.blue_mask:08X}",
        ]
    if isinstance(info, InfoHeaderV3):
        lines.append(f"Alpha Mask         : 0x{info.alpha_mask:08X}")
    if isinstance(info, InfoHeaderV4):
        lines += [
            f"Red Endpoint       : {_endpoint_str(info.red_endpoint)}",
            f"Red Gamma          : {fixed16_16_to_str(info.red_gamma)}",
            f"Green Endpoint     : {_endpoint_str(info.green_endpoint)}",
            f"Green Gamma        : {fixed16_16_to_str(info.green_gamma)}",
            f"Blue Endpoint      : {_endpoint_str(info.blue_endpoint)}",
            f"Blue Gamma         : {fixed16_16_to_str(info.blue_gamma)}",
        ]
    if isinstance(info, InfoHeaderV5):
        intent = RENDERING_INTENTS.get(info.intent, "Unknown")
        lines += [
            f"Rendering Intent   : {intent} ({info.intent})",
            f"ICC Profile Offset : {info.profile_data}",
            f"ICC Profile Size   : {info.profile_size}",
        ]
    return "\n".join(lines)


def format_header_report(file_header: FileHeader, info_header: InfoHeader) -> str:
    """Both header sections, as printed by ``prism --info``."""
    return format_file_header(file_header) + "\n" + format_info_header(info_header)
