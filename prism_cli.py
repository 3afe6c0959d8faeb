# -*- coding: utf-8 -*-
"""
Prism: Recolouring legacy bitmaps through perceptual colour spaces
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: Command-line front end.

    prism -f photo.bmp                 # photoRGBInverted.bmp
    prism -f photo.bmp -l -o out/x.bmp # Oklab hue inversion into out/x.bmp
    prism -f photo.bmp -i              # print the decoded headers
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

from __about__ import __version__
from prism_bitmap import BitmapFormatError, decode, require_valid
from prism_colorengine import TransformKind
from prism_pipeline import recolor_inplace
from prism_report import format_header_report

__all__ = [
    "build_argument_parser",
    "default_output_path",
    "main",
]

logger = logging.getLogger(__name__)


def build_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the Prism argument parser."""
    parser = argparse.ArgumentParser(
        prog="prism",
        description="Prism - recolour 24-bit uncompressed bitmaps",
    )
    parser.add_argument(
        "-V", "--version", action="version", version=f"Prism {__version__}"
    )
    parser.add_argument("-f", "--file", dest="filepath", required=True,
                        help="Bitmap file to read")
    parser.add_argument("-o", "--output", dest="outputfile",
                        help="Output file (default: input name + transform suffix)")
    parser.add_argument("-i", "--info", action="store_true",
                        help="Print the decoded headers and exit")

    transforms = parser.add_mutually_exclusive_group()
    transforms.add_argument(
        "-r", "--invert-rgb", dest="kind", action="store_const",
        const=TransformKind.CHANNEL_INVERT, help="Invert every channel (default)"
    )
    transforms.add_argument(
        "-u", "--invert-hue", dest="kind", action="store_const",
        const=TransformKind.HSL_HUE_INVERT, help="Rotate the HSL hue by 180 degrees"
    )
    transforms.add_argument(
        "-l", "--invert-oklab", dest="kind", action="store_const",
        const=TransformKind.OKLAB_HUE_INVERT, help="Rotate the Oklab hue by pi"
    )
    transforms.add_argument(
        "-c", "--flip-oklab-channels", dest="kind", action="store_const",
        const=TransformKind.OKLAB_AXIS_FLIP, help="Swap the Oklab a and b axes"
    )
    parser.set_defaults(kind=TransformKind.CHANNEL_INVERT)

    parser.add_argument(
        "--fast", action="store_true",
        help="Use the approximate float32 variant of the Oklab transforms"
    )
    parser.add_argument(
        "--parallel", action="store_true",
        help="Process rows on multiple threads"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )
    return parser


def default_output_path(inputfile: str, kind: TransformKind) -> str:
    """``dir/name.bmp`` -> ``dir/name<Suffix>.bmp``."""
    root, _ = os.path.splitext(inputfile)
    return f"{root}{kind.suffix}.bmp"


def main(argv: Optional[List[str]] = None) -> int:
    args = build_argument_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    kind: TransformKind = args.kind.fast_variant if args.fast else args.kind

    if not os.path.isfile(args.filepath):
        logger.error("File doesn't exist: %s", args.filepath)
        return 1

    try:
        with open(args.filepath, "rb") as f:
            buffer = bytearray(f.read())
    except OSError as exc:
        logger.error("Can't open image %s: %s", args.filepath, exc)
        return 1

    try:
        if args.info:
            file_header, info_header = decode(buffer)
            require_valid(file_header, info_header, len(buffer))
            print(format_header_report(file_header, info_header))
            return 0
        recolor_inplace(buffer, kind, parallel=args.parallel)
    except BitmapFormatError as exc:
        logger.error("Unsupported file %s: %s", args.filepath, exc)
        return 1

    outputfile = args.outputfile or default_output_path(args.filepath, kind)
    parent = os.path.dirname(outputfile)
    if parent:
        os.makedirs(parent, exist_ok=True)

    with open(outputfile, "wb") as f:
        f.write(buffer)
    logger.info("Wrote %s (%s)", outputfile, kind.value)
    return 0


if __name__ == "__main__":
    sys.exit(main())
