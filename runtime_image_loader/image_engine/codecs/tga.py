"""Truevision TGA codec.

TGA has no magic number; the sniff checks the structural header fields of
the 18-byte header. Accepted sub-types:

- colormapped (color map type 1, image type 1) at 8 bits per pixel
- true-color, raw (type 2) or RLE (type 10), at 16/24/32 bits per pixel
- grayscale (type 3) at 8 bits per pixel, decoded to GRAY8 in linear space
  because grayscale TGAs are conventionally masks

Headers that look like a TGA but carry any other combination are rejected
as unsupported rather than passed through.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from ..errors import UnsupportedFormatError
from ..raw_image import RawImageBuffer
from .base import Codec, ImageHeader, load_pillow, open_pillow, pillow_to_bgra8, pillow_to_gray8

TGA_HEADER_SIZE = 18
_KNOWN_IMAGE_TYPES = (1, 2, 3, 9, 10, 11)
_KNOWN_DEPTHS = (8, 15, 16, 24, 32)
_TRUECOLOR_DEPTHS = (16, 24, 32)


@dataclass(frozen=True)
class TgaFileHeader:
    id_length: int
    color_map_type: int
    image_type: int
    color_map_length: int
    color_map_depth: int
    width: int
    height: int
    bits_per_pixel: int
    descriptor: int

    @classmethod
    def parse(cls, data: bytes) -> TgaFileHeader:
        (
            id_length,
            color_map_type,
            image_type,
            _cmap_first,
            color_map_length,
            color_map_depth,
            _x_origin,
            _y_origin,
            width,
            height,
            bits_per_pixel,
            descriptor,
        ) = struct.unpack_from("<BBBHHBHHHHBB", data, 0)
        return cls(
            id_length,
            color_map_type,
            image_type,
            color_map_length,
            color_map_depth,
            width,
            height,
            bits_per_pixel,
            descriptor,
        )

    @property
    def is_grayscale(self) -> bool:
        return self.image_type == 3


class TgaCodec(Codec):
    name = "TGA"

    def sniff(self, data: bytes) -> bool:
        if len(data) < TGA_HEADER_SIZE:
            return False
        hdr = TgaFileHeader.parse(data)
        if hdr.color_map_type not in (0, 1) or hdr.image_type not in _KNOWN_IMAGE_TYPES:
            return False
        if hdr.color_map_type == 1 and hdr.color_map_length == 0:
            return False
        return hdr.width > 0 and hdr.height > 0 and hdr.bits_per_pixel in _KNOWN_DEPTHS

    def read_header(self, data: bytes) -> ImageHeader:
        hdr = TgaFileHeader.parse(data)
        combo = (hdr.color_map_type, hdr.image_type)
        if combo == (1, 1):
            if hdr.bits_per_pixel != 8:
                raise UnsupportedFormatError(f"Unsupported TGA colormapped bit depth: {hdr.bits_per_pixel}")
            layout = "colormapped"
        elif combo in ((0, 2), (0, 10)):
            if hdr.bits_per_pixel not in _TRUECOLOR_DEPTHS:
                raise UnsupportedFormatError(f"Unsupported TGA true-color bit depth: {hdr.bits_per_pixel}")
            layout = "truecolor"
        elif combo == (0, 3):
            if hdr.bits_per_pixel != 8:
                raise UnsupportedFormatError(f"Unsupported TGA grayscale bit depth: {hdr.bits_per_pixel}")
            layout = "gray"
        else:
            raise UnsupportedFormatError(
                f"TGA file contains data in an unsupported format "
                f"(color map type {hdr.color_map_type}, image type {hdr.image_type})"
            )
        return ImageHeader(hdr.width, hdr.height, hdr.bits_per_pixel, layout)

    def decode(self, data: bytes, header: ImageHeader) -> RawImageBuffer:
        image = load_pillow(open_pillow(data, "TGA"), "TGA")
        if header.layout == "gray":
            return pillow_to_gray8(image, is_srgb=False)
        return pillow_to_bgra8(image, is_srgb=True)
