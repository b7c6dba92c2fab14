"""TIFF codec backed by libvips.

TIFF can carry almost any sample layout; the canonical mapping is:
8-bit single band -> GRAY8 (sRGB), other 8-bit -> BGRA8 (sRGB),
16-bit integer -> RGBA16 (linear), float -> RGBA16F (linear, HDR).
"""

from __future__ import annotations

import struct

import numpy as np

from ..errors import DecodeFailureError, UnsupportedFormatError
from ..raw_image import PixelFormat, RawImageBuffer
from ..vips_backend import decode_buffer_to_array, expand_to_rgba
from .base import Codec, ImageHeader, rgba_to_bgra

_LITTLE = b"II*\x00"
_BIG = b"MM\x00*"

_TAG_WIDTH = 256
_TAG_HEIGHT = 257
_TAG_BITS_PER_SAMPLE = 258
_TAG_SAMPLES_PER_PIXEL = 277
# TIFF field type -> (struct code, size)
_FIELD_TYPES = {3: ("H", 2), 4: ("I", 4)}


class TiffCodec(Codec):
    name = "TIFF"

    def sniff(self, data: bytes) -> bool:
        return len(data) >= 8 and data[:4] in (_LITTLE, _BIG)

    def read_header(self, data: bytes) -> ImageHeader:
        endian = "<" if data[:2] == b"II" else ">"
        (ifd,) = struct.unpack_from(f"{endian}I", data, 4)
        if ifd + 2 > len(data):
            raise UnsupportedFormatError("TIFF first directory lies outside the file")
        (count,) = struct.unpack_from(f"{endian}H", data, ifd)
        tags: dict[int, int] = {}
        for i in range(count):
            entry = ifd + 2 + 12 * i
            if entry + 12 > len(data):
                break
            tag, field_type, n = struct.unpack_from(f"{endian}HHI", data, entry)
            field = _FIELD_TYPES.get(field_type)
            if field is None or n < 1:
                continue
            code, size = field
            # First value only; for n * size > 4 the field holds an offset.
            pos = entry + 8 if n * size <= 4 else struct.unpack_from(f"{endian}I", data, entry + 8)[0]
            if pos + size <= len(data):
                (tags[tag],) = struct.unpack_from(f"{endian}{code}", data, pos)
        width = tags.get(_TAG_WIDTH, 0)
        height = tags.get(_TAG_HEIGHT, 0)
        bits = tags.get(_TAG_BITS_PER_SAMPLE, 1)
        samples = tags.get(_TAG_SAMPLES_PER_PIXEL, 1)
        if not width or not height:
            raise DecodeFailureError("TIFF directory does not declare an image size")
        if bits not in (1, 2, 4, 8, 16, 32):
            raise UnsupportedFormatError(f"Unsupported TIFF bit depth: {bits}")
        return ImageHeader(width, height, bits, "gray" if samples == 1 else "color")

    def decode(self, data: bytes, header: ImageHeader) -> RawImageBuffer:
        array, fmt = decode_buffer_to_array(data)
        if fmt == "uchar":
            if array.shape[2] == 1:
                return RawImageBuffer.from_array(array[:, :, 0], PixelFormat.GRAY8, is_srgb=True)
            rgba = expand_to_rgba(array, opaque=0xFF).astype(np.uint8)
            return RawImageBuffer.from_array(rgba_to_bgra(rgba), PixelFormat.BGRA8, is_srgb=True)
        if fmt == "ushort":
            rgba = expand_to_rgba(array, opaque=0xFFFF).astype(np.uint16)
            return RawImageBuffer.from_array(rgba, PixelFormat.RGBA16, is_srgb=False)
        if fmt in ("float", "double"):
            rgba = expand_to_rgba(array, opaque=1.0).astype(np.float16)
            return RawImageBuffer.from_array(rgba, PixelFormat.RGBA16F, is_srgb=False)
        raise UnsupportedFormatError(f"Unsupported TIFF sample format: {fmt} ({header.bit_depth} bits)")
