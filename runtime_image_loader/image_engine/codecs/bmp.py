from __future__ import annotations

import struct

from ..errors import UnsupportedFormatError
from ..raw_image import RawImageBuffer
from .base import Codec, ImageHeader, load_pillow, open_pillow, pillow_to_bgra8

# BITMAPCOREHEADER, INFOHEADER, V2, V3, V4, V5
_DIB_HEADER_SIZES = (12, 40, 52, 56, 64, 108, 124)
_SUPPORTED_BPP = (1, 4, 8, 16, 24, 32)


class BmpCodec(Codec):
    """Windows bitmap; always normalized to BGRA8."""

    name = "BMP"

    def sniff(self, data: bytes) -> bool:
        if len(data) < 26 or data[:2] != b"BM":
            return False
        (dib_size,) = struct.unpack_from("<I", data, 14)
        return dib_size in _DIB_HEADER_SIZES

    def read_header(self, data: bytes) -> ImageHeader:
        (dib_size,) = struct.unpack_from("<I", data, 14)
        if dib_size == 12:
            width, height, _planes, bpp = struct.unpack_from("<hhHH", data, 18)
        else:
            if len(data) < 30:
                raise UnsupportedFormatError("Truncated BMP info header")
            width, height, _planes, bpp = struct.unpack_from("<iiHH", data, 18)
        if bpp not in _SUPPORTED_BPP:
            raise UnsupportedFormatError(f"Unsupported BMP bit depth: {bpp}")
        # Negative height marks a top-down bitmap.
        return ImageHeader(abs(width), abs(height), bpp, "bgra")

    def decode(self, data: bytes, header: ImageHeader) -> RawImageBuffer:
        image = load_pillow(open_pillow(data, "BMP"), "BMP")
        return pillow_to_bgra8(image, is_srgb=True)
