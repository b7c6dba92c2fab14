from __future__ import annotations

from ..errors import UnsupportedFormatError
from ..raw_image import RawImageBuffer
from .base import Codec, ImageHeader, load_pillow, open_pillow, pillow_to_bgra8, pillow_to_gray8

_JPEG_SOI = b"\xff\xd8\xff"
_COLOR_MODES = ("RGB", "CMYK", "YCbCr")


class JpegCodec(Codec):
    """Baseline/progressive JPEG; 8 bits per sample only."""

    name = "JPEG"

    def sniff(self, data: bytes) -> bool:
        return len(data) >= 4 and data[:3] == _JPEG_SOI

    def read_header(self, data: bytes) -> ImageHeader:
        image = open_pillow(data, "JPEG")
        mode = image.mode
        if mode == "L":
            layout = "gray"
        elif mode in _COLOR_MODES:
            layout = "rgba"
        else:
            raise UnsupportedFormatError(f"JPEG file contains data in an unsupported format: {mode}")
        bits = int(getattr(image, "bits", 8) or 8)
        if bits != 8:
            raise UnsupportedFormatError(f"Unsupported JPEG bit depth: {bits}")
        width, height = image.size
        return ImageHeader(width, height, 8, layout)

    def decode(self, data: bytes, header: ImageHeader) -> RawImageBuffer:
        image = load_pillow(open_pillow(data, "JPEG"), "JPEG")
        if header.layout == "gray":
            return pillow_to_gray8(image, is_srgb=True)
        return pillow_to_bgra8(image, is_srgb=True)
