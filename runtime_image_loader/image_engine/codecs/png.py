"""PNG codec.

8-bit and lower depths decode through Pillow. 16-bit images decode through
libvips because Pillow narrows 16-bit color samples to 8 bits.
"""

from __future__ import annotations

import struct

import numpy as np

from ..errors import UnsupportedFormatError
from ..raw_image import PixelFormat, RawImageBuffer
from ..vips_backend import decode_buffer_to_array, expand_to_rgba
from .base import Codec, ImageHeader, load_pillow, open_pillow, pillow_to_bgra8, pillow_to_gray8

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
_IHDR_END = 33
_SUPPORTED_DEPTHS = (1, 2, 4, 8, 16)
# color type -> layout name
_COLOR_TYPES = {0: "gray", 2: "rgb", 3: "palette", 4: "gray_alpha", 6: "rgba"}


def fill_zero_alpha(pixels: np.ndarray) -> None:
    """Zero the color of fully transparent pixels in place.

    Works on (H, W, 4) arrays whose alpha is the last channel, for both
    BGRA8 and RGBA16 layouts.
    """
    transparent = pixels[:, :, 3] == 0
    pixels[transparent, :3] = 0


class PngCodec(Codec):
    name = "PNG"

    def sniff(self, data: bytes) -> bool:
        return len(data) >= _IHDR_END and data[:8] == PNG_SIGNATURE and data[12:16] == b"IHDR"

    def read_header(self, data: bytes) -> ImageHeader:
        width, height, bit_depth, color_type = struct.unpack(">IIBB", data[16:26])
        layout = _COLOR_TYPES.get(color_type)
        if layout is None:
            raise UnsupportedFormatError(f"Unsupported PNG color type: {color_type}")
        if bit_depth not in _SUPPORTED_DEPTHS:
            raise UnsupportedFormatError(
                f"Unsupported PNG bit depth: {bit_depth}. Only 8 and 16 bit depth PNG images are supported."
            )
        return ImageHeader(width, height, bit_depth, layout)

    def decode(self, data: bytes, header: ImageHeader) -> RawImageBuffer:
        if header.bit_depth == 16:
            return self._decode_16bit(data, header)

        image = load_pillow(open_pillow(data, "PNG"), "PNG")
        if header.layout == "gray":
            return pillow_to_gray8(image, is_srgb=True)

        buffer = pillow_to_bgra8(image, is_srgb=True)
        pixels = buffer.as_array().copy()
        fill_zero_alpha(pixels)
        return RawImageBuffer.from_array(pixels, PixelFormat.BGRA8, is_srgb=True)

    def _decode_16bit(self, data: bytes, header: ImageHeader) -> RawImageBuffer:
        array, fmt = decode_buffer_to_array(data)
        if fmt != "ushort":
            raise UnsupportedFormatError(f"Unsupported PNG sample format for 16 bit depth: {fmt}")
        # Gray 16-bit has no 16-bit single channel canonical format; upconvert.
        rgba = expand_to_rgba(array, opaque=0xFFFF).astype(np.uint16)
        if header.layout != "gray":
            fill_zero_alpha(rgba)
        return RawImageBuffer.from_array(rgba, PixelFormat.RGBA16, is_srgb=False)
