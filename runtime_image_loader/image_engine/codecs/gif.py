"""GIF codec.

Not part of the default static dispatch order: GIFs are loaded through the
animated path, which keeps every frame. `decode` still returns the first
frame so the codec can be registered for static use.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from PIL import ImageSequence

from ..errors import DecodeFailureError
from ..raw_image import RawImageBuffer
from .base import Codec, ImageHeader, load_pillow, open_pillow, pillow_to_bgra8

_GIF_SIGNATURES = (b"GIF87a", b"GIF89a")
_DEFAULT_FRAME_MS = 100


@dataclass(frozen=True)
class GifFrame:
    buffer: RawImageBuffer
    duration_ms: int


class GifCodec(Codec):
    name = "GIF"

    def sniff(self, data: bytes) -> bool:
        return len(data) >= 13 and data[:6] in _GIF_SIGNATURES

    def read_header(self, data: bytes) -> ImageHeader:
        width, height = struct.unpack_from("<HH", data, 6)
        return ImageHeader(width, height, 8, "indexed")

    def decode(self, data: bytes, header: ImageHeader) -> RawImageBuffer:
        image = load_pillow(open_pillow(data, "GIF"), "GIF")
        return pillow_to_bgra8(image, is_srgb=True)

    def decode_frames(self, data: bytes) -> tuple[list[GifFrame], int | None]:
        """Decode every frame, composited to full canvas size.

        Returns the frames and the loop count (0 = forever, None = play once).
        """
        image = open_pillow(data, "GIF")
        frames: list[GifFrame] = []
        try:
            for frame in ImageSequence.Iterator(image):
                duration = int(frame.info.get("duration") or _DEFAULT_FRAME_MS)
                frames.append(GifFrame(pillow_to_bgra8(frame, is_srgb=True), duration))
        except Exception as e:
            raise DecodeFailureError(f"Failed to decode GIF frame {len(frames)}: {e}") from e
        if not frames:
            raise DecodeFailureError("GIF contains no frames")
        loop = image.info.get("loop")
        return frames, None if loop is None else int(loop)
