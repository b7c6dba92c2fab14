"""Format dispatcher: sniff, validate resolution, decode.

Codecs are tried in a fixed priority order and the first one whose sniff
succeeds owns the buffer, success or failure. Sniffing never looks at file
names since buffers may come from memory.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from runtime_image_loader.logger import get_logger

from ..errors import DecodeFailureError, ImageLoadError, ResolutionRejectedError, UnsupportedFormatError
from ..raw_image import RawImageBuffer
from .base import Codec, ImageHeader

_logger = get_logger("codecs")


def _is_power_of_two(value: int) -> bool:
    return value > 0 and (value & (value - 1)) == 0


@dataclass(frozen=True)
class ResolutionPolicy:
    """Limits applied to every decoded image.

    `max_texture_mip_count` bounds the size the same way a mip chain does:
    N mips fit at most 1 << (N - 1) pixels per side. `allow_non_power_of_two`
    set to None defers to the codec's own override.
    """

    max_texture_size: int = 8192
    max_texture_mip_count: int = 15
    allow_non_power_of_two: bool | None = None

    @property
    def max_mip_resolution(self) -> int:
        return 1 << max(0, self.max_texture_mip_count - 1)

    def check(self, width: int, height: int, codec_allows_npot: bool = True) -> None:
        """Raise ResolutionRejectedError when the size is not importable."""
        valid = width > 0 and height > 0
        limit = min(self.max_texture_size, self.max_mip_resolution)
        if width > limit or height > limit:
            valid = False
        allow_npot = codec_allows_npot if self.allow_non_power_of_two is None else self.allow_non_power_of_two
        if not allow_npot and not (_is_power_of_two(width) and _is_power_of_two(height)):
            valid = False
        if not valid:
            raise ResolutionRejectedError(f"Texture resolution is not supported: {width} x {height}")


class CodecRegistry:
    """Priority-ordered collection of codecs; constructed once and passed around."""

    def __init__(self, codecs: Iterable[Codec] = (), policy: ResolutionPolicy | None = None):
        self._codecs: list[Codec] = list(codecs)
        self.policy = policy or ResolutionPolicy()

    @classmethod
    def default(cls, policy: ResolutionPolicy | None = None, include_tiff: bool = True) -> CodecRegistry:
        """PNG, JPEG, BMP, TGA, EXR and (optionally) TIFF, in that order."""
        from .bmp import BmpCodec
        from .exr import ExrCodec
        from .jpeg import JpegCodec
        from .png import PngCodec
        from .tga import TgaCodec

        codecs: list[Codec] = [PngCodec(), JpegCodec(), BmpCodec(), TgaCodec(), ExrCodec()]
        if include_tiff:
            from .tiff import TiffCodec

            codecs.append(TiffCodec())
        return cls(codecs, policy)

    @property
    def codecs(self) -> list[Codec]:
        return list(self._codecs)

    def register(self, codec: Codec) -> None:
        """Append a codec at the lowest priority."""
        self._codecs.append(codec)

    def find_codec(self, data: bytes) -> Codec | None:
        for codec in self._codecs:
            if codec.sniff(data):
                return codec
        return None

    def decode(self, data: bytes) -> RawImageBuffer:
        """Decode `data` with the first codec that claims it."""
        codec = self.find_codec(data)
        if codec is None:
            raise UnsupportedFormatError("Unrecognized or unsupported image format")
        try:
            header = codec.read_header(data)
            self.policy.check(header.width, header.height, codec.allow_non_power_of_two)
            buffer = codec.decode(data, header)
        except ImageLoadError:
            raise
        except Exception as e:
            _logger.debug("codec %s failed: %s", codec.name, e)
            raise DecodeFailureError(f"Failed to decode {codec.name}: {e}") from e
        if (buffer.width, buffer.height) != (header.width, header.height):
            raise DecodeFailureError(
                f"Failed to decode {codec.name}: decoded size {buffer.width}x{buffer.height} "
                f"differs from header {header.width}x{header.height}"
            )
        _logger.debug(
            "decoded %s: %dx%d %s srgb=%s", codec.name, buffer.width, buffer.height, buffer.pixel_format.name,
            buffer.is_srgb,
        )
        return buffer

    def read_header(self, data: bytes) -> tuple[Codec, ImageHeader]:
        codec = self.find_codec(data)
        if codec is None:
            raise UnsupportedFormatError("Unrecognized or unsupported image format")
        return codec, codec.read_header(data)
