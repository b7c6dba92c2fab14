"""Codec interface used by the format dispatcher."""

from __future__ import annotations

import io
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np
from PIL import Image

from ..errors import DecodeFailureError
from ..raw_image import PixelFormat, RawImageBuffer


@dataclass(frozen=True)
class ImageHeader:
    """Structural facts read from the header before any pixel is decoded."""

    width: int
    height: int
    bit_depth: int
    layout: str


class Codec(ABC):
    """A decoder for one encoded image format.

    `sniff` must only look at magic bytes/header fields and never raise.
    `read_header` and `decode` raise `ImageLoadError` subclasses.
    """

    name: str = ""
    allow_non_power_of_two: bool = True

    @abstractmethod
    def sniff(self, data: bytes) -> bool: ...

    @abstractmethod
    def read_header(self, data: bytes) -> ImageHeader: ...

    @abstractmethod
    def decode(self, data: bytes, header: ImageHeader) -> RawImageBuffer: ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def open_pillow(data: bytes, fmt: str) -> Image.Image:
    """Open `data` with a single Pillow plugin; header only, pixels stay lazy."""
    try:
        return Image.open(io.BytesIO(data), formats=[fmt])
    except Exception as e:
        raise DecodeFailureError(f"Failed to read {fmt} header: {e}") from e


def load_pillow(image: Image.Image, fmt: str) -> Image.Image:
    """Force the full pixel decode; truncated payloads surface here."""
    try:
        image.load()
    except Exception as e:
        raise DecodeFailureError(f"Failed to decode {fmt}: {e}") from e
    return image


def rgba_to_bgra(rgba: np.ndarray) -> np.ndarray:
    return np.ascontiguousarray(rgba[:, :, [2, 1, 0, 3]])


def pillow_to_bgra8(image: Image.Image, is_srgb: bool = True) -> RawImageBuffer:
    rgba = np.asarray(image.convert("RGBA"), dtype=np.uint8)
    return RawImageBuffer.from_array(rgba_to_bgra(rgba), PixelFormat.BGRA8, is_srgb)


def pillow_to_gray8(image: Image.Image, is_srgb: bool = True) -> RawImageBuffer:
    gray = np.asarray(image.convert("L"), dtype=np.uint8)
    return RawImageBuffer.from_array(gray, PixelFormat.GRAY8, is_srgb)
