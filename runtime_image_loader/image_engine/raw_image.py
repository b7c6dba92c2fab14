"""Canonical decode output shared by every codec."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import numpy as np


class PixelFormat(Enum):
    """Closed set of in-memory layouts all decoders normalize into.

    Value is (bytes_per_pixel, channels, numpy dtype string).
    """

    GRAY8 = (1, 1, "u1")
    BGRA8 = (4, 4, "u1")
    RGBA16 = (8, 4, "<u2")
    RGBA16F = (8, 4, "<f2")

    @property
    def bytes_per_pixel(self) -> int:
        return self.value[0]

    @property
    def channels(self) -> int:
        return self.value[1]

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(self.value[2])


class GammaSpace(Enum):
    LINEAR = "linear"
    SRGB = "srgb"


class CompressionHint(Enum):
    DEFAULT = "default"
    GRAYSCALE = "grayscale"
    HDR = "hdr"


@dataclass(frozen=True)
class RawImageBuffer:
    """Decoded pixels plus the metadata a texture builder needs.

    `gamma_space` and `compression_hint` are derived from `is_srgb` and
    `pixel_format`; they cannot be set on their own.
    """

    width: int
    height: int
    pixel_format: PixelFormat
    data: bytes = field(repr=False)
    is_srgb: bool
    source_modification_time: datetime | None = None

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"invalid image size: {self.width} x {self.height}")
        expected = self.width * self.height * self.pixel_format.bytes_per_pixel
        if len(self.data) != expected:
            raise ValueError(
                f"pixel data size mismatch for {self.pixel_format.name} "
                f"{self.width}x{self.height}: {len(self.data)} != {expected}"
            )
        if not isinstance(self.data, bytes):
            # Freeze the buffer so it cannot be mutated behind the owner's back.
            object.__setattr__(self, "data", bytes(self.data))

    @property
    def gamma_space(self) -> GammaSpace:
        return GammaSpace.SRGB if self.is_srgb else GammaSpace.LINEAR

    @property
    def compression_hint(self) -> CompressionHint:
        if self.pixel_format is PixelFormat.RGBA16F:
            return CompressionHint.HDR
        if self.pixel_format is PixelFormat.GRAY8:
            return CompressionHint.GRAYSCALE
        return CompressionHint.DEFAULT

    @property
    def bytes_per_pixel(self) -> int:
        return self.pixel_format.bytes_per_pixel

    def as_array(self) -> np.ndarray:
        """Read-only (height, width, channels) view over `data`."""
        arr = np.frombuffer(self.data, dtype=self.pixel_format.dtype)
        return arr.reshape(self.height, self.width, self.pixel_format.channels)

    @classmethod
    def from_array(
        cls,
        array: np.ndarray,
        pixel_format: PixelFormat,
        is_srgb: bool,
        source_modification_time: datetime | None = None,
    ) -> RawImageBuffer:
        """Build a buffer from a (height, width[, channels]) array in `pixel_format` order."""
        arr = np.ascontiguousarray(array, dtype=pixel_format.dtype)
        if arr.ndim == 2:
            arr = arr[:, :, None]
        if arr.ndim != 3 or arr.shape[2] != pixel_format.channels:
            raise ValueError(f"array shape {arr.shape} does not match {pixel_format.name}")
        return cls(
            width=int(arr.shape[1]),
            height=int(arr.shape[0]),
            pixel_format=pixel_format,
            data=arr.tobytes(),
            is_srgb=is_srgb,
            source_modification_time=source_modification_time,
        )
