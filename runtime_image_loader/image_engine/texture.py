"""Pre-upload format selection and the texture builder contract.

The loader never creates GPU resources. It picks the texture format the
buffer should be uploaded as, converts the buffer when the layouts differ,
and hands the result to an external `TextureBuilder`.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

import numpy as np

from .raw_image import PixelFormat, RawImageBuffer

if TYPE_CHECKING:
    from .requests import TransformParams

_RGBA_CHANNELS = 4


class TextureFormat(Enum):
    """Upload formats; the value is the buffer layout the builder expects."""

    G8 = PixelFormat.GRAY8
    B8G8R8A8 = PixelFormat.BGRA8
    R16G16B16A16_UNORM = PixelFormat.RGBA16
    FLOAT_RGBA = PixelFormat.RGBA16F

    @property
    def pixel_format(self) -> PixelFormat:
        return self.value


class TextureBuilder(Protocol):
    """Creates a renderable handle; raises ResourceCreationError on failure."""

    def __call__(
        self,
        source_id: str,
        buffer: RawImageBuffer | None,
        pixels: np.ndarray | None,
        texture_format: TextureFormat,
        params: TransformParams,
    ) -> Any: ...


def select_texture_format(pixel_format: PixelFormat, for_ui: bool) -> TextureFormat:
    """Pick the upload format for a decoded buffer.

    UI textures are sampled as color, so single channel and 16-bit integer
    sources are widened/narrowed to 8-bit BGRA. HDR data keeps its float
    format either way.
    """
    if pixel_format is PixelFormat.RGBA16F:
        return TextureFormat.FLOAT_RGBA
    if for_ui:
        return TextureFormat.B8G8R8A8
    if pixel_format is PixelFormat.GRAY8:
        return TextureFormat.G8
    if pixel_format is PixelFormat.RGBA16:
        return TextureFormat.R16G16B16A16_UNORM
    return TextureFormat.B8G8R8A8


def to_rgba8(buffer: RawImageBuffer) -> np.ndarray:
    """(height, width, 4) RGBA uint8 copy of any canonical buffer."""
    arr = buffer.as_array()
    fmt = buffer.pixel_format
    if fmt is PixelFormat.GRAY8:
        gray = arr[:, :, 0]
        return np.stack([gray, gray, gray, np.full_like(gray, 255)], axis=-1)
    if fmt is PixelFormat.BGRA8:
        return np.ascontiguousarray(arr[:, :, [2, 1, 0, 3]])
    if fmt is PixelFormat.RGBA16:
        return (arr >> 8).astype(np.uint8)
    # RGBA16F: clamp to displayable range
    scaled = np.clip(arr.astype(np.float32), 0.0, 1.0) * 255.0
    return np.rint(scaled).astype(np.uint8)


def flatten_pixels(buffer: RawImageBuffer) -> np.ndarray:
    """Flattened (width*height, 4) RGBA8 pixel sequence, row-major."""
    return to_rgba8(buffer).reshape(-1, _RGBA_CHANNELS)


def convert_for_texture(buffer: RawImageBuffer, texture_format: TextureFormat) -> RawImageBuffer:
    """Return `buffer` in the layout of `texture_format`; no copy if it already matches."""
    target = texture_format.pixel_format
    if buffer.pixel_format is target:
        return buffer
    if target is PixelFormat.BGRA8:
        rgba = to_rgba8(buffer)
        return RawImageBuffer.from_array(
            rgba[:, :, [2, 1, 0, 3]], PixelFormat.BGRA8, buffer.is_srgb, buffer.source_modification_time
        )
    raise ValueError(f"cannot convert {buffer.pixel_format.name} to {texture_format.name}")
