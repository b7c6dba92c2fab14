from __future__ import annotations

import numpy as np
import pytest

from runtime_image_loader.image_engine.raw_image import PixelFormat, RawImageBuffer
from runtime_image_loader.image_engine.texture import (
    TextureFormat,
    convert_for_texture,
    flatten_pixels,
    select_texture_format,
)


@pytest.mark.parametrize(
    ("pixel_format", "for_ui", "expected"),
    [
        (PixelFormat.GRAY8, False, TextureFormat.G8),
        (PixelFormat.GRAY8, True, TextureFormat.B8G8R8A8),
        (PixelFormat.BGRA8, False, TextureFormat.B8G8R8A8),
        (PixelFormat.RGBA16, False, TextureFormat.R16G16B16A16_UNORM),
        (PixelFormat.RGBA16, True, TextureFormat.B8G8R8A8),
        (PixelFormat.RGBA16F, True, TextureFormat.FLOAT_RGBA),
        (PixelFormat.RGBA16F, False, TextureFormat.FLOAT_RGBA),
    ],
)
def test_select_texture_format(pixel_format, for_ui, expected) -> None:
    assert select_texture_format(pixel_format, for_ui) is expected


def test_flatten_gray_expands_to_rgba() -> None:
    buf = RawImageBuffer.from_array(np.array([[10, 20]], np.uint8), PixelFormat.GRAY8, True)
    assert flatten_pixels(buf).tolist() == [[10, 10, 10, 255], [20, 20, 20, 255]]


def test_flatten_bgra_swaps_to_rgba() -> None:
    buf = RawImageBuffer.from_array(np.array([[[1, 2, 3, 4]]], np.uint8), PixelFormat.BGRA8, True)
    assert flatten_pixels(buf).tolist() == [[3, 2, 1, 4]]


def test_flatten_16bit_and_float_narrow_to_8bit() -> None:
    wide = RawImageBuffer.from_array(np.array([[[0xFFFF, 0x8000, 0, 0xFFFF]]], np.uint16), PixelFormat.RGBA16, False)
    assert flatten_pixels(wide).tolist() == [[255, 128, 0, 255]]

    hdr = RawImageBuffer.from_array(np.array([[[2.0, 0.5, -1.0, 1.0]]], np.float16), PixelFormat.RGBA16F, False)
    assert flatten_pixels(hdr).tolist() == [[255, 128, 0, 255]]


def test_convert_keeps_matching_buffer() -> None:
    buf = RawImageBuffer.from_array(np.zeros((1, 1, 4), np.uint8), PixelFormat.BGRA8, True)
    assert convert_for_texture(buf, TextureFormat.B8G8R8A8) is buf


def test_convert_gray_to_bgra_keeps_gamma() -> None:
    buf = RawImageBuffer.from_array(np.array([[7]], np.uint8), PixelFormat.GRAY8, is_srgb=False)
    out = convert_for_texture(buf, TextureFormat.B8G8R8A8)
    assert out.pixel_format is PixelFormat.BGRA8
    assert out.is_srgb is False
    assert out.as_array().tolist() == [[[7, 7, 7, 255]]]


def test_convert_rejects_narrowing_to_gray() -> None:
    buf = RawImageBuffer.from_array(np.zeros((1, 1, 4), np.uint8), PixelFormat.BGRA8, True)
    with pytest.raises(ValueError):
        convert_for_texture(buf, TextureFormat.G8)
