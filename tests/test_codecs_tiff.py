from __future__ import annotations

import numpy as np
import pytest
from PIL import Image

from helpers.images import encode, gradient_rgba
from runtime_image_loader.image_engine.codecs import CodecRegistry, TiffCodec
from runtime_image_loader.image_engine.errors import DecodeFailureError
from runtime_image_loader.image_engine.raw_image import GammaSpace, PixelFormat


def test_tiff_header_is_read_without_decoding() -> None:
    data = encode(Image.new("RGB", (11, 3)), "TIFF")
    codec = TiffCodec()

    assert codec.sniff(data)
    header = codec.read_header(data)
    assert (header.width, header.height, header.bit_depth, header.layout) == (11, 3, 8, "color")


def test_tiff_is_optional_in_dispatch() -> None:
    data = encode(Image.new("RGB", (4, 4)), "TIFF")
    assert CodecRegistry.default(include_tiff=False).find_codec(data) is None
    assert isinstance(CodecRegistry.default().find_codec(data), TiffCodec)


def test_tiff_rgb8_decodes_to_bgra8() -> None:
    pytest.importorskip("pyvips")

    source = Image.fromarray(gradient_rgba(6, 4), "RGBA").convert("RGB")
    buf = CodecRegistry.default().decode(encode(source, "TIFF"))

    assert buf.pixel_format is PixelFormat.BGRA8
    assert buf.gamma_space is GammaSpace.SRGB
    assert np.array_equal(buf.as_array(), np.asarray(source.convert("RGBA"))[:, :, [2, 1, 0, 3]])


def test_tiff_gray8_decodes_to_gray8() -> None:
    pytest.importorskip("pyvips")

    gray = np.arange(20, dtype=np.uint8).reshape(4, 5) * 12
    buf = CodecRegistry.default().decode(encode(Image.fromarray(gray, "L"), "TIFF"))

    assert buf.pixel_format is PixelFormat.GRAY8
    assert np.array_equal(buf.as_array()[:, :, 0], gray)


def test_tiff_16bit_decodes_to_rgba16_linear() -> None:
    pytest.importorskip("pyvips")

    gray = (np.arange(20, dtype=np.uint16).reshape(4, 5) * 3000).astype(np.uint16)
    buf = CodecRegistry.default().decode(encode(Image.fromarray(gray, "I;16"), "TIFF"))

    assert buf.pixel_format is PixelFormat.RGBA16
    assert buf.gamma_space is GammaSpace.LINEAR
    assert np.array_equal(buf.as_array()[:, :, 1], gray)


def test_tiff_float_decodes_to_rgba16f() -> None:
    pytest.importorskip("pyvips")

    values = np.linspace(0.0, 2.0, 12, dtype=np.float32).reshape(3, 4)
    buf = CodecRegistry.default().decode(encode(Image.fromarray(values, "F"), "TIFF"))

    assert buf.pixel_format is PixelFormat.RGBA16F
    arr = buf.as_array()
    assert np.allclose(arr[:, :, 0].astype(np.float32), values, atol=1e-2)
    assert (arr[:, :, 3] == 1.0).all()


def test_tiff_truncated_payload_fails_to_decode() -> None:
    pytest.importorskip("pyvips")

    data = encode(Image.fromarray(gradient_rgba(64, 64), "RGBA").convert("RGB"), "TIFF")
    with pytest.raises(DecodeFailureError):
        CodecRegistry.default().decode(data[: len(data) // 2])
