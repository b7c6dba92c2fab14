from __future__ import annotations

import numpy as np
import pytest

from helpers.exr_writer import write_exr
from runtime_image_loader.image_engine.codecs import CodecRegistry, ExrCodec
from runtime_image_loader.image_engine.codecs.exr import _rle_uncompress, parse_layout
from runtime_image_loader.image_engine.errors import DecodeFailureError, UnsupportedFormatError
from runtime_image_loader.image_engine.raw_image import CompressionHint, GammaSpace, PixelFormat


def _pixels(height: int, width: int, channels: int = 4) -> np.ndarray:
    rng = np.random.default_rng(1234)
    return (rng.random((height, width, channels)) * 4.0).astype(np.float16)


@pytest.mark.parametrize("compression", ["NONE", "ZIPS", "ZIP"])
def test_exr_half_rgba_is_bit_exact(compression: str) -> None:
    src = _pixels(20, 7)
    buf = CodecRegistry.default().decode(write_exr(src, compression))

    assert buf.pixel_format is PixelFormat.RGBA16F
    assert buf.gamma_space is GammaSpace.LINEAR
    assert buf.compression_hint is CompressionHint.HDR
    assert (buf.width, buf.height) == (7, 20)
    assert np.array_equal(buf.as_array(), src)


def test_exr_zip_compresses_flat_image() -> None:
    src = np.ones((32, 32, 4), dtype=np.float16)
    data = write_exr(src, "ZIP")
    assert len(data) < 32 * 32 * 8

    buf = CodecRegistry.default().decode(data)
    assert np.array_equal(buf.as_array(), src)


def test_exr_missing_alpha_defaults_to_one() -> None:
    src = _pixels(3, 5, channels=3)
    buf = CodecRegistry.default().decode(write_exr(src, channels="RGB"))

    arr = buf.as_array()
    assert np.array_equal(arr[:, :, :3], src)
    assert (arr[:, :, 3] == 1.0).all()


def test_exr_layout_reads_header_attributes() -> None:
    layout = parse_layout(write_exr(_pixels(2, 3), "ZIPS"))
    assert [ch.name for ch in layout.channels] == ["A", "B", "G", "R"]
    assert (layout.width, layout.height, layout.compression) == (3, 2, 2)


def test_exr_float_channels_are_rejected() -> None:
    data = write_exr(_pixels(2, 2), pixel_type=2)
    with pytest.raises(UnsupportedFormatError, match="Unsupported EXR bit depth: 32"):
        CodecRegistry.default().decode(data)


def test_exr_missing_color_channels_are_rejected() -> None:
    data = write_exr(_pixels(2, 2, channels=1), channels="Z")
    with pytest.raises(UnsupportedFormatError, match="channels Z"):
        CodecRegistry.default().decode(data)


def test_exr_tiled_files_are_rejected() -> None:
    data = write_exr(_pixels(2, 2), version_flags=0x200)
    with pytest.raises(UnsupportedFormatError, match="tiled"):
        CodecRegistry.default().decode(data)


def test_exr_lossy_compression_is_rejected() -> None:
    data = write_exr(_pixels(2, 2), "PIZ")
    with pytest.raises(UnsupportedFormatError, match="Unsupported EXR compression: PIZ"):
        CodecRegistry.default().decode(data)


def test_exr_truncated_chunk_fails() -> None:
    data = write_exr(_pixels(4, 4), "NONE")
    with pytest.raises(DecodeFailureError):
        CodecRegistry.default().decode(data[:-10])


def test_exr_sniff_uses_magic() -> None:
    codec = ExrCodec()
    assert codec.sniff(b"\x76\x2f\x31\x01\x02\0\0\0")
    assert not codec.sniff(b"\x76\x2f\x31\x02\x02\0\0\0")


def test_rle_runs_and_literals() -> None:
    # run of 3 x 0x07, then 3 literal bytes
    assert _rle_uncompress(bytes([2, 7, 253, 1, 2, 3])) == b"\x07\x07\x07\x01\x02\x03"
