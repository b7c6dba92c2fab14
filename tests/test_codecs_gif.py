from __future__ import annotations

import pytest

from helpers.images import gif_bytes
from runtime_image_loader.image_engine.codecs import CodecRegistry, GifCodec
from runtime_image_loader.image_engine.errors import DecodeFailureError
from runtime_image_loader.image_engine.raw_image import PixelFormat


def test_gif_frames_keep_durations_and_loop() -> None:
    frames, loop = GifCodec().decode_frames(gif_bytes())

    assert loop == 0
    assert [f.duration_ms for f in frames] == [50, 120, 80]
    assert all(f.buffer.pixel_format is PixelFormat.BGRA8 for f in frames)
    assert all((f.buffer.width, f.buffer.height) == (6, 4) for f in frames)
    # BGRA order: red frame has its color in the third byte
    assert tuple(frames[0].buffer.as_array()[0, 0]) == (0, 0, 255, 255)
    assert tuple(frames[2].buffer.as_array()[0, 0]) == (255, 0, 0, 255)


def test_gif_without_loop_extension_plays_once() -> None:
    _frames, loop = GifCodec().decode_frames(gif_bytes(loop=None))
    assert loop is None


def test_gif_static_decode_returns_first_frame() -> None:
    codec = GifCodec()
    data = gif_bytes()
    header = codec.read_header(data)

    buf = codec.decode(data, header)

    assert (header.width, header.height) == (6, 4)
    assert tuple(buf.as_array()[0, 0]) == (0, 0, 255, 255)


def test_gif_is_not_in_static_dispatch() -> None:
    assert CodecRegistry.default().find_codec(gif_bytes()) is None


def test_gif_corrupt_stream_fails() -> None:
    data = gif_bytes()
    with pytest.raises(DecodeFailureError):
        GifCodec().decode_frames(data[:20])
