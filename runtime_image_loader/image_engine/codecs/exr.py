"""OpenEXR codec for single-part scanline images.

Supports half-float R, G, B and optional A channels stored uncompressed or
with RLE, ZIPS or ZIP compression. Output is always RGBA16F in linear space.
Tiled, deep and multi-part files, 32-bit channels and the wavelet/lossy
compressors are reported as unsupported.
"""

from __future__ import annotations

import math
import struct
import zlib
from dataclasses import dataclass

import numpy as np

from ..errors import DecodeFailureError, UnsupportedFormatError
from ..raw_image import PixelFormat, RawImageBuffer
from .base import Codec, ImageHeader

EXR_MAGIC = b"\x76\x2f\x31\x01"

_TILED_FLAG = 0x200
_NON_IMAGE_FLAG = 0x800
_MULTIPART_FLAG = 0x1000

_UINT, _HALF, _FLOAT = 0, 1, 2
_PIXEL_TYPE_SIZES = {_UINT: 4, _HALF: 2, _FLOAT: 4}
_PIXEL_TYPE_DEPTHS = {_UINT: 32, _HALF: 16, _FLOAT: 32}

_COMPRESSION_NAMES = ("NONE", "RLE", "ZIPS", "ZIP", "PIZ", "PXR24", "B44", "B44A", "DWAA", "DWAB")
# compression -> scanlines per chunk, for the compressors we decode
_LINES_PER_CHUNK = {0: 1, 1: 1, 2: 1, 3: 16}


@dataclass(frozen=True)
class ExrChannel:
    name: str
    pixel_type: int
    x_sampling: int
    y_sampling: int

    @property
    def size(self) -> int:
        return _PIXEL_TYPE_SIZES.get(self.pixel_type, 0)


@dataclass(frozen=True)
class ExrLayout:
    channels: tuple[ExrChannel, ...]
    compression: int
    x_min: int
    y_min: int
    width: int
    height: int
    offset_table_pos: int


def _read_cstr(data: bytes, pos: int) -> tuple[str, int]:
    end = data.find(b"\0", pos)
    if end < 0:
        raise DecodeFailureError("Truncated EXR header")
    return data[pos:end].decode("latin-1"), end + 1


def _parse_channel_list(value: bytes) -> tuple[ExrChannel, ...]:
    channels = []
    pos = 0
    while pos < len(value) and value[pos] != 0:
        name, pos = _read_cstr(value, pos)
        if pos + 16 > len(value):
            raise DecodeFailureError("Truncated EXR channel list")
        pixel_type, _p_linear, _reserved, x_sampling, y_sampling = struct.unpack_from("<iB3sii", value, pos)
        pos += 16
        channels.append(ExrChannel(name, pixel_type, x_sampling, y_sampling))
    return tuple(channels)


def parse_layout(data: bytes) -> ExrLayout:
    if len(data) < 8:
        raise DecodeFailureError("Truncated EXR header")
    (version,) = struct.unpack_from("<I", data, 4)
    if version & (_TILED_FLAG | _NON_IMAGE_FLAG | _MULTIPART_FLAG):
        raise UnsupportedFormatError("EXR file contains data in an unsupported format: tiled, deep or multi-part")

    attributes: dict[str, tuple[str, bytes]] = {}
    pos = 8
    while True:
        name, pos = _read_cstr(data, pos)
        if not name:
            break
        type_name, pos = _read_cstr(data, pos)
        if pos + 4 > len(data):
            raise DecodeFailureError("Truncated EXR header")
        (size,) = struct.unpack_from("<i", data, pos)
        pos += 4
        if size < 0 or pos + size > len(data):
            raise DecodeFailureError(f"Truncated EXR attribute: {name}")
        attributes[name] = (type_name, data[pos : pos + size])
        pos += size

    for required in ("channels", "compression", "dataWindow"):
        if required not in attributes:
            raise DecodeFailureError(f"EXR header is missing the '{required}' attribute")

    channels = _parse_channel_list(attributes["channels"][1])
    compression = attributes["compression"][1][0]
    x_min, y_min, x_max, y_max = struct.unpack("<iiii", attributes["dataWindow"][1][:16])
    return ExrLayout(
        channels=channels,
        compression=compression,
        x_min=x_min,
        y_min=y_min,
        width=x_max - x_min + 1,
        height=y_max - y_min + 1,
        offset_table_pos=pos,
    )


def _rle_uncompress(payload: bytes) -> bytes:
    out = bytearray()
    pos = 0
    end = len(payload)
    while pos < end:
        count = payload[pos] - 256 if payload[pos] > 127 else payload[pos]
        pos += 1
        if count < 0:
            out += payload[pos : pos - count]
            pos -= count
        else:
            if pos >= end:
                raise DecodeFailureError("Truncated EXR RLE run")
            out += bytes((payload[pos],)) * (count + 1)
            pos += 1
    return bytes(out)


def _undo_predictor_and_interleave(buf: bytes) -> bytes:
    """Reverse the byte delta predictor and the two-halves split used by RLE/ZIP."""
    if not buf:
        return buf
    t = np.frombuffer(buf, dtype=np.uint8).astype(np.int64)
    t[1:] -= 128
    t = (np.cumsum(t) & 0xFF).astype(np.uint8)
    half = (t.size + 1) // 2
    out = np.empty_like(t)
    out[0::2] = t[:half]
    out[1::2] = t[half:]
    return out.tobytes()


def _uncompress(payload: bytes, compression: int, expected: int) -> bytes:
    # A chunk that would not shrink is stored raw whatever the compressor.
    if compression == 0 or len(payload) >= expected:
        return payload
    if compression == 1:
        return _undo_predictor_and_interleave(_rle_uncompress(payload))
    try:
        inflated = zlib.decompress(payload)
    except zlib.error as e:
        raise DecodeFailureError(f"Failed to decode EXR: corrupt ZIP chunk ({e})") from e
    return _undo_predictor_and_interleave(inflated)


class ExrCodec(Codec):
    name = "EXR"

    def sniff(self, data: bytes) -> bool:
        return len(data) >= 8 and data[:4] == EXR_MAGIC

    def read_header(self, data: bytes) -> ImageHeader:
        layout = parse_layout(data)
        self._check_supported(layout)
        return ImageHeader(layout.width, layout.height, 16, "rgba")

    @staticmethod
    def _check_supported(layout: ExrLayout) -> None:
        by_name = {ch.name: ch for ch in layout.channels}
        if not {"R", "G", "B"} <= by_name.keys():
            names = ",".join(ch.name for ch in layout.channels) or "none"
            raise UnsupportedFormatError(f"EXR file contains data in an unsupported format: channels {names}")
        for key in ("R", "G", "B", "A"):
            ch = by_name.get(key)
            if ch is None:
                continue
            if ch.pixel_type != _HALF:
                depth = _PIXEL_TYPE_DEPTHS.get(ch.pixel_type, ch.pixel_type)
                raise UnsupportedFormatError(f"Unsupported EXR bit depth: {depth}. Only 16 bit half float is supported.")
            if ch.x_sampling != 1 or ch.y_sampling != 1:
                raise UnsupportedFormatError(f"Unsupported EXR channel subsampling on {key}")
        if any(ch.size == 0 for ch in layout.channels):
            raise UnsupportedFormatError("EXR file contains a channel of unknown pixel type")
        if layout.compression not in _LINES_PER_CHUNK:
            name = (
                _COMPRESSION_NAMES[layout.compression]
                if layout.compression < len(_COMPRESSION_NAMES)
                else str(layout.compression)
            )
            raise UnsupportedFormatError(f"Unsupported EXR compression: {name}")

    def decode(self, data: bytes, header: ImageHeader) -> RawImageBuffer:
        layout = parse_layout(data)
        width, height = layout.width, layout.height
        lines_per_chunk = _LINES_PER_CHUNK[layout.compression]
        chunk_count = math.ceil(height / lines_per_chunk)
        table_end = layout.offset_table_pos + 8 * chunk_count
        if table_end > len(data):
            raise DecodeFailureError("Truncated EXR offset table")
        offsets = struct.unpack_from(f"<{chunk_count}Q", data, layout.offset_table_pos)

        bytes_per_line = sum(ch.size for ch in layout.channels) * width
        planes = {
            name: np.ones((height, width), dtype=np.float16) if name == "A" else np.zeros((height, width), np.float16)
            for name in ("R", "G", "B", "A")
        }

        covered = np.zeros(height, dtype=bool)
        for offset in offsets:
            if offset + 8 > len(data):
                raise DecodeFailureError("Truncated EXR chunk")
            y, size = struct.unpack_from("<ii", data, offset)
            row = y - layout.y_min
            if row < 0 or row >= height or size < 0:
                raise DecodeFailureError(f"Corrupt EXR chunk at scanline {y}")
            payload = data[offset + 8 : offset + 8 + size]
            if len(payload) < size:
                raise DecodeFailureError("Truncated EXR chunk")
            lines = min(lines_per_chunk, height - row)
            expected = bytes_per_line * lines
            raw = _uncompress(payload, layout.compression, expected)
            if len(raw) != expected:
                raise DecodeFailureError(f"Corrupt EXR chunk at scanline {y}: {len(raw)} != {expected} bytes")

            block = np.frombuffer(raw, dtype=np.uint8).reshape(lines, bytes_per_line)
            col = 0
            for ch in layout.channels:
                span = ch.size * width
                if ch.name in planes:
                    values = np.ascontiguousarray(block[:, col : col + span]).view("<f2")
                    planes[ch.name][row : row + lines] = values
                col += span
            covered[row : row + lines] = True

        if not covered.all():
            raise DecodeFailureError("Failed to decode EXR: missing scanlines")

        rgba = np.stack([planes["R"], planes["G"], planes["B"], planes["A"]], axis=-1)
        return RawImageBuffer.from_array(rgba, PixelFormat.RGBA16F, is_srgb=False)
