"""Small encoded test images built with Pillow."""

from __future__ import annotations

import io

import numpy as np
from PIL import Image


def encode(image: Image.Image, fmt: str, **params) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format=fmt, **params)
    return buf.getvalue()


def gradient_rgba(width: int = 8, height: int = 4) -> np.ndarray:
    """Deterministic RGBA8 pattern with an opaque alpha channel."""
    y, x = np.mgrid[0:height, 0:width]
    rgba = np.zeros((height, width, 4), dtype=np.uint8)
    rgba[:, :, 0] = (x * 255 // max(1, width - 1)).astype(np.uint8)
    rgba[:, :, 1] = (y * 255 // max(1, height - 1)).astype(np.uint8)
    rgba[:, :, 2] = 77
    rgba[:, :, 3] = 255
    return rgba


def png_bytes(width: int = 8, height: int = 4, mode: str = "RGBA") -> bytes:
    image = Image.fromarray(gradient_rgba(width, height), "RGBA")
    if mode != "RGBA":
        image = image.convert(mode)
    return encode(image, "PNG")


def gif_bytes(colors=((255, 0, 0), (0, 255, 0), (0, 0, 255)), durations=(50, 120, 80), loop: int | None = 0,
              size=(6, 4)) -> bytes:
    frames = [Image.new("RGB", size, color).convert("P") for color in colors]
    params = {"save_all": True, "append_images": frames[1:], "duration": list(durations)}
    if loop is not None:
        params["loop"] = loop
    return encode(frames[0], "GIF", **params)
