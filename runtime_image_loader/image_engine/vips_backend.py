"""libvips decode helpers for high bit-depth sources.

Pillow collapses 16-bit color PNGs to 8 bits, so 16-bit PNG and TIFF
payloads go through pyvips, which keeps the native sample format.
"""

import contextlib
import os
from pathlib import Path
from typing import Any

import numpy as np

from runtime_image_loader.logger import get_logger

_logger = get_logger("vips")

# Locate bundled libvips (for frozen exe/_MEIPASS and source tree)
_BASE_DIR = Path(getattr(os.sys, "_MEIPASS", Path(__file__).resolve().parent.parent))
_LIBVIPS_DIR = _BASE_DIR / "libvips"
if os.name == "nt" and _LIBVIPS_DIR.exists():
    with contextlib.suppress(Exception):
        os.add_dll_directory(str(_LIBVIPS_DIR))

_VIPS_DTYPES = {
    "uchar": np.uint8,
    "char": np.int8,
    "ushort": np.uint16,
    "short": np.int16,
    "uint": np.uint32,
    "int": np.int32,
    "float": np.float32,
    "double": np.float64,
}

_pyvips: Any | None = None


def _get_pyvips_module() -> Any:
    global _pyvips
    if _pyvips is None:
        import pyvips  # type: ignore

        # Decodes are one-shot; the operation cache would only grow memory.
        with contextlib.suppress(Exception):
            pyvips.cache_set_max(0)
            pyvips.cache_set_max_mem(0)
            pyvips.cache_set_max_files(0)
        _pyvips = pyvips
    return _pyvips


def decode_buffer_to_array(data: bytes) -> tuple[np.ndarray, str]:
    """Decode an encoded buffer into a (height, width, bands) array.

    Returns the array and the libvips band format name (uchar, ushort, float...).
    """
    pyvips = _get_pyvips_module()
    # Loader warnings such as truncated data fail the decode.
    image = pyvips.Image.new_from_buffer(data, "", access="sequential", fail_on="warning")
    image = image.copy_memory()
    fmt = str(image.format)
    dtype = _VIPS_DTYPES.get(fmt)
    if dtype is None:
        raise ValueError(f"Unsupported sample format: {fmt}")
    mem = image.write_to_memory()
    array = np.frombuffer(mem, dtype=dtype).reshape(image.height, image.width, image.bands).copy()
    _logger.debug("vips decode: %dx%d bands=%d format=%s", image.width, image.height, image.bands, fmt)
    with contextlib.suppress(Exception):
        del image
    return array, fmt


def expand_to_rgba(array: np.ndarray, opaque: int | float) -> np.ndarray:
    """Expand 1 (gray), 2 (gray+alpha), 3 (RGB) or 4+ band arrays to RGBA."""
    bands = array.shape[2]
    if bands == 1:
        gray = array[:, :, 0]
        alpha = np.full_like(gray, opaque)
        return np.stack([gray, gray, gray, alpha], axis=-1)
    if bands == 2:
        gray, alpha = array[:, :, 0], array[:, :, 1]
        return np.stack([gray, gray, gray, alpha], axis=-1)
    if bands == 3:
        alpha = np.full(array.shape[:2], opaque, dtype=array.dtype)
        return np.concatenate([array, alpha[:, :, None]], axis=-1)
    return np.ascontiguousarray(array[:, :, :4])
