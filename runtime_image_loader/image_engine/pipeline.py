"""Import pipeline: bytes or file -> validated, normalized RawImageBuffer."""

from __future__ import annotations

import dataclasses

import numpy as np
from PIL import Image

from runtime_image_loader.logger import get_logger
from runtime_image_loader.settings_manager import SettingsManager

from .codecs.registry import CodecRegistry
from .errors import ImageIOError, ImageLoadError
from .file_io import FileSystem, LocalFileSystem
from .raw_image import PixelFormat, RawImageBuffer
from .requests import FilePath, FilterMode, ImageReadRequest, ImageReadResult, TransformParams
from .texture import convert_for_texture, flatten_pixels, select_texture_format

_logger = get_logger("pipeline")

_RESAMPLING = {
    FilterMode.DEFAULT: Image.Resampling.BILINEAR,
    FilterMode.NEAREST: Image.Resampling.NEAREST,
    FilterMode.BILINEAR: Image.Resampling.BILINEAR,
    FilterMode.TRILINEAR: Image.Resampling.BICUBIC,
}


def resize_buffer(buffer: RawImageBuffer, width: int, height: int, filter_mode: FilterMode) -> RawImageBuffer:
    """Resample every channel independently as 32-bit float planes.

    Going through float planes keeps one code path for 8-bit, 16-bit and
    half-float layouts.
    """
    if (width, height) == (buffer.width, buffer.height):
        return buffer
    resample = _RESAMPLING[filter_mode]
    src = buffer.as_array()
    planes = []
    for c in range(src.shape[2]):
        plane = Image.fromarray(src[:, :, c].astype(np.float32))
        planes.append(np.asarray(plane.resize((width, height), resample=resample), dtype=np.float32))
    out = np.stack(planes, axis=-1)

    dtype = buffer.pixel_format.dtype
    if buffer.pixel_format is not PixelFormat.RGBA16F:
        info = np.iinfo(dtype)
        out = np.clip(np.rint(out), info.min, info.max)
    return RawImageBuffer.from_array(
        out.astype(dtype), buffer.pixel_format, buffer.is_srgb, buffer.source_modification_time
    )


def percent_size(buffer: RawImageBuffer, params: TransformParams) -> tuple[int, int]:
    if not params.is_percent_size_valid():
        return buffer.width, buffer.height
    width = max(1, buffer.width * params.percent_size_x // 100)
    height = max(1, buffer.height * params.percent_size_y // 100)
    return width, height


class ImportPipeline:
    """Turns a request into a result.

    `import_from_bytes`/`import_from_file` raise ImageLoadError subclasses;
    `read` captures them into an ImageReadResult so worker threads never see
    an exception.
    """

    def __init__(
        self,
        registry: CodecRegistry | None = None,
        settings: SettingsManager | None = None,
        fs: FileSystem | None = None,
    ):
        self.settings = settings or SettingsManager()
        self.registry = registry or CodecRegistry.default(self.settings.resolution_policy())
        self.fs: FileSystem = fs or LocalFileSystem()

    # ---- stages ---------------------------------------------------
    def load_file(self, path: str) -> bytes:
        """Existence and size checks, then a whole-file read."""
        if not self.fs.exists(path):
            raise ImageIOError(f"Image does not exist: {path}")
        try:
            size = self.fs.size(path)
        except OSError as e:
            raise ImageIOError(f"Image size query failed: {path} ({e})") from e
        limit = self.settings.max_file_size_bytes
        if size > limit:
            raise ImageIOError(f"Image filesize > {limit} bytes: {path}")
        try:
            data = self.fs.read_bytes(path)
        except OSError as e:
            raise ImageIOError(f"Image I/O error: {path} ({e})") from e
        if not data:
            raise ImageIOError(f"Image I/O error: {path} (empty file)")
        return data

    def import_from_bytes(self, data: bytes, params: TransformParams | None = None) -> RawImageBuffer:
        """Decode and apply size/format transforms."""
        params = params or TransformParams()
        buffer = self.registry.decode(data)
        return self.apply_transformations(buffer, params)

    def import_from_file(self, path: str, params: TransformParams | None = None) -> RawImageBuffer:
        data = self.load_file(path)
        try:
            mtime = self.fs.modification_time(path)
        except OSError as e:
            _logger.debug("modification time unavailable for %s: %s", path, e)
            mtime = None
        buffer = self.import_from_bytes(data, params)
        return dataclasses.replace(buffer, source_modification_time=mtime)

    def apply_transformations(self, buffer: RawImageBuffer, params: TransformParams) -> RawImageBuffer:
        width, height = percent_size(buffer, params)
        if (width, height) != (buffer.width, buffer.height):
            _logger.debug("resize %dx%d -> %dx%d", buffer.width, buffer.height, width, height)
            buffer = resize_buffer(buffer, width, height, params.filter_mode)
        texture_format = select_texture_format(buffer.pixel_format, params.for_ui)
        return convert_for_texture(buffer, texture_format)

    # ---- request entry point --------------------------------------
    def read(self, request: ImageReadRequest) -> ImageReadResult:
        """Run one request to completion; never raises for decode problems."""
        params = request.transform_params
        try:
            if request.wants_pixels_only:
                # Pixel requests skip the resize/format transforms.
                if isinstance(request.input_image, FilePath):
                    data = self.load_file(request.input_image.path)
                else:
                    data = request.input_image.data
                buffer = self.registry.decode(data)
                return ImageReadResult(
                    request_id=request.request_id,
                    source_id=request.source_id,
                    pixels=flatten_pixels(buffer),
                )
            if isinstance(request.input_image, FilePath):
                buffer = self.import_from_file(request.input_image.path, params)
            else:
                buffer = self.import_from_bytes(request.input_image.data, params)
        except ImageLoadError as e:
            _logger.debug("request %s failed: %s", request.request_id, e)
            return ImageReadResult.failure(request, str(e))
        except Exception as e:
            _logger.exception("unexpected failure for request %s", request.request_id)
            return ImageReadResult.failure(request, f"Unexpected error: {e}")
        return ImageReadResult(request_id=request.request_id, source_id=request.source_id, raw_buffer=buffer)
