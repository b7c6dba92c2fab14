"""ImageLoader - single entry point for loading images.

Wraps one ImageReader (static images) and the GIF pool path behind a
callback API. Callbacks always run on the completion sink's owner context:
for the default `QueuedCompletionSink` that is whichever thread calls
`tick()`, for `QtCompletionSink` the Qt thread that owns the sink.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from functools import partial

from runtime_image_loader.logger import get_logger
from runtime_image_loader.settings_manager import SettingsManager

from .completion import CompletionSink, QueuedCompletionSink, run_callback
from .errors import ResourceCreationError
from .gif_reader import GifReader
from .pipeline import ImportPipeline
from .reader import ImageReader
from .requests import FilterMode, ImageReadRequest, ImageReadResult, SubmitMode, TransformParams
from .texture import TextureBuilder, select_texture_format

_logger = get_logger("loader")

ResultCallback = Callable[[ImageReadResult], None]


class ImageLoader:
    """Asynchronous/synchronous image loading with owner-context delivery.

    Args:
        settings: Limits and worker configuration; defaults when omitted.
        sink: Where callbacks run. Defaults to a QueuedCompletionSink owned by
            the constructing thread.
        texture_builder: Optional callable turning a decoded buffer into an
            engine resource; called on the owner context.
        pipeline: Decode pipeline; built from `settings` when omitted.
    """

    def __init__(
        self,
        settings: SettingsManager | None = None,
        sink: CompletionSink | None = None,
        texture_builder: TextureBuilder | None = None,
        pipeline: ImportPipeline | None = None,
    ):
        self.settings = settings or (pipeline.settings if pipeline is not None else SettingsManager())
        self.sink: CompletionSink = sink or QueuedCompletionSink()
        self.pipeline = pipeline or ImportPipeline(settings=self.settings)
        self.texture_builder = texture_builder
        self._callbacks: dict[int, tuple[ImageReadRequest, ResultCallback]] = {}
        self._lock = threading.Lock()
        self._reader = ImageReader(
            self.pipeline,
            sink=self.sink,
            on_result=self._on_result_ready,
            settings=self.settings,
        )
        self._reader.initialize()

    @property
    def reader(self) -> ImageReader:
        return self._reader

    # ---- async ----------------------------------------------------
    def submit(self, request: ImageReadRequest, on_completed: ResultCallback) -> int:
        """Queue a prepared request; returns its id."""
        # Registration and enqueue are atomic with respect to cancel_all().
        with self._lock:
            self._callbacks[request.request_id] = (request, on_completed)
            try:
                self._reader.submit(request, SubmitMode.ASYNC)
            except Exception:
                self._callbacks.pop(request.request_id, None)
                raise
        return request.request_id

    def load_image_async(
        self, path: str, on_completed: ResultCallback, params: TransformParams | None = None
    ) -> int:
        return self.submit(ImageReadRequest.from_path(path, params), on_completed)

    def load_image_from_bytes_async(
        self, data: bytes, on_completed: ResultCallback, params: TransformParams | None = None
    ) -> int:
        return self.submit(ImageReadRequest.from_bytes(data, params), on_completed)

    def load_pixels_async(self, path: str, on_completed: ResultCallback) -> int:
        """Decode to a flat RGBA8 pixel array; no transforms, no texture."""
        return self.submit(ImageReadRequest.from_path(path, pixels_only=True), on_completed)

    def load_pixels_from_bytes_async(self, data: bytes, on_completed: ResultCallback) -> int:
        return self.submit(ImageReadRequest.from_bytes(data, pixels_only=True), on_completed)

    # ---- sync -----------------------------------------------------
    def read_sync(self, request: ImageReadRequest) -> ImageReadResult:
        """Run a request and return its result.

        Inline on the owner context, through the worker queue elsewhere. The
        texture builder still runs on the calling thread.
        """
        result = self._reader.submit(request, SubmitMode.SYNC)
        return self._finish(request, result)

    def load_image_sync(self, path: str, params: TransformParams | None = None) -> ImageReadResult:
        return self.read_sync(ImageReadRequest.from_path(path, params))

    def load_image_from_bytes_sync(self, data: bytes, params: TransformParams | None = None) -> ImageReadResult:
        return self.read_sync(ImageReadRequest.from_bytes(data, params))

    def load_pixels_sync(self, path: str) -> ImageReadResult:
        return self.read_sync(ImageReadRequest.from_path(path, pixels_only=True))

    def load_pixels_from_bytes_sync(self, data: bytes) -> ImageReadResult:
        return self.read_sync(ImageReadRequest.from_bytes(data, pixels_only=True))

    def load_file_to_bytes(self, path: str) -> bytes:
        """Raw file contents with the same existence/size checks as a load."""
        return self.pipeline.load_file(path)

    # ---- GIF ------------------------------------------------------
    def load_gif(
        self,
        path: str,
        on_success: Callable | None = None,
        on_fail: Callable[[str], None] | None = None,
        filter_mode: FilterMode = FilterMode.DEFAULT,
        synchronous: bool = False,
    ) -> GifReader:
        return GifReader.load_gif(
            path, self.sink, filter_mode, synchronous, on_success=on_success, on_fail=on_fail, pipeline=self.pipeline
        )

    def load_gif_from_bytes(
        self,
        data: bytes,
        on_success: Callable | None = None,
        on_fail: Callable[[str], None] | None = None,
        filter_mode: FilterMode = FilterMode.DEFAULT,
        synchronous: bool = False,
    ) -> GifReader:
        return GifReader.load_gif_from_bytes(
            data, self.sink, filter_mode, synchronous, on_success=on_success, on_fail=on_fail, pipeline=self.pipeline
        )

    # ---- control --------------------------------------------------
    def tick(self) -> int:
        """Run pending completions; call from the owner thread."""
        return self.sink.drain()

    def cancel_all(self) -> int:
        """Drop every outstanding static request; their callbacks never run."""
        with self._lock:
            dropped = self._reader.cancel_all()
            self._callbacks.clear()
        return dropped

    def block_till_all_requests_finished(self, timeout: float | None = None) -> bool:
        return self._reader.block_till_all_requests_finished(timeout)

    def is_work_completed(self) -> bool:
        return self._reader.is_work_completed()

    @property
    def pending_callbacks(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def shutdown(self) -> None:
        with self._lock:
            self._callbacks.clear()
        self._reader.shutdown()

    # ---- delivery -------------------------------------------------
    def _on_result_ready(self) -> None:
        # worker thread
        self.sink.post(self._deliver_results)

    def _deliver_results(self) -> None:
        for result in self._reader.drain_results():
            with self._lock:
                entry = self._callbacks.pop(result.request_id, None)
            if entry is None:
                _logger.debug("no callback for request %s (cancelled)", result.request_id)
                continue
            request, callback = entry
            run_callback(partial(self._deliver_one, request, result, callback))

    def _deliver_one(self, request: ImageReadRequest, result: ImageReadResult, callback: ResultCallback) -> None:
        callback(self._finish(request, result))

    def _finish(self, request: ImageReadRequest, result: ImageReadResult) -> ImageReadResult:
        """Hand a successful buffer to the texture builder."""
        if self.texture_builder is None or not result.succeeded or request.wants_pixels_only:
            return result
        buffer = result.raw_buffer
        texture_format = select_texture_format(buffer.pixel_format, request.transform_params.for_ui)
        try:
            result.texture = self.texture_builder(
                result.source_id, buffer, None, texture_format, request.transform_params
            )
        except ResourceCreationError as e:
            _logger.debug("texture creation failed for request %s: %s", request.request_id, e)
            result.raw_buffer = None
            result.texture = None
            result.error = str(e) or "Failed to create texture"
        return result
