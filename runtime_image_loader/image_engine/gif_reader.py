"""Animated GIF loading on a shared thread pool.

Unlike static images, every GIF request is its own pool task. Tasks do not
wait on each other, so GIF completions may arrive in any order. Outcomes are
posted to the same completion sink the static reader uses.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures

from runtime_image_loader.logger import get_logger

from .animated import AnimatedImage, GifFrameSource
from .codecs.gif import GifCodec
from .completion import CompletionSink
from .errors import ImageIOError, ImageLoadError
from .pipeline import ImportPipeline
from .requests import FilePath, FilterMode, InMemoryBytes, InputImage

_logger = get_logger("gif_reader")

_pool: ThreadPoolExecutor | None = None
_pool_lock = threading.Lock()


def shared_pool(max_workers: int = 4) -> ThreadPoolExecutor:
    """Process-wide pool for GIF tasks; created on first use."""
    global _pool
    with _pool_lock:
        if _pool is None:
            _pool = ThreadPoolExecutor(max_workers=max(1, int(max_workers)), thread_name_prefix="gif")
        return _pool


class GifReader:
    """One GIF request: decode on the pool, deliver on the sink's context.

    Exactly one of `on_success(AnimatedImage)` or `on_fail(message)` runs per
    submitted request.
    """

    def __init__(
        self,
        sink: CompletionSink,
        on_success: Callable[[AnimatedImage], None] | None = None,
        on_fail: Callable[[str], None] | None = None,
        pipeline: ImportPipeline | None = None,
        pool: ThreadPoolExecutor | None = None,
    ):
        self._sink = sink
        self._on_success = on_success
        self._on_fail = on_fail
        self._pipeline = pipeline or ImportPipeline()
        self._pool = pool
        self._codec = GifCodec()
        self._task: Future | None = None
        self._delivered = threading.Event()

        self.input_gif: InputImage | None = None
        self.filter_mode = FilterMode.DEFAULT
        self.result: AnimatedImage | None = None
        self.error = ""

    @classmethod
    def load_gif(cls, path: str, sink: CompletionSink, filter_mode: FilterMode = FilterMode.DEFAULT,
                 synchronous: bool = False, **kwargs) -> GifReader:
        reader = cls(sink, **kwargs)
        reader.submit_request(FilePath(str(path)), filter_mode, synchronous)
        return reader

    @classmethod
    def load_gif_from_bytes(cls, data: bytes, sink: CompletionSink, filter_mode: FilterMode = FilterMode.DEFAULT,
                            synchronous: bool = False, **kwargs) -> GifReader:
        reader = cls(sink, **kwargs)
        reader.submit_request(InMemoryBytes(data), filter_mode, synchronous)
        return reader

    def submit_request(self, input_gif: InputImage, filter_mode: FilterMode = FilterMode.DEFAULT,
                       synchronous: bool = False) -> None:
        """Start decoding.

        Synchronous on the owner context decodes inline and delivers before
        returning. Synchronous elsewhere blocks until the pool task finished;
        delivery still happens on the owner context.
        """
        if self._task is not None or self.input_gif is not None:
            raise RuntimeError("GifReader already has a request")
        self.input_gif = input_gif
        self.filter_mode = filter_mode

        if synchronous and self._sink.is_owner_thread():
            self._process_request()
            self._deliver()
            return

        pool = self._pool or shared_pool(self._pipeline.settings.gif_pool_workers)
        self._task = pool.submit(self._run_task)
        if synchronous:
            self._task.result()

    @property
    def done(self) -> bool:
        return self._delivered.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Wait for the pool task (not the delivery) to finish."""
        if self._task is None:
            return self.input_gif is not None
        done, _ = wait_futures([self._task], timeout)
        return bool(done)

    # ---- task ------------------------------------------------------
    def _run_task(self) -> None:
        self._process_request()
        self._sink.post(self._deliver)

    def _read_bytes(self) -> bytes:
        if isinstance(self.input_gif, FilePath):
            try:
                return self._pipeline.load_file(self.input_gif.path)
            except ImageIOError as e:
                raise ImageIOError(f"Failed to read GIF: {e}") from e
        return self.input_gif.data

    def _process_request(self) -> None:
        try:
            data = self._read_bytes()
            if not self._codec.sniff(data):
                raise ImageLoadError(f"Failed to decode GIF: not a GIF stream ({self.input_gif.source_id or 'bytes'})")
            header = self._codec.read_header(data)
            self._pipeline.registry.policy.check(header.width, header.height, self._codec.allow_non_power_of_two)
            frames, loop_count = self._codec.decode_frames(data)
            source = GifFrameSource(frames, loop_count)
            artifact = AnimatedImage(source.width, source.height, self.filter_mode)
            artifact.set_decoder(source)
            self.result = artifact
            _logger.debug("gif decoded: %dx%d frames=%d loop=%s", source.width, source.height,
                          source.frame_count, loop_count)
        except ImageLoadError as e:
            self.error = str(e)
            _logger.debug("gif failed: %s", e)
        except Exception as e:
            _logger.exception("gif task crashed")
            self.error = f"Failed to decode GIF: {e}"

    def _deliver(self) -> None:
        if self._delivered.is_set():
            return
        self._delivered.set()
        if self.error or self.result is None:
            if self._on_fail is not None:
                self._on_fail(self.error or "Failed to decode GIF")
        elif self._on_success is not None:
            self._on_success(self.result)
