"""Single-worker request queue for static images.

Many threads may submit; one dedicated thread consumes. Only one request is
processed at a time, so results come out in submission order.

    IDLE -> DRAINING (queue non-empty) -> PROCESSING (one request) -> IDLE
    any  -> STOPPED (shutdown, terminal)
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable
from concurrent.futures import CancelledError, Future
from dataclasses import dataclass
from enum import Enum

from runtime_image_loader.logger import get_logger
from runtime_image_loader.settings_manager import SettingsManager

from .completion import CompletionSink
from .pipeline import ImportPipeline
from .requests import ImageReadRequest, ImageReadResult, SubmitMode
from .result_store import ResultStore

_logger = get_logger("reader")


class ReaderState(Enum):
    IDLE = "idle"
    DRAINING = "draining"
    PROCESSING = "processing"
    STOPPED = "stopped"


@dataclass
class _QueuedRequest:
    request: ImageReadRequest
    generation: int
    # Set for SYNC submissions from a non-owner thread; the waiter gets the
    # result through it instead of the result store.
    future: Future | None = None


class ImageReader:
    """Dedicated-thread image reader.

    Args:
        pipeline: ImportPipeline run for every request.
        sink: Completion sink whose owner thread may run SYNC requests inline.
            Without a sink, the thread that created the reader is the owner.
        on_result: Called from the worker thread after a result was stored;
            typically posts a delivery callable to the sink.
    """

    def __init__(
        self,
        pipeline: ImportPipeline | None = None,
        sink: CompletionSink | None = None,
        on_result: Callable[[], None] | None = None,
        settings: SettingsManager | None = None,
        name: str | None = None,
    ):
        settings = settings or (pipeline.settings if pipeline is not None else SettingsManager())
        self._pipeline = pipeline or ImportPipeline(settings=settings)
        self._sink = sink
        self._on_result = on_result
        self._owner = threading.get_ident()
        self._name = name or settings.reader_thread_name

        self._results = ResultStore()
        self._cond = threading.Condition()
        self._queue: deque[_QueuedRequest] = deque()
        self._processing: _QueuedRequest | None = None
        self._generation = 0
        self._stopped = False
        self._thread: threading.Thread | None = None

    # ---- lifecycle -------------------------------------------------
    def initialize(self) -> None:
        """Start the worker thread; safe to call repeatedly."""
        with self._cond:
            if self._stopped:
                raise RuntimeError("ImageReader has been shut down")
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()
        _logger.debug("reader thread started: %s", self._name)

    def shutdown(self, timeout: float | None = None) -> None:
        """Stop the worker: the request in flight finishes and is discarded, queued ones are dropped."""
        with self._cond:
            if self._stopped:
                return
            self._stopped = True
            dropped = self._drop_queued_locked()
            self._cond.notify_all()
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        cleared = self._results.clear()
        _logger.debug("reader shut down: dropped=%d undelivered=%d", dropped, cleared)

    def __enter__(self) -> ImageReader:
        self.initialize()
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()

    # ---- submission -----------------------------------------------
    def is_owner_thread(self) -> bool:
        if self._sink is not None:
            return self._sink.is_owner_thread()
        return threading.get_ident() == self._owner

    def submit(self, request: ImageReadRequest, mode: SubmitMode = SubmitMode.ASYNC) -> ImageReadResult | None:
        """Queue (ASYNC) or run (SYNC) a request.

        SYNC on the owner context runs the pipeline inline. SYNC from any
        other thread goes through the queue and blocks for this request's own
        result. ASYNC returns None immediately; the result lands in the store.
        """
        if not isinstance(request, ImageReadRequest):
            raise TypeError(f"expected ImageReadRequest, got {type(request).__name__}")
        with self._cond:
            if self._stopped:
                raise RuntimeError("ImageReader has been shut down")

        if mode is SubmitMode.SYNC and self.is_owner_thread():
            return self.process_request(request)

        future: Future | None = Future() if mode is SubmitMode.SYNC else None
        self.initialize()
        with self._cond:
            if self._stopped:
                raise RuntimeError("ImageReader has been shut down")
            self._queue.append(_QueuedRequest(request, self._generation, future))
            pending = len(self._queue)
            self._cond.notify_all()
        _logger.debug("queued request %s (%s) pending=%d", request.request_id, mode.value, pending)

        if future is None:
            return None
        try:
            return future.result()
        except CancelledError:
            return ImageReadResult.failure(request, "Request was cancelled")

    def process_request(self, request: ImageReadRequest) -> ImageReadResult:
        return self._pipeline.read(request)

    # ---- results ---------------------------------------------------
    def get_result(self) -> ImageReadResult | None:
        return self._results.pop()

    def drain_results(self) -> list[ImageReadResult]:
        return self._results.drain()

    # ---- control ---------------------------------------------------
    def cancel_all(self) -> int:
        """Drop queued requests and undelivered results; the in-flight result is discarded on arrival."""
        with self._cond:
            self._generation += 1
            dropped = self._drop_queued_locked()
            self._cond.notify_all()
        cleared = self._results.clear()
        _logger.debug("cancel_all: dropped=%d undelivered=%d", dropped, cleared)
        return dropped

    def is_work_completed(self) -> bool:
        with self._cond:
            return not self._queue and self._processing is None

    def block_till_all_requests_finished(self, timeout: float | None = None) -> bool:
        """Wait until the queue is empty and nothing is in flight; False on timeout."""
        if self._thread is not None and threading.current_thread() is self._thread:
            raise RuntimeError("block_till_all_requests_finished() called from the worker thread")
        with self._cond:
            return self._cond.wait_for(lambda: not self._queue and self._processing is None, timeout)

    @property
    def state(self) -> ReaderState:
        with self._cond:
            if self._stopped:
                return ReaderState.STOPPED
            if self._processing is not None:
                return ReaderState.PROCESSING
            if self._queue:
                return ReaderState.DRAINING
            return ReaderState.IDLE

    @property
    def pending_count(self) -> int:
        with self._cond:
            return len(self._queue)

    # ---- worker ----------------------------------------------------
    def _drop_queued_locked(self) -> int:
        dropped = len(self._queue)
        for item in self._queue:
            if item.future is not None:
                item.future.cancel()
        self._queue.clear()
        return dropped

    def _run(self) -> None:
        while True:
            with self._cond:
                while not self._queue and not self._stopped:
                    self._cond.wait()
                if self._stopped:
                    break
                item = self._queue.popleft()
                self._processing = item

            try:
                result = self.process_request(item.request)
            except Exception as e:
                # pipeline.read already captures decode errors; this is a last resort.
                _logger.exception("reader: request %s crashed", item.request.request_id)
                result = ImageReadResult.failure(item.request, f"Unexpected error: {e}")

            stored = False
            with self._cond:
                discard = self._stopped or item.generation != self._generation
                if discard:
                    _logger.debug("reader: discarding result of request %s", item.request.request_id)
                    if item.future is not None:
                        item.future.cancel()
                elif item.future is not None:
                    item.future.set_result(result)
                else:
                    self._results.put(result)
                    stored = True
                self._processing = None
                self._cond.notify_all()

            if stored and self._on_result is not None:
                try:
                    self._on_result()
                except Exception:
                    _logger.exception("reader: result notification failed")
        _logger.debug("reader thread exiting: %s", self._name)
