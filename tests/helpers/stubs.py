"""Pipeline stand-ins for exercising reader threading."""

from __future__ import annotations

import threading

import numpy as np

from runtime_image_loader.image_engine.requests import ImageReadRequest, ImageReadResult
from runtime_image_loader.settings_manager import SettingsManager


class GatedPipeline:
    """Records every request; blocks requests listed in `hold` until `release()`."""

    def __init__(self, hold=()):
        self.settings = SettingsManager()
        self.hold = set(hold)
        self.gate = threading.Event()
        self.started = threading.Event()
        self.seen: list[int] = []
        self.threads: list[str] = []
        self._lock = threading.Lock()

    def release(self) -> None:
        self.gate.set()

    def read(self, request: ImageReadRequest) -> ImageReadResult:
        with self._lock:
            self.seen.append(request.request_id)
            self.threads.append(threading.current_thread().name)
        if request.request_id in self.hold:
            self.started.set()
            assert self.gate.wait(5), "gate never released"
        return ImageReadResult(request_id=request.request_id, source_id=request.source_id, pixels=np.zeros((1, 4), np.uint8))

    def load_file(self, path: str) -> bytes:
        raise AssertionError("not used")
