"""Completion sinks: run callbacks on a designated owner context.

Workers never call user callbacks directly. They `post` a callable to a sink
and the sink runs it on the context that owns result delivery:

- `QueuedCompletionSink` collects callables until the owner thread calls
  `drain()` (typically once per frame/tick).
- `QtCompletionSink` (qt_sink.py) is a QObject; callables travel through a
  queued signal and run on the thread the object lives in.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable
from typing import Protocol

from runtime_image_loader.logger import get_logger

_logger = get_logger("completion")


class CompletionSink(Protocol):
    def post(self, fn: Callable[[], None]) -> None:
        """Schedule `fn` on the owner context; callable from any thread."""
        ...

    def drain(self) -> int:
        """Run pending callables if the sink is pumped manually; returns how many ran."""
        ...

    def is_owner_thread(self) -> bool: ...


def run_callback(fn: Callable[[], None]) -> None:
    try:
        fn()
    except Exception:
        # A failing user callback must not stop delivery of the others.
        _logger.exception("completion callback failed")


class QueuedCompletionSink:
    """Thread-safe callable queue drained by the thread that created it."""

    def __init__(self) -> None:
        self._owner = threading.get_ident()
        self._lock = threading.Lock()
        self._pending: deque[Callable[[], None]] = deque()

    def post(self, fn: Callable[[], None]) -> None:
        with self._lock:
            self._pending.append(fn)

    def drain(self) -> int:
        if not self.is_owner_thread():
            raise RuntimeError("QueuedCompletionSink.drain() must run on the owner thread")
        ran = 0
        while True:
            with self._lock:
                if not self._pending:
                    break
                fn = self._pending.popleft()
            run_callback(fn)
            ran += 1
        return ran

    def is_owner_thread(self) -> bool:
        return threading.get_ident() == self._owner

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

