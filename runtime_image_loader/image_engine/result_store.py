"""Lock-protected FIFO of finished results.

The lock only guards insertion and removal; decoding never happens while it
is held.
"""

from __future__ import annotations

import threading
from collections import deque

from .requests import ImageReadResult


class ResultStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._results: deque[ImageReadResult] = deque()

    def put(self, result: ImageReadResult) -> None:
        with self._lock:
            self._results.append(result)

    def pop(self) -> ImageReadResult | None:
        """Oldest result, or None when empty."""
        with self._lock:
            return self._results.popleft() if self._results else None

    def drain(self) -> list[ImageReadResult]:
        with self._lock:
            results = list(self._results)
            self._results.clear()
        return results

    def clear(self) -> int:
        with self._lock:
            count = len(self._results)
            self._results.clear()
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)
