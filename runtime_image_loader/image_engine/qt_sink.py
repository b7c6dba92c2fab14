"""Qt flavour of the completion sink."""

from __future__ import annotations

from collections.abc import Callable

from PySide6.QtCore import QObject, QThread, Qt, Signal, Slot

from .completion import run_callback


class QtCompletionSink(QObject):
    """Delivers callables on this object's thread through the Qt event loop.

    Create it on (or move it to) the thread that should receive results;
    `post` can then be called from any worker thread.
    """

    _posted = Signal(object)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._posted.connect(self._run, Qt.ConnectionType.QueuedConnection)

    def post(self, fn: Callable[[], None]) -> None:
        self._posted.emit(fn)

    @Slot(object)
    def _run(self, fn: Callable[[], None]) -> None:
        run_callback(fn)

    def drain(self) -> int:
        # The event loop delivers; nothing to pump.
        return 0

    def is_owner_thread(self) -> bool:
        return QThread.currentThread() == self.thread()
