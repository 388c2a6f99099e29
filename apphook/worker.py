"""Qt worker that runs one discovery at a time off the interactive thread."""
from __future__ import annotations

import logging
from typing import Callable, List, Optional

from PySide6 import QtCore

from .cancel import CancelToken, ProgressCallback, ScanCancelled
from .models import AppRecord

_LOGGER = logging.getLogger(__name__)

ScanFunction = Callable[[Optional[str], Optional[ProgressCallback], Optional[CancelToken]], List[AppRecord]]


class ScanSignals(QtCore.QObject):
    progress = QtCore.Signal(str)
    result = QtCore.Signal(object)
    cancelled = QtCore.Signal()
    error = QtCore.Signal(str)
    finished = QtCore.Signal()


class ScanWorker(QtCore.QRunnable):
    """Runs ``fn(term, progress, cancel)`` and reports through :class:`ScanSignals`.

    A cancelled scan emits ``cancelled`` and never ``result``.
    """

    def __init__(self, fn: ScanFunction, term: Optional[str] = None) -> None:
        super().__init__()
        # The controller keeps the Python reference alive; Qt must not delete it.
        self.setAutoDelete(False)
        self.fn = fn
        self.term = term
        self.cancel_token = CancelToken()
        self.signals = ScanSignals()

    def cancel(self) -> None:
        self.cancel_token.cancel()

    def run(self) -> None:
        try:
            records = self.fn(self.term, self.signals.progress.emit, self.cancel_token)
            if self.cancel_token.cancelled:
                raise ScanCancelled("Operation cancelled.")
        except ScanCancelled:
            _LOGGER.info("Scan cancelled")
            self.signals.cancelled.emit()
        except Exception as exc:
            _LOGGER.exception("Scan failed: %s", exc)
            self.signals.error.emit(str(exc))
        else:
            self.signals.result.emit(records)
        finally:
            self.signals.finished.emit()


class ScanController(QtCore.QObject):
    """Keeps at most one scan running; starting a new scan cancels the previous one."""

    def __init__(self, pool: Optional[QtCore.QThreadPool] = None, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self.pool = pool or QtCore.QThreadPool.globalInstance()
        self.current: Optional[ScanWorker] = None

    def start(self, fn: ScanFunction, term: Optional[str] = None) -> ScanWorker:
        self.cancel()
        worker = ScanWorker(fn, term)
        worker.signals.finished.connect(lambda: self._clear(worker))
        self.current = worker
        self.pool.start(worker)
        return worker

    def cancel(self) -> None:
        if self.current is not None:
            self.current.cancel()

    def _clear(self, worker: ScanWorker) -> None:
        if self.current is worker:
            self.current = None


__all__ = ["ScanSignals", "ScanWorker", "ScanController"]
