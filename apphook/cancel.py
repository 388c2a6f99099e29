"""Cooperative cancellation shared by the discovery workers."""
from __future__ import annotations

import threading
from typing import Callable, Optional

ProgressCallback = Callable[[str], None]


class ScanCancelled(Exception):
    """Raised when a running scan observes a cancellation request."""


class CancelToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ScanCancelled("Operation cancelled.")


def check_cancelled(cancel: Optional[CancelToken]) -> None:
    if cancel is not None:
        cancel.raise_if_cancelled()


def report(progress: Optional[ProgressCallback], message: str) -> None:
    if progress is not None:
        progress(message)


__all__ = ["CancelToken", "ScanCancelled", "ProgressCallback", "check_cancelled", "report"]
