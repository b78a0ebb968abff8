"""Cooperative cancellation shared between the HTTP layer and the analysis thread."""

from __future__ import annotations

import threading

from ..errors import AnalysisCancelled


class CancelToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def check(self) -> None:
        """Raise before a new provider call if the client has gone away."""
        if self._event.is_set():
            raise AnalysisCancelled()

    def sleep(self, seconds: float) -> None:
        """Block for ``seconds`` unless cancelled first, in which case raise."""
        if self._event.wait(seconds):
            raise AnalysisCancelled()
