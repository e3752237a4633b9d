"""
Cooperative cancellation for long-running analysis calls
"""

import threading

from ..exceptions import AnalysisCancelled


class CancellationToken:
    """Flag checked by the scheduler and fan-out at step boundaries"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise AnalysisCancelled()
