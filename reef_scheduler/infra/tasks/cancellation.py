"""Event-backed cancellation token for the scheduler thread.

``wait`` blocks on a :class:`threading.Event`, so a ``cancel()`` from
another thread (signal handler, API shutdown) wakes sleepers at once.
"""

from __future__ import annotations

import threading

from reef_scheduler.domain.scheduling.ports import CancellationToken


class EventCancellationToken(CancellationToken):
    """Cancellation signal shared between a controller and a worker thread."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout_s: float) -> bool:
        if timeout_s <= 0:
            return self._event.is_set()
        return self._event.wait(timeout_s)
