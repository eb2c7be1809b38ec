"""
Background scheduler loop for profile execution.

Waits a short grace period after startup, then runs one scheduler pass
every ``check_interval_seconds`` until cancelled.  Passes never overlap:
a slow pass delays the next poll.  Cancellation is observed during the
startup wait, the inter-pass sleep and between jobs of a pass; a job
already dispatched always runs to completion.
"""
import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from ..domain.scheduling.models import PassResult, utcnow
from ..domain.scheduling.ports import CancellationToken, TaskStateStore
from ..infra.tasks.cancellation import EventCancellationToken
from ..use_cases.scheduling.run_scheduler_pass import RunSchedulerPassUseCase

logger = logging.getLogger(__name__)

# Lets dependent collaborators finish initializing before the first poll.
STARTUP_DELAY_SECONDS = 5.0


class SchedulerService:
    """Own the scheduler loop and the thread it runs on."""

    def __init__(
        self,
        pass_use_case: RunSchedulerPassUseCase,
        store: TaskStateStore,
        check_interval_seconds: float,
        release_stale_on_startup: bool = True,
        startup_delay_seconds: float = STARTUP_DELAY_SECONDS,
        now_fn: Callable[[], datetime] = utcnow,
    ):
        self._pass_use_case = pass_use_case
        self._store = store
        self.check_interval_seconds = check_interval_seconds
        self._release_stale_on_startup = release_stale_on_startup
        self._startup_delay_seconds = startup_delay_seconds
        self._now = now_fn

        self._thread: Optional[threading.Thread] = None
        self._cancel: Optional[EventCancellationToken] = None
        self._last_pass: Optional[PassResult] = None
        self._passes_completed = 0

        logger.info(
            "SchedulerService initialized with %ss check interval", check_interval_seconds
        )

    @property
    def last_pass(self) -> Optional[PassResult]:
        return self._last_pass

    @property
    def passes_completed(self) -> int:
        return self._passes_completed

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run(self, cancel: CancellationToken) -> int:
        """
        Run the loop until *cancel* fires.

        Returns:
            Number of passes executed
        """
        logger.info("Scheduler service starting")

        if cancel.wait(self._startup_delay_seconds):
            logger.info("Scheduler service cancelled during startup delay")
            return self._passes_completed

        if self._release_stale_on_startup and not cancel.is_cancelled():
            self._release_stale_running()

        while not cancel.is_cancelled():
            try:
                self._last_pass = self._pass_use_case.execute(cancel)
                self._passes_completed += 1
            except Exception:
                logger.exception("Error in scheduler service loop")

            # Wait before next check
            if cancel.wait(self.check_interval_seconds):
                break

        logger.info("Scheduler service stopping after %d pass(es)", self._passes_completed)
        return self._passes_completed

    def start(self) -> None:
        """Run the loop on a daemon thread."""
        if self.is_running:
            logger.warning("Scheduler service already running")
            return
        self._cancel = EventCancellationToken()
        self._thread = threading.Thread(
            target=self.run,
            args=(self._cancel,),
            name="reef-scheduler",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Cancel the loop and wait for the thread to exit."""
        if self._cancel is not None:
            self._cancel.cancel()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Scheduler thread still finishing a pass after stop()")

    def _release_stale_running(self) -> None:
        try:
            released = self._store.release_stale_running(self._now())
        except Exception as e:
            logger.error("Failed to clear stale running flags on startup: %s", e, exc_info=True)
            return
        if released:
            logger.warning("Cleared %d stale running flag(s) left by a previous process", released)
        else:
            logger.info("No stale running flags found on startup")
