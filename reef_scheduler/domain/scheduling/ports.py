"""Ports (abstract interfaces) for the scheduling domain.

These define WHAT the scheduler needs from the outside world without
specifying HOW it's provided.  Concrete implementations live in
``reef_scheduler.infra``.

Note: No infrastructure types (Session, Engine, Celery) appear here.
"""

from __future__ import annotations

import abc
import time
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Callable

from .models import (
    TRIGGERED_BY_SCHEDULER,
    ExecutionResult,
    ProfileSchedule,
    ScheduledJob,
)

NowFn = Callable[[], datetime]


# ---------------------------------------------------------------------------
# Task State Store
# ---------------------------------------------------------------------------


class TaskStateStore(abc.ABC):
    """Persisted scheduled-job records, one transaction per call."""

    @abc.abstractmethod
    def fetch_due_jobs(self, now: datetime) -> Sequence[ScheduledJob]:
        """Return jobs with ``next_run_at <= now``, not running, profile enabled.

        Ordered by ``next_run_at`` ascending.
        """
        ...

    @abc.abstractmethod
    def set_running(self, job_id: int, running: bool, now: datetime) -> None:
        """Set the running guard flag; ``running=True`` also stamps ``last_run_at``."""
        ...

    @abc.abstractmethod
    def record_outcome(
        self,
        job_id: int,
        profile_id: int,
        failure_count: int,
        last_error: str | None,
        now: datetime,
    ) -> datetime | None:
        """Reschedule a job from its profile's schedule and persist the outcome.

        Writes next_run_at, is_running=False, failure_count, last_error,
        last_run_at and updated_at as one update.  Returns the new
        next_run_at, or None when the profile no longer exists (nothing
        is written in that case).
        """
        ...

    @abc.abstractmethod
    def release_stale_running(self, now: datetime) -> int:
        """Clear every running flag and stamp updated_at.  Returns how many rows changed."""
        ...


class ScheduledTaskAdmin(abc.ABC):
    """Operator and profile-management operations on scheduled jobs."""

    @abc.abstractmethod
    def list_jobs(self) -> Sequence[ScheduledJob]:
        """All jobs ordered by next_run_at."""
        ...

    @abc.abstractmethod
    def get_job(self, job_id: int) -> ScheduledJob:
        """Raises EntityNotFoundError if *job_id* does not exist."""
        ...

    @abc.abstractmethod
    def get_profile_schedule(self, profile_id: int) -> ProfileSchedule | None:
        ...

    @abc.abstractmethod
    def reset_failures(self, job_id: int) -> ScheduledJob:
        """Zero the failure count and clear the last error."""
        ...

    @abc.abstractmethod
    def force_release(self, job_id: int, now: datetime) -> ScheduledJob:
        """Clear the running flag of a single job and stamp updated_at."""
        ...

    @abc.abstractmethod
    def run_now(self, job_id: int, now: datetime) -> ScheduledJob:
        """Make the job due on the next pass."""
        ...

    @abc.abstractmethod
    def sync_profile_schedule(self, profile_id: int, now: datetime) -> ScheduledJob | None:
        """Create, update or delete the profile's job to match its schedule.

        Raises EntityNotFoundError if the profile does not exist.
        """
        ...


# ---------------------------------------------------------------------------
# Execution collaborator
# ---------------------------------------------------------------------------


class ProfileExecutor(abc.ABC):
    """Run a profile and report how it went.  Its internals are opaque here."""

    @abc.abstractmethod
    def execute_profile(
        self,
        profile_id: int,
        parameters: dict[str, Any] | None = None,
        triggered_by: str = TRIGGERED_BY_SCHEDULER,
    ) -> ExecutionResult:
        ...


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class CancellationToken(abc.ABC):
    """Check whether the current operation has been requested to stop."""

    @abc.abstractmethod
    def is_cancelled(self) -> bool:
        ...

    @abc.abstractmethod
    def wait(self, timeout_s: float) -> bool:
        """Suspend for up to *timeout_s* seconds.

        Returns True as soon as cancellation is observed, False when the
        full timeout elapsed.  Never raises.
        """
        ...


class NeverCancelledToken(CancellationToken):
    """Token that never cancels, for CLI one-shots and tests."""

    def is_cancelled(self) -> bool:
        return False

    def wait(self, timeout_s: float) -> bool:
        if timeout_s > 0:
            time.sleep(timeout_s)
        return False


__all__ = [
    "CancellationToken",
    "NeverCancelledToken",
    "NowFn",
    "ProfileExecutor",
    "ScheduledTaskAdmin",
    "TaskStateStore",
]
