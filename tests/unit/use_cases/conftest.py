"""Shared test fakes and fixtures for scheduling use case tests.

Consolidates all in-memory fake implementations of domain ports.
Each fake stores real data and returns it, verifying actual behavior,
not just "was method X called?".

Other test files outside this directory can import these fakes directly::

    from tests.unit.use_cases.conftest import FakeTaskStateStore, FakeClock
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from reef_scheduler.domain.common.errors import EntityNotFoundError
from reef_scheduler.domain.scheduling.models import (
    TRIGGERED_BY_SCHEDULER,
    ExecutionResult,
    ProfileSchedule,
    ScheduledJob,
    ScheduleType,
    as_utc,
)
from reef_scheduler.domain.scheduling.ports import (
    CancellationToken,
    ProfileExecutor,
    ScheduledTaskAdmin,
    TaskStateStore,
)
from reef_scheduler.domain.scheduling.schedule_calculator import compute_next_run

T0 = datetime(2024, 1, 1, 0, 30, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced UTC clock usable as a ``now_fn``."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ---------------------------------------------------------------------------
# Mutable ORM-like test records
# ---------------------------------------------------------------------------


@dataclass
class FakeTask:
    """Mutable in-memory scheduled task row (mimics the ORM model)."""

    id: int
    profile_id: int
    next_run_at: datetime
    is_running: bool = False
    failure_count: int = 0
    last_error: str | None = None
    last_run_at: datetime | None = None
    updated_at: datetime | None = None

    def to_domain(self, profile_name: str | None = None) -> ScheduledJob:
        return ScheduledJob(
            id=self.id,
            profile_id=self.profile_id,
            next_run_at=self.next_run_at,
            is_running=self.is_running,
            failure_count=self.failure_count,
            last_error=self.last_error,
            last_run_at=self.last_run_at,
            updated_at=self.updated_at,
            profile_name=profile_name,
        )


def interval_profile(profile_id: int, minutes: int = 15, enabled: bool = True) -> ProfileSchedule:
    return ProfileSchedule(
        profile_id=profile_id,
        schedule_type=ScheduleType.INTERVAL,
        interval_minutes=minutes,
        is_enabled=enabled,
    )


def cron_profile(profile_id: int, expression: str, enabled: bool = True) -> ProfileSchedule:
    return ProfileSchedule(
        profile_id=profile_id,
        schedule_type=ScheduleType.CRON,
        cron=expression,
        is_enabled=enabled,
    )


# ---------------------------------------------------------------------------
# Task State Store
# ---------------------------------------------------------------------------


class FakeTaskStateStore(TaskStateStore, ScheduledTaskAdmin):
    """In-memory store; ``fail_on`` names methods that raise RuntimeError."""

    def __init__(self) -> None:
        self.tasks: dict[int, FakeTask] = {}
        self.profiles: dict[int, ProfileSchedule] = {}
        self.fail_on: set[str] = set()
        self.calls: list[tuple[str, Any]] = []
        self._next_id = 1

    # -- setup helpers --------------------------------------------------

    def add_profile(self, schedule: ProfileSchedule) -> ProfileSchedule:
        self.profiles[schedule.profile_id] = schedule
        return schedule

    def add_task(self, profile_id: int, next_run_at: datetime, **fields) -> FakeTask:
        task = FakeTask(id=self._next_id, profile_id=profile_id, next_run_at=next_run_at, **fields)
        self.tasks[task.id] = task
        self._next_id += 1
        return task

    def _maybe_fail(self, name: str) -> None:
        if name in self.fail_on:
            raise RuntimeError(f"{name} failed")

    def _name(self, profile_id: int) -> str:
        return f"profile-{profile_id}"

    # -- TaskStateStore -------------------------------------------------

    def fetch_due_jobs(self, now):
        self.calls.append(("fetch_due_jobs", now))
        self._maybe_fail("fetch_due_jobs")
        due = [
            t for t in self.tasks.values()
            if t.next_run_at <= now
            and not t.is_running
            and t.profile_id in self.profiles
            and self.profiles[t.profile_id].is_enabled
        ]
        due.sort(key=lambda t: t.next_run_at)
        return [t.to_domain(self._name(t.profile_id)) for t in due]

    def set_running(self, job_id, running, now):
        self.calls.append(("set_running", (job_id, running)))
        self._maybe_fail("set_running")
        task = self.tasks[job_id]
        task.is_running = running
        task.updated_at = now
        if running:
            task.last_run_at = now

    def record_outcome(self, job_id, profile_id, failure_count, last_error, now):
        self.calls.append(("record_outcome", (job_id, failure_count, last_error)))
        self._maybe_fail("record_outcome")
        schedule = self.profiles.get(profile_id)
        if schedule is None:
            return None
        task = self.tasks[job_id]
        task.next_run_at = compute_next_run(schedule, now)
        task.is_running = False
        task.failure_count = failure_count
        task.last_error = last_error
        task.last_run_at = now
        task.updated_at = now
        return task.next_run_at

    def release_stale_running(self, now):
        self.calls.append(("release_stale_running", now))
        self._maybe_fail("release_stale_running")
        released = 0
        for task in self.tasks.values():
            if task.is_running:
                task.is_running = False
                task.updated_at = now
                released += 1
        return released

    # -- ScheduledTaskAdmin ---------------------------------------------

    def list_jobs(self):
        ordered = sorted(self.tasks.values(), key=lambda t: (t.next_run_at, t.id))
        return [t.to_domain(self._name(t.profile_id)) for t in ordered]

    def get_job(self, job_id):
        if job_id not in self.tasks:
            raise EntityNotFoundError("ScheduledTask", job_id)
        task = self.tasks[job_id]
        return task.to_domain(self._name(task.profile_id))

    def get_profile_schedule(self, profile_id):
        return self.profiles.get(profile_id)

    def reset_failures(self, job_id):
        self.get_job(job_id)
        self.tasks[job_id].failure_count = 0
        self.tasks[job_id].last_error = None
        return self.get_job(job_id)

    def force_release(self, job_id, now):
        self.get_job(job_id)
        self.tasks[job_id].is_running = False
        self.tasks[job_id].updated_at = now
        return self.get_job(job_id)

    def run_now(self, job_id, now):
        self.get_job(job_id)
        self.tasks[job_id].next_run_at = as_utc(now)
        return self.get_job(job_id)

    def sync_profile_schedule(self, profile_id, now):
        schedule = self.profiles.get(profile_id)
        if schedule is None:
            raise EntityNotFoundError("Profile", profile_id)
        existing = next((t for t in self.tasks.values() if t.profile_id == profile_id), None)
        if not schedule.is_schedulable:
            if existing is not None:
                del self.tasks[existing.id]
            return None
        next_run_at = compute_next_run(schedule, now)
        if existing is None:
            existing = self.add_task(profile_id, next_run_at)
        else:
            existing.next_run_at = next_run_at
        return self.get_job(existing.id)


# ---------------------------------------------------------------------------
# Execution collaborator
# ---------------------------------------------------------------------------


class FakeProfileExecutor(ProfileExecutor):
    """Returns queued results (or raises queued exceptions) in order.

    When the queue is empty every call succeeds.
    """

    def __init__(self, results: list[ExecutionResult | BaseException] | None = None) -> None:
        self.results: deque = deque(results or [])
        self.calls: list[tuple[int, Any, str]] = []
        self.on_execute: Callable[[int], None] | None = None

    def execute_profile(self, profile_id, parameters=None, triggered_by=TRIGGERED_BY_SCHEDULER):
        self.calls.append((profile_id, parameters, triggered_by))
        if self.on_execute is not None:
            self.on_execute(profile_id)
        if not self.results:
            return ExecutionResult(execution_id=len(self.calls), success=True)
        result = self.results.popleft()
        if isinstance(result, BaseException):
            raise result
        return result


def failure(message: str = "query timed out") -> ExecutionResult:
    return ExecutionResult(execution_id=None, success=False, error_message=message)


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


@dataclass
class FakeCancellationToken(CancellationToken):
    """Cancellable by hand, or automatically on the N-th ``wait``."""

    cancelled: bool = False
    cancel_on_wait: int | None = None
    waits: list[float] = field(default_factory=list)

    def cancel(self) -> None:
        self.cancelled = True

    def is_cancelled(self) -> bool:
        return self.cancelled

    def wait(self, timeout_s: float) -> bool:
        self.waits.append(timeout_s)
        if self.cancel_on_wait is not None and len(self.waits) >= self.cancel_on_wait:
            self.cancelled = True
        return self.cancelled


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> FakeTaskStateStore:
    return FakeTaskStateStore()


@pytest.fixture
def executor() -> FakeProfileExecutor:
    return FakeProfileExecutor()
