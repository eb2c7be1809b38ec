"""Domain models for the scheduling bounded context.

Pure value objects and enums describing scheduled jobs, profile schedules,
execution results and per-pass outcomes, independently of any
infrastructure (ORM, Celery, HTTP).  All dataclasses use frozen=True.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

# Provenance tag passed to the execution collaborator for scheduler runs.
TRIGGERED_BY_SCHEDULER = "Scheduler"

# Consecutive failures at which an escalation diagnostic is emitted.
FAILURE_ESCALATION_THRESHOLD = 5


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ScheduleType(str, Enum):
    """How a profile's recurrence is described."""

    CRON = "Cron"
    INTERVAL = "Interval"
    UNSET = "Unset"

    @classmethod
    def parse(cls, value: str | None) -> "ScheduleType":
        """Map a persisted text value onto the enum; anything unknown is UNSET."""
        if value == cls.CRON.value:
            return cls.CRON
        if value == cls.INTERVAL.value:
            return cls.INTERVAL
        return cls.UNSET


class NextRunSource(str, Enum):
    """Which branch of the calculator produced a next-run timestamp."""

    CRON = "cron"
    INTERVAL = "interval"
    FALLBACK = "fallback"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def as_utc(value: datetime) -> datetime:
    """Return *value* as a timezone-aware UTC datetime (naive means UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProfileSchedule:
    """Schedule specification owned by a profile (read-only input)."""

    profile_id: int | None
    schedule_type: ScheduleType
    cron: str | None = None
    interval_minutes: int | None = None
    is_enabled: bool = True

    @property
    def is_schedulable(self) -> bool:
        """True when the profile carries a cron or interval recurrence."""
        return self.schedule_type in (ScheduleType.CRON, ScheduleType.INTERVAL)


@dataclass(frozen=True)
class ScheduledJob:
    """Pure domain representation of a persisted scheduled task row."""

    id: int
    profile_id: int
    next_run_at: datetime
    is_running: bool = False
    failure_count: int = 0
    last_error: str | None = None
    last_run_at: datetime | None = None
    updated_at: datetime | None = None
    created_at: datetime | None = None
    profile_name: str | None = None

    def __post_init__(self) -> None:
        if self.failure_count < 0:
            raise ValueError(f"failure_count must be >= 0, got {self.failure_count}")


@dataclass(frozen=True)
class ExecutionResult:
    """What the execution collaborator reports for one profile run."""

    execution_id: int | str | None
    success: bool
    output_path: str | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class NextRunDecision:
    """Next-run timestamp plus the branch that produced it."""

    next_run_at: datetime
    source: NextRunSource
    reason: str | None = None  # set when source is FALLBACK

    @property
    def is_fallback(self) -> bool:
        return self.source is NextRunSource.FALLBACK


@dataclass(frozen=True)
class StoreWrite:
    """Result of a best-effort store write."""

    ok: bool
    error: str | None = None


@dataclass(frozen=True)
class JobOutcome:
    """Everything one pass did to one due job."""

    job_id: int
    profile_id: int
    success: bool
    failure_count: int
    error: str | None = None
    escalated: bool = False
    execution_id: int | str | None = None
    next_run_at: datetime | None = None  # None when the outcome was not persisted
    marked_running: bool = False
    released: bool = False


@dataclass(frozen=True)
class PassResult:
    """Summary of one scheduler pass."""

    started_at: datetime
    due_count: int
    outcomes: tuple[JobOutcome, ...] = ()
    fetch_error: str | None = None
    cancelled: bool = False

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)


__all__ = [
    "FAILURE_ESCALATION_THRESHOLD",
    "TRIGGERED_BY_SCHEDULER",
    "ExecutionResult",
    "JobOutcome",
    "NextRunDecision",
    "NextRunSource",
    "PassResult",
    "ProfileSchedule",
    "ScheduleType",
    "ScheduledJob",
    "StoreWrite",
    "as_utc",
    "utcnow",
]
