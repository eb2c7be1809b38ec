"""Scheduling bounded context: jobs, schedules and the next-run calculator."""

from .models import (
    FAILURE_ESCALATION_THRESHOLD,
    TRIGGERED_BY_SCHEDULER,
    ExecutionResult,
    JobOutcome,
    NextRunDecision,
    NextRunSource,
    PassResult,
    ProfileSchedule,
    ScheduledJob,
    ScheduleType,
    StoreWrite,
)
from .schedule_calculator import compute_next_run, decide_next_run

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
    "compute_next_run",
    "decide_next_run",
]
