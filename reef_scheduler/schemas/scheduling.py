"""Pydantic schemas for scheduler API endpoints."""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel

from ..domain.scheduling.models import JobOutcome, PassResult, ScheduledJob


class ScheduledTaskResponse(BaseModel):
    """A scheduled task row as seen by operators."""

    id: int
    profile_id: int
    profile_name: Optional[str] = None
    next_run_at: datetime
    last_run_at: Optional[datetime] = None
    is_running: bool
    failure_count: int
    last_error: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, job: ScheduledJob) -> "ScheduledTaskResponse":
        return cls(
            id=job.id,
            profile_id=job.profile_id,
            profile_name=job.profile_name,
            next_run_at=job.next_run_at,
            last_run_at=job.last_run_at,
            is_running=job.is_running,
            failure_count=job.failure_count,
            last_error=job.last_error,
            updated_at=job.updated_at,
        )


class ScheduledTaskListResponse(BaseModel):
    tasks: List[ScheduledTaskResponse]
    total: int


class JobOutcomeResponse(BaseModel):
    job_id: int
    profile_id: int
    success: bool
    failure_count: int
    error: Optional[str] = None
    escalated: bool
    execution_id: Optional[Union[int, str]] = None
    next_run_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, outcome: JobOutcome) -> "JobOutcomeResponse":
        return cls(
            job_id=outcome.job_id,
            profile_id=outcome.profile_id,
            success=outcome.success,
            failure_count=outcome.failure_count,
            error=outcome.error,
            escalated=outcome.escalated,
            execution_id=outcome.execution_id,
            next_run_at=outcome.next_run_at,
        )


class PassSummaryResponse(BaseModel):
    """Summary of the most recent scheduler pass."""

    started_at: datetime
    due_count: int
    succeeded: int
    failed: int
    cancelled: bool
    fetch_error: Optional[str] = None
    outcomes: List[JobOutcomeResponse]

    @classmethod
    def from_domain(cls, result: PassResult) -> "PassSummaryResponse":
        return cls(
            started_at=result.started_at,
            due_count=result.due_count,
            succeeded=result.succeeded,
            failed=result.failed,
            cancelled=result.cancelled,
            fetch_error=result.fetch_error,
            outcomes=[JobOutcomeResponse.from_domain(o) for o in result.outcomes],
        )


class SchedulerStatusResponse(BaseModel):
    enabled: bool
    running: bool
    check_interval_seconds: float
    passes_completed: int
    last_pass: Optional[PassSummaryResponse] = None


class ProfileScheduleSyncResponse(BaseModel):
    """Result of syncing a profile's schedule onto its scheduled task."""

    profile_id: int
    scheduled: bool
    task: Optional[ScheduledTaskResponse] = None
