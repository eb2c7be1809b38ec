"""
API endpoints for scheduler visibility and operator intervention.

Provides endpoints to inspect scheduled tasks and the scheduler loop, to
reset a task's failure count after escalation, to force-release a stuck
running flag, and to resync a profile's schedule onto its task.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from ...config import settings
from ...domain.common.errors import EntityNotFoundError
from ...domain.scheduling.models import utcnow
from ...domain.scheduling.ports import ScheduledTaskAdmin
from ...schemas.scheduling import (
    PassSummaryResponse,
    ProfileScheduleSyncResponse,
    ScheduledTaskListResponse,
    ScheduledTaskResponse,
    SchedulerStatusResponse,
)
from ...services.scheduler_service import SchedulerService
from ...wiring.bootstrap import get_scheduler_service, get_task_admin

logger = logging.getLogger(__name__)
router = APIRouter(tags=["scheduler"])


@router.get("/scheduler/status", response_model=SchedulerStatusResponse)
def get_scheduler_status(service: SchedulerService = Depends(get_scheduler_service)):
    """Report whether the loop is running and what its last pass did."""
    last_pass = service.last_pass
    return SchedulerStatusResponse(
        enabled=settings.scheduler_enabled,
        running=service.is_running,
        check_interval_seconds=service.check_interval_seconds,
        passes_completed=service.passes_completed,
        last_pass=PassSummaryResponse.from_domain(last_pass) if last_pass else None,
    )


@router.get("/scheduled-tasks", response_model=ScheduledTaskListResponse)
def list_scheduled_tasks(admin: ScheduledTaskAdmin = Depends(get_task_admin)):
    """List scheduled tasks, earliest due first."""
    jobs = admin.list_jobs()
    return ScheduledTaskListResponse(
        tasks=[ScheduledTaskResponse.from_domain(j) for j in jobs],
        total=len(jobs),
    )


@router.get("/scheduled-tasks/{task_id}", response_model=ScheduledTaskResponse)
def get_scheduled_task(task_id: int, admin: ScheduledTaskAdmin = Depends(get_task_admin)):
    try:
        return ScheduledTaskResponse.from_domain(admin.get_job(task_id))
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/scheduled-tasks/{task_id}/reset-failures", response_model=ScheduledTaskResponse)
def reset_task_failures(task_id: int, admin: ScheduledTaskAdmin = Depends(get_task_admin)):
    """
    Clear the consecutive-failure count and last error.

    Escalation never disables a task; this is how an operator acknowledges it.
    """
    try:
        return ScheduledTaskResponse.from_domain(admin.reset_failures(task_id))
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/scheduled-tasks/{task_id}/release", response_model=ScheduledTaskResponse)
def release_scheduled_task(task_id: int, admin: ScheduledTaskAdmin = Depends(get_task_admin)):
    """
    Force-clear a stuck running flag.

    WARNING: Only use this if no scheduler is executing the task.
    """
    try:
        return ScheduledTaskResponse.from_domain(admin.force_release(task_id, utcnow()))
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/scheduled-tasks/{task_id}/run-now", response_model=ScheduledTaskResponse)
def run_scheduled_task_now(task_id: int, admin: ScheduledTaskAdmin = Depends(get_task_admin)):
    """Make the task due so the next pass picks it up."""
    try:
        return ScheduledTaskResponse.from_domain(admin.run_now(task_id, utcnow()))
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/profiles/{profile_id}/schedule/sync", response_model=ProfileScheduleSyncResponse)
def sync_profile_schedule(profile_id: int, admin: ScheduledTaskAdmin = Depends(get_task_admin)):
    """Create, update or remove the profile's scheduled task to match its schedule."""
    try:
        job = admin.sync_profile_schedule(profile_id, utcnow())
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ProfileScheduleSyncResponse(
        profile_id=profile_id,
        scheduled=job is not None,
        task=ScheduledTaskResponse.from_domain(job) if job else None,
    )
