"""Dependency injection bootstrap, the single place that binds ports to adapters.

Every factory function here can be used as a FastAPI ``Depends()`` target.
Routers never import concrete implementations directly; they depend on
the abstractions returned by these factories.

Example usage in a router::

    from reef_scheduler.wiring.bootstrap import get_task_admin

    @router.get("/scheduled-tasks")
    def list_tasks(admin: ScheduledTaskAdmin = Depends(get_task_admin)):
        return admin.list_jobs()
"""

from __future__ import annotations

from reef_scheduler.celery_app import celery_app
from reef_scheduler.config import settings
from reef_scheduler.database import SessionLocal
from reef_scheduler.domain.scheduling.ports import (
    ProfileExecutor,
    ScheduledTaskAdmin,
    TaskStateStore,
)
from reef_scheduler.infra.db.repositories.task_state_repo import SqlTaskStateStore
from reef_scheduler.infra.tasks.profile_executor import CeleryProfileExecutor
from reef_scheduler.services.scheduler_service import SchedulerService
from reef_scheduler.use_cases.scheduling.dispatch_job import JobDispatcher
from reef_scheduler.use_cases.scheduling.run_scheduler_pass import RunSchedulerPassUseCase
from reef_scheduler.utils.rate_limiter import rate_limiters


# ── Task State Store ─────────────────────────────────────────────────────

_store: SqlTaskStateStore | None = None


def _get_sql_store() -> SqlTaskStateStore:
    global _store
    if _store is None:
        _store = SqlTaskStateStore(SessionLocal)
    return _store


def get_task_state_store() -> TaskStateStore:
    """Return the singleton SQL-backed TaskStateStore."""
    return _get_sql_store()


def get_task_admin() -> ScheduledTaskAdmin:
    """Return the operator view of the same store."""
    return _get_sql_store()


# ── Execution collaborator ───────────────────────────────────────────────

_profile_executor: CeleryProfileExecutor | None = None


def get_profile_executor() -> ProfileExecutor:
    """Return a singleton CeleryProfileExecutor, throttled when configured."""
    global _profile_executor
    if _profile_executor is None:
        limiter = None
        if settings.profile_execution_throttled:
            limiter = rate_limiters.get_limiter(
                "profile_execution",
                requests_per_second=settings.profile_execution_rate_limit,
                burst_size=settings.profile_execution_burst,
            )
        _profile_executor = CeleryProfileExecutor(
            celery_app,
            task_name=settings.profile_execution_task_name,
            queue=settings.profile_execution_queue,
            timeout_seconds=settings.profile_execution_timeout_seconds,
            rate_limiter=limiter,
        )
    return _profile_executor


# ── Use Cases ────────────────────────────────────────────────────────────


def get_run_scheduler_pass_use_case() -> RunSchedulerPassUseCase:
    """Build a RunSchedulerPassUseCase wired with infrastructure adapters."""
    return RunSchedulerPassUseCase(
        store=get_task_state_store(),
        dispatcher=JobDispatcher(get_profile_executor()),
    )


# ── Scheduler loop ───────────────────────────────────────────────────────

_scheduler_service: SchedulerService | None = None


def get_scheduler_service() -> SchedulerService:
    """Return the process-wide SchedulerService."""
    global _scheduler_service
    if _scheduler_service is None:
        _scheduler_service = SchedulerService(
            pass_use_case=get_run_scheduler_pass_use_case(),
            store=get_task_state_store(),
            check_interval_seconds=settings.scheduler_check_interval_seconds,
            release_stale_on_startup=settings.scheduler_release_stale_on_startup,
        )
    return _scheduler_service
