"""RunSchedulerPassUseCase: one fetch-due-jobs-and-process-them cycle.

Per due job, strictly in ascending next_run_at order:
  1. Mark the job running (best-effort)
  2. Dispatch its profile with the "Scheduler" provenance tag
  3. Success resets the failure count; failure increments it and keeps the error
  4. Reschedule from the profile's schedule and persist the outcome
  5. Escalate at FAILURE_ESCALATION_THRESHOLD consecutive failures (log only)
  6. Always clear the running flag before moving on

Store faults are logged and reported in the returned outcome values;
one job's failure never aborts the rest of the pass.

Zero Celery imports.
"""

from __future__ import annotations

import logging

from reef_scheduler.domain.scheduling.models import (
    FAILURE_ESCALATION_THRESHOLD,
    JobOutcome,
    PassResult,
    ScheduledJob,
    StoreWrite,
    as_utc,
    utcnow,
)
from reef_scheduler.domain.scheduling.ports import CancellationToken, NowFn, TaskStateStore

from .dispatch_job import JobDispatcher

logger = logging.getLogger(__name__)


def _describe(e: Exception) -> str:
    return str(e) or type(e).__name__


class RunSchedulerPassUseCase:
    """Select due jobs, execute them one by one and reschedule each."""

    def __init__(
        self,
        store: TaskStateStore,
        dispatcher: JobDispatcher,
        now_fn: NowFn = utcnow,
        escalation_threshold: int = FAILURE_ESCALATION_THRESHOLD,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._now = now_fn
        self._escalation_threshold = escalation_threshold

    def execute(self, cancel: CancellationToken | None = None) -> PassResult:
        started_at = as_utc(self._now())

        try:
            jobs = list(self._store.fetch_due_jobs(started_at))
        except Exception as e:
            logger.error("Error checking scheduled profiles: %s", e, exc_info=True)
            return PassResult(started_at=started_at, due_count=0, fetch_error=_describe(e))

        if not jobs:
            logger.debug("No scheduled profiles due at %s", started_at)
            return PassResult(started_at=started_at, due_count=0)

        logger.info("Found %d due scheduled profile(s)", len(jobs))
        outcomes: list[JobOutcome] = []
        cancelled = False

        for job in jobs:
            if cancel is not None and cancel.is_cancelled():
                cancelled = True
                logger.info(
                    "Scheduler pass cancelled, %d due job(s) left for a later pass",
                    len(jobs) - len(outcomes),
                )
                break

            try:
                outcomes.append(self._process(job))
            except Exception as e:
                logger.error(
                    "Error executing scheduled task %s for profile %s: %s",
                    job.id,
                    job.profile_id,
                    e,
                    exc_info=True,
                )
                outcomes.append(
                    JobOutcome(
                        job_id=job.id,
                        profile_id=job.profile_id,
                        success=False,
                        failure_count=job.failure_count,
                        error=_describe(e),
                    )
                )

        return PassResult(
            started_at=started_at,
            due_count=len(jobs),
            outcomes=tuple(outcomes),
            cancelled=cancelled,
        )

    # ------------------------------------------------------------------

    def _process(self, job: ScheduledJob) -> JobOutcome:
        logger.info(
            "Executing scheduled profile: %s (ID: %s)",
            job.profile_name or "<unnamed>",
            job.profile_id,
        )
        marked = self._set_running(job, True)
        try:
            result = self._dispatcher.dispatch(job)

            if result.success:
                failure_count, error = 0, None
            else:
                failure_count = job.failure_count + 1
                error = result.error_message or "Execution failed"

            next_run_at = self._record_outcome(job, failure_count, error)

            escalated = failure_count >= self._escalation_threshold
            if escalated:
                logger.error(
                    "Profile %s has failed %d consecutive times. Consider investigation.",
                    job.profile_id,
                    failure_count,
                )
        finally:
            released = self._set_running(job, False)

        return JobOutcome(
            job_id=job.id,
            profile_id=job.profile_id,
            success=result.success,
            failure_count=failure_count,
            error=error,
            escalated=escalated,
            execution_id=result.execution_id,
            next_run_at=next_run_at,
            marked_running=marked.ok,
            released=released.ok,
        )

    def _set_running(self, job: ScheduledJob, running: bool) -> StoreWrite:
        try:
            self._store.set_running(job.id, running, as_utc(self._now()))
        except Exception as e:
            logger.error(
                "Error marking task %s as %s: %s",
                job.id,
                "running" if running else "not running",
                e,
                exc_info=True,
            )
            return StoreWrite(ok=False, error=_describe(e))
        return StoreWrite(ok=True)

    def _record_outcome(self, job: ScheduledJob, failure_count: int, error: str | None):
        try:
            return self._store.record_outcome(
                job.id, job.profile_id, failure_count, error, as_utc(self._now())
            )
        except Exception as e:
            logger.error("Error updating scheduled task %s: %s", job.id, e, exc_info=True)
            return None


__all__ = ["RunSchedulerPassUseCase"]
