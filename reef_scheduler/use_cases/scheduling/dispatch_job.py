"""JobDispatcher: invoke the execution collaborator for one due job.

A raised exception and a reported failure mean the same thing to the
scheduler, so both come back as an unsuccessful ExecutionResult.

Zero Celery imports.
"""

from __future__ import annotations

import logging

from reef_scheduler.domain.scheduling.models import (
    TRIGGERED_BY_SCHEDULER,
    ExecutionResult,
    ScheduledJob,
)
from reef_scheduler.domain.scheduling.ports import ProfileExecutor

logger = logging.getLogger(__name__)


class JobDispatcher:
    """Run a job's profile and normalise the outcome."""

    def __init__(self, executor: ProfileExecutor) -> None:
        self._executor = executor

    def dispatch(self, job: ScheduledJob) -> ExecutionResult:
        try:
            result = self._executor.execute_profile(
                job.profile_id,
                parameters=None,
                triggered_by=TRIGGERED_BY_SCHEDULER,
            )
        except Exception as e:
            logger.error(
                "Error executing scheduled task %s for profile %s: %s",
                job.id,
                job.profile_id,
                e,
                exc_info=True,
            )
            return ExecutionResult(
                execution_id=None,
                success=False,
                error_message=str(e) or type(e).__name__,
            )

        if result.success:
            logger.info(
                "Scheduled execution completed successfully. Profile: %s, ExecutionId: %s",
                job.profile_id,
                result.execution_id,
            )
        else:
            logger.warning(
                "Scheduled execution failed for profile %s: %s",
                job.profile_id,
                result.error_message,
            )
        return result


__all__ = ["JobDispatcher"]
