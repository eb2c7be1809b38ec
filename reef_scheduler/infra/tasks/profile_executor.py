"""Celery implementation of the ProfileExecutor port."""

from __future__ import annotations

import logging
from typing import Any

from celery import Celery

from reef_scheduler.domain.scheduling.models import TRIGGERED_BY_SCHEDULER, ExecutionResult
from reef_scheduler.domain.scheduling.ports import ProfileExecutor
from reef_scheduler.utils.rate_limiter import TokenBucketRateLimiter

logger = logging.getLogger(__name__)


def _to_execution_result(payload: Any) -> ExecutionResult:
    """Map the remote task's return value onto an ExecutionResult."""
    if not isinstance(payload, dict):
        return ExecutionResult(
            execution_id=None,
            success=False,
            error_message=f"Unexpected execution result: {payload!r}",
        )
    success = bool(payload.get("success", False))
    error_message = payload.get("error_message")
    if not success and not error_message:
        error_message = "Execution reported failure without an error message"
    return ExecutionResult(
        execution_id=payload.get("execution_id"),
        success=success,
        output_path=payload.get("output_path"),
        error_message=error_message,
    )


class CeleryProfileExecutor(ProfileExecutor):
    """Send the profile execution task and wait for its result.

    Timeouts and exceptions raised by the remote task propagate to the
    caller, which records them as failed executions.
    """

    def __init__(
        self,
        celery_app: Celery,
        task_name: str,
        queue: str,
        timeout_seconds: float,
        rate_limiter: TokenBucketRateLimiter | None = None,
    ) -> None:
        self._celery_app = celery_app
        self._task_name = task_name
        self._queue = queue
        self._timeout_seconds = timeout_seconds
        self._rate_limiter = rate_limiter

    def execute_profile(
        self,
        profile_id: int,
        parameters: dict[str, Any] | None = None,
        triggered_by: str = TRIGGERED_BY_SCHEDULER,
    ) -> ExecutionResult:
        if self._rate_limiter is not None:
            self._rate_limiter.acquire()

        async_result = self._celery_app.send_task(
            self._task_name,
            kwargs={
                "profile_id": profile_id,
                "parameters": parameters,
                "triggered_by": triggered_by,
            },
            queue=self._queue,
        )
        logger.debug(
            "Profile %s dispatched as task %s on queue %s", profile_id, async_result.id, self._queue
        )
        payload = async_result.get(timeout=self._timeout_seconds)
        return _to_execution_result(payload)
