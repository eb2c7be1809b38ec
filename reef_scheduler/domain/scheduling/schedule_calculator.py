"""Next-run computation for profile schedules.

Pure and total: every input yields a timestamp strictly after ``now``.
Bad cron syntax, missing interval values and intervals too large to add
to ``now`` fall back to one hour from ``now`` and are logged, never raised.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from croniter import croniter

from .models import NextRunDecision, NextRunSource, ProfileSchedule, ScheduleType, as_utc

logger = logging.getLogger(__name__)

FALLBACK_DELAY = timedelta(hours=1)
CRON_FIELD_COUNT = 5


def _next_cron_occurrence(expression: str, now: datetime) -> datetime:
    fields = expression.split()
    if len(fields) != CRON_FIELD_COUNT:
        raise ValueError(
            f"expected {CRON_FIELD_COUNT} cron fields, got {len(fields)}: {expression!r}"
        )
    nxt = croniter(expression, now).get_next(datetime)
    nxt = as_utc(nxt)
    if nxt <= now:
        raise ValueError(f"cron expression {expression!r} produced a non-future occurrence {nxt}")
    return nxt


def decide_next_run(schedule: ProfileSchedule, now: datetime) -> NextRunDecision:
    """Return the next due timestamp for *schedule* and which branch produced it."""
    now = as_utc(now)

    if schedule.schedule_type is ScheduleType.CRON and schedule.cron:
        try:
            nxt = _next_cron_occurrence(schedule.cron.strip(), now)
        except Exception as e:
            logger.warning(
                "Error calculating next cron run for profile %s (%r): %s. Defaulting to 1 hour.",
                schedule.profile_id,
                schedule.cron,
                e,
            )
            return NextRunDecision(
                next_run_at=now + FALLBACK_DELAY,
                source=NextRunSource.FALLBACK,
                reason=f"invalid cron expression: {e}",
            )
        logger.debug("Next cron occurrence for profile %s: %s", schedule.profile_id, nxt)
        return NextRunDecision(next_run_at=nxt, source=NextRunSource.CRON)

    if (
        schedule.schedule_type is ScheduleType.INTERVAL
        and schedule.interval_minutes is not None
        and schedule.interval_minutes > 0
    ):
        try:
            nxt = now + timedelta(minutes=schedule.interval_minutes)
        except (OverflowError, ValueError) as e:
            logger.warning(
                "Error calculating next interval run for profile %s (%r minutes): %s. "
                "Defaulting to 1 hour.",
                schedule.profile_id,
                schedule.interval_minutes,
                e,
            )
            return NextRunDecision(
                next_run_at=now + FALLBACK_DELAY,
                source=NextRunSource.FALLBACK,
                reason=f"interval out of range: {e}",
            )
        logger.debug(
            "Next interval run for profile %s: %s (%d minutes)",
            schedule.profile_id,
            nxt,
            schedule.interval_minutes,
        )
        return NextRunDecision(next_run_at=nxt, source=NextRunSource.INTERVAL)

    logger.warning(
        "Profile %s has invalid schedule configuration (type=%s, cron=%r, interval=%r). "
        "Defaulting to 1 hour.",
        schedule.profile_id,
        schedule.schedule_type.value,
        schedule.cron,
        schedule.interval_minutes,
    )
    return NextRunDecision(
        next_run_at=now + FALLBACK_DELAY,
        source=NextRunSource.FALLBACK,
        reason="missing or invalid schedule configuration",
    )


def compute_next_run(schedule: ProfileSchedule, now: datetime) -> datetime:
    """Return the next due timestamp for *schedule*; always after *now*."""
    return decide_next_run(schedule, now).next_run_at


__all__ = [
    "FALLBACK_DELAY",
    "compute_next_run",
    "decide_next_run",
]
