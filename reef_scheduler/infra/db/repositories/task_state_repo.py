"""SQLAlchemy implementation of TaskStateStore and ScheduledTaskAdmin.

Each public method opens its own session and commits before returning,
so every call is one transaction.  The scheduler does not need atomicity
across calls (fetching due jobs and marking one running are separate).
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session, sessionmaker

from reef_scheduler.database import safe_rollback
from reef_scheduler.domain.common.errors import EntityNotFoundError
from reef_scheduler.domain.scheduling.models import (
    ProfileSchedule,
    ScheduledJob,
    ScheduleType,
    as_utc,
)
from reef_scheduler.domain.scheduling.ports import ScheduledTaskAdmin, TaskStateStore
from reef_scheduler.domain.scheduling.schedule_calculator import compute_next_run
from reef_scheduler.infra.db.models.scheduling import Profile, ScheduledTask

logger = logging.getLogger(__name__)


def _opt_utc(value: datetime | None) -> datetime | None:
    return as_utc(value) if value is not None else None


class SqlTaskStateStore(TaskStateStore, ScheduledTaskAdmin):
    """Persist and query scheduled-task rows via SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session: Session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            safe_rollback(session)
            raise
        finally:
            session.close()

    # -- TaskStateStore -----------------------------------------------------

    def fetch_due_jobs(self, now) -> Sequence[ScheduledJob]:
        now = as_utc(now)
        with self._session() as session:
            rows = (
                session.query(ScheduledTask, Profile.name)
                .join(Profile, ScheduledTask.profile_id == Profile.id)
                .filter(
                    ScheduledTask.next_run_at <= now,
                    ScheduledTask.is_running.is_(False),
                    Profile.is_enabled.is_(True),
                )
                .order_by(ScheduledTask.next_run_at.asc())
                .all()
            )
            return [self._to_domain(task, profile_name) for task, profile_name in rows]

    def set_running(self, job_id, running, now) -> None:
        values = {"is_running": running, "updated_at": as_utc(now)}
        if running:
            values["last_run_at"] = as_utc(now)
        with self._session() as session:
            session.execute(
                update(ScheduledTask).where(ScheduledTask.id == job_id).values(**values)
            )

    def record_outcome(self, job_id, profile_id, failure_count, last_error, now) -> datetime | None:
        now = as_utc(now)
        with self._session() as session:
            profile = session.get(Profile, profile_id)
            if profile is None:
                logger.warning(
                    "Profile %s not found when updating scheduled task %s", profile_id, job_id
                )
                return None

            next_run_at = compute_next_run(self._schedule_of(profile), now)
            session.execute(
                update(ScheduledTask)
                .where(ScheduledTask.id == job_id)
                .values(
                    next_run_at=next_run_at,
                    is_running=False,
                    failure_count=failure_count,
                    last_error=last_error,
                    last_run_at=now,
                    updated_at=now,
                )
            )
            logger.debug("Scheduled task %s updated. Next run: %s", job_id, next_run_at)
            return next_run_at

    def release_stale_running(self, now) -> int:
        with self._session() as session:
            result = session.execute(
                update(ScheduledTask)
                .where(ScheduledTask.is_running.is_(True))
                .values(is_running=False, updated_at=as_utc(now))
            )
            return result.rowcount or 0

    # -- ScheduledTaskAdmin -------------------------------------------------

    def list_jobs(self) -> Sequence[ScheduledJob]:
        with self._session() as session:
            rows = (
                session.query(ScheduledTask, Profile.name)
                .join(Profile, ScheduledTask.profile_id == Profile.id)
                .order_by(ScheduledTask.next_run_at.asc(), ScheduledTask.id.asc())
                .all()
            )
            return [self._to_domain(task, profile_name) for task, profile_name in rows]

    def get_job(self, job_id) -> ScheduledJob:
        with self._session() as session:
            return self._to_domain(self._get_or_raise(session, job_id))

    def get_profile_schedule(self, profile_id) -> ProfileSchedule | None:
        with self._session() as session:
            profile = session.get(Profile, profile_id)
            return self._schedule_of(profile) if profile is not None else None

    def reset_failures(self, job_id) -> ScheduledJob:
        with self._session() as session:
            task = self._get_or_raise(session, job_id)
            task.failure_count = 0
            task.last_error = None
            session.flush()
            logger.info("Failure count reset for scheduled task %s", job_id)
            return self._to_domain(task)

    def force_release(self, job_id, now) -> ScheduledJob:
        with self._session() as session:
            task = self._get_or_raise(session, job_id)
            task.is_running = False
            task.updated_at = as_utc(now)
            session.flush()
            logger.warning("Running flag force-released for scheduled task %s", job_id)
            return self._to_domain(task)

    def run_now(self, job_id, now) -> ScheduledJob:
        now = as_utc(now)
        with self._session() as session:
            task = self._get_or_raise(session, job_id)
            task.next_run_at = now
            task.updated_at = now
            session.flush()
            return self._to_domain(task)

    def sync_profile_schedule(self, profile_id, now) -> ScheduledJob | None:
        now = as_utc(now)
        with self._session() as session:
            profile = session.get(Profile, profile_id)
            if profile is None:
                raise EntityNotFoundError("Profile", profile_id)

            schedule = self._schedule_of(profile)
            task = (
                session.query(ScheduledTask)
                .filter(ScheduledTask.profile_id == profile_id)
                .first()
            )

            if not schedule.is_schedulable:
                if task is not None:
                    session.delete(task)
                    logger.info("Scheduled task removed for profile %s", profile_id)
                return None

            next_run_at = compute_next_run(schedule, now)
            if task is None:
                task = ScheduledTask(
                    profile_id=profile_id,
                    next_run_at=next_run_at,
                    is_running=False,
                    failure_count=0,
                    created_at=now,
                    updated_at=now,
                )
                session.add(task)
                logger.info(
                    "Scheduled task created for profile %s, first run %s", profile_id, next_run_at
                )
            else:
                task.next_run_at = next_run_at
                task.updated_at = now
            session.flush()
            return self._to_domain(task, profile.name)

    # -- Helpers ------------------------------------------------------------

    @staticmethod
    def _get_or_raise(session: Session, job_id: int) -> ScheduledTask:
        task = session.get(ScheduledTask, job_id)
        if task is None:
            raise EntityNotFoundError("ScheduledTask", job_id)
        return task

    @staticmethod
    def _schedule_of(profile: Profile) -> ProfileSchedule:
        return ProfileSchedule(
            profile_id=profile.id,
            schedule_type=ScheduleType.parse(profile.schedule_type),
            cron=profile.schedule_cron,
            interval_minutes=profile.schedule_interval_minutes,
            is_enabled=bool(profile.is_enabled),
        )

    @staticmethod
    def _to_domain(task: ScheduledTask, profile_name: str | None = None) -> ScheduledJob:
        if profile_name is None and task.profile is not None:
            profile_name = task.profile.name
        failure_count = task.failure_count or 0
        if failure_count < 0:
            logger.warning(
                "Scheduled task %s has negative failure_count %s, treating as 0",
                task.id,
                failure_count,
            )
            failure_count = 0
        return ScheduledJob(
            id=task.id,
            profile_id=task.profile_id,
            next_run_at=as_utc(task.next_run_at),
            is_running=bool(task.is_running),
            failure_count=failure_count,
            last_error=task.last_error,
            last_run_at=_opt_utc(task.last_run_at),
            updated_at=_opt_utc(task.updated_at),
            created_at=_opt_utc(task.created_at),
            profile_name=profile_name,
        )


__all__ = ["SqlTaskStateStore"]
