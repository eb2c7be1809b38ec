"""
Scheduling SQLAlchemy models.

Tables:
    profiles         - Profile schedule configuration (owned by profile management)
    scheduled_tasks  - One due-tracking row per scheduled profile
"""
from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from reef_scheduler.database import Base


class Profile(Base):
    """Execution profile; only the schedule-related columns live here."""

    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    name = Column(Text, nullable=False)
    schedule_type = Column(Text, nullable=True)  # Cron / Interval / Webhook / NULL
    schedule_cron = Column(Text, nullable=True)
    schedule_interval_minutes = Column(Integer, nullable=True)
    is_enabled = Column(Boolean, nullable=False, default=True, server_default="1")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    scheduled_tasks = relationship(
        "ScheduledTask",
        back_populates="profile",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ScheduledTask(Base):
    """Due-tracking state for a scheduled profile."""

    __tablename__ = "scheduled_tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    profile_id = Column(
        Integer,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    next_run_at = Column(DateTime(timezone=True), nullable=False, index=True)
    last_run_at = Column(DateTime(timezone=True), nullable=True)
    is_running = Column(Boolean, nullable=False, default=False, server_default="0", index=True)
    failure_count = Column(Integer, nullable=False, default=0, server_default="0")
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    profile = relationship("Profile", back_populates="scheduled_tasks")

    __table_args__ = (
        CheckConstraint("failure_count >= 0", name="ck_scheduled_tasks_failure_count_nonneg"),
    )
