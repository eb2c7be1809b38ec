"""
Celery configuration for profile execution.

The scheduler only sends ``profile_execution_task_name`` and waits for its
result; the task itself is registered by the worker that owns profile
execution.
"""
import logging

from celery import Celery

from .config import settings

_logger = logging.getLogger(__name__)

# Create Celery application instance
celery_app = Celery(
    "reef_scheduler",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

# Configure Celery
celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone=settings.celery_timezone,
    enable_utc=True,
    task_track_started=True,  # Track when tasks start
    broker_connection_retry_on_startup=True,  # Retry connecting to broker on startup
    result_expires=86400,  # Results expire after 24 hours
)

# Route profile executions to their dedicated queue
# Run workers with: celery -A <worker_app> worker -Q profile_execution
celery_app.conf.task_routes = {
    settings.profile_execution_task_name: {'queue': settings.profile_execution_queue},
}


@celery_app.on_after_configure.connect
def _log_timezone(sender, **kwargs):
    _logger.info("Celery timezone: %s (enable_utc=%s)", settings.celery_timezone, True)
