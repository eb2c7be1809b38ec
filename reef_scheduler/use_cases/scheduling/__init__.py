from .dispatch_job import JobDispatcher
from .run_scheduler_pass import RunSchedulerPassUseCase

__all__ = ["JobDispatcher", "RunSchedulerPassUseCase"]
