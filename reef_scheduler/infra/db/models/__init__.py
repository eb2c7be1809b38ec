from .scheduling import Profile, ScheduledTask

__all__ = ["Profile", "ScheduledTask"]
