"""Root test configuration.

Points the application at an in-memory database and keeps the scheduler
loop off before any ``reef_scheduler`` module reads its settings.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
