"""Aggregate router for API v1."""
from fastapi import APIRouter

from . import scheduler

router = APIRouter()
router.include_router(scheduler.router)
