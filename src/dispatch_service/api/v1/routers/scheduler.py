from __future__ import annotations

import logging

from fastapi import APIRouter

from dispatch_service.api.deps import CacheDep, SchedulerDep
from dispatch_service.api.v1.schemas.scheduler import (
    SchedulerActionResponse,
    SchedulerStatusResponse,
)
from dispatch_service.application.ports.cache import SCHEDULER_STATE_KEY

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scheduler", tags=["scheduler"])


@router.post("/start", response_model=SchedulerActionResponse)
async def start_scheduler(scheduler: SchedulerDep, cache: CacheDep) -> SchedulerActionResponse:
    await scheduler.start()
    await cache.set(SCHEDULER_STATE_KEY, "running")
    return SchedulerActionResponse(message="Scheduler started successfully", status="running")


@router.post("/stop", response_model=SchedulerActionResponse)
async def stop_scheduler(scheduler: SchedulerDep, cache: CacheDep) -> SchedulerActionResponse:
    await scheduler.stop()
    await cache.delete(SCHEDULER_STATE_KEY)
    return SchedulerActionResponse(message="Scheduler stopped successfully", status="stopped")


@router.get("/status", response_model=SchedulerStatusResponse)
async def scheduler_status(scheduler: SchedulerDep) -> SchedulerStatusResponse:
    return SchedulerStatusResponse(running=scheduler.is_running())
