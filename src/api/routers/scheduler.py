"""
Scheduler router for scheduler control APIs.

Endpoints under /scheduler/* for start, stop, and status operations.
The scheduler is a system-level control plane, NOT a sub-resource of Job.
"""

from fastapi import APIRouter, HTTPException

from ..schemas.scheduler import (
    PendingRetryInfo,
    SchedulerStartResponse,
    SchedulerStopRequest,
    SchedulerStopResponse,
    SchedulerStatusResponse,
)
from .._scheduler_state import get_orchestrator, get_scheduler_service


router = APIRouter()


@router.post("/start", response_model=SchedulerStartResponse)
async def start_scheduler():
    """
    Start the scheduler: restore saved job state and arm every enabled job.

    Idempotent: If scheduler is already running, returns success with message.
    Does NOT auto-start on server boot; explicit call required.
    """
    service = get_scheduler_service()

    if service.is_running:
        return SchedulerStartResponse(
            success=True,
            message="Scheduler is already running",
            scheduled_jobs=service.get_scheduler_status()["scheduled_jobs"],
        )

    try:
        scheduled = await service.start()
        return SchedulerStartResponse(
            success=True,
            message="Scheduler started successfully",
            scheduled_jobs=scheduled,
        )

    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to start scheduler: {str(e)}"
        )


@router.post("/stop", response_model=SchedulerStopResponse)
async def stop_scheduler(request: SchedulerStopRequest = SchedulerStopRequest()):
    """
    Stop the scheduler gracefully.

    Cancels timers and pending retries, waits for in-flight executions.
    Idempotent: If scheduler is already stopped, returns success.
    """
    service = get_scheduler_service()

    if not service.is_running:
        return SchedulerStopResponse(
            success=True,
            message="Scheduler is already stopped",
        )

    try:
        await service.stop(timeout=request.timeout)
        return SchedulerStopResponse(
            success=True,
            message="Scheduler stopped successfully",
        )

    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to stop scheduler: {str(e)}"
        )


@router.get("/status", response_model=SchedulerStatusResponse)
async def get_scheduler_status():
    """
    Get comprehensive scheduler status.

    Returns:
    - scheduler_running: Whether recurrence timers are armed
    - active_jobs: Jobs executing right now
    - pending_retries: Retries waiting for their delay
    - full_sync_running / last_full_sync: Orchestrator state
    """
    service = get_scheduler_service()
    orchestrator = get_orchestrator()

    status = service.get_scheduler_status()
    sync_status = orchestrator.status()

    return SchedulerStatusResponse(
        scheduler_running=status["scheduler_running"],
        registered_jobs=status["registered_jobs"],
        scheduled_jobs=status["scheduled_jobs"],
        active_jobs=status["active_jobs"],
        pending_retries=[PendingRetryInfo(**pending) for pending in status["pending_retries"]],
        full_sync_running=sync_status["is_running"],
        last_full_sync=sync_status["last_result"],
    )
