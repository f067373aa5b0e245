"""
Scheduler API schemas.

Supports the /scheduler/* control endpoints.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class SchedulerStartResponse(BaseModel):
    """Response from scheduler start."""

    success: bool
    message: str
    scheduled_jobs: int = Field(default=0, description="Number of jobs with an armed timer")


class SchedulerStopRequest(BaseModel):
    """Request to stop scheduler."""

    timeout: float = Field(
        default=30.0,
        ge=0,
        le=600,
        description="Max seconds to wait for in-flight executions"
    )


class SchedulerStopResponse(BaseModel):
    """Response from scheduler stop."""

    success: bool
    message: str


class PendingRetryInfo(BaseModel):
    """A retry waiting for its delay."""

    job_id: str
    attempt: int
    retries_remaining: int


class SchedulerStatusResponse(BaseModel):
    """Scheduler status."""

    scheduler_running: bool = Field(..., description="Whether recurrence timers are armed")
    registered_jobs: int = Field(default=0, description="Number of registered jobs")
    scheduled_jobs: int = Field(default=0, description="Number of jobs with an armed timer")
    active_jobs: List[str] = Field(default_factory=list, description="Jobs executing right now")
    pending_retries: List[PendingRetryInfo] = Field(default_factory=list)
    full_sync_running: bool = Field(default=False, description="Whether a full sync is in progress")
    last_full_sync: Optional[dict] = Field(default=None, description="Result of the last full sync")
