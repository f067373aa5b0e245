"""
Job API schemas.

Status snapshots, enable/disable toggles and manual-run records.
"""

from typing import List, Optional
from pydantic import BaseModel, Field

from src.scheduler.entities import ExecutionRecord, JobStatus


class JobStatusResponse(BaseModel):
    """Snapshot of one registered job."""

    job_id: str = Field(..., description="Unique job identifier")
    name: str = Field(..., description="Human-readable job name")
    enabled: bool
    priority: str = Field(..., description="high / medium / low")
    is_active: bool = Field(..., description="Whether the job is executing right now")
    last_run: Optional[str] = Field(default=None, description="Start of the last attempt (ISO format)")
    next_run: Optional[str] = Field(default=None, description="Next scheduled occurrence (ISO format)")

    @classmethod
    def from_status(cls, status: JobStatus) -> "JobStatusResponse":
        return cls(**status.to_dict())


class JobListResponse(BaseModel):
    """Response for job list endpoint."""

    jobs: List[JobStatusResponse] = Field(default_factory=list)
    total: int = Field(..., description="Total number of jobs")
    enabled_count: int = Field(default=0)
    active_count: int = Field(default=0)


class JobToggleResponse(BaseModel):
    """Response from enable/disable."""

    job_id: str
    enabled: bool
    next_run: Optional[str] = None
    message: str


class ExecutionRecordResponse(BaseModel):
    """One execution attempt."""

    job_id: str
    start_time: str
    end_time: str
    duration: float = Field(..., description="Seconds")
    success: bool
    records_processed: int = 0
    error_count: int = 0
    errors: List[str] = Field(default_factory=list)
    api_calls_used: int = 0
    attempt: int = 1

    @classmethod
    def from_record(cls, record: ExecutionRecord) -> "ExecutionRecordResponse":
        return cls(**record.to_dict())


class ExecutionRecordListResponse(BaseModel):
    """Recent execution attempts, newest first."""

    records: List[ExecutionRecordResponse] = Field(default_factory=list)
    total: int
