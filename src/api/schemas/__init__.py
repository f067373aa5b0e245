"""
API Schemas package.

Pydantic models for request/response validation.
"""

from .scheduler import (
    SchedulerStartResponse,
    SchedulerStopRequest,
    SchedulerStopResponse,
    SchedulerStatusResponse,
)
from .jobs import (
    JobStatusResponse,
    JobListResponse,
    JobToggleResponse,
    ExecutionRecordResponse,
    ExecutionRecordListResponse,
)
from .sync import (
    FullSyncResponse,
    DailySummaryResponse,
    TableStatsResponse,
    CleanupResponse,
    ConnectionTestResponse,
)

__all__ = [
    "SchedulerStartResponse",
    "SchedulerStopRequest",
    "SchedulerStopResponse",
    "SchedulerStatusResponse",
    "JobStatusResponse",
    "JobListResponse",
    "JobToggleResponse",
    "ExecutionRecordResponse",
    "ExecutionRecordListResponse",
    "FullSyncResponse",
    "DailySummaryResponse",
    "TableStatsResponse",
    "CleanupResponse",
    "ConnectionTestResponse",
]
