"""
Sync API schemas.

Full sync trigger/result and execution-log summaries.
"""

from typing import Optional
from pydantic import BaseModel, Field


class FullSyncResponse(BaseModel):
    """Result (or acceptance) of a full sync request."""

    success: bool
    message: str
    accepted: bool = Field(default=False, description="True when started in the background")
    details: dict = Field(default_factory=dict, description="Per-phase, per-step outcomes")
    synced: int = 0
    errors: int = 0
    started_at: Optional[str] = None
    finished_at: Optional[str] = None


class DailySummaryResponse(BaseModel):
    """One calendar day of sync activity."""

    date: str
    total_records_added: int = 0
    total_api_calls: int = 0
    tables_synced: int = 0
    sync_sessions: int = 0
    success_rate: float = Field(default=0.0, description="Percent of successful executions")


class TableStatsResponse(BaseModel):
    """Aggregate stats for one entity."""

    entity: str
    days: int
    total_records_added: int = 0
    total_api_calls: int = 0
    avg_sync_duration_ms: float = 0.0
    success_rate: float = 0.0
    last_sync: Optional[str] = None


class CleanupResponse(BaseModel):
    """Result of an execution-log retention cleanup."""

    retention_days: int
    deleted: int


class ConnectionTestResponse(BaseModel):
    """Provider connectivity check."""

    success: bool
    message: str
