"""
Sync router for full-sync triggers and execution-log reports.

- POST /sync/full                       - Start a full sync (background, or ?wait=true)
- GET  /sync/logs/summary               - Daily activity summary
- GET  /sync/logs/tables/{entity}       - Per-entity stats over N days
- POST /sync/logs/cleanup               - Delete old execution records
- GET  /sync/provider/test              - Probe provider connectivity
"""

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from src.provider.errors import ConfigurationError
from src.scheduler.persistence import DEFAULT_RETENTION_DAYS

from ..schemas.sync import (
    CleanupResponse,
    ConnectionTestResponse,
    DailySummaryResponse,
    FullSyncResponse,
    TableStatsResponse,
)
from .._scheduler_state import get_orchestrator, get_runtime, run_blocking, track_background_task


logger = logging.getLogger(__name__)

router = APIRouter()


async def _run_full_sync_in_background() -> None:
    try:
        await get_orchestrator().full_sync()
    except ConfigurationError as e:
        logger.error(f"Background full sync aborted: {e}")


@router.post("/full", response_model=FullSyncResponse)
async def trigger_full_sync(
    wait: bool = Query(default=False, description="Wait for the sync to finish"),
):
    """
    Trigger a full synchronization across every phase.

    By default the sync runs in the background and the response only
    acknowledges it. Returns 409 if a full sync is already running.
    """
    orchestrator = get_orchestrator()

    if orchestrator.is_running:
        raise HTTPException(
            status_code=409,
            detail="Sync already in progress: full sync is already running",
        )

    if not wait:
        task = asyncio.create_task(_run_full_sync_in_background())
        track_background_task(task)
        return FullSyncResponse(
            success=True,
            accepted=True,
            message="Full synchronization started in the background",
        )

    try:
        result = await orchestrator.full_sync()
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))

    if result.already_running:
        raise HTTPException(status_code=409, detail=result.message)

    return FullSyncResponse(**result.to_dict())


@router.get("/logs/summary", response_model=DailySummaryResponse)
async def get_daily_summary(
    day: Optional[date] = Query(default=None, alias="date", description="YYYY-MM-DD, default today (UTC)"),
):
    log = get_runtime().execution_log
    summary = await run_blocking(log.daily_summary, day or datetime.now(timezone.utc).date())
    return DailySummaryResponse(**summary)


@router.get("/logs/tables/{entity}", response_model=TableStatsResponse)
async def get_table_stats(
    entity: str,
    days: int = Query(default=7, ge=1, le=365),
):
    stats = await run_blocking(get_runtime().execution_log.table_stats, entity, days=days)
    return TableStatsResponse(entity=entity, days=days, **stats)


@router.post("/logs/cleanup", response_model=CleanupResponse)
async def cleanup_logs(
    retention_days: int = Query(default=DEFAULT_RETENTION_DAYS, ge=1, le=3650),
):
    try:
        deleted = await run_blocking(
            get_runtime().execution_log.cleanup, retention_days=retention_days
        )
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to clean up execution log: {str(e)}"
        )
    return CleanupResponse(retention_days=retention_days, deleted=deleted)


@router.get("/provider/test", response_model=ConnectionTestResponse)
async def test_provider_connection():
    result = await get_runtime().client.test_connection()
    return ConnectionTestResponse(**result)
