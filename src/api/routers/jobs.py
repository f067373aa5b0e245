"""
Jobs router for job management API.

- GET  /jobs                  - Status snapshot of every registered job
- GET  /jobs/{job_id}         - Status of one job
- POST /jobs/{job_id}/enable  - Enable (arms the timer if the scheduler runs)
- POST /jobs/{job_id}/disable - Disable (in-flight execution is not interrupted)
- POST /jobs/{job_id}/run     - Run now and return the ExecutionRecord
- GET  /jobs/{job_id}/runs    - Recent ExecutionRecords
"""

from fastapi import APIRouter, HTTPException, Query

from src.scheduler.entities import to_iso
from src.scheduler.errors import JobNotFoundError

from ..schemas.jobs import (
    ExecutionRecordListResponse,
    ExecutionRecordResponse,
    JobListResponse,
    JobStatusResponse,
    JobToggleResponse,
)
from .._scheduler_state import get_runtime, get_scheduler_service, run_blocking


router = APIRouter()


def _not_found(e: JobNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


@router.get("", response_model=JobListResponse)
async def list_jobs():
    """List all registered jobs with their runtime state."""
    statuses = get_scheduler_service().status()
    jobs = [JobStatusResponse.from_status(status) for status in statuses]
    return JobListResponse(
        jobs=jobs,
        total=len(jobs),
        enabled_count=sum(1 for job in jobs if job.enabled),
        active_count=sum(1 for job in jobs if job.is_active),
    )


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job(job_id: str):
    for status in get_scheduler_service().status():
        if status.job_id == job_id:
            return JobStatusResponse.from_status(status)
    raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")


@router.post("/{job_id}/enable", response_model=JobToggleResponse)
async def enable_job(job_id: str):
    try:
        definition = await get_scheduler_service().enable(job_id)
    except JobNotFoundError as e:
        raise _not_found(e)

    return JobToggleResponse(
        job_id=job_id,
        enabled=True,
        next_run=to_iso(definition.next_run),
        message=f"Job {job_id} enabled",
    )


@router.post("/{job_id}/disable", response_model=JobToggleResponse)
async def disable_job(job_id: str):
    try:
        await get_scheduler_service().disable(job_id)
    except JobNotFoundError as e:
        raise _not_found(e)

    return JobToggleResponse(
        job_id=job_id,
        enabled=False,
        message=f"Job {job_id} disabled",
    )


@router.post("/{job_id}/run", response_model=ExecutionRecordResponse)
async def run_job(job_id: str):
    """
    Run a job immediately and wait for it.

    A job that is already executing is not started twice; the response is
    then a failed record with error "already running".
    """
    try:
        record = await get_scheduler_service().run_job_now(job_id)
    except JobNotFoundError as e:
        raise _not_found(e)
    return ExecutionRecordResponse.from_record(record)


@router.get("/{job_id}/runs", response_model=ExecutionRecordListResponse)
async def list_job_runs(
    job_id: str,
    limit: int = Query(default=20, ge=1, le=500),
):
    """Recent execution attempts of one job, newest first."""
    if job_id not in get_scheduler_service().registry:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")

    records = await run_blocking(
        get_runtime().execution_log.list_records, job_id=job_id, limit=limit
    )
    return ExecutionRecordListResponse(
        records=[ExecutionRecordResponse.from_record(record) for record in records],
        total=len(records),
    )
