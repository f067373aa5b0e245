"""
Execution Engine for the Job Scheduler.

Runs one job's handler at a time per job_id and produces an ExecutionRecord
for every attempt.

Per-job state machine:
    Idle -> Running -> (Succeeded | Failed) -> Idle
    Failed -> RetryPending -> Running        (while the chain has retries left)

What the Execution Engine MUST NOT do:
- Arm recurrence timers (SchedulerService's responsibility)
- Own retry timers (RetryController's responsibility)
- Let a failure escape into the caller; every outcome is a record
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Awaitable, Callable, Optional, Protocol

from src.infra.usage import metered

from .entities import ExecutionRecord, JobDefinition, JobPriority, SyncOutcome, utc_now
from .errors import PersistenceError


logger = logging.getLogger(__name__)


ALREADY_RUNNING = "already running"
TIMEOUT = "timeout"


class JobHandler(ABC):
    """
    Abstract base class for job handlers.

    Contract:
    - Per-record failures are counted in SyncOutcome.errors, never raised
    - Total failures (network down, bad credentials) are raised and become
      a failed ExecutionRecord
    - Handlers must tolerate cancellation at any await point; timeouts
      cancel the running handler
    """

    @abstractmethod
    async def run(self) -> SyncOutcome:
        """Execute the job once."""
        ...


class FunctionJobHandler(JobHandler):
    """Adapts a zero-argument coroutine function to JobHandler."""

    def __init__(self, func: Callable[[], Awaitable[SyncOutcome]], name: Optional[str] = None):
        self._func = func
        self.name = name or getattr(func, "__name__", "handler")

    async def run(self) -> SyncOutcome:
        return await self._func()

    def __repr__(self) -> str:
        return f"FunctionJobHandler({self.name})"


class NotificationSink(Protocol):
    """Receives alerts for failed high-priority jobs."""

    async def alert(self, title: str, message: str) -> None:
        ...


# (definition, failed record, retries left after this one, next attempt number)
RetryCallback = Callable[[JobDefinition, ExecutionRecord, int, int], None]


class ExecutionEngine:
    """
    Executes jobs with a single-flight guard, a timeout and retry hand-off.

    The active set is the only mutable state shared between concurrent
    callers. Check-and-add happens without an intervening await, which is
    what makes it safe on a single event loop.
    """

    def __init__(
        self,
        registry,
        execution_log,
        notifier: Optional[NotificationSink] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize ExecutionEngine.

        Args:
            registry: JobRegistry holding definitions and handlers
            execution_log: ExecutionLog receiving one record per attempt
            notifier: NotificationSink for high-priority failures
            clock: Source of "now" (injectable for testing)
        """
        self.registry = registry
        self.execution_log = execution_log
        self.notifier = notifier
        self.clock = clock

        self._active: set[str] = set()
        self._on_retry: Optional[RetryCallback] = None

    def set_on_retry(self, callback: RetryCallback) -> None:
        """
        Set callback invoked when a failed attempt still has retries left.

        Used to hand the failure to the RetryController.
        """
        self._on_retry = callback

    def is_active(self, job_id: str) -> bool:
        return job_id in self._active

    @property
    def active_jobs(self) -> frozenset:
        return frozenset(self._active)

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute_job(
        self,
        job_id: str,
        retries_remaining: Optional[int] = None,
        attempt: int = 1,
    ) -> ExecutionRecord:
        """
        Run a job once and return its ExecutionRecord.

        Args:
            job_id: Registered job to run
            retries_remaining: Retry budget for this chain. None starts a new
                chain with the job's configured max_retries.
            attempt: 1 for the initial attempt, 2+ for retries

        Returns:
            The ExecutionRecord for this attempt. If the job is already
            running, a synthetic failed record with error "already running".

        Raises:
            JobNotFoundError: If job_id is not registered
        """
        definition = self.registry.get(job_id)
        handler = self.registry.get_handler(job_id)

        if job_id in self._active:
            logger.warning(f"Job {job_id} is already running, skipping")
            return ExecutionRecord.already_running(job_id, self.clock())

        self._active.add(job_id)
        if retries_remaining is None:
            retries_remaining = definition.max_retries

        start_time = self.clock()
        outcome: Optional[SyncOutcome] = None
        error: Optional[str] = None

        try:
            logger.info(f"Executing job {job_id} ({definition.name}), attempt {attempt}")
            with metered() as meter:
                try:
                    result = await asyncio.wait_for(
                        handler.run(), timeout=definition.timeout
                    )
                    outcome = self._coerce_outcome(result)
                except asyncio.TimeoutError:
                    error = TIMEOUT
                except Exception as e:
                    error = str(e) or type(e).__name__
                    logger.exception(f"Job {job_id} raised during execution")
            api_calls = meter.calls
        finally:
            self._active.discard(job_id)

        end_time = self.clock()

        # Failed attempts still count as "ran"
        definition.last_run = start_time
        self.registry.persist()

        if error is None:
            record = ExecutionRecord(
                job_id=job_id,
                start_time=start_time,
                end_time=end_time,
                success=True,
                records_processed=outcome.synced,
                error_count=outcome.errors,
                api_calls_used=api_calls,
                attempt=attempt,
            )
            logger.info(
                f"Job completed: {definition.name} ({record.duration:.1f}s, "
                f"{outcome.synced} synced, {outcome.errors} errors, {api_calls} API calls)"
            )
        else:
            record = ExecutionRecord(
                job_id=job_id,
                start_time=start_time,
                end_time=end_time,
                success=False,
                error_count=1,
                errors=(error,),
                api_calls_used=api_calls,
                attempt=attempt,
            )
            logger.error(f"Job failed: {definition.name} - {error}")

        self._log_record(record, definition)

        if not record.success:
            if definition.priority == JobPriority.HIGH:
                await self._notify_failure(definition, error)

            # A job disabled mid-run ends its chain here
            if retries_remaining > 0 and definition.enabled and self._on_retry is not None:
                try:
                    self._on_retry(definition, record, retries_remaining - 1, attempt + 1)
                except Exception as e:
                    logger.error(f"Error scheduling retry for {job_id}: {e}")

        return record

    def _coerce_outcome(self, result) -> SyncOutcome:
        if isinstance(result, SyncOutcome):
            return result
        if isinstance(result, dict):
            return SyncOutcome(
                synced=int(result.get("synced", 0)),
                errors=int(result.get("errors", 0)),
            )
        raise TypeError(f"Handler returned {type(result).__name__}, expected SyncOutcome")

    def _log_record(self, record: ExecutionRecord, definition: JobDefinition) -> None:
        try:
            self.execution_log.append(record, definition.log_entity)
        except PersistenceError as e:
            logger.warning(f"Failed to write execution record for {record.job_id}: {e}")
        except Exception as e:
            logger.warning(f"Unexpected error writing execution record for {record.job_id}: {e}")

    async def _notify_failure(self, definition: JobDefinition, error: Optional[str]) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.alert("Sync Failed", f"{definition.name} failed: {error}")
        except Exception as e:
            logger.warning(f"Failed to send failure alert for {definition.job_id}: {e}")
