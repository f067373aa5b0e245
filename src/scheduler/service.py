"""
Scheduler Service - Main entry point for the Job Scheduler.

This service owns and wires all scheduler components:
- JobRegistry (definitions, handlers, persisted runtime fields)
- ExecutionEngine (single-flight execution, timeout, records)
- RetryController (retry timers)
- Recurrence timers (one asyncio TimerHandle per enabled job)

All scheduler state belongs to one SchedulerService instance; independent
instances never share timers, active sets or registries.

Usage:
    service = SchedulerService.create(config_store, execution_log, notifier)
    service.register(definition, handler)
    await service.start()
    # ... timers fire on the running event loop ...
    await service.stop()
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from .entities import ExecutionRecord, JobDefinition, JobStatus, utc_now
from .executor import ExecutionEngine, JobHandler, NotificationSink
from .persistence import ConfigStore, ExecutionLog
from .recurrence import next_trigger
from .registry import JobRegistry
from .retry_controller import RetryController


logger = logging.getLogger(__name__)


class SchedulerService:
    """
    Coordinates registry, engine, retries and recurrence timers.

    Administrative surface:
    - start() / stop()
    - enable(job_id) / disable(job_id)
    - run_job_now(job_id) -> ExecutionRecord
    - status() -> list[JobStatus]

    Overlap policy: a new chain for a job (timer or manual run) cancels any
    retry still pending from an earlier chain, so at most one chain of
    attempts is live per job.
    """

    def __init__(
        self,
        registry: JobRegistry,
        engine: ExecutionEngine,
        retry_controller: RetryController,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize SchedulerService with all components.

        Use SchedulerService.create() for convenient construction.
        """
        self.registry = registry
        self.engine = engine
        self.retry_controller = retry_controller
        self.clock = clock

        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._executions: set[asyncio.Task] = set()
        self._started = False

    @classmethod
    def create(
        cls,
        config_store: ConfigStore,
        execution_log: ExecutionLog,
        notifier: Optional[NotificationSink] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> "SchedulerService":
        """
        Create a SchedulerService with all components wired together.

        Args:
            config_store: Store for persisted job runtime fields
            execution_log: Sink for ExecutionRecords
            notifier: Sink for high-priority failure alerts
            clock: Source of "now" for records and recurrence

        Returns:
            Configured SchedulerService
        """
        registry = JobRegistry(config_store)
        engine = ExecutionEngine(
            registry=registry,
            execution_log=execution_log,
            notifier=notifier,
            clock=clock,
        )
        retry_controller = RetryController(
            execute=engine.execute_job,
            is_enabled=lambda job_id: registry.get(job_id).enabled,
        )

        # Wire failed attempts to the retry controller
        engine.set_on_retry(retry_controller.on_job_failed)

        return cls(
            registry=registry,
            engine=engine,
            retry_controller=retry_controller,
            clock=clock,
        )

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, definition: JobDefinition, handler: JobHandler) -> None:
        """
        Register (or replace) a job.

        If the scheduler is running, the job's timer is re-armed with the new
        definition.
        """
        self._cancel_timer(definition.job_id)
        self.registry.register(definition, handler)
        if self._started:
            self.schedule_next(definition.job_id)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> int:
        """
        Start the scheduler: restore saved state and arm all enabled jobs.

        Must be called from a running event loop.

        Returns:
            Number of jobs scheduled
        """
        if self._started:
            logger.warning("Scheduler is already running")
            return len(self._timers)

        logger.info("Starting scheduler service...")
        self.registry.load()
        self._started = True

        for job_id in self.registry.job_ids():
            self.schedule_next(job_id)

        self.registry.persist()
        logger.info(f"Scheduler started with {len(self._timers)} active jobs")
        return len(self._timers)

    async def stop(self, timeout: float = 30.0) -> None:
        """
        Stop the scheduler gracefully.

        Cancels recurrence timers and pending retries, then waits for
        in-flight executions; executions still running after ``timeout``
        are cancelled.

        Args:
            timeout: Maximum seconds to wait for in-flight executions
        """
        if not self._started:
            return

        logger.info("Stopping scheduler service...")
        self._started = False

        for job_id in list(self._timers):
            self._cancel_timer(job_id)
            logger.info(f"Stopped job: {job_id}")
        self.retry_controller.cancel_all()

        in_flight = self._executions | self.retry_controller.running_tasks
        if in_flight:
            logger.info(f"Waiting for {len(in_flight)} in-flight execution(s)")
            done, still_running = await asyncio.wait(in_flight, timeout=timeout)
            for task in still_running:
                task.cancel()
            if still_running:
                logger.warning(
                    f"Cancelled {len(still_running)} execution(s) still running after {timeout}s"
                )
                await asyncio.gather(*still_running, return_exceptions=True)

        logger.info("Scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._started

    # =========================================================================
    # Scheduling
    # =========================================================================

    def schedule_next(self, job_id: str) -> Optional[datetime]:
        """
        Arm a single-shot timer for the job's next occurrence.

        No-op (returns None) if the job is disabled or the scheduler is not
        running. On firing, the timer executes the job and then calls
        schedule_next() again.

        Raises:
            JobNotFoundError: If job_id is not registered
            RecurrenceParseError: If the job's expression is invalid
        """
        definition = self.registry.get(job_id)
        if not definition.enabled or not self._started:
            return None

        self._cancel_timer(job_id)

        now = self.clock()
        next_run = next_trigger(definition.cron_expression, now)
        definition.next_run = next_run

        delay = max(0.0, (next_run - now).total_seconds())
        loop = asyncio.get_running_loop()
        self._timers[job_id] = loop.call_later(delay, self._on_timer, job_id)

        logger.info(f"Scheduled {definition.name} for {next_run.isoformat()}")
        return next_run

    def _on_timer(self, job_id: str) -> None:
        self._timers.pop(job_id, None)
        if not self._started:
            return
        task = asyncio.get_running_loop().create_task(self._run_scheduled(job_id))
        self._executions.add(task)
        task.add_done_callback(self._executions.discard)

    async def _run_scheduled(self, job_id: str) -> None:
        try:
            self.retry_controller.cancel(job_id)
            await self.engine.execute_job(job_id)
        except Exception as e:
            logger.error(f"Scheduled execution of {job_id} raised: {e}", exc_info=True)
        finally:
            if self._started and job_id in self.registry:
                try:
                    self.schedule_next(job_id)
                except Exception as e:
                    logger.error(f"Failed to reschedule {job_id}: {e}")

    def _cancel_timer(self, job_id: str) -> bool:
        handle = self._timers.pop(job_id, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def has_timer(self, job_id: str) -> bool:
        return job_id in self._timers

    # =========================================================================
    # Administrative operations
    # =========================================================================

    async def enable(self, job_id: str) -> JobDefinition:
        """
        Enable a job, persist, and arm its timer if the scheduler runs.

        Raises:
            JobNotFoundError: If job_id is not registered
        """
        definition = self.registry.get(job_id)
        definition.enabled = True
        self.registry.persist()
        if self._started:
            self.schedule_next(job_id)
        logger.info(f"Enabled job {job_id}")
        return definition

    async def disable(self, job_id: str) -> JobDefinition:
        """
        Disable a job, persist, and cancel its pending timer and retry.

        An in-flight execution is not interrupted.

        Raises:
            JobNotFoundError: If job_id is not registered
        """
        definition = self.registry.get(job_id)
        definition.enabled = False
        self.registry.persist()
        self._cancel_timer(job_id)
        self.retry_controller.cancel(job_id)
        logger.info(f"Disabled job {job_id}")
        return definition

    async def run_job_now(self, job_id: str) -> ExecutionRecord:
        """
        Run a job immediately and wait for its record.

        Bypasses the timer but not the single-flight guard. Starts a new
        retry chain, superseding any pending retry.

        Raises:
            JobNotFoundError: If job_id is not registered
        """
        self.registry.get(job_id)
        if not self.engine.is_active(job_id):
            self.retry_controller.cancel(job_id)
        logger.info(f"Manual run requested for {job_id}")
        return await self.engine.execute_job(job_id)

    def status(self) -> list[JobStatus]:
        """Read-only snapshot of every registered job."""
        return [
            JobStatus(
                job_id=definition.job_id,
                name=definition.name,
                enabled=definition.enabled,
                last_run=definition.last_run,
                next_run=definition.next_run,
                is_active=self.engine.is_active(definition.job_id),
                priority=definition.priority,
            )
            for definition in self.registry.definitions()
        ]

    def get_scheduler_status(self) -> dict:
        """Scheduler-level summary for the status endpoint."""
        return {
            "scheduler_running": self.is_running,
            "registered_jobs": len(self.registry),
            "scheduled_jobs": len(self._timers),
            "active_jobs": sorted(self.engine.active_jobs),
            "pending_retries": [
                {
                    "job_id": pending.job_id,
                    "attempt": pending.attempt,
                    "retries_remaining": pending.retries_remaining,
                }
                for pending in self.retry_controller.pending()
            ],
        }
