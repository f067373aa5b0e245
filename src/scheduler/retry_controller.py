"""
Retry Controller for the Job Scheduler.

- Schedules a one-shot retry after a failed attempt
- Carries the retry budget per chain, never on the JobDefinition
- Keeps at most one pending retry per job

What RetryController MUST NOT do:
- Execute jobs itself (it calls back into the Execution Engine)
- Modify JobDefinition.max_retries

Retry chain structure, max_retries = 3:
    attempt 1 (budget 3) fails -> retry after retry_delay
      attempt 2 (budget 2) fails -> retry
        attempt 3 (budget 1) fails -> retry
          attempt 4 (budget 0) fails -> chain ends
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .entities import ExecutionRecord, JobDefinition


logger = logging.getLogger(__name__)


# (job_id, retries_remaining, attempt) -> record
ExecuteCallable = Callable[..., Awaitable[ExecutionRecord]]


@dataclass
class PendingRetry:
    """A retry waiting for its delay to elapse."""

    job_id: str
    attempt: int
    retries_remaining: int
    delay: float
    handle: Optional[asyncio.TimerHandle] = None
    task: Optional[asyncio.Task] = None


class RetryController:
    """
    Owns retry timers.

    A new chain for the same job (normal recurrence or manual run)
    supersedes a pending retry: the caller cancels it via cancel(job_id)
    before starting the new chain.
    """

    def __init__(
        self,
        execute: ExecuteCallable,
        is_enabled: Optional[Callable[[str], bool]] = None,
    ):
        """
        Initialize RetryController.

        Args:
            execute: Coroutine function (job_id, retries_remaining=, attempt=)
                that runs one attempt, normally ExecutionEngine.execute_job
            is_enabled: Checked when a retry fires; retries of disabled jobs
                are dropped
        """
        self._execute = execute
        self._is_enabled = is_enabled
        self._pending: dict[str, PendingRetry] = {}
        self._tasks: set[asyncio.Task] = set()

    def on_job_failed(
        self,
        definition: JobDefinition,
        record: ExecutionRecord,
        retries_remaining: int,
        attempt: int,
    ) -> PendingRetry:
        """
        Schedule a retry for a failed attempt.

        Called by the Execution Engine when the chain still has budget.

        Args:
            definition: The failed job
            record: The failed ExecutionRecord
            retries_remaining: Budget left after the retry being scheduled
            attempt: Attempt number of the retry

        Returns:
            The PendingRetry
        """
        self.cancel(definition.job_id)

        loop = asyncio.get_running_loop()
        pending = PendingRetry(
            job_id=definition.job_id,
            attempt=attempt,
            retries_remaining=retries_remaining,
            delay=definition.retry_delay,
        )
        pending.handle = loop.call_later(
            definition.retry_delay, self._fire, pending
        )
        self._pending[definition.job_id] = pending

        logger.info(
            f"Retrying job {definition.job_id} in {definition.retry_delay}s "
            f"(attempt {attempt}, {retries_remaining} retries left after it; "
            f"last error: {record.errors[0] if record.errors else 'unknown'})"
        )
        return pending

    def _fire(self, pending: PendingRetry) -> None:
        if self._pending.get(pending.job_id) is not pending:
            return
        del self._pending[pending.job_id]

        if self._is_enabled is not None and not self._is_enabled(pending.job_id):
            logger.info(f"Dropping retry for disabled job {pending.job_id} (attempt {pending.attempt})")
            return

        task = asyncio.get_running_loop().create_task(
            self._execute(
                pending.job_id,
                retries_remaining=pending.retries_remaining,
                attempt=pending.attempt,
            )
        )
        pending.task = task
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Retry execution raised: {task.exception()}")

    def cancel(self, job_id: str) -> bool:
        """
        Cancel a pending (not yet fired) retry.

        Returns:
            True if a pending retry was cancelled
        """
        pending = self._pending.pop(job_id, None)
        if pending is None:
            return False
        if pending.handle is not None:
            pending.handle.cancel()
        logger.info(f"Cancelled pending retry for job {job_id} (attempt {pending.attempt})")
        return True

    def cancel_all(self) -> int:
        """Cancel every pending retry. Returns how many were cancelled."""
        job_ids = list(self._pending)
        for job_id in job_ids:
            self.cancel(job_id)
        return len(job_ids)

    def has_pending(self, job_id: str) -> bool:
        return job_id in self._pending

    def pending(self) -> list[PendingRetry]:
        return list(self._pending.values())

    @property
    def running_tasks(self) -> set[asyncio.Task]:
        """Retry executions that have fired and not finished."""
        return set(self._tasks)
