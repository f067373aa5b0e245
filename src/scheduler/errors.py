"""
Scheduler-specific exceptions.

A concurrency violation ("already running") is deliberately NOT an exception
here: the Execution Engine reports it as a failed ExecutionRecord so callers
can tell "did not run" apart from "ran and failed".
"""


class SchedulerError(Exception):
    """Base exception for all scheduler errors."""
    pass


class InvalidOperationError(SchedulerError):
    """
    Raised when an operation is not valid in the current scheduler state.

    Examples:
    - Starting a scheduler that is already started
    - Registering a handler that is not a JobHandler
    """
    pass


class JobNotFoundError(SchedulerError):
    """Raised when a requested job does not exist."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class RecurrenceParseError(SchedulerError):
    """
    Raised when a recurrence expression cannot be interpreted.

    This is the only failure mode of the Recurrence Calculator; there is no
    silent fallback to a default interval.
    """

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid recurrence expression '{expression}': {reason}")


class PersistenceError(SchedulerError):
    """
    Raised by config and execution-log stores when a write fails.

    The Execution Engine catches this and logs a warning; persistence is
    best-effort and never fails a job.
    """
    pass
