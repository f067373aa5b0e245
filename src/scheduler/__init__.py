"""
Job Scheduler Core Module.

Recurring execution of registered jobs on a single asyncio event loop:
- Recurrence calculation (five-field cron subset)
- Single-flight execution with timeout
- Per-chain bounded retry
- Persisted job configuration and execution log
"""

from .entities import (
    JobPriority,
    JobDefinition,
    JobStatus,
    ExecutionRecord,
    SyncOutcome,
)
from .errors import (
    SchedulerError,
    InvalidOperationError,
    JobNotFoundError,
    RecurrenceParseError,
    PersistenceError,
)
from .persistence import (
    ConfigStore,
    ExecutionLog,
    SQLiteConfigStore,
    SQLiteExecutionLog,
    InMemoryConfigStore,
    InMemoryExecutionLog,
)
from .recurrence import next_trigger, parse_recurrence
from .registry import JobRegistry
from .executor import ExecutionEngine, JobHandler, FunctionJobHandler, NotificationSink
from .retry_controller import RetryController
from .service import SchedulerService

__all__ = [
    # Entities
    "JobPriority",
    "JobDefinition",
    "JobStatus",
    "ExecutionRecord",
    "SyncOutcome",
    # Errors
    "SchedulerError",
    "InvalidOperationError",
    "JobNotFoundError",
    "RecurrenceParseError",
    "PersistenceError",
    # Persistence
    "ConfigStore",
    "ExecutionLog",
    "SQLiteConfigStore",
    "SQLiteExecutionLog",
    "InMemoryConfigStore",
    "InMemoryExecutionLog",
    # Recurrence
    "next_trigger",
    "parse_recurrence",
    # Registry
    "JobRegistry",
    # Executor
    "ExecutionEngine",
    "JobHandler",
    "FunctionJobHandler",
    "NotificationSink",
    # Retry
    "RetryController",
    # Service
    "SchedulerService",
]
