"""
Scheduler Domain Entities.

- JobDefinition: A named, independently schedulable unit of recurring work
- SyncOutcome: A handler's own count of rows written and rows failed
- ExecutionRecord: Immutable log entry for one attempt to run a job
- JobStatus: Read-only snapshot returned by the administrative surface

Only the mutable runtime fields of a JobDefinition (enabled, last_run,
next_run) are ever persisted; everything else comes from registration.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class JobPriority(str, Enum):
    """
    Job priority.

    HIGH jobs raise a notification when an attempt fails.
    """

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def utc_now() -> datetime:
    """Get current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialize an optional datetime to ISO format."""
    return value.isoformat() if value is not None else None


def from_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an optional ISO timestamp (accepts a trailing 'Z')."""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


@dataclass
class JobDefinition:
    """
    Schedule and policy for one job.

    Mutability rules:
    - job_id, name, cron_expression, priority, max_retries, retry_delay,
      timeout, entity: static, fixed at registration
    - enabled: toggled by enable/disable
    - last_run: written by the Execution Engine after every attempt
    - next_run: written by the registry when a timer is armed
    """

    job_id: str
    name: str
    cron_expression: str
    enabled: bool = True
    priority: JobPriority = JobPriority.MEDIUM
    max_retries: int = 3
    retry_delay: float = 300.0  # seconds
    timeout: float = 600.0  # seconds
    entity: Optional[str] = None
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        self.priority = JobPriority(self.priority)

    @property
    def log_entity(self) -> str:
        """Label used for this job in execution logs."""
        return self.entity or self.job_id

    def to_state(self) -> dict:
        """Serialize the mutable runtime fields."""
        return {
            "job_id": self.job_id,
            "enabled": self.enabled,
            "last_run": to_iso(self.last_run),
            "next_run": to_iso(self.next_run),
        }

    def apply_state(self, state: dict) -> None:
        """Merge persisted runtime fields onto this definition."""
        if "enabled" in state and state["enabled"] is not None:
            self.enabled = bool(state["enabled"])
        if "last_run" in state:
            self.last_run = from_iso(state["last_run"])
        if "next_run" in state:
            self.next_run = from_iso(state["next_run"])


@dataclass(frozen=True)
class SyncOutcome:
    """Rows written and rows failed by one handler invocation."""

    synced: int = 0
    errors: int = 0

    def __add__(self, other: "SyncOutcome") -> "SyncOutcome":
        return SyncOutcome(
            synced=self.synced + other.synced,
            errors=self.errors + other.errors,
        )

    def to_dict(self) -> dict:
        return {"synced": self.synced, "errors": self.errors}


@dataclass(frozen=True)
class ExecutionRecord:
    """
    Historical record of a single execution attempt.

    Written once to the execution log; never mutated or deleted by the
    scheduler.
    """

    job_id: str
    start_time: datetime
    end_time: datetime
    success: bool
    records_processed: int = 0
    error_count: int = 0
    errors: tuple = ()
    api_calls_used: int = 0
    attempt: int = 1

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return (self.end_time - self.start_time).total_seconds()

    @classmethod
    def already_running(cls, job_id: str, now: datetime) -> "ExecutionRecord":
        """Synthetic record returned when the single-flight guard trips."""
        return cls(
            job_id=job_id,
            start_time=now,
            end_time=now,
            success=False,
            errors=("already running",),
        )

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "start_time": to_iso(self.start_time),
            "end_time": to_iso(self.end_time),
            "duration": self.duration,
            "success": self.success,
            "records_processed": self.records_processed,
            "error_count": self.error_count,
            "errors": list(self.errors),
            "api_calls_used": self.api_calls_used,
            "attempt": self.attempt,
        }


@dataclass(frozen=True)
class JobStatus:
    """Read-only status snapshot for one registered job."""

    job_id: str
    name: str
    enabled: bool
    last_run: Optional[datetime]
    next_run: Optional[datetime]
    is_active: bool
    priority: JobPriority

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "name": self.name,
            "enabled": self.enabled,
            "last_run": to_iso(self.last_run),
            "next_run": to_iso(self.next_run),
            "is_active": self.is_active,
            "priority": self.priority.value,
        }
