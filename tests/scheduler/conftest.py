"""
Scheduler Test Fixtures.

Base fixtures:
  - In-memory config store and execution log
  - Mocked clock at fixed time
  - Scripted handlers with controllable outcomes
"""

import asyncio
import pytest
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator, Optional

from src.infra.notifications import LoggingNotifier
from src.scheduler import (
    InMemoryConfigStore,
    InMemoryExecutionLog,
    JobDefinition,
    JobHandler,
    JobPriority,
    SchedulerService,
    SyncOutcome,
)


# Fixed time for deterministic tests
FIXED_DATETIME = datetime(2026, 1, 1, 10, 3, 17, tzinfo=timezone.utc)


class MockClock:
    """
    Mock clock for deterministic time control.

    - Starts at fixed epoch
    - Advances only when explicitly ticked
    """

    def __init__(self, start_time: datetime = FIXED_DATETIME):
        self._current = start_time

    def __call__(self) -> datetime:
        return self._current

    def tick(self, seconds: float = 1) -> None:
        """Advance time by specified seconds."""
        self._current += timedelta(seconds=seconds)

    def set(self, time: datetime) -> None:
        """Set time to specific value."""
        self._current = time


class ScriptedHandler(JobHandler):
    """
    Handler whose outcomes are scripted per call.

    Each script entry is a SyncOutcome to return or an exception to raise;
    the last entry repeats. ``gate`` (if set) is awaited before finishing so
    a test can hold the handler in the Running state.
    """

    def __init__(self, *script, delay: float = 0.0):
        self.script = list(script) or [SyncOutcome(synced=1)]
        self.delay = delay
        self.calls = 0
        self.gate: Optional[asyncio.Event] = None
        self.started = asyncio.Event()
        self.cancelled = False

    async def run(self) -> SyncOutcome:
        self.calls += 1
        self.started.set()
        step = self.script[min(self.calls, len(self.script)) - 1]
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if isinstance(step, BaseException):
            raise step
        return step


def make_definition(job_id: str = "test-job", **overrides) -> JobDefinition:
    """JobDefinition with test-friendly defaults."""
    values = dict(
        job_id=job_id,
        name=f"Test {job_id}",
        cron_expression="0 * * * *",
        priority=JobPriority.MEDIUM,
        max_retries=0,
        retry_delay=0.01,
        timeout=5.0,
    )
    values.update(overrides)
    return JobDefinition(**values)


async def wait_for(predicate, timeout: float = 2.0) -> None:
    """Poll until predicate() is true; fail the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def temp_db_path() -> Generator[str, None, None]:
    """Create a temporary database file."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    yield db_path

    # Cleanup
    Path(db_path).unlink(missing_ok=True)
    # Also cleanup WAL and SHM files
    Path(f"{db_path}-wal").unlink(missing_ok=True)
    Path(f"{db_path}-shm").unlink(missing_ok=True)


@pytest.fixture
def config_store() -> InMemoryConfigStore:
    return InMemoryConfigStore()


@pytest.fixture
def execution_log() -> InMemoryExecutionLog:
    return InMemoryExecutionLog()


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def mock_clock() -> MockClock:
    """Create a mock clock at fixed time."""
    return MockClock()


@pytest.fixture
def notifier() -> LoggingNotifier:
    return LoggingNotifier()


@pytest.fixture
def service(config_store, execution_log, notifier) -> SchedulerService:
    """SchedulerService wired to in-memory stores (not started)."""
    return SchedulerService.create(
        config_store=config_store,
        execution_log=execution_log,
        notifier=notifier,
    )
