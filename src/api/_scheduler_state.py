"""
Scheduler state management for API integration.

Provides singleton access to the SyncRuntime (scheduler, orchestrator,
execution log). Initialized during FastAPI lifespan, NOT auto-started.

Usage:
    from ._scheduler_state import get_scheduler_service, init_runtime

    # In lifespan:
    init_runtime()

    # In routers:
    service = get_scheduler_service()
"""

import asyncio
import functools
import logging
from typing import Any, Callable, Optional

from src.infra.config import Settings
from src.scheduler.service import SchedulerService
from src.sync.orchestrator import SyncOrchestrator
from src.sync.runtime import SyncRuntime, build_runtime


logger = logging.getLogger(__name__)


# Global runtime instance
_runtime: Optional[SyncRuntime] = None

# Background full-sync tasks started by the API (kept referenced until done)
_background_tasks: set[asyncio.Task] = set()


def init_runtime(settings: Optional[Settings] = None) -> SyncRuntime:
    """
    Initialize the runtime singleton.

    Called during FastAPI lifespan startup.
    Does NOT start the scheduler; explicit /scheduler/start required.
    """
    global _runtime

    if _runtime is not None:
        return _runtime

    _runtime = build_runtime(settings)
    return _runtime


def set_runtime(runtime: Optional[SyncRuntime]) -> None:
    """Install a pre-built runtime (or clear it)."""
    global _runtime
    _runtime = runtime


def get_runtime() -> SyncRuntime:
    """
    Get the runtime singleton.

    Raises:
        RuntimeError: If runtime not initialized
    """
    if _runtime is None:
        raise RuntimeError(
            "Sync runtime not initialized. "
            "Ensure init_runtime() is called during startup."
        )
    return _runtime


def get_scheduler_service() -> SchedulerService:
    return get_runtime().scheduler


def get_orchestrator() -> SyncOrchestrator:
    return get_runtime().orchestrator


def track_background_task(task: asyncio.Task) -> None:
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


async def run_blocking(func: Callable[..., Any], *args, **kwargs) -> Any:
    """Run a blocking execution-log query in the default executor, off the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


async def shutdown_runtime() -> None:
    """
    Shutdown the runtime.

    Called during FastAPI lifespan shutdown.
    Gracefully stops the scheduler if running.
    """
    global _runtime

    for task in list(_background_tasks):
        task.cancel()

    if _runtime is not None:
        await _runtime.aclose()
        _runtime = None
