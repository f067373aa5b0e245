"""
Process composition: builds every long-lived object from Settings.

Used by both the daemon (main.py) and the HTTP API lifespan, so the two
entry points wire the scheduler identically.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from src.infra.config import Settings
from src.infra.notifications import create_notifier
from src.provider.client import FootballApiClient
from src.provider.request_queue import RateLimitedQueue
from src.scheduler.persistence import SQLiteConfigStore, SQLiteExecutionLog
from src.scheduler.service import SchedulerService
from src.store.base import RelationalStore
from src.store.sqlite_store import SQLiteStore
from src.store.supabase_store import SupabaseStore

from .jobs import register_default_jobs
from .orchestrator import SyncOrchestrator


logger = logging.getLogger(__name__)


def create_store(settings: Settings) -> RelationalStore:
    """SupabaseStore or SQLiteStore according to STORE_BACKEND."""
    if settings.store_backend == "supabase":
        return SupabaseStore(settings.supabase_url, settings.supabase_service_key)
    return SQLiteStore(settings.sqlite_db_path)


@dataclass
class SyncRuntime:
    """Everything one process needs to run scheduled syncs."""

    settings: Settings
    client: FootballApiClient
    store: RelationalStore
    execution_log: SQLiteExecutionLog
    scheduler: SchedulerService
    orchestrator: SyncOrchestrator

    async def aclose(self) -> None:
        """Stop the scheduler and release network clients."""
        if self.scheduler.is_running:
            await self.scheduler.stop()
        await self.client.queue.close()
        await self.client.aclose()
        await self.store.aclose()


def build_runtime(settings: Optional[Settings] = None, register_jobs: bool = True) -> SyncRuntime:
    """
    Wire client, store, scheduler and orchestrator from settings.

    The scheduler is returned stopped; callers start it explicitly.
    """
    settings = settings or Settings.from_env()
    logger.info(f"Building sync runtime: {settings.describe()}")

    queue = RateLimitedQueue(max_per_window=settings.rate_limit_per_minute)
    client = FootballApiClient(
        settings.api_football_key,
        base_url=settings.api_football_base_url,
        queue=queue,
    )
    if not client.is_configured:
        logger.warning("API_FOOTBALL_KEY is not configured; sync jobs will fail until it is set")

    store = create_store(settings)
    execution_log = SQLiteExecutionLog(settings.scheduler_db_path)
    scheduler = SchedulerService.create(
        config_store=SQLiteConfigStore(settings.scheduler_db_path),
        execution_log=execution_log,
        notifier=create_notifier(settings.notify_webhook_url),
    )
    orchestrator = SyncOrchestrator(client, store, pace_seconds=settings.sync_pace_seconds)

    if register_jobs:
        register_default_jobs(scheduler, client, store, orchestrator, pace_seconds=settings.sync_pace_seconds)

    return SyncRuntime(
        settings=settings,
        client=client,
        store=store,
        execution_log=execution_log,
        scheduler=scheduler,
        orchestrator=orchestrator,
    )
