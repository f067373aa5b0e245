"""
Default job table.

Recurrence, priority and retry policy for every scheduled sync. Persisted
state (enabled, last_run, next_run) is merged onto these at scheduler start.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import date
from typing import Awaitable, Callable, Optional, Sequence

from src.provider.client import FootballApiClient
from src.scheduler.entities import JobDefinition, JobPriority
from src.scheduler.executor import JobHandler
from src.scheduler.service import SchedulerService
from src.store.base import RelationalStore

from .handlers import (
    MAJOR_LEAGUES,
    CountriesSyncHandler,
    FixturesSyncHandler,
    LeaguesSyncHandler,
    LiveFixturesSyncHandler,
    PlayersSyncHandler,
    StandingsSyncHandler,
    TeamsSyncHandler,
)
from .orchestrator import FullSyncJobHandler, SyncOrchestrator


logger = logging.getLogger(__name__)


DEFAULT_JOBS = (
    JobDefinition(
        job_id="daily-countries",
        name="Daily Countries Sync",
        cron_expression="0 2 * * *",
        priority=JobPriority.LOW,
        max_retries=3,
        retry_delay=300,
        timeout=600,
        entity="countries",
    ),
    JobDefinition(
        job_id="daily-leagues",
        name="Daily Leagues Sync",
        cron_expression="0 3 * * *",
        priority=JobPriority.MEDIUM,
        max_retries=3,
        retry_delay=300,
        timeout=900,
        entity="leagues",
    ),
    JobDefinition(
        job_id="daily-teams",
        name="Daily Teams Sync",
        cron_expression="0 4 * * *",
        priority=JobPriority.MEDIUM,
        max_retries=3,
        retry_delay=300,
        timeout=1200,
        entity="teams",
    ),
    JobDefinition(
        job_id="hourly-fixtures",
        name="Hourly Fixtures Sync",
        cron_expression="0 * * * *",
        priority=JobPriority.HIGH,
        max_retries=5,
        retry_delay=180,
        timeout=600,
        entity="fixtures",
    ),
    JobDefinition(
        job_id="live-fixtures",
        name="Live Fixtures Sync",
        cron_expression="*/2 * * * *",
        priority=JobPriority.HIGH,
        max_retries=3,
        retry_delay=30,
        timeout=120,
        entity="fixtures",
    ),
    JobDefinition(
        job_id="daily-standings",
        name="Daily Standings Sync",
        cron_expression="0 5 * * *",
        priority=JobPriority.MEDIUM,
        max_retries=3,
        retry_delay=300,
        timeout=900,
        entity="league_standings",
    ),
    JobDefinition(
        job_id="weekly-players",
        name="Weekly Players Sync",
        cron_expression="0 6 * * 0",
        priority=JobPriority.LOW,
        max_retries=2,
        retry_delay=600,
        timeout=3600,
        entity="players",
    ),
    JobDefinition(
        job_id="weekly-full-sync",
        name="Weekly Full Sync",
        cron_expression="0 1 * * 1",
        enabled=False,
        priority=JobPriority.LOW,
        max_retries=1,
        retry_delay=1800,
        timeout=4 * 3600,
        entity="full_sync",
    ),
)


def default_definitions() -> list[JobDefinition]:
    """Fresh copies of DEFAULT_JOBS (definitions carry mutable runtime fields)."""
    return [replace(job) for job in DEFAULT_JOBS]


def build_default_handlers(
    client: FootballApiClient,
    store: RelationalStore,
    orchestrator: SyncOrchestrator,
    leagues: Sequence[int] = MAJOR_LEAGUES,
    pace_seconds: float = 2.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    today: Callable[[], date] = date.today,
) -> dict[str, JobHandler]:
    """job_id -> handler for every entry of DEFAULT_JOBS."""
    scoped = dict(leagues=leagues, pace_seconds=pace_seconds, sleep=sleep, today=today)
    return {
        "daily-countries": CountriesSyncHandler(client, store, today=today),
        "daily-leagues": LeaguesSyncHandler(client, store, today=today),
        "daily-teams": TeamsSyncHandler(client, store, **scoped),
        "hourly-fixtures": FixturesSyncHandler(client, store, days_back=0, days_ahead=1, today=today),
        "live-fixtures": LiveFixturesSyncHandler(client, store, today=today),
        "daily-standings": StandingsSyncHandler(client, store, **scoped),
        "weekly-players": PlayersSyncHandler(client, store, **scoped),
        "weekly-full-sync": FullSyncJobHandler(orchestrator),
    }


def register_default_jobs(
    service: SchedulerService,
    client: FootballApiClient,
    store: RelationalStore,
    orchestrator: SyncOrchestrator,
    pace_seconds: float = 2.0,
    only: Optional[Sequence[str]] = None,
) -> int:
    """
    Register the default job table on a scheduler.

    Args:
        only: Restrict to these job_ids (default: all)

    Returns:
        Number of jobs registered
    """
    handlers = build_default_handlers(client, store, orchestrator, pace_seconds=pace_seconds)
    registered = 0
    for definition in default_definitions():
        if only is not None and definition.job_id not in only:
            continue
        service.register(definition, handlers[definition.job_id])
        registered += 1
    logger.info(f"Registered {registered} default sync job(s)")
    return registered
