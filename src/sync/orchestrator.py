"""
Sync Orchestrator.

Runs every entity handler in dependency order as one "full sync":

    base       countries, leagues, venues
    dependent  teams, coaches
    events     fixtures, standings
    ancillary  players, injuries, transfers

At most one full sync runs at a time per orchestrator. The guard is a plain
attribute checked and set without an intervening await; a second call while
one is running returns a failed FullSyncResult immediately and runs nothing.

Each step is isolated: a step that raises is recorded in the result details
and the next step still runs. A ConfigurationError aborts the whole sync,
since no later step could succeed either.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, Optional, Sequence

from src.provider.client import FootballApiClient
from src.provider.errors import ConfigurationError
from src.scheduler.entities import SyncOutcome
from src.scheduler.executor import JobHandler
from src.store.base import RelationalStore

from .handlers import (
    MAJOR_LEAGUES,
    CoachesSyncHandler,
    CountriesSyncHandler,
    EntitySyncHandler,
    FixturesSyncHandler,
    InjuriesSyncHandler,
    LeaguesSyncHandler,
    PlayersSyncHandler,
    StandingsSyncHandler,
    TeamsSyncHandler,
    TransfersSyncHandler,
    VenuesSyncHandler,
)


logger = logging.getLogger(__name__)


SYNC_IN_PROGRESS_MESSAGE = "Sync already in progress: full sync is already running"

DEFAULT_VENUE_COUNTRIES = ("England", "Spain", "Turkey", "Germany", "Italy")

# Fixture window for a full sync
FULL_SYNC_DAYS_BACK = 30
FULL_SYNC_DAYS_AHEAD = 7


class SyncInProgressError(RuntimeError):
    """Raised by FullSyncJobHandler when a full sync is already running."""
    pass


@dataclass
class FullSyncResult:
    """Outcome of one full_sync() call."""

    success: bool
    message: str
    details: dict = field(default_factory=dict)
    synced: int = 0
    errors: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def already_running(self) -> bool:
        return not self.success and self.message == SYNC_IN_PROGRESS_MESSAGE

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "details": self.details,
            "synced": self.synced,
            "errors": self.errors,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class SyncOrchestrator:
    """
    Owns the entity handlers and the full-sync guard.

    Usage:
        orchestrator = SyncOrchestrator(client, store)
        result = await orchestrator.full_sync()
    """

    def __init__(
        self,
        client: FootballApiClient,
        store: RelationalStore,
        leagues: Sequence[int] = MAJOR_LEAGUES,
        venue_countries: Sequence[str] = DEFAULT_VENUE_COUNTRIES,
        season: Optional[int] = None,
        pace_seconds: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        today: Callable[[], date] = date.today,
    ):
        self.client = client
        self.store = store
        self.leagues = list(leagues)
        self.venue_countries = list(venue_countries)
        self.season = season
        self.pace_seconds = pace_seconds
        self._sleep = sleep
        self.today = today

        self._running = False
        self.last_result: Optional[FullSyncResult] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def _scoped(self, handler_cls, **kwargs) -> EntitySyncHandler:
        return handler_cls(
            self.client,
            self.store,
            leagues=self.leagues,
            season=self.season,
            pace_seconds=self.pace_seconds,
            sleep=self._sleep,
            today=self.today,
            **kwargs,
        )

    def build_phases(self) -> list[tuple[str, list[tuple[str, EntitySyncHandler]]]]:
        """Phase name -> ordered (step name, handler) pairs."""
        return [
            ("base", [
                ("countries", CountriesSyncHandler(self.client, self.store, today=self.today)),
                ("leagues", LeaguesSyncHandler(self.client, self.store, season=self.season, today=self.today)),
                ("venues", VenuesSyncHandler(
                    self.client,
                    self.store,
                    scopes=self.venue_countries,
                    pace_seconds=self.pace_seconds,
                    sleep=self._sleep,
                    today=self.today,
                )),
            ]),
            ("dependent", [
                ("teams", self._scoped(TeamsSyncHandler)),
                ("coaches", self._scoped(CoachesSyncHandler)),
            ]),
            ("events", [
                ("fixtures", FixturesSyncHandler(
                    self.client,
                    self.store,
                    days_back=FULL_SYNC_DAYS_BACK,
                    days_ahead=FULL_SYNC_DAYS_AHEAD,
                    leagues=self.leagues,
                    season=self.season,
                    pace_seconds=self.pace_seconds,
                    sleep=self._sleep,
                    today=self.today,
                )),
                ("standings", self._scoped(StandingsSyncHandler)),
            ]),
            ("ancillary", [
                ("players", self._scoped(PlayersSyncHandler)),
                ("injuries", self._scoped(InjuriesSyncHandler)),
                ("transfers", self._scoped(TransfersSyncHandler)),
            ]),
        ]

    async def full_sync(self) -> FullSyncResult:
        """
        Run every phase in order.

        Returns:
            FullSyncResult. If a full sync is already running, returns
            success=False with the in-progress message without running
            anything.
        """
        if self._running:
            logger.warning(SYNC_IN_PROGRESS_MESSAGE)
            return FullSyncResult(success=False, message=SYNC_IN_PROGRESS_MESSAGE)

        self._running = True
        started_at = datetime.now(timezone.utc)
        details: dict = {}
        total = SyncOutcome()
        failed_steps: list[str] = []

        try:
            logger.info("Starting full data synchronization...")
            for phase_name, steps in self.build_phases():
                phase_details: dict = {}
                for step_name, handler in steps:
                    try:
                        outcome = await handler.run()
                        phase_details[step_name] = outcome.to_dict()
                        total += outcome
                    except ConfigurationError:
                        raise
                    except Exception as e:
                        logger.error(f"Full sync step {phase_name}/{step_name} failed: {e}")
                        phase_details[step_name] = {"synced": 0, "errors": 1, "error": str(e)}
                        total += SyncOutcome(errors=1)
                        failed_steps.append(step_name)
                details[phase_name] = phase_details
        finally:
            self._running = False

        if failed_steps:
            message = (
                f"Full synchronization completed with {len(failed_steps)} failed step(s): "
                f"{', '.join(failed_steps)}"
            )
        else:
            message = "Full synchronization completed successfully"

        result = FullSyncResult(
            success=not failed_steps,
            message=message,
            details=details,
            synced=total.synced,
            errors=total.errors,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )
        self.last_result = result
        logger.info(f"{message} ({total.synced} synced, {total.errors} errors)")
        return result

    def status(self) -> dict:
        return {
            "is_running": self._running,
            "leagues": self.leagues,
            "last_result": self.last_result.to_dict() if self.last_result else None,
        }


class FullSyncJobHandler(JobHandler):
    """Runs SyncOrchestrator.full_sync() as a scheduled job."""

    def __init__(self, orchestrator: SyncOrchestrator):
        self.orchestrator = orchestrator

    async def run(self) -> SyncOutcome:
        result = await self.orchestrator.full_sync()
        if result.already_running:
            raise SyncInProgressError(result.message)
        return SyncOutcome(synced=result.synced, errors=result.errors)
