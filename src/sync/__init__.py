"""
Football data synchronization: transforms, entity handlers, full sync and
the default job table.
"""

from .handlers import (
    EntitySyncHandler,
    ScopedSyncHandler,
    CountriesSyncHandler,
    LeaguesSyncHandler,
    SeasonsSyncHandler,
    VenuesSyncHandler,
    TeamsSyncHandler,
    CoachesSyncHandler,
    FixturesSyncHandler,
    LiveFixturesSyncHandler,
    StandingsSyncHandler,
    PlayersSyncHandler,
    InjuriesSyncHandler,
    TransfersSyncHandler,
    OddsSyncHandler,
)
from .orchestrator import (
    FullSyncJobHandler,
    FullSyncResult,
    SyncInProgressError,
    SyncOrchestrator,
)
from .jobs import DEFAULT_JOBS, register_default_jobs

__all__ = [
    # Handlers
    "EntitySyncHandler",
    "ScopedSyncHandler",
    "CountriesSyncHandler",
    "LeaguesSyncHandler",
    "SeasonsSyncHandler",
    "VenuesSyncHandler",
    "TeamsSyncHandler",
    "CoachesSyncHandler",
    "FixturesSyncHandler",
    "LiveFixturesSyncHandler",
    "StandingsSyncHandler",
    "PlayersSyncHandler",
    "InjuriesSyncHandler",
    "TransfersSyncHandler",
    "OddsSyncHandler",
    # Orchestrator
    "FullSyncJobHandler",
    "FullSyncResult",
    "SyncInProgressError",
    "SyncOrchestrator",
    # Jobs
    "DEFAULT_JOBS",
    "register_default_jobs",
]
