"""
Entity sync handlers.

Every handler follows the same template:

    fetch pages through the provider client (rate-limited queue)
      -> transform each item into row(s)
      -> upsert each row by its natural conflict key
      -> count synced / errors per row
      -> return SyncOutcome

Per-record failures (malformed item, rejected upsert) are counted, never
raised. A failed fetch is a total failure and propagates, except in
scoped handlers (one fetch per league / team), where each scope is isolated
and only "every scope failed" propagates.
"""

import asyncio
import logging
from datetime import date, timedelta
from typing import Awaitable, Callable, Iterable, Optional, Sequence

from src.provider.client import FootballApiClient, ProviderResponse
from src.provider.errors import ProviderError
from src.scheduler.entities import SyncOutcome
from src.scheduler.executor import JobHandler
from src.store.base import RelationalStore
from src.store.errors import StoreError

from . import transformers as tx


logger = logging.getLogger(__name__)


# Premier League, La Liga, Süper Lig, Bundesliga, Serie A
MAJOR_LEAGUES = (39, 140, 203, 78, 135)

# Safety ceiling for paged endpoints
DEFAULT_MAX_PAGES = 50

TRANSFORM_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


def current_season(today: date) -> int:
    """Football seasons are named after the year they start in (July)."""
    return today.year if today.month >= 7 else today.year - 1


class EntitySyncHandler(JobHandler):
    """
    Base handler: one table, one fetch, per-row upserts.

    Subclasses set ``table`` and implement fetch() and transform().
    """

    table: str = ""

    def __init__(
        self,
        client: FootballApiClient,
        store: RelationalStore,
        today: Callable[[], date] = date.today,
    ):
        self.client = client
        self.store = store
        self.today = today

    @property
    def conflict_keys(self) -> Sequence[str]:
        return tx.TABLES[self.table]

    @property
    def name(self) -> str:
        return self.table

    async def fetch(self) -> list:
        raise NotImplementedError

    def transform(self, item) -> dict | Iterable[dict]:
        raise NotImplementedError

    async def run(self) -> SyncOutcome:
        logger.info(f"Syncing {self.name}...")
        items = await self.fetch()
        outcome = await self.sync_items(items)
        logger.info(f"{self.name} sync completed: {outcome.synced} synced, {outcome.errors} errors")
        return outcome

    async def sync_items(self, items: Iterable) -> SyncOutcome:
        outcome = SyncOutcome()
        for item in items:
            outcome += await self.store_item(item)
        return outcome

    async def store_item(self, item) -> SyncOutcome:
        """Transform one provider item and upsert its rows."""
        try:
            rows = self.transform(item)
            rows = [rows] if isinstance(rows, dict) else list(rows)
        except TRANSFORM_ERRORS as e:
            logger.warning(f"Skipping malformed {self.table} item: {e}")
            return SyncOutcome(errors=1)

        outcome = SyncOutcome()
        for row in rows:
            outcome += await self.upsert(self.table, row)
        return outcome

    async def upsert(self, table: str, row: dict, conflict_keys: Optional[Sequence[str]] = None) -> SyncOutcome:
        try:
            await self.store.upsert(table, row, conflict_keys or tx.TABLES[table])
            return SyncOutcome(synced=1)
        except StoreError as e:
            logger.warning(f"Error syncing {table} row: {e}")
            return SyncOutcome(errors=1)

    async def fetch_all_pages(
        self,
        request: Callable[[int], Awaitable[ProviderResponse]],
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> list:
        """Follow ``paging.total`` from page 1, concatenating responses."""
        items: list = []
        page = 1
        while True:
            response = await request(page)
            items.extend(response.response)
            if page >= min(response.total_pages, max_pages):
                break
            page += 1
        return items


class ScopedSyncHandler(EntitySyncHandler):
    """
    One fetch per scope (league id, country name, ...), paced and isolated.

    A failed scope is logged and counted as one error; the remaining scopes
    still run. If every scope fails, the last error is raised so the job is
    recorded as failed and retried.
    """

    def __init__(
        self,
        client: FootballApiClient,
        store: RelationalStore,
        scopes: Sequence,
        pace_seconds: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        today: Callable[[], date] = date.today,
    ):
        super().__init__(client, store, today=today)
        self.scopes = list(scopes)
        self.pace_seconds = pace_seconds
        self._sleep = sleep

    async def fetch_scope(self, scope) -> list:
        raise NotImplementedError

    async def run(self) -> SyncOutcome:
        logger.info(f"Syncing {self.name} for {len(self.scopes)} scope(s)...")
        outcome = SyncOutcome()
        failures = 0
        last_error: Optional[ProviderError] = None

        for index, scope in enumerate(self.scopes):
            if index > 0 and self.pace_seconds > 0:
                await self._sleep(self.pace_seconds)
            try:
                items = await self.fetch_scope(scope)
            except ProviderError as e:
                logger.error(f"Failed to sync {self.name} for {scope}: {e}")
                failures += 1
                last_error = e
                outcome += SyncOutcome(errors=1)
                continue
            outcome += await self.sync_items(items)

        if self.scopes and failures == len(self.scopes):
            raise ProviderError(
                f"All {failures} {self.name} scope(s) failed; last error: {last_error}",
                endpoint=last_error.endpoint if last_error else None,
            )

        logger.info(f"{self.name} sync completed: {outcome.synced} synced, {outcome.errors} errors")
        return outcome


class LeagueSeasonMixin:
    """Season resolution for league-scoped handlers."""

    season: Optional[int] = None

    def resolve_season(self) -> int:
        return self.season if self.season is not None else current_season(self.today())


# =============================================================================
# Reference data
# =============================================================================


class CountriesSyncHandler(EntitySyncHandler):
    table = "countries"

    async def fetch(self) -> list:
        return (await self.client.get_countries()).response

    def transform(self, item):
        return tx.transform_country(item)


class LeaguesSyncHandler(LeagueSeasonMixin, EntitySyncHandler):
    """Leagues of one season; also ensures the referenced season row exists."""

    table = "leagues"

    def __init__(self, client, store, season: Optional[int] = None, country: Optional[str] = None,
                 today: Callable[[], date] = date.today):
        super().__init__(client, store, today=today)
        self.season = season
        self.country = country

    async def fetch(self) -> list:
        response = await self.client.get_leagues(country=self.country, season=self.resolve_season())
        return response.response

    def transform(self, item):
        return tx.transform_league(item, default_season=self.resolve_season())

    async def store_item(self, item) -> SyncOutcome:
        try:
            league = self.transform(item)
        except TRANSFORM_ERRORS as e:
            logger.warning(f"Skipping malformed leagues item: {e}")
            return SyncOutcome(errors=1)

        season = await self.upsert("seasons", tx.season_row(league["season_year"]))
        # Season rows are bookkeeping: only their failures are reported
        return SyncOutcome(errors=season.errors) + await self.upsert(self.table, league)


class SeasonsSyncHandler(EntitySyncHandler):
    table = "seasons"

    async def fetch(self) -> list:
        return (await self.client.get_seasons()).response

    def transform(self, item):
        return tx.season_row(int(item))


class VenuesSyncHandler(ScopedSyncHandler):
    """Venues per country name (the endpoint requires a filter)."""

    table = "venues"

    async def fetch_scope(self, scope) -> list:
        return (await self.client.get_venues(country=scope)).response

    def transform(self, item):
        return tx.transform_venue(item)


# =============================================================================
# League-scoped data
# =============================================================================


class LeagueScopedSyncHandler(LeagueSeasonMixin, ScopedSyncHandler):
    """Scoped handler whose scopes are league ids of one season."""

    def __init__(self, client, store, leagues: Sequence[int] = MAJOR_LEAGUES,
                 season: Optional[int] = None, **kwargs):
        super().__init__(client, store, scopes=leagues, **kwargs)
        self.season = season


class TeamsSyncHandler(LeagueScopedSyncHandler):
    """Teams per league; each team's home venue is upserted alongside it."""

    table = "teams"

    async def fetch_scope(self, scope) -> list:
        return (await self.client.get_teams(league=scope, season=self.resolve_season())).response

    def transform(self, item):
        return tx.transform_team(item)

    async def store_item(self, item) -> SyncOutcome:
        outcome = SyncOutcome()
        venue = item.get("venue") if isinstance(item, dict) else None
        if isinstance(venue, dict) and venue.get("id"):
            try:
                outcome += await self.upsert("venues", tx.transform_venue(venue))
            except TRANSFORM_ERRORS as e:
                logger.warning(f"Skipping malformed venue: {e}")
                outcome += SyncOutcome(errors=1)
        return outcome + await super().store_item(item)


class StandingsSyncHandler(LeagueScopedSyncHandler):
    table = "league_standings"

    @property
    def name(self) -> str:
        return "standings"

    async def fetch_scope(self, scope) -> list:
        return (await self.client.get_standings(league=scope, season=self.resolve_season())).response

    def transform(self, item):
        return tx.transform_standings(item)


class PlayersSyncHandler(LeagueScopedSyncHandler):
    """Players per league, following ``paging.total``."""

    table = "players"

    def __init__(self, client, store, max_pages: int = DEFAULT_MAX_PAGES, **kwargs):
        super().__init__(client, store, **kwargs)
        self.max_pages = max_pages

    async def fetch_scope(self, scope) -> list:
        season = self.resolve_season()
        return await self.fetch_all_pages(
            lambda page: self.client.get_players(league=scope, season=season, page=page),
            max_pages=self.max_pages,
        )

    def transform(self, item):
        return tx.transform_player(item)


class InjuriesSyncHandler(LeagueScopedSyncHandler):
    table = "injuries"

    async def fetch_scope(self, scope) -> list:
        return (await self.client.get_injuries(league=scope, season=self.resolve_season())).response

    def transform(self, item):
        return tx.transform_injury(item)


class OddsSyncHandler(LeagueScopedSyncHandler):
    table = "odds"

    async def fetch_scope(self, scope) -> list:
        season = self.resolve_season()
        return await self.fetch_all_pages(
            lambda page: self.client.get_odds(league=scope, season=season, page=page),
        )

    def transform(self, item):
        return tx.transform_odds(item)


class TeamScopedSyncHandler(LeagueScopedSyncHandler):
    """
    Data only addressable per team: list the league's teams first, then
    fetch each team. A failing team is isolated like a failing league.
    """

    async def fetch_team(self, team_id: int) -> list:
        raise NotImplementedError

    async def fetch_scope(self, scope) -> list:
        teams = await self.client.get_teams(league=scope, season=self.resolve_season())
        items: list = []
        for team in teams.response:
            team_id = (team.get("team") or {}).get("id")
            if team_id is None:
                continue
            try:
                items.extend(await self.fetch_team(team_id))
            except ProviderError as e:
                logger.error(f"Failed to fetch {self.name} for team {team_id}: {e}")
        return items


class CoachesSyncHandler(TeamScopedSyncHandler):
    table = "coaches"

    async def fetch_team(self, team_id: int) -> list:
        return (await self.client.get_coaches(team=team_id)).response

    def transform(self, item):
        return tx.transform_coach(item)


class TransfersSyncHandler(TeamScopedSyncHandler):
    table = "transfers"

    async def fetch_team(self, team_id: int) -> list:
        return (await self.client.get_transfers(team=team_id)).response

    def transform(self, item):
        return tx.transform_transfers(item)


# =============================================================================
# Fixtures
# =============================================================================


class FixturesSyncHandler(EntitySyncHandler):
    """
    Fixtures in a date window relative to today.

    Without leagues: one request for the whole window. With leagues: one
    request per league, isolated and paced like the scoped handlers.
    """

    table = "fixtures"

    def __init__(
        self,
        client,
        store,
        days_back: int = 0,
        days_ahead: int = 1,
        leagues: Optional[Sequence[int]] = None,
        season: Optional[int] = None,
        pace_seconds: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        today: Callable[[], date] = date.today,
    ):
        super().__init__(client, store, today=today)
        self.days_back = days_back
        self.days_ahead = days_ahead
        self.leagues = list(leagues) if leagues else None
        self.season = season
        self.pace_seconds = pace_seconds
        self._sleep = sleep

    def window(self) -> tuple[str, str]:
        today = self.today()
        start = today - timedelta(days=self.days_back)
        end = today + timedelta(days=self.days_ahead)
        return start.isoformat(), end.isoformat()

    async def run(self) -> SyncOutcome:
        if self.leagues is None:
            return await super().run()

        start, end = self.window()
        season = self.season if self.season is not None else current_season(self.today())
        handler = _FixtureLeagues(self, start, end, season)
        return await handler.run()

    async def fetch(self) -> list:
        start, end = self.window()
        return (await self.client.get_fixtures(from_date=start, to_date=end)).response

    def transform(self, item):
        return tx.transform_fixture(item)


class _FixtureLeagues(ScopedSyncHandler):
    """Per-league view of a FixturesSyncHandler run."""

    table = "fixtures"

    def __init__(self, parent: FixturesSyncHandler, start: str, end: str, season: int):
        super().__init__(
            parent.client,
            parent.store,
            scopes=parent.leagues,
            pace_seconds=parent.pace_seconds,
            sleep=parent._sleep,
            today=parent.today,
        )
        self.start = start
        self.end = end
        self.season = season

    async def fetch_scope(self, scope) -> list:
        response = await self.client.get_fixtures(
            league=scope, season=self.season, from_date=self.start, to_date=self.end
        )
        return response.response

    def transform(self, item):
        return tx.transform_fixture(item)


class LiveFixturesSyncHandler(EntitySyncHandler):
    table = "fixtures"

    @property
    def name(self) -> str:
        return "live fixtures"

    async def fetch(self) -> list:
        return (await self.client.get_live_fixtures()).response

    def transform(self, item):
        return tx.transform_fixture(item)
