"""Tests for entity sync handlers and payload transforms."""

import pytest
from datetime import date
from unittest.mock import AsyncMock, MagicMock, call

from src.provider.client import ProviderResponse
from src.provider.errors import ConfigurationError, ProviderError
from src.scheduler.entities import SyncOutcome
from src.store.errors import StoreError
from src.store.sqlite_store import SQLiteStore
from src.sync import transformers as tx
from src.sync.handlers import (
    CoachesSyncHandler,
    CountriesSyncHandler,
    FixturesSyncHandler,
    InjuriesSyncHandler,
    LeaguesSyncHandler,
    LiveFixturesSyncHandler,
    OddsSyncHandler,
    PlayersSyncHandler,
    SeasonsSyncHandler,
    StandingsSyncHandler,
    TeamsSyncHandler,
    TransfersSyncHandler,
    VenuesSyncHandler,
    current_season,
)


TODAY = date(2026, 1, 10)


def resp(items, current: int = 1, total: int = 1) -> ProviderResponse:
    return ProviderResponse(
        endpoint="/test",
        results=len(items),
        response=list(items),
        paging={"current": current, "total": total},
    )


def team_item(team_id: int, venue_id: int = None) -> dict:
    item = {"team": {"id": team_id, "name": f"Team {team_id}", "country": "England", "founded": 1900}}
    if venue_id is not None:
        item["venue"] = {"id": venue_id, "name": f"Ground {venue_id}", "city": "London", "capacity": 40000}
    return item


def fixture_item(fixture_id: int, league_id: int = 39) -> dict:
    return {
        "fixture": {"id": fixture_id, "date": "2026-01-10T15:00:00+00:00", "status": {"short": "NS", "long": "Not Started"}},
        "league": {"id": league_id, "season": 2025, "round": "Regular Season - 21"},
        "teams": {"home": {"id": 1}, "away": {"id": 2}},
        "goals": {"home": None, "away": None},
        "score": {"halftime": {"home": None, "away": None}},
    }


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def store():
    return SQLiteStore(":memory:")


@pytest.fixture
def sleep():
    return AsyncMock()


def today():
    return TODAY


class TestTransforms:

    def test_hash_code_matches_java_string_hash(self):
        assert tx.hash_code("GB") == 2267
        assert tx.hash_code("England") == tx.hash_code("England")
        assert tx.hash_code("a much longer country name that overflows") >= 0

    def test_country_without_code(self):
        row = tx.transform_country({"name": "World", "code": None, "flag": None})
        assert row["code"] == "WOR"
        assert row["country_id"] == tx.hash_code("World")

    def test_league_season_prefers_current_flag(self):
        item = {
            "league": {"id": 39, "name": "Premier League", "type": "League"},
            "country": {"name": "England", "code": "GB"},
            "seasons": [{"year": 2023, "current": False}, {"year": 2024, "current": True}, {"year": 2025, "current": False}],
        }
        row = tx.transform_league(item)
        assert row["season_year"] == 2024
        assert row["country_id"] == tx.hash_code("GB")

    def test_league_season_falls_back_to_latest(self):
        assert tx.current_season_year([{"year": 2022}, {"year": 2024}]) == 2024
        assert tx.current_season_year([], default=2020) == 2020

    def test_season_row(self):
        assert tx.season_row(2025) == {"season_year": 2025, "start_date": "2025-08-01", "end_date": "2026-07-31"}

    def test_fixture_nested_fields(self):
        row = tx.transform_fixture(fixture_item(1001))
        assert row["fixture_id"] == 1001
        assert row["status"] == "NS"
        assert row["home_team_id"] == 1
        assert row["season_year"] == 2025

    def test_malformed_fixture_raises(self):
        with pytest.raises(ValueError):
            tx.transform_fixture({"league": {"id": 39}})

    def test_standings_flatten_groups(self):
        item = {"league": {"id": 39, "season": 2025, "standings": [
            [{"rank": 1, "team": {"id": 40}, "points": 50, "all": {"played": 20, "goals": {"for": 40, "against": 10}}}],
            [{"rank": 1, "team": {"id": 50}, "points": 45, "all": {}}],
        ]}}
        rows = list(tx.transform_standings(item))
        assert [row["team_id"] for row in rows] == [40, 50]
        assert rows[0]["goals_for"] == 40

    def test_transfers_flatten(self):
        item = {"player": {"id": 7}, "transfers": [
            {"date": "2020-07-01", "type": "Free", "teams": {"in": {"id": 1}, "out": {"id": 2}}},
            {"date": "2022-01-15", "type": "Loan", "teams": {"in": {"id": 3}, "out": {"id": 1}}},
        ]}
        rows = list(tx.transform_transfers(item))
        assert [(row["transfer_date"], row["team_in_id"]) for row in rows] == [("2020-07-01", 1), ("2022-01-15", 3)]

    def test_odds_flatten(self):
        item = {"fixture": {"id": 9}, "update": "2026-01-10T10:00:00+00:00", "bookmakers": [
            {"id": 8, "name": "Bet365", "bets": [{"id": 1, "name": "Match Winner", "values": []}, {"id": 5, "name": "Goals"}]},
        ]}
        rows = list(tx.transform_odds(item))
        assert [(row["bookmaker_id"], row["bet_id"]) for row in rows] == [(8, 1), (8, 5)]


class TestCurrentSeason:

    def test_before_july_is_previous_year(self):
        assert current_season(date(2026, 6, 30)) == 2025

    def test_from_july_is_current_year(self):
        assert current_season(date(2026, 7, 1)) == 2026


class TestSimpleHandlers:

    @pytest.mark.asyncio
    async def test_countries_counts_malformed_items(self, client, store):
        client.get_countries = AsyncMock(return_value=resp([
            {"name": "England", "code": "GB", "flag": "gb.svg"},
            {"code": "XX"},
            {"name": "Spain", "code": "ES"},
        ]))

        outcome = await CountriesSyncHandler(client, store).run()

        assert outcome == SyncOutcome(synced=2, errors=1)
        assert await store.count("countries") == 2

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, client, store):
        client.get_countries = AsyncMock(return_value=resp([{"name": "England", "code": "GB"}]))
        handler = CountriesSyncHandler(client, store)

        await handler.run()
        await handler.run()

        assert await store.count("countries") == 1

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates(self, client, store):
        client.get_countries = AsyncMock(side_effect=ProviderError("down", endpoint="/countries"))

        with pytest.raises(ProviderError):
            await CountriesSyncHandler(client, store).run()

    @pytest.mark.asyncio
    async def test_store_errors_are_counted(self, client):
        client.get_countries = AsyncMock(return_value=resp([{"name": "England"}, {"name": "Spain"}]))
        failing = MagicMock()
        failing.upsert = AsyncMock(side_effect=[None, StoreError("rejected", table="countries")])

        outcome = await CountriesSyncHandler(client, failing).run()

        assert outcome == SyncOutcome(synced=1, errors=1)

    @pytest.mark.asyncio
    async def test_leagues_also_upsert_seasons(self, client, store):
        client.get_leagues = AsyncMock(return_value=resp([
            {"league": {"id": 39, "name": "Premier League"}, "country": {"name": "England", "code": "GB"},
             "seasons": [{"year": 2025, "current": True}]},
            {"league": {"id": 140, "name": "La Liga"}, "country": {"name": "Spain", "code": "ES"},
             "seasons": [{"year": 2025, "current": True}]},
        ]))

        outcome = await LeaguesSyncHandler(client, store, today=today).run()

        assert outcome == SyncOutcome(synced=2, errors=0)
        client.get_leagues.assert_awaited_once_with(country=None, season=2025)
        assert await store.count("leagues") == 2
        assert await store.count("seasons") == 1

    @pytest.mark.asyncio
    async def test_seasons(self, client, store):
        client.get_seasons = AsyncMock(return_value=resp([2023, 2024, 2025]))

        outcome = await SeasonsSyncHandler(client, store).run()

        assert outcome.synced == 3
        assert (await store.select_one("seasons", {"season_year": 2024}))["end_date"] == "2025-07-31"

    @pytest.mark.asyncio
    async def test_live_fixtures(self, client, store):
        client.get_live_fixtures = AsyncMock(return_value=resp([fixture_item(1), fixture_item(2)]))

        outcome = await LiveFixturesSyncHandler(client, store).run()

        assert outcome.synced == 2
        assert await store.count("fixtures") == 2


class TestScopedHandlers:

    @pytest.mark.asyncio
    async def test_failed_league_is_isolated(self, client, store, sleep):
        async def get_teams(league, season):
            if league == 39:
                raise ProviderError("rate limited", endpoint="/teams", status_code=429)
            return resp([team_item(1, venue_id=10), team_item(2, venue_id=20)])

        client.get_teams = AsyncMock(side_effect=get_teams)

        handler = TeamsSyncHandler(client, store, leagues=[39, 140], pace_seconds=2.0, sleep=sleep, today=today)
        outcome = await handler.run()

        # Two teams plus their two venues; one error for the failed league
        assert outcome == SyncOutcome(synced=4, errors=1)
        assert await store.count("teams") == 2
        assert await store.count("venues") == 2
        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_team_with_non_dict_venue_does_not_abort_league(self, client, store, sleep):
        odd = team_item(2)
        odd["venue"] = "Old Trafford"
        client.get_teams = AsyncMock(return_value=resp([team_item(1, venue_id=10), odd, team_item(3)]))

        handler = TeamsSyncHandler(client, store, leagues=[39], sleep=sleep, today=today)
        outcome = await handler.run()

        assert outcome == SyncOutcome(synced=4, errors=0)
        assert await store.count("teams") == 3
        assert await store.count("venues") == 1
        assert (await store.select_one("teams", {"team_id": 2}))["venue_id"] is None

    @pytest.mark.asyncio
    async def test_all_scopes_failing_raises(self, client, store, sleep):
        client.get_standings = AsyncMock(side_effect=ProviderError("down", endpoint="/standings"))

        handler = StandingsSyncHandler(client, store, leagues=[39, 140, 78], sleep=sleep, today=today)

        with pytest.raises(ProviderError) as exc_info:
            await handler.run()
        assert "All 3" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_configuration_error_is_not_isolated(self, client, store, sleep):
        client.get_standings = AsyncMock(side_effect=ConfigurationError("no key"))

        handler = StandingsSyncHandler(client, store, leagues=[39, 140], sleep=sleep, today=today)

        with pytest.raises(ConfigurationError):
            await handler.run()
        assert client.get_standings.await_count == 1

    @pytest.mark.asyncio
    async def test_explicit_season_overrides_current(self, client, store, sleep):
        client.get_standings = AsyncMock(return_value=resp([]))

        await StandingsSyncHandler(client, store, leagues=[39], season=2021, sleep=sleep, today=today).run()

        client.get_standings.assert_awaited_once_with(league=39, season=2021)

    @pytest.mark.asyncio
    async def test_standings_rows(self, client, store, sleep):
        client.get_standings = AsyncMock(return_value=resp([{"league": {"id": 39, "season": 2025, "standings": [[
            {"rank": 1, "team": {"id": 40}, "points": 50, "all": {}},
            {"rank": 2, "team": {"id": 42}, "points": 48, "all": {}},
        ]]}}]))

        outcome = await StandingsSyncHandler(client, store, leagues=[39], sleep=sleep, today=today).run()

        assert outcome.synced == 2
        assert await store.count("league_standings", {"league_id": 39}) == 2

    @pytest.mark.asyncio
    async def test_venues_per_country(self, client, store, sleep):
        client.get_venues = AsyncMock(return_value=resp([{"id": 556, "name": "Old Trafford"}]))

        handler = VenuesSyncHandler(client, store, scopes=["England", "Spain"], pace_seconds=0, sleep=sleep)
        outcome = await handler.run()

        assert client.get_venues.await_args_list == [call(country="England"), call(country="Spain")]
        assert outcome.synced == 2
        assert await store.count("venues") == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_injuries(self, client, store, sleep):
        client.get_injuries = AsyncMock(return_value=resp([
            {"player": {"id": 5, "type": "Missing Fixture", "reason": "Knee"}, "team": {"id": 1},
             "fixture": {"id": 100, "date": "2026-01-10"}, "league": {"id": 39, "season": 2025}},
        ]))

        outcome = await InjuriesSyncHandler(client, store, leagues=[39], sleep=sleep, today=today).run()

        assert outcome.synced == 1


class TestPaging:

    @pytest.mark.asyncio
    async def test_players_follow_paging_total(self, client, store, sleep):
        pages = {
            1: resp([{"player": {"id": 1}}, {"player": {"id": 2}}], current=1, total=3),
            2: resp([{"player": {"id": 3}}], current=2, total=3),
            3: resp([{"player": {"id": 4}}], current=3, total=3),
        }
        client.get_players = AsyncMock(side_effect=lambda league, season, page: pages[page])

        outcome = await PlayersSyncHandler(client, store, leagues=[39], sleep=sleep, today=today).run()

        assert outcome.synced == 4
        assert [c.kwargs["page"] for c in client.get_players.await_args_list] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_max_pages_caps_requests(self, client, store, sleep):
        client.get_players = AsyncMock(
            side_effect=lambda league, season, page: resp([{"player": {"id": page}}], current=page, total=100)
        )

        handler = PlayersSyncHandler(client, store, leagues=[39], max_pages=2, sleep=sleep, today=today)
        outcome = await handler.run()

        assert outcome.synced == 2
        assert client.get_players.await_count == 2

    @pytest.mark.asyncio
    async def test_odds(self, client, store, sleep):
        client.get_odds = AsyncMock(return_value=resp([{"fixture": {"id": 9}, "bookmakers": [
            {"id": 8, "name": "Bet365", "bets": [{"id": 1, "name": "Match Winner"}]},
        ]}]))

        outcome = await OddsSyncHandler(client, store, leagues=[39], sleep=sleep, today=today).run()

        assert outcome.synced == 1
        client.get_odds.assert_awaited_once_with(league=39, season=2025, page=1)


class TestTeamScopedHandlers:

    @pytest.mark.asyncio
    async def test_coaches_failed_team_is_skipped(self, client, store, sleep):
        client.get_teams = AsyncMock(return_value=resp([team_item(1), team_item(2), {"team": {}}]))

        async def get_coaches(team):
            if team == 2:
                raise ProviderError("not found", endpoint="/coachs")
            return resp([{"id": 900 + team, "name": f"Coach {team}", "team": {"id": team}}])

        client.get_coaches = AsyncMock(side_effect=get_coaches)

        outcome = await CoachesSyncHandler(client, store, leagues=[39], sleep=sleep, today=today).run()

        assert outcome == SyncOutcome(synced=1, errors=0)
        assert client.get_coaches.await_count == 2
        assert (await store.select_one("coaches", {"coach_id": 901}))["team_id"] == 1

    @pytest.mark.asyncio
    async def test_transfers_per_team(self, client, store, sleep):
        client.get_teams = AsyncMock(return_value=resp([team_item(1)]))
        client.get_transfers = AsyncMock(return_value=resp([{"player": {"id": 7}, "transfers": [
            {"date": "2020-07-01", "teams": {"in": {"id": 1}, "out": {"id": 2}}},
            {"date": "2021-07-01", "teams": {"in": {"id": None}, "out": {"id": 1}}},
        ]}]))

        outcome = await TransfersSyncHandler(client, store, leagues=[39], sleep=sleep, today=today).run()

        # The malformed transfer invalidates its whole item
        assert outcome == SyncOutcome(synced=0, errors=1)


class TestFixtures:

    @pytest.mark.asyncio
    async def test_window_relative_to_today(self, client, store):
        client.get_fixtures = AsyncMock(return_value=resp([fixture_item(1)]))

        handler = FixturesSyncHandler(client, store, days_back=0, days_ahead=1, today=today)
        outcome = await handler.run()

        client.get_fixtures.assert_awaited_once_with(from_date="2026-01-10", to_date="2026-01-11")
        assert outcome.synced == 1

    @pytest.mark.asyncio
    async def test_per_league_window(self, client, store, sleep):
        client.get_fixtures = AsyncMock(return_value=resp([fixture_item(1)]))

        handler = FixturesSyncHandler(
            client, store, days_back=30, days_ahead=7, leagues=[39, 140], sleep=sleep, today=today
        )
        outcome = await handler.run()

        assert client.get_fixtures.await_args_list == [
            call(league=39, season=2025, from_date="2025-12-11", to_date="2026-01-17"),
            call(league=140, season=2025, from_date="2025-12-11", to_date="2026-01-17"),
        ]
        assert outcome.synced == 2
        assert await store.count("fixtures") == 1
