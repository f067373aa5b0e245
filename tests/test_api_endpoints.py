"""
Tests for FastAPI endpoints.

Routers are exercised through TestClient against a real runtime: in-memory
stores, a scheduler with two registered jobs, and an API-Football client
answering from an httpx MockTransport.
"""

import asyncio

import httpx
import pytest
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from src.api._scheduler_state import set_runtime
from src.infra.config import Settings
from src.infra.notifications import LoggingNotifier
from src.provider.client import FootballApiClient
from src.provider.errors import ConfigurationError, ProviderError
from src.provider.request_queue import RateLimitedQueue
from src.scheduler import (
    FunctionJobHandler,
    InMemoryConfigStore,
    JobDefinition,
    SchedulerService,
    SQLiteExecutionLog,
)
from src.store.sqlite_store import SQLiteStore
from src.sync.handlers import CountriesSyncHandler
from src.sync.orchestrator import SyncOrchestrator
from src.sync.runtime import SyncRuntime


COUNTRIES = [
    {"name": "England", "code": "GB", "flag": "https://media.api-sports.io/flags/gb.svg"},
    {"name": "Spain", "code": "ES", "flag": "https://media.api-sports.io/flags/es.svg"},
]


def provider_handler(request: httpx.Request) -> httpx.Response:
    """Answers /countries with two countries and everything else with nothing."""
    response = COUNTRIES if request.url.path == "/countries" else []
    return httpx.Response(200, json={
        "errors": [],
        "results": len(response),
        "paging": {"current": 1, "total": 1},
        "response": response,
    })


async def broken_sync():
    raise ProviderError("provider unavailable", endpoint="/teams", status_code=503)


@pytest.fixture
def runtime():
    client = FootballApiClient(
        "test-football-key",
        queue=RateLimitedQueue(max_per_window=1000),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(provider_handler)),
    )
    store = SQLiteStore(":memory:")
    execution_log = SQLiteExecutionLog(":memory:")
    scheduler = SchedulerService.create(InMemoryConfigStore(), execution_log, LoggingNotifier())
    orchestrator = SyncOrchestrator(client, store, leagues=[39], venue_countries=["England"], pace_seconds=0)

    scheduler.register(
        JobDefinition(
            job_id="daily-countries",
            name="Daily Countries Sync",
            cron_expression="0 2 * * *",
            max_retries=0,
            entity="countries",
        ),
        CountriesSyncHandler(client, store),
    )
    scheduler.register(
        JobDefinition(
            job_id="broken-teams",
            name="Broken Teams Sync",
            cron_expression="0 4 * * *",
            max_retries=0,
            entity="teams",
        ),
        FunctionJobHandler(broken_sync),
    )

    runtime = SyncRuntime(
        settings=Settings(api_football_key="test-football-key"),
        client=client,
        store=store,
        execution_log=execution_log,
        scheduler=scheduler,
        orchestrator=orchestrator,
    )
    set_runtime(runtime)
    yield runtime
    set_runtime(None)


@pytest.fixture
def client(runtime):
    from src.api.main import app

    with TestClient(app) as test_client:
        yield test_client


class TestHealthEndpoint:

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "version" in response.json()


class TestSchedulerEndpoints:

    def test_start_arms_enabled_jobs(self, client):
        response = client.post("/scheduler/start")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["scheduled_jobs"] == 2

    def test_start_is_idempotent(self, client):
        client.post("/scheduler/start")
        response = client.post("/scheduler/start")

        assert response.status_code == 200
        assert response.json()["message"] == "Scheduler is already running"

    def test_stop(self, client):
        client.post("/scheduler/start")

        response = client.post("/scheduler/stop", json={"timeout": 5})

        assert response.status_code == 200
        assert response.json()["message"] == "Scheduler stopped successfully"
        assert client.get("/scheduler/status").json()["scheduler_running"] is False

    def test_stop_when_stopped(self, client):
        response = client.post("/scheduler/stop")

        assert response.status_code == 200
        assert response.json()["message"] == "Scheduler is already stopped"

    def test_status(self, client):
        client.post("/scheduler/start")

        data = client.get("/scheduler/status").json()

        assert data["scheduler_running"] is True
        assert data["registered_jobs"] == 2
        assert data["scheduled_jobs"] == 2
        assert data["active_jobs"] == []
        assert data["pending_retries"] == []
        assert data["full_sync_running"] is False
        assert data["last_full_sync"] is None


class TestJobEndpoints:

    def test_list_jobs(self, client):
        response = client.get("/jobs")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["enabled_count"] == 2
        assert {job["job_id"] for job in data["jobs"]} == {"daily-countries", "broken-teams"}

    def test_get_job(self, client):
        response = client.get("/jobs/daily-countries")

        assert response.status_code == 200
        assert response.json()["priority"] == "medium"

    def test_unknown_job_is_404(self, client):
        assert client.get("/jobs/nope").status_code == 404
        assert client.post("/jobs/nope/enable").status_code == 404
        assert client.post("/jobs/nope/disable").status_code == 404
        assert client.post("/jobs/nope/run").status_code == 404
        assert client.get("/jobs/nope/runs").status_code == 404

    def test_disable_then_enable(self, client):
        client.post("/scheduler/start")

        response = client.post("/jobs/daily-countries/disable")
        assert response.status_code == 200
        assert response.json()["enabled"] is False
        assert client.get("/jobs/daily-countries").json()["enabled"] is False

        response = client.post("/jobs/daily-countries/enable")
        assert response.status_code == 200
        data = response.json()
        assert data["enabled"] is True
        assert data["next_run"] is not None

    def test_run_job_returns_record(self, client):
        response = client.post("/jobs/daily-countries/run")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["records_processed"] == 2
        assert data["api_calls_used"] == 1
        assert data["attempt"] == 1

    def test_failed_run_is_a_record_not_an_error(self, client):
        response = client.post("/jobs/broken-teams/run")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["error_count"] == 1
        assert "provider unavailable" in data["errors"][0]

    def test_runs_newest_first(self, client):
        client.post("/jobs/daily-countries/run")
        client.post("/jobs/daily-countries/run")

        response = client.get("/jobs/daily-countries/runs", params={"limit": 1})

        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert client.get("/jobs/daily-countries/runs").json()["total"] == 2


class TestFullSyncEndpoint:

    def test_wait_returns_result(self, client, runtime):
        response = client.post("/sync/full", params={"wait": "true"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["accepted"] is False
        assert data["synced"] == 2
        assert list(data["details"]) == ["base", "dependent", "events", "ancillary"]
        assert runtime.orchestrator.last_result is not None

    def test_background_is_accepted(self, client):
        response = client.post("/sync/full")

        assert response.status_code == 200
        assert response.json()["accepted"] is True

    def test_conflict_while_running(self, client, runtime):
        runtime.orchestrator._running = True

        response = client.post("/sync/full")

        assert response.status_code == 409
        assert "already in progress" in response.json()["detail"]
        runtime.orchestrator._running = False

    def test_configuration_error_is_503(self, client, runtime):
        runtime.orchestrator.full_sync = AsyncMock(side_effect=ConfigurationError("API_FOOTBALL_KEY is not configured"))

        response = client.post("/sync/full", params={"wait": "true"})

        assert response.status_code == 503


class TestLogEndpoints:

    def test_daily_summary(self, client):
        client.post("/jobs/daily-countries/run")
        client.post("/jobs/broken-teams/run")

        data = client.get("/sync/logs/summary").json()

        assert data["sync_sessions"] == 2
        assert data["total_records_added"] == 2
        assert data["tables_synced"] == 2
        assert data["success_rate"] == 50.0

    def test_log_queries_run_off_the_event_loop(self, client, runtime):
        on_loop: list[bool] = []
        daily_summary = runtime.execution_log.daily_summary

        def recording_summary(day):
            try:
                asyncio.get_running_loop()
                on_loop.append(True)
            except RuntimeError:
                on_loop.append(False)
            return daily_summary(day)

        runtime.execution_log.daily_summary = recording_summary

        assert client.get("/sync/logs/summary").status_code == 200
        assert on_loop == [False]

    def test_daily_summary_for_date(self, client):
        response = client.get("/sync/logs/summary", params={"date": "2020-01-01"})

        assert response.status_code == 200
        assert response.json() == {
            "date": "2020-01-01",
            "total_records_added": 0,
            "total_api_calls": 0,
            "tables_synced": 0,
            "sync_sessions": 0,
            "success_rate": 0.0,
        }

    def test_table_stats(self, client):
        client.post("/jobs/daily-countries/run")

        response = client.get("/sync/logs/tables/countries", params={"days": 7})

        assert response.status_code == 200
        data = response.json()
        assert data["entity"] == "countries"
        assert data["total_records_added"] == 2
        assert data["success_rate"] == 100.0

    def test_table_stats_validation(self, client):
        assert client.get("/sync/logs/tables/countries", params={"days": 0}).status_code == 422

    def test_cleanup(self, client):
        client.post("/jobs/daily-countries/run")

        response = client.post("/sync/logs/cleanup", params={"retention_days": 30})

        assert response.status_code == 200
        assert response.json() == {"retention_days": 30, "deleted": 0}


class TestProviderEndpoint:

    def test_connection_test(self, client):
        response = client.get("/sync/provider/test")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "API-Football connection successful. 2 countries available.",
        }
