"""Tests for the API-Football client."""

import httpx
import pytest

from src.infra.usage import metered
from src.provider.client import (
    API_HOST,
    FootballApiClient,
    ProviderResponse,
    format_provider_errors,
)
from src.provider.errors import ConfigurationError, ProviderError
from src.provider.request_queue import RateLimitedQueue


TEST_KEY = "test-football-key"


def make_client(handler, api_key: str = TEST_KEY) -> FootballApiClient:
    return FootballApiClient(
        api_key,
        queue=RateLimitedQueue(max_per_window=1000),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def envelope(response, results=None, errors=None, paging=None) -> dict:
    return {
        "get": "test",
        "parameters": {},
        "errors": errors if errors is not None else [],
        "results": results if results is not None else len(response),
        "paging": paging or {"current": 1, "total": 1},
        "response": response,
    }


class TestConfiguration:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", [None, "", "your-api-football-key"])
    async def test_missing_or_placeholder_key_raises_before_io(self, key):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=envelope([]))

        client = make_client(handler, api_key=key)

        assert client.is_configured is False
        with pytest.raises(ConfigurationError):
            await client.get_countries()
        assert calls == []

    @pytest.mark.asyncio
    async def test_configured_key(self):
        client = make_client(lambda request: httpx.Response(200, json=envelope([])))
        assert client.is_configured is True


class TestRequests:

    @pytest.mark.asyncio
    async def test_sends_auth_headers_and_params(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["key"] = request.headers["x-rapidapi-key"]
            seen["host"] = request.headers["x-rapidapi-host"]
            return httpx.Response(200, json=envelope([{"team": {"id": 33}}]))

        client = make_client(handler)
        response = await client.get_teams(league=39, season=2024)

        assert seen == {
            "path": "/teams",
            "params": {"league": "39", "season": "2024"},
            "key": TEST_KEY,
            "host": API_HOST,
        }
        assert response.results == 1
        assert response.response == [{"team": {"id": 33}}]

    @pytest.mark.asyncio
    async def test_fixture_window_param_names(self):
        seen = {}

        def handler(request):
            seen.update(dict(request.url.params))
            return httpx.Response(200, json=envelope([]))

        client = make_client(handler)
        await client.get_fixtures(from_date="2026-01-01", to_date="2026-01-02")

        assert seen == {"from": "2026-01-01", "to": "2026-01-02"}

    @pytest.mark.asyncio
    async def test_live_fixtures_and_coaches_endpoints(self):
        paths = []

        def handler(request):
            paths.append((request.url.path, dict(request.url.params)))
            return httpx.Response(200, json=envelope([]))

        client = make_client(handler)
        await client.get_live_fixtures()
        await client.get_coaches(team=33)

        assert paths == [("/fixtures", {"live": "all"}), ("/coachs", {"team": "33"})]

    @pytest.mark.asyncio
    async def test_paging_exposed(self):
        client = make_client(lambda request: httpx.Response(
            200, json=envelope([{}], paging={"current": 2, "total": 5})
        ))

        response = await client.get_players(league=39, season=2024, page=2)

        assert response.current_page == 2
        assert response.total_pages == 5

    @pytest.mark.asyncio
    async def test_status_object_response_is_wrapped(self):
        client = make_client(lambda request: httpx.Response(
            200, json={"errors": [], "results": 1, "response": {"account": {"firstname": "A"}}}
        ))

        response = await client.get_status()

        assert response.response == [{"account": {"firstname": "A"}}]

    @pytest.mark.asyncio
    async def test_counts_api_calls_in_current_meter(self):
        client = make_client(lambda request: httpx.Response(200, json=envelope([])))

        with metered() as meter:
            await client.get_countries()
            await client.get_leagues(season=2024)

        assert meter.calls == 2


class TestErrors:

    @pytest.mark.asyncio
    async def test_non_2xx_raises_provider_error(self):
        client = make_client(lambda request: httpx.Response(500, text="oops"))

        with pytest.raises(ProviderError) as exc_info:
            await client.get_countries()

        assert exc_info.value.status_code == 500
        assert exc_info.value.endpoint == "/countries"

    @pytest.mark.asyncio
    async def test_errors_field_raises_even_on_200(self):
        client = make_client(lambda request: httpx.Response(
            200, json=envelope([], errors={"token": "Error/Missing application key"})
        ))

        with pytest.raises(ProviderError) as exc_info:
            await client.get_countries()

        assert "Missing application key" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_empty_errors_dict_is_success(self):
        client = make_client(lambda request: httpx.Response(200, json=envelope([{"name": "England"}], errors={})))

        response = await client.get_countries()

        assert response.response == [{"name": "England"}]

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(ProviderError):
            await client.get_countries()

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(ProviderError) as exc_info:
            await client.get_countries()
        assert "connection refused" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        client = make_client(handler)

        with pytest.raises(ProviderError) as exc_info:
            await client.get_countries()
        assert "timed out" in str(exc_info.value)


class TestConnectionTest:

    @pytest.mark.asyncio
    async def test_success(self):
        client = make_client(lambda request: httpx.Response(200, json=envelope([{}, {}, {}])))

        result = await client.test_connection()

        assert result["success"] is True
        assert "3 countries" in result["message"]

    @pytest.mark.asyncio
    async def test_failure_never_raises(self):
        client = make_client(lambda request: httpx.Response(403, text="forbidden"))

        result = await client.test_connection()

        assert result["success"] is False
        assert "403" in result["message"]


class TestHelpers:

    def test_format_errors_list_and_dict(self):
        assert format_provider_errors(["a", "b"]) == "a, b"
        assert format_provider_errors({"rateLimit": "Too many"}) == "rateLimit: Too many"

    def test_response_defaults(self):
        response = ProviderResponse.from_payload("/x", {"response": None})
        assert response.response == []
        assert response.total_pages == 1
