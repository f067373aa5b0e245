"""
API-Football client.

Thin async wrapper over the API-Football v3 REST API:
- Every request goes through the shared RateLimitedQueue
- Every request is counted against the current execution's API-call meter
- Non-2xx responses and non-empty ``errors`` payloads raise ProviderError
- A missing or placeholder key raises ConfigurationError before any I/O
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from src.infra.usage import record_api_call

from .errors import ConfigurationError, ProviderError
from .request_queue import RateLimitedQueue


logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "https://v3.football.api-sports.io"
API_HOST = "v3.football.api-sports.io"
PLACEHOLDER_KEY = "your-api-football-key"
REQUEST_TIMEOUT_SECONDS = 30.0


@dataclass
class ProviderResponse:
    """Decoded API-Football envelope."""

    endpoint: str
    results: int = 0
    response: list = field(default_factory=list)
    errors: Any = field(default_factory=list)
    paging: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, endpoint: str, payload: dict) -> "ProviderResponse":
        body = payload.get("response")
        if body is None:
            body = []
        elif not isinstance(body, list):
            # /status answers with a single object
            body = [body]
        return cls(
            endpoint=endpoint,
            results=int(payload.get("results") or len(body)),
            response=body,
            errors=payload.get("errors") or [],
            paging=payload.get("paging") or {},
        )

    @property
    def current_page(self) -> int:
        return int(self.paging.get("current") or 1)

    @property
    def total_pages(self) -> int:
        return int(self.paging.get("total") or 1)


def format_provider_errors(errors: Any) -> str:
    """API-Football reports errors either as a list or as a {field: message} dict."""
    if isinstance(errors, dict):
        return ", ".join(f"{key}: {value}" for key, value in errors.items())
    if isinstance(errors, (list, tuple)):
        return ", ".join(str(item) for item in errors)
    return str(errors)


class FootballApiClient:
    """
    API-Football client bound to one request queue.

    Usage:
        async with FootballApiClient(api_key, queue=queue) as client:
            countries = await client.get_countries()
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        queue: Optional[RateLimitedQueue] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        """
        Initialize FootballApiClient.

        Args:
            api_key: API-Football key
            base_url: API root URL
            queue: Rate-limited queue; a private one is created if omitted
            http_client: Pre-built httpx client (tests inject MockTransport)
            timeout: Per-request timeout in seconds
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.queue = queue or RateLimitedQueue()
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) and self.api_key != PLACEHOLDER_KEY

    async def __aenter__(self) -> "FootballApiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # =========================================================================
    # Core request
    # =========================================================================

    async def request(self, endpoint: str, params: Optional[dict] = None) -> ProviderResponse:
        """
        Send one GET through the rate-limited queue.

        Raises:
            ConfigurationError: API key missing or placeholder
            ProviderError: HTTP failure, non-2xx status or provider errors
        """
        if not self.is_configured:
            raise ConfigurationError("API-Football key not configured")

        clean_params = {
            key: value for key, value in (params or {}).items() if value is not None
        }

        # Counted in the caller's context; the queue worker runs in its own
        record_api_call()
        return await self.queue.submit(lambda: self._send(endpoint, clean_params))

    async def _send(self, endpoint: str, params: dict) -> ProviderResponse:
        logger.debug(f"API-Football request: {endpoint} {params}")
        try:
            response = await self._http.get(
                f"{self.base_url}{endpoint}",
                params=params,
                headers={
                    "X-RapidAPI-Key": self.api_key,
                    "X-RapidAPI-Host": API_HOST,
                },
            )
        except httpx.TimeoutException as e:
            raise ProviderError(f"API-Football request timed out: {endpoint}", endpoint=endpoint) from e
        except httpx.RequestError as e:
            raise ProviderError(f"API-Football request error: {e}", endpoint=endpoint) from e

        if not 200 <= response.status_code < 300:
            raise ProviderError(
                f"API-Football request failed: {response.status_code} {response.reason_phrase}",
                endpoint=endpoint,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError(
                f"API-Football returned invalid JSON for {endpoint}",
                endpoint=endpoint,
                status_code=response.status_code,
            ) from e

        errors = payload.get("errors")
        if errors:
            raise ProviderError(
                f"API-Football error: {format_provider_errors(errors)}",
                endpoint=endpoint,
                status_code=response.status_code,
            )

        return ProviderResponse.from_payload(endpoint, payload)

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def get_countries(self) -> ProviderResponse:
        return await self.request("/countries")

    async def get_leagues(self, country: Optional[str] = None, season: Optional[int] = None,
                          league_id: Optional[int] = None) -> ProviderResponse:
        return await self.request("/leagues", {"country": country, "season": season, "id": league_id})

    async def get_seasons(self) -> ProviderResponse:
        return await self.request("/leagues/seasons")

    async def get_teams(self, league: Optional[int] = None, season: Optional[int] = None,
                        country: Optional[str] = None) -> ProviderResponse:
        return await self.request("/teams", {"league": league, "season": season, "country": country})

    async def get_venues(self, country: Optional[str] = None, city: Optional[str] = None) -> ProviderResponse:
        return await self.request("/venues", {"country": country, "city": city})

    async def get_fixtures(
        self,
        league: Optional[int] = None,
        season: Optional[int] = None,
        team: Optional[int] = None,
        date: Optional[str] = None,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
        status: Optional[str] = None,
    ) -> ProviderResponse:
        return await self.request("/fixtures", {
            "league": league,
            "season": season,
            "team": team,
            "date": date,
            "from": from_date,
            "to": to_date,
            "status": status,
        })

    async def get_live_fixtures(self) -> ProviderResponse:
        return await self.request("/fixtures", {"live": "all"})

    async def get_standings(self, league: int, season: int, team: Optional[int] = None) -> ProviderResponse:
        return await self.request("/standings", {"league": league, "season": season, "team": team})

    async def get_players(
        self,
        league: Optional[int] = None,
        season: Optional[int] = None,
        team: Optional[int] = None,
        page: int = 1,
    ) -> ProviderResponse:
        return await self.request("/players", {
            "league": league,
            "season": season,
            "team": team,
            "page": page,
        })

    async def get_injuries(self, league: Optional[int] = None, season: Optional[int] = None,
                           team: Optional[int] = None) -> ProviderResponse:
        return await self.request("/injuries", {"league": league, "season": season, "team": team})

    async def get_transfers(self, team: Optional[int] = None, player: Optional[int] = None) -> ProviderResponse:
        return await self.request("/transfers", {"team": team, "player": player})

    async def get_coaches(self, team: Optional[int] = None) -> ProviderResponse:
        # The provider spells this endpoint "coachs"
        return await self.request("/coachs", {"team": team})

    async def get_odds(self, fixture: Optional[int] = None, league: Optional[int] = None,
                       season: Optional[int] = None, page: int = 1) -> ProviderResponse:
        return await self.request("/odds", {"fixture": fixture, "league": league, "season": season, "page": page})

    async def get_status(self) -> ProviderResponse:
        return await self.request("/status")

    async def test_connection(self) -> dict:
        """
        Probe the provider with a countries request.

        Returns:
            {"success": bool, "message": str}; never raises
        """
        try:
            response = await self.get_countries()
            return {
                "success": True,
                "message": f"API-Football connection successful. {response.results} countries available.",
            }
        except Exception as e:
            return {
                "success": False,
                "message": f"API-Football connection failed: {e}",
            }
