"""
External data provider (API-Football) access.
"""

from .errors import ConfigurationError, ProviderClientError, ProviderError
from .request_queue import RateLimitedQueue, RateWindow
from .client import FootballApiClient, ProviderResponse

__all__ = [
    "ConfigurationError",
    "ProviderClientError",
    "ProviderError",
    "RateLimitedQueue",
    "RateWindow",
    "FootballApiClient",
    "ProviderResponse",
]
