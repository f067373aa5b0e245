"""
Provider client exceptions.

Both are raised to the job handler and turn into a failed ExecutionRecord.
ProviderError is considered transient (retried per the job's policy);
ConfigurationError means the client cannot make any request at all.
"""

from typing import Optional


class ProviderClientError(Exception):
    """Base exception for the external data provider client."""
    pass


class ConfigurationError(ProviderClientError):
    """Raised when the API key is missing or still the placeholder value."""
    pass


class ProviderError(ProviderClientError):
    """
    Raised when the provider answers with a non-2xx status or a non-empty
    ``errors`` field, or when the request cannot be sent at all.
    """

    def __init__(self, message: str, endpoint: Optional[str] = None, status_code: Optional[int] = None):
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(message)
