"""
Admin API key gate for the sync control API.

Controlled by API_AUTH_ENABLED. When enabled, every router except /health
requires an X-API-Key header equal to API_KEY.

Values are read at import time; the app module decides at import whether
to attach the dependency, so tests reload both modules after changing env.
"""

import logging
import os
import secrets
from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader


logger = logging.getLogger(__name__)

API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false").lower() in ("true", "1", "yes", "on")
API_KEY = os.getenv("API_KEY", "")

if API_AUTH_ENABLED and not API_KEY:
    logger.warning("API_AUTH_ENABLED is set but API_KEY is empty; every protected request will be rejected")

api_key_header = APIKeyHeader(
    name="X-API-Key",
    auto_error=False,  # missing header is reported below with our own message
    description="Admin key for the sync control API (required when API_AUTH_ENABLED=true)",
)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "ApiKey"},
    )


async def verify_api_key(
    api_key: Optional[str] = Security(api_key_header),
) -> Optional[str]:
    """
    Check the X-API-Key header against API_KEY.

    Returns:
        The key when auth is enabled and it matches, None when auth is off

    Raises:
        HTTPException: 401 when the key is missing or wrong
    """
    if not API_AUTH_ENABLED:
        return None

    if not api_key:
        raise _unauthorized("Missing API key. Provide X-API-Key header.")

    if not API_KEY or not secrets.compare_digest(api_key, API_KEY):
        logger.warning("Rejected control API request with an invalid API key")
        raise _unauthorized("Invalid API key")

    return api_key
