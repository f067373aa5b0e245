"""
Request dependencies shared by the control API routers.
"""

from .auth import API_AUTH_ENABLED, verify_api_key

__all__ = ["API_AUTH_ENABLED", "verify_api_key"]
