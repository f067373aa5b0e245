"""
Pytest configuration and shared fixtures.
"""

import importlib
import os
import pytest


@pytest.fixture(autouse=True, scope="function")
def isolated_api_state():
    """
    Run each test with API auth off and no installed sync runtime.

    Tests that enable auth set API_AUTH_ENABLED / API_KEY themselves and
    reload the auth module; the original environment is restored afterwards.
    """
    saved = {key: os.environ.get(key) for key in ("API_AUTH_ENABLED", "API_KEY")}
    os.environ["API_AUTH_ENABLED"] = "false"

    yield

    for key, value in saved.items():
        if value is not None:
            os.environ[key] = value
        else:
            os.environ.pop(key, None)

    import src.api.dependencies.auth as auth_module
    from src.api._scheduler_state import set_runtime

    importlib.reload(auth_module)
    set_runtime(None)
