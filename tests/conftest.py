"""
Pytest configuration and shared fixtures.
"""

import importlib
import os
import sys

import pytest


def _reload_app():
    # Settings are loaded when the app module is imported
    if "cronhub.api.main" in sys.modules:
        importlib.reload(sys.modules["cronhub.api.main"])


@pytest.fixture(autouse=True, scope="function")
def reset_auth_settings():
    """
    Reset app settings before each test.

    This ensures tests run with API_AUTH_ENABLED=false by default,
    unless the test explicitly sets it otherwise.
    """
    # Store original values
    original_auth_enabled = os.environ.get("API_AUTH_ENABLED")
    original_api_key = os.environ.get("API_KEY")

    # Set defaults for tests (auth disabled)
    os.environ["API_AUTH_ENABLED"] = "false"
    _reload_app()

    yield

    # Restore original values
    if original_auth_enabled is not None:
        os.environ["API_AUTH_ENABLED"] = original_auth_enabled
    elif "API_AUTH_ENABLED" in os.environ:
        del os.environ["API_AUTH_ENABLED"]

    if original_api_key is not None:
        os.environ["API_KEY"] = original_api_key
    elif "API_KEY" in os.environ:
        del os.environ["API_KEY"]

    _reload_app()
