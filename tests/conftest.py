"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration and shared response
fixtures. Fixtures here are autouse unless noted.
"""

from __future__ import annotations

from contextlib import suppress
import logging
import os

import pytest

from courier.mock import MockClient
from courier.response import HttpResponse, ResponseCode

# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_courier_env(request, monkeypatch):
    """Clear COURIER_* env vars to prevent test pollution.

    Opt-out: @pytest.mark.allow_env_pollution
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return

    for key in list(os.environ.keys()):
        if key.startswith("COURIER_"):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# =============================================================================
# Shared Fixtures
# =============================================================================

TEST_URL = "https://api.example.com/apps/42"


@pytest.fixture
def url() -> str:
    """Return the URL used by request fixtures."""
    return TEST_URL


@pytest.fixture
def ok_json_response() -> HttpResponse:
    """A 200 response with a small JSON object body."""
    return HttpResponse(
        ResponseCode.OK,
        headers=(("Content-Type", "application/json"),),
        body=b'{"app_id": 42, "env": "production"}',
    )


@pytest.fixture
def mock_client() -> MockClient:
    """An empty MockClient (every call answers 200 with no body)."""
    return MockClient()
