"""
tests/conftest.py -- Shared test fixtures for SteamSignIn integration tests.

This module provides:
  - SAMPLE_PLAYER / sample_profile: one GetPlayerSummaries player entry
  - _patch_lifespan(): wires a mocked ProfileFetcher into app.state, bypassing
    real startup so no test reaches the Steam Web API
  - web_client / api_client: TestClient with follow_redirects=False
  - sign_in(): drives the real /login/return endpoint to bind a session

Rate limits are lowered (LOGIN_RATE_LIMIT, RELOAD_RATE_LIMIT) so tests can reach
them, and the shared limiter is reset whenever a client fixture starts.

The login builder is real but points at a fixed OP endpoint
(OPENID_ENDPOINT_URL), so building a login URL never runs discovery.

Environment variables must be set before any api/auth/core import:
get_settings() is cached on first call and several modules read it at import.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

# CRITICAL: set before importing the app. DEBUG lets get_settings() generate a
# SECRET_KEY; testserver must pass TrustedHostMiddleware.
os.environ["DEBUG"] = "true"
os.environ["STEAM_API_KEY"] = "test-api-key"
os.environ["ALLOWED_HOSTS"] = '["testserver", "localhost"]'
os.environ["LOGIN_RATE_LIMIT"] = "20/minute"
os.environ["RELOAD_RATE_LIMIT"] = "5/minute"
os.environ["OPENID_ENDPOINT_URL"] = "https://steamcommunity.com/openid/login"
os.environ.pop("VERIFY_ASSERTION_SIGNATURE", None)
os.environ.pop("PERSIST_CREDENTIAL_IN_SESSION", None)

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from asgi import app
from auth.login import LoginRequestBuilder
from core.fetcher import ProfileFetcher
from core.models import ProfileAttributes

STEAM_ID = "76561197960435530"
CLAIMED_ID = f"https://steamcommunity.com/openid/id/{STEAM_ID}"

SAMPLE_PLAYER: dict = {
    "steamid": STEAM_ID,
    "communityvisibilitystate": 3,
    "profilestate": 1,
    "personaname": "Robin",
    "profileurl": "https://steamcommunity.com/id/robinwalker/",
    "avatar": "https://avatars.steamstatic.com/abc.jpg",
    "avatarmedium": "https://avatars.steamstatic.com/abc_medium.jpg",
    "avatarfull": "https://avatars.steamstatic.com/abc_full.jpg",
    "personastate": 1,
    "lastlogoff": 1700000000,
    "timecreated": 1063407589,
    "realname": "Robin Walker",
    "primaryclanid": "103582791429521412",
    "loccountrycode": "US",
    "personastateflags": 0,
}


@pytest.fixture
def sample_profile() -> ProfileAttributes:
    return ProfileAttributes.from_api(SAMPLE_PLAYER)


def _patch_lifespan(fetcher: MagicMock):
    """Return an async context manager that replaces the real lifespan.

    The fetcher is a MagicMock(spec=ProfileFetcher) so tests control what
    "Steam" returns per test via fetcher.fetch.return_value.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.profile_fetcher = fetcher
        app.state.login_builder = LoginRequestBuilder(endpoint_url=os.environ["OPENID_ENDPOINT_URL"])
        app.state.signature_verifier = None
        yield

    return test_lifespan


def _make_fetcher() -> MagicMock:
    fetcher = MagicMock(spec=ProfileFetcher)
    fetcher.fetch.return_value = ProfileAttributes.from_api(SAMPLE_PLAYER)
    return fetcher


def sign_in(client: TestClient, claimed_id: str = CLAIMED_ID):
    """Hit the OpenID return endpoint the way Steam's redirect would."""
    return client.get("/login/return", params={"openid.mode": "id_res", "openid.claimed_id": claimed_id})


# ---------------------------------------------------------------------------
# Function-scoped fixtures -- each test gets a fresh cookie jar
# ---------------------------------------------------------------------------


@pytest.fixture
def web_client() -> Generator[tuple[TestClient, MagicMock], None, None]:
    """Yield (client, fetcher) for web route tests.

    follow_redirects=False is essential: we assert on redirect *locations*,
    which are invisible once the client follows the redirect.
    """
    fetcher = _make_fetcher()
    app.router.lifespan_context = _patch_lifespan(fetcher)
    limiter.reset()

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, fetcher


@pytest.fixture
def api_client() -> Generator[tuple[TestClient, MagicMock], None, None]:
    """Yield (client, fetcher) for /api/v1 tests."""
    fetcher = _make_fetcher()
    app.router.lifespan_context = _patch_lifespan(fetcher)
    limiter.reset()

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, fetcher
