"""
tests/test_web_routes.py -- Integration tests for the browser sign-in flow.

These run through the real ASGI stack (TrustedHost, CORS, SlowAPI, Session
middleware) using the web_client fixture (follow_redirects=False). We assert on
redirect Location headers directly -- following the redirect would hide them.

Coverage:
  - GET /login builds an OpenID 2.0 redirect whose return_to matches this site
  - GET /login/return binds the session or lands on /?error=<code>
  - the already-signed-in override on /login/return
  - /profile requires a session; /profile/reload refetches
  - POST /logout drops the session
  - next= is always a relative path (open-redirect prevention)
  - the session cookie does not carry the Steam API key
"""

from __future__ import annotations

import base64
import json
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi.testclient import TestClient

from auth.errors import ProtocolSetupError
from conftest import CLAIMED_ID, SAMPLE_PLAYER, STEAM_ID, sign_in
from core.models import ProfileAttributes
from web.routes import _safe_next

OP_ENDPOINT = "https://steamcommunity.com/openid/login"


def _openid_params(location: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlsplit(location).query).items()}


class TestLoginRedirect:
    def test_redirects_to_steam_with_303(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        resp = client.get("/login")
        assert resp.status_code == 303
        assert resp.headers["location"].startswith(OP_ENDPOINT + "?")

    def test_return_to_and_realm_match_this_site(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        params = _openid_params(client.get("/login").headers["location"])
        assert params["openid.realm"] == "http://testserver"
        assert params["openid.return_to"] == "http://testserver/login/return"
        assert params["openid.mode"] == "checkid_setup"

    def test_next_travels_through_return_to(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        params = _openid_params(client.get("/login", params={"next": "/profile"}).headers["location"])
        assert params["openid.return_to"] == "http://testserver/login/return?next=%2Fprofile"

    def test_offsite_next_is_dropped(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        for bad in ("https://attacker.example", "//attacker.example", "/\\attacker.example"):
            params = _openid_params(client.get("/login", params={"next": bad}).headers["location"])
            assert params["openid.return_to"] == "http://testserver/login/return"

    def test_builder_failure_lands_on_error_page(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        builder = MagicMock()
        builder.redirect.side_effect = ProtocolSetupError("discovery failed")
        client.app.state.login_builder = builder
        resp = client.get("/login")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/?error=login_unavailable"

    def test_signed_in_browser_skips_steam(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        sign_in(client)
        resp = client.get("/login", params={"next": "/profile"})
        assert resp.status_code == 302
        assert resp.headers["location"] == "/profile"

    def test_untrusted_host_rejected(self, web_client: tuple[TestClient, MagicMock]) -> None:
        """The realm comes from Host; an unexpected Host must never reach /login."""
        client, _ = web_client
        resp = client.get("/login", headers={"host": "attacker.example"})
        assert resp.status_code == 400


class TestLoginReturn:
    def test_success_binds_session(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, fetcher = web_client
        resp = sign_in(client)
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"
        assert resp.headers["cache-control"] == "no-store"
        fetcher.fetch.assert_called_once_with("test-api-key", STEAM_ID)
        assert client.get("/api/v1/auth/status").json() == {"logged_in": True, "steam_id": STEAM_ID}

    def test_success_follows_next(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        resp = client.get("/login/return", params={"openid.claimed_id": CLAIMED_ID, "next": "/profile"})
        assert resp.headers["location"] == "/profile"

    def test_success_ignores_offsite_next(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        resp = client.get("/login/return", params={"openid.claimed_id": CLAIMED_ID, "next": "//attacker.example"})
        assert resp.headers["location"] == "/"

    def test_success_ignores_next_with_control_characters(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        resp = client.get("/login/return", params={"openid.claimed_id": CLAIMED_ID, "next": "/\t/attacker.example"})
        assert resp.headers["location"] == "/"

    def test_post_return(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        resp = client.post("/login/return", data={"openid.mode": "id_res", "openid.claimed_id": CLAIMED_ID})
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"
        assert client.get("/api/v1/auth/status").json()["logged_in"] is True

    def test_missing_assertion(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, fetcher = web_client
        resp = client.get("/login/return")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/?error=missing_assertion"
        fetcher.fetch.assert_not_called()

    def test_malformed_assertion(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, fetcher = web_client
        resp = sign_in(client, "https://attacker.example/openid/id/76561197960435530")
        assert resp.headers["location"] == "/?error=malformed_assertion"
        fetcher.fetch.assert_not_called()
        assert client.get("/api/v1/auth/status").json()["logged_in"] is False

    def test_profile_unavailable(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, fetcher = web_client
        fetcher.fetch.return_value = None
        resp = sign_in(client)
        assert resp.headers["location"] == "/?error=profile_unavailable"
        assert client.get("/api/v1/auth/status").json()["logged_in"] is False

    def test_failed_return_keeps_existing_session(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        sign_in(client)
        resp = client.get("/login/return")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"
        assert client.get("/api/v1/auth/status").json() == {"logged_in": True, "steam_id": STEAM_ID}

    def test_session_cookie_has_no_api_key(self, web_client: tuple[TestClient, MagicMock]) -> None:
        """Starlette's session cookie is signed, not encrypted -- the browser can read it."""
        client, _ = web_client
        sign_in(client)
        raw = client.cookies.get("steamsignin_session")
        assert raw is not None
        data = json.loads(base64.b64decode(raw.split(".")[0]))
        assert data["steam_auth"]["id"] == STEAM_ID
        assert data["steam_auth"]["api_key"] is None
        assert "test-api-key" not in json.dumps(data)


class TestPages:
    def test_index_signed_out(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        resp = client.get("/")
        assert resp.status_code == 200
        assert 'href="/login"' in resp.text

    def test_index_signed_in(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        sign_in(client)
        resp = client.get("/")
        assert resp.status_code == 200
        assert "Robin" in resp.text
        assert SAMPLE_PLAYER["avatarmedium"] in resp.text

    def test_known_error_code_shows_message(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        resp = client.get("/", params={"error": "profile_unavailable"})
        assert "Your Steam profile could not be loaded" in resp.text

    def test_unknown_error_code_not_reflected(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        resp = client.get("/", params={"error": "<script>alert(1)</script>"})
        assert resp.status_code == 200
        assert "<script>alert(1)</script>" not in resp.text
        assert 'role="alert"' not in resp.text

    def test_profile_requires_session(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        resp = client.get("/profile")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/login?next=%2Fprofile"

    def test_profile_page(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        sign_in(client)
        resp = client.get("/profile")
        assert resp.status_code == 200
        assert "Robin Walker" in resp.text
        assert STEAM_ID in resp.text
        assert SAMPLE_PLAYER["avatarfull"] in resp.text
        assert "Public" in resp.text

    def test_profile_reload(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, fetcher = web_client
        sign_in(client)
        fetcher.fetch.return_value = ProfileAttributes.from_api({**SAMPLE_PLAYER, "personaname": "Renamed"})
        resp = client.post("/profile/reload")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/profile"
        assert "Renamed" in client.get("/profile").text

    def test_profile_reload_requires_session(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, fetcher = web_client
        resp = client.post("/profile/reload")
        assert resp.status_code == 302
        assert resp.headers["location"].startswith("/login")
        fetcher.fetch.assert_not_called()


class TestLogout:
    def test_logout_drops_session(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        sign_in(client)
        resp = client.post("/logout")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"
        assert client.get("/profile").status_code == 302

    def test_logout_when_signed_out(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        resp = client.post("/logout")
        assert resp.status_code == 302


class TestSafeNextValidation:
    """next= must never turn the post-login redirect into an off-site one. [C2]"""

    @pytest.mark.parametrize("value", ["/", "/profile", "/profile?tab=games", "/a/b%2Fc"])
    def test_relative_paths_kept(self, value: str) -> None:
        assert _safe_next(value) == value

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "",
            "profile",
            "https://attacker.example",
            "//attacker.example",
            "/\\attacker.example",
            "/\t/attacker.example",
            "/\n/attacker.example",
            "/\r/attacker.example",
            "\t//attacker.example",
            "/profile\x00",
            "/profile\x7f",
        ],
    )
    def test_unsafe_values_replaced(self, value) -> None:
        assert _safe_next(value) == "/"

    def test_login_drops_next_with_tab(self, web_client: tuple[TestClient, MagicMock]) -> None:
        client, _ = web_client
        params = _openid_params(client.get("/login", params={"next": "/\t/attacker.example"}).headers["location"])
        assert params["openid.return_to"] == "http://testserver/login/return"
