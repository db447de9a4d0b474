"""
api/routes/v1/auth.py -- Steam sign-in JSON endpoints.

Routes:
  GET  /api/v1/auth/login-url   -- Steam OpenID URL for ?return_to= (public)
  GET  /api/v1/auth/status      -- whether this session is signed in (public)
  GET  /api/v1/auth/me          -- signed-in profile (requires session)
  POST /api/v1/auth/reload      -- refetch profile from Steam (requires session)
  POST /api/v1/auth/logout      -- drop the session record

The browser redirect flow (/login, /login/return) lives in web/routes.py. These
endpoints serve single-page and scripted clients that share the same cookie
session.

Security:
  [H2] login-url and reload are rate-limited per IP -- both trigger outbound
       calls to Steam.
  [M5] Cache-Control: no-store on profile responses.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import LoginUrlResponse, MessageResponse, ProfileResponse, StatusResponse
from auth.dependencies import get_current_identity, get_session_store, try_get_current_identity
from auth.errors import ProtocolSetupError
from auth.identity import SessionIdentity, logout as logout_session, reload as reload_session
from auth.login import LoginRequestBuilder, realm_from_url
from core.config import get_settings

logger = logging.getLogger("steamsignin.api.auth")

# Auth policy:
# - GET  /api/v1/auth/login-url: public -- the sign-in button needs it
# - GET  /api/v1/auth/status:    public
# - GET  /api/v1/auth/me:        requires a signed-in session (get_current_identity)
# - POST /api/v1/auth/reload:    requires a signed-in session
# - POST /api/v1/auth/logout:    public -- clearing a session needs no prior auth
router = APIRouter()

_settings = get_settings()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.login_rate_limit)  # [H2] -- must be ABOVE @router to preserve FastAPI introspection
@router.get("/auth/login-url", response_model=LoginUrlResponse)
def login_url(request: Request, return_to: str | None = None) -> LoginUrlResponse:
    """Return the Steam OpenID authentication URL for this site.

    return_to is an application-relative path; it is joined onto the realm
    derived from this request. Defaults to the configured return endpoint.
    """
    builder: LoginRequestBuilder = request.app.state.login_builder
    realm = realm_from_url(str(request.base_url))
    try:
        url = builder.build_login_url(realm, return_to or _settings.openid_return_path)
    except ProtocolSetupError as exc:
        logger.warning("Login URL unavailable: %s", exc)
        raise HTTPException(
            status_code=502,
            detail={"code": "provider_unavailable", "message": "Steam sign-in is unavailable right now."},
        ) from exc
    return LoginUrlResponse(url=url)


@router.get("/auth/status", response_model=StatusResponse)
async def status(request: Request) -> StatusResponse:
    identity = try_get_current_identity(request)
    if identity is None:
        return StatusResponse(logged_in=False)
    return StatusResponse(logged_in=True, steam_id=identity.steam_id)


@router.post("/auth/logout", response_model=MessageResponse)
async def logout(request: Request) -> MessageResponse:
    """Destroy the session record."""
    logout_session(get_session_store(request))
    return MessageResponse(message="Logged out.")


# ---------------------------------------------------------------------------
# Signed-in endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=ProfileResponse)
async def me(identity: SessionIdentity = Depends(get_current_identity)) -> JSONResponse:
    """Return the signed-in Steam profile."""
    resp = JSONResponse(content=ProfileResponse.from_identity(identity).model_dump(mode="json"))
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@limiter.limit(_settings.reload_rate_limit)  # [H2]
@router.post("/auth/reload", response_model=ProfileResponse)
def reload(request: Request, identity: SessionIdentity = Depends(get_current_identity)) -> JSONResponse:
    """Refetch the profile from Steam and overwrite it in the session.

    If Steam returns nothing, the cached profile is kept and returned as is.
    """
    refreshed = reload_session(get_session_store(request), request.app.state.profile_fetcher)
    if refreshed is None:
        # Session was cleared between the dependency check and here.
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Sign in through Steam first."},
        )
    resp = JSONResponse(content=ProfileResponse.from_identity(refreshed).model_dump(mode="json"))
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp
