"""
auth/dependencies.py -- FastAPI Depends() helpers for the Steam session.

Every helper builds its collaborators from the request: the SessionStore wraps
request.session (Starlette SessionMiddleware), the ProfileFetcher and optional
SignatureVerifier come from app.state (wired in api/main.py lifespan).

try_get_current_identity() is the soft variant (returns None when signed out).
get_current_identity() wraps it and raises HTTP 401.

Layer rule: no imports from api/ or web/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.assertion import AssertionValidator
from auth.identity import SessionIdentity, get_current
from auth.session import SessionStore
from core.config import get_settings


def get_session_store(request: Request) -> SessionStore:
    cfg = get_settings()
    return SessionStore(
        request.session,
        default_credential=cfg.steam_api_key or None,
        persist_credential=cfg.persist_credential_in_session,
    )


def get_assertion_validator(request: Request) -> AssertionValidator:
    return AssertionValidator(
        store=get_session_store(request),
        fetcher=request.app.state.profile_fetcher,
        verifier=getattr(request.app.state, "signature_verifier", None),
    )


def try_get_current_identity(request: Request) -> SessionIdentity | None:
    """Return the signed-in Steam identity, or None. Never raises."""
    return get_current(get_session_store(request))


def get_current_identity(request: Request) -> SessionIdentity:
    """Require a signed-in session. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: SessionIdentity = Depends(get_current_identity)): ...
    """
    identity = try_get_current_identity(request)
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Sign in through Steam first."},
        )
    return identity
