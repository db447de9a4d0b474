"""
web/routes.py -- Browser-facing Steam sign-in routes and Jinja2 pages.

These routes drive the OpenID redirect flow and render server-side HTML. They
share app.state (profile fetcher, login builder) and the cookie session with
the API routes.

Routes:
  GET      /                 -- landing page: sign-in link or signed-in summary
  GET      /profile          -- full profile page (auth required)
  POST     /profile/reload   -- refetch profile from Steam, back to /profile
  GET      /login/return     -- OpenID return endpoint (provider redirects here)
  POST     /login/return     -- same, for providers that POST the assertion
  GET      /login            -- 303 redirect to Steam
  POST     /logout           -- drop the session record, back to /
"""

import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool

from api.limiter import limiter
from auth.dependencies import get_assertion_validator, get_session_store, try_get_current_identity
from auth.errors import ProtocolSetupError
from auth.identity import logout as logout_session, reload as reload_session
from auth.login import LoginRequestBuilder, realm_from_url
from core.config import get_settings
from core.models import AvatarSize, PersonaState, Visibility

logger = logging.getLogger("steamsignin.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
templates.env.globals["AvatarSize"] = AvatarSize
templates.env.globals["PersonaState"] = PersonaState
templates.env.globals["Visibility"] = Visibility
router = APIRouter()

_settings = get_settings()

# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------

# Whitelist mapping for ?error= query params on / [M3].
# The raw query param is NEVER passed to templates -- only the message from
# this dict is. Prevents reflected XSS via crafted error query strings.
_ERROR_MESSAGES: dict[str, str] = {
    "missing_assertion": "Steam did not return an identity. Please try again.",
    "malformed_assertion": "Steam returned an identity we could not read. Please try again.",
    "unverified_assertion": "Steam could not confirm your sign-in. Please try again.",
    "profile_unavailable": "Your Steam profile could not be loaded. Please try again later.",
    "login_unavailable": "Steam sign-in is unavailable right now. Please try again later.",
}


def _safe_next(next_url: Optional[str]) -> str:
    """Validate a post-login redirect target. Only accept relative paths. [C2]

    Prevents open redirect attacks where an attacker crafts a URL like:
      /login?next=https://attacker.com  or  /login?next=//attacker.com

    Only paths that start with "/" and not with "//" or "/\\" are accepted --
    browsers treat a leading backslash like a slash. Control characters are
    rejected outright: browsers strip tab and newline from URLs, so "/\\t/host"
    would become "//host".
    """
    if not next_url or any(ord(c) < 0x20 or ord(c) == 0x7F for c in next_url):
        return "/"
    if next_url.startswith("/") and not next_url.startswith(("//", "/\\")):
        return next_url
    return "/"


def _require_auth(request: Request) -> Optional[RedirectResponse]:
    """Return a redirect to /login?next=<path> when signed out, None otherwise.

    Call at the top of protected route handlers:
        if redirect := _require_auth(request):
            return redirect
    """
    if try_get_current_identity(request) is None:
        return RedirectResponse(f"/login?{urlencode({'next': request.url.path})}", status_code=302)
    return None


def _return_path(next_url: str) -> str:
    path = _settings.openid_return_path
    if next_url != "/":
        path += "?" + urlencode({"next": next_url})
    return path


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def index(request: Request) -> HTMLResponse:
    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""), None)
    return templates.TemplateResponse(
        request,
        "index.html",
        {"user": try_get_current_identity(request), "error_msg": error_msg},
    )


@router.get("/profile", response_class=HTMLResponse)
def profile(request: Request) -> HTMLResponse:
    if redirect := _require_auth(request):
        return redirect
    return templates.TemplateResponse(request, "profile.html", {"user": try_get_current_identity(request)})


@router.post("/profile/reload")
def profile_reload(request: Request) -> RedirectResponse:
    """Refetch the profile from Steam. Keeps the cached profile if Steam returns nothing."""
    if redirect := _require_auth(request):
        return redirect
    reload_session(get_session_store(request), request.app.state.profile_fetcher)
    return RedirectResponse("/profile", status_code=302)


# ---------------------------------------------------------------------------
# OpenID sign-in flow
# ---------------------------------------------------------------------------


@router.api_route("/login/return", methods=["GET", "POST"], response_class=HTMLResponse)
async def login_return(request: Request) -> RedirectResponse:
    """Validate the Steam OpenID return and bind the session.

    Flow:
      1. Collect the provider parameters (query string, plus form body on POST).
      2. AssertionValidator checks the claimed id, fetches the profile and
         saves the SessionRecord. The profile fetch blocks, so it runs in the
         threadpool.
      3. Valid -> redirect to ?next or /. Invalid -> /?error=<first error code>.
    """
    payload = dict(request.query_params)
    if request.method == "POST":
        form = await request.form()
        payload.update({k: v for k, v in form.items() if isinstance(v, str)})

    validator = get_assertion_validator(request)
    result = await run_in_threadpool(validator.validate, payload, _settings.steam_api_key, str(request.url))

    if not result.is_valid:
        code = result.errors[0].value if result.errors else "missing_assertion"
        logger.warning("Steam sign-in rejected: %s", ", ".join(e.value for e in result.errors))
        return RedirectResponse(f"/?{urlencode({'error': code})}", status_code=302)

    resp = RedirectResponse(_safe_next(request.query_params.get("next")), status_code=302)  # [C2]
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@limiter.limit(_settings.login_rate_limit)  # [H2] -- must be ABOVE @router to preserve FastAPI introspection
@router.get("/login", response_class=HTMLResponse)
def login(request: Request) -> RedirectResponse:
    """Send the browser to Steam's sign-in page with a 303.

    Already signed-in browsers go straight to ?next. A failure to build the
    OpenID request (discovery down, bad Host) lands on /?error=login_unavailable.
    """
    next_url = _safe_next(request.query_params.get("next"))  # [C2]
    if try_get_current_identity(request) is not None:
        return RedirectResponse(next_url, status_code=302)

    builder: LoginRequestBuilder = request.app.state.login_builder
    realm = realm_from_url(str(request.base_url))
    try:
        issued = builder.redirect(realm, _return_path(next_url))
    except ProtocolSetupError:
        logger.exception("Could not build Steam login URL for realm %s", realm)
        return RedirectResponse("/?error=login_unavailable", status_code=302)
    return RedirectResponse(issued.url, status_code=issued.status_code)


@router.post("/logout")
def logout(request: Request) -> RedirectResponse:
    """Destroy the session record and go back to the landing page."""
    logout_session(get_session_store(request))
    return RedirectResponse("/", status_code=302)
