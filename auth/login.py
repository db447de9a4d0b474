"""
auth/login.py -- Build the Steam OpenID 2.0 login redirect.

The OpenID wire format is produced by python3-openid, not by hand. The
Consumer is created per call with a throwaway session dict and no store
(stateless mode): this flow never runs Consumer.complete() against the
state begin() leaves behind, so nothing of it needs to outlive the call.

Two ways to reach the OP endpoint:
  discovery -- Consumer.begin(provider_url) runs Yadis discovery against
               https://steamcommunity.com/openid (one HTTP round trip).
  direct    -- with endpoint_url set, the endpoint is described locally via
               OpenIDServiceEndpoint.fromOPEndpointURL and discovery is skipped.

Either way the request is an identifier-select checkid_setup: Steam picks the
account, the realm is the site origin, and return_to is realm + "/" + path.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlsplit

from openid.consumer.consumer import Consumer
from openid.consumer.discover import DiscoveryFailure, OpenIDServiceEndpoint

from auth.errors import ProtocolSetupError
from core.config import STEAM_OPENID_URL

logger = logging.getLogger("steamsignin.auth.login")


@dataclass(frozen=True)
class RedirectIssued:
    """Signal to the caller: send a 303 to `url` and stop handling the request."""

    url: str
    status_code: int = 303


def realm_from_url(url: str) -> str:
    """Return scheme://host[:port] of a request URL."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def format_return_url(realm: str, return_path: str | None = None) -> str:
    """Join realm and an application-relative path with exactly one slash."""
    return realm + "/" + (return_path or "").lstrip("/")


def _normalize_realm(realm: str) -> str:
    if not realm:
        raise ProtocolSetupError("Realm is empty.")
    parts = urlsplit(realm)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ProtocolSetupError(f"Realm must be an http(s) origin, got {realm!r}.")
    if parts.path not in ("", "/") or parts.query or parts.fragment:
        raise ProtocolSetupError(f"Realm must not carry a path, query or fragment, got {realm!r}.")
    return realm.rstrip("/")


class LoginRequestBuilder:
    def __init__(self, provider_url: str = STEAM_OPENID_URL, endpoint_url: str | None = None) -> None:
        self.provider_url = provider_url
        self.endpoint_url = endpoint_url or None

    def build_login_url(self, realm: str, return_path: str | None = None) -> str:
        """Return the provider authentication URL for this realm and return path.

        Raises:
            ProtocolSetupError: malformed realm, discovery failure, or the
                OpenID library refusing to build the request.
        """
        realm = _normalize_realm(realm)
        return_url = format_return_url(realm, return_path)

        consumer = Consumer({}, None)
        try:
            if self.endpoint_url:
                service = OpenIDServiceEndpoint.fromOPEndpointURL(self.endpoint_url)
                auth_request = consumer.beginWithoutDiscovery(service)
            else:
                auth_request = consumer.begin(self.provider_url)
            # The library appends its own nonce to return_to. Nothing on the
            # return endpoint reads it, and return_to must match return_url.
            auth_request.return_to_args.clear()
            url = auth_request.redirectURL(realm, return_url)
        except DiscoveryFailure as exc:
            logger.warning("OpenID discovery failed for %s: %s", self.provider_url, exc)
            raise ProtocolSetupError(f"OpenID discovery failed for {self.provider_url}") from exc
        except ValueError as exc:
            raise ProtocolSetupError(f"Could not build OpenID request: {exc}") from exc

        logger.debug("Built Steam login URL (return_to=%s)", return_url)
        return url

    def redirect(self, realm: str, return_path: str | None = None) -> RedirectIssued:
        return RedirectIssued(url=self.build_login_url(realm, return_path))
