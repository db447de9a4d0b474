"""
auth/assertion.py -- Validate the Steam OpenID return and bind the session.

Flow (PENDING -> VALID | INVALID):
  1. Read the claimed id from the return payload.     missing  -> missing_assertion
  2. Match it against the Steam claimed-id pattern.   no match -> malformed_assertion
  3. Optional: direct verification with the OP.       failure  -> unverified_assertion
  4. Fetch the profile for the extracted SteamID64.   nothing  -> profile_unavailable
  5. Save SessionRecord(valid=True) to the store.

Security notes:
  [S1] By default there is NO cryptographic verification of the assertion.
       The claimed-id pattern plus a successful profile lookup is taken as
       proof. Anyone can forge a return URL with a real SteamID64 and be signed
       in as that account. Set VERIFY_ASSERTION_SIGNATURE=true to run the
       OpenID 2.0 check_authentication handshake (SignatureVerifier) before the
       profile lookup.

  [S2] Already-authenticated override: when validation fails but the store
       already holds a valid record, the result is reported as valid and the
       record is left untouched. This keeps a signed-in user signed in across a
       replayed or broken return request. It also means a forged return against
       a signed-in browser is never reported as a failure -- do not rely on
       is_valid as a per-request security check. The errors are still reported.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from openid.consumer.consumer import SUCCESS, Consumer
from openid.consumer.discover import DiscoveryFailure
from openid.fetchers import HTTPFetchingError

from auth.identity import SessionIdentity, get_current
from auth.models import AuthError, SessionRecord
from auth.session import SessionStore
from core.fetcher import ProfileFetcher

logger = logging.getLogger("steamsignin.auth.assertion")

CLAIMED_ID_RE = re.compile(r"^https?://steamcommunity\.com/openid/id/(7[0-9]{15,25})$")

# PHP-style frameworks rewrite "openid.claimed_id" to "openid_claimed_id";
# Starlette keeps the dot. Both spellings name the same field.
_CLAIMED_ID_KEYS = ("openid_claimed_id", "openid.claimed_id")


class ValidationState(str, Enum):
    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"


@dataclass
class AssertionResult:
    """Outcome of one validate() call.

    is_valid -- True on the primary success path or via the [S2] override.
    errors   -- ordered error codes; empty iff the primary path succeeded.
    user     -- the signed-in identity after validation, whichever path led there.
    """

    state: ValidationState
    errors: tuple[AuthError, ...] = ()
    user: SessionIdentity | None = None
    overridden: bool = False
    identity_key: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.state is ValidationState.VALID or self.overridden


def extract_claimed_id(payload: Mapping[str, str]) -> str:
    for key in _CLAIMED_ID_KEYS:
        value = payload.get(key)
        if value:
            return value
    return ""


def extract_identity_key(claimed_id: str) -> str | None:
    """Return the SteamID64 from a Steam claimed-id URL, or None if it does not match."""
    match = CLAIMED_ID_RE.match(claimed_id)
    return match.group(1) if match else None


class SignatureVerifier:
    """OpenID 2.0 direct verification of a positive assertion [S1].

    Runs python3-openid's Consumer.complete() in stateless mode: the claimed id
    is re-discovered and the signature is checked with a check_authentication
    request to the OP. Both are network calls to Steam.
    """

    def verify(self, payload: Mapping[str, str], current_url: str, claimed_id: str) -> bool:
        # The full query: every argument of our own return_to (e.g. next=) must
        # be present or the library rejects the response.
        try:
            response = Consumer({}, None).complete(dict(payload), current_url)
        except (DiscoveryFailure, HTTPFetchingError, ValueError, OSError):
            logger.warning("OpenID direct verification errored for %s", claimed_id, exc_info=True)
            return False
        if response.status != SUCCESS:
            logger.warning("OpenID direct verification rejected %s: %s", claimed_id, response.status)
            return False
        return response.identity_url == claimed_id


class AssertionValidator:
    def __init__(
        self,
        store: SessionStore,
        fetcher: ProfileFetcher,
        verifier: SignatureVerifier | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.verifier = verifier

    def validate(
        self,
        return_payload: Mapping[str, str],
        credential: str,
        current_url: str | None = None,
    ) -> AssertionResult:
        """Validate one provider return and, on success, save the SessionRecord.

        Args:
            return_payload: Query/form parameters of the return request.
            credential:     Steam Web API key for the profile lookup.
            current_url:    Full URL of the return request. Only needed when a
                            SignatureVerifier is configured (return_to check).
        """
        errors: list[AuthError] = []
        identity_key: str | None = None
        state = ValidationState.PENDING

        claimed_id = extract_claimed_id(return_payload)
        if not claimed_id:
            errors.append(AuthError.MISSING_ASSERTION)
        else:
            identity_key = extract_identity_key(claimed_id)
            if identity_key is None:
                logger.info("Rejected malformed claimed id %r", claimed_id[:200])
                errors.append(AuthError.MALFORMED_ASSERTION)
            elif self.verifier is not None and not self.verifier.verify(
                return_payload, current_url or "", claimed_id
            ):
                errors.append(AuthError.UNVERIFIED_ASSERTION)
            elif not self._bind(identity_key, credential):
                errors.append(AuthError.PROFILE_UNAVAILABLE)
            else:
                state = ValidationState.VALID

        overridden = False
        if errors:
            state = ValidationState.INVALID
            if self.store.is_logged_in():
                # [S2] keep the existing session
                logger.warning(
                    "Return validation failed (%s) but session is already signed in; keeping it",
                    ", ".join(e.value for e in errors),
                )
                overridden = True

        return AssertionResult(
            state=state,
            errors=tuple(errors),
            user=get_current(self.store),
            overridden=overridden,
            identity_key=identity_key,
        )

    def _bind(self, identity_key: str, credential: str) -> bool:
        profile = self.fetcher.fetch(credential, identity_key)
        if profile is None or profile.is_empty():
            # An account the profile service cannot describe is treated as
            # not signed in, whatever the provider claimed.
            logger.info("No profile for %s; sign-in rejected", identity_key)
            return False

        self.store.save(SessionRecord(identity_key=identity_key, profile=profile, credential=credential))
        logger.info("Signed in Steam user %s", identity_key)
        return True
