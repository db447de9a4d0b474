"""
auth/models.py -- Domain types for Steam sign-in.

Pattern: Data class (pure data container, minimal logic). Mirrors the approach
in core/models.py -- dataclasses own domain shape; the store, validator and
routes do the work.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from core.models import ProfileAttributes


class AuthError(str, Enum):
    """Error codes accumulated by AssertionValidator. Values are stable strings
    so they can be used in query params and JSON without translation."""

    MISSING_ASSERTION = "missing_assertion"
    MALFORMED_ASSERTION = "malformed_assertion"
    UNVERIFIED_ASSERTION = "unverified_assertion"
    PROFILE_UNAVAILABLE = "profile_unavailable"


@dataclass
class SessionRecord:
    """The session-scoped result of a successful Steam sign-in.

    Session layout (under SESSION_KEY):
        {"id": str, "user": dict, "api_key": str | None, "valid": bool}

    "user" is the provider-shaped profile mapping (ProfileAttributes.to_dict()),
    so the cookie stays JSON-serializable for Starlette's SessionMiddleware.

    A valid record always has both an identity key and a non-empty profile;
    __post_init__ refuses to build one that does not.
    """

    identity_key: str
    profile: ProfileAttributes
    credential: str | None = None
    valid: bool = True

    def __post_init__(self) -> None:
        if self.valid and (not self.identity_key or self.profile.is_empty()):
            raise ValueError("A valid SessionRecord needs an identity key and a non-empty profile.")

    def to_session(self, include_credential: bool = False) -> dict[str, Any]:
        return {
            "id": self.identity_key,
            "user": self.profile.to_dict(),
            "api_key": self.credential if include_credential else None,
            "valid": self.valid,
        }

    @classmethod
    def from_session(cls, data: Any) -> SessionRecord | None:
        """Rebuild a record from session data. Returns None for anything that
        does not look like a record written by to_session()."""
        if not isinstance(data, dict):
            return None
        user = data.get("user")
        if not isinstance(user, dict):
            return None
        try:
            return cls(
                identity_key=str(data.get("id") or ""),
                profile=ProfileAttributes.from_api(user),
                credential=data.get("api_key"),
                valid=bool(data.get("valid", False)),
            )
        except ValueError:
            return None
