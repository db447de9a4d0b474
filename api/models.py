"""
API request and response models for SteamSignIn REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py and
auth/models.py, which own the internal domain representation. Route handlers
map between the two.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from auth.errors import TimestampUnavailable
from auth.identity import SessionIdentity

# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ProfileResponse(BaseModel):
    """The signed-in Steam user, as exposed by /auth/me and /auth/reload."""

    model_config = ConfigDict(frozen=True)

    steam_id: str
    username: Optional[str] = None
    real_name: Optional[str] = None
    profile_url: Optional[str] = None
    avatar: Optional[str] = None
    avatar_medium: Optional[str] = None
    avatar_full: Optional[str] = None
    persona_state: Optional[int] = None
    online: bool = False
    visibility: Optional[int] = None
    community_profile: bool = False
    country_code: Optional[str] = None
    primary_clan_id: Optional[str] = None
    time_created: Optional[datetime] = None
    last_logoff: Optional[datetime] = None

    @classmethod
    def from_identity(cls, identity: SessionIdentity) -> "ProfileResponse":
        """Build a ProfileResponse from a SessionIdentity.

        Factory Method: the mapping lives next to the output model rather than
        in the route handlers. Missing timestamps become null instead of
        surfacing TimestampUnavailable to the client.
        """
        try:
            time_created: Optional[datetime] = identity.get_time_created()
        except TimestampUnavailable:
            time_created = None
        try:
            last_logoff: Optional[datetime] = identity.get_last_logoff_time()
        except TimestampUnavailable:
            last_logoff = None

        profile = identity.profile
        return cls(
            steam_id=identity.steam_id or "",
            username=identity.username,
            real_name=identity.real_name,
            profile_url=identity.profile_url,
            avatar=profile.avatar,
            avatar_medium=profile.avatarmedium,
            avatar_full=profile.avatarfull,
            persona_state=identity.status,
            online=identity.is_online(),
            visibility=identity.visibility,
            community_profile=identity.is_community_profile(),
            country_code=identity.country_code,
            primary_clan_id=identity.primary_clan_id,
            time_created=time_created,
            last_logoff=last_logoff,
        )


class LoginUrlResponse(BaseModel):
    """Response for GET /api/v1/auth/login-url."""

    model_config = ConfigDict(frozen=True)

    url: str


class StatusResponse(BaseModel):
    """Response for GET /api/v1/auth/status."""

    model_config = ConfigDict(frozen=True)

    logged_in: bool
    steam_id: Optional[str] = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
