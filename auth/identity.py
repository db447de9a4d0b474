"""
auth/identity.py -- SessionIdentity: read-only view of the signed-in Steam user.

SessionIdentity wraps the ProfileAttributes of a SessionRecord and derives
typed values from it. Building one has no session side effects.

The module-level helpers (is_logged_in, get_current, logout, reload) are the
operations that touch the session. They take the SessionStore explicitly.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from auth.errors import TimestampUnavailable
from auth.models import SessionRecord
from auth.session import SessionStore
from core.fetcher import ProfileFetcher
from core.models import AvatarSize, PersonaState, ProfileAttributes, ProfileField

logger = logging.getLogger("steamsignin.auth.identity")

_AVATAR_FIELDS = {
    AvatarSize.NORMAL: ProfileField.AVATAR,
    AvatarSize.MEDIUM: ProfileField.AVATAR_MEDIUM,
    AvatarSize.FULL: ProfileField.AVATAR_FULL,
}


class SessionIdentity:
    """Steam user bound to the current session."""

    def __init__(self, profile: ProfileAttributes | SessionRecord) -> None:
        if isinstance(profile, SessionRecord):
            profile = profile.profile
        self._profile = profile

    def __repr__(self) -> str:
        return f"SessionIdentity(steam_id={self.steam_id!r})"

    @property
    def profile(self) -> ProfileAttributes:
        return self._profile

    def get_attribute(self, name: str | ProfileField) -> Any:
        return self._profile.get(name)

    # ------------------------------------------------------------------
    # Identity and display
    # ------------------------------------------------------------------

    @property
    def steam_id(self) -> str | None:
        return self._profile.steamid

    @property
    def username(self) -> str | None:
        return self._profile.personaname

    def has_real_name(self) -> bool:
        return bool(self._profile.realname)

    @property
    def real_name(self) -> str | None:
        return self._profile.realname

    @property
    def profile_url(self) -> str | None:
        return self._profile.profileurl

    @property
    def country_code(self) -> str | None:
        return self._profile.loccountrycode

    @property
    def primary_clan_id(self) -> str | None:
        return self._profile.primaryclanid

    def get_avatar(self, size: AvatarSize | int = AvatarSize.NORMAL) -> str | None:
        """Avatar URL for one of the three fixed sizes. Unknown sizes fall back to NORMAL."""
        try:
            size = AvatarSize(size)
        except ValueError:
            size = AvatarSize.NORMAL
        return self._profile.get(_AVATAR_FIELDS[size])

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def status(self) -> int | None:
        """Persona state code; see core.models.PersonaState."""
        return self._profile.personastate

    def check_status(self, state: int) -> bool:
        return self.status == state

    def is_online(self) -> bool:
        return self.check_status(PersonaState.ONLINE)

    @property
    def visibility(self) -> int | None:
        """Community visibility code; see core.models.Visibility."""
        return self._profile.communityvisibilitystate

    def check_visibility(self, level: int) -> bool:
        return self.visibility == level

    def is_community_profile(self) -> bool:
        """True when the user has set up a Steam Community profile."""
        return self._profile.profilestate == 1

    # ------------------------------------------------------------------
    # Timestamps
    # ------------------------------------------------------------------

    def get_time_created(self) -> datetime:
        return self._timestamp(ProfileField.TIME_CREATED)

    def get_last_logoff_time(self) -> datetime:
        return self._timestamp(ProfileField.LAST_LOGOFF)

    def _timestamp(self, name: ProfileField) -> datetime:
        value = self._profile.get(name)
        if value is None:
            raise TimestampUnavailable(name.value)
        return datetime.fromtimestamp(value, tz=timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        return self._profile.to_dict()


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------


def is_logged_in(store: SessionStore) -> bool:
    return store.is_logged_in()


def get_current(store: SessionStore) -> SessionIdentity | None:
    """Return the signed-in identity, or None if the session holds no valid record."""
    record = store.load()
    if record is None or not record.valid:
        return None
    return SessionIdentity(record)


def logout(store: SessionStore) -> None:
    """Destroy the SessionRecord."""
    store.clear()


def reload(store: SessionStore, fetcher: ProfileFetcher) -> SessionIdentity | None:
    """Refetch the profile for the signed-in user and overwrite it in the session.

    Only the profile changes -- identity key and valid flag are kept. When the
    refetch yields nothing, the stored profile is left as it was so the record
    never becomes a valid record with an empty profile.

    Returns the refreshed identity, or None when nobody is signed in.
    """
    record = store.load()
    if record is None or not record.valid:
        return None
    if not record.credential:
        logger.warning("Profile reload skipped for %s: no API credential available", record.identity_key)
        return SessionIdentity(record)

    profile = fetcher.fetch(record.credential, record.identity_key)
    if profile is None or profile.is_empty():
        logger.warning("Profile reload for %s returned nothing; keeping cached profile", record.identity_key)
        return SessionIdentity(record)

    record.profile = profile
    store.save(record)
    return SessionIdentity(record)
