import logging
from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum
from typing import Any, Optional, Union

logger = logging.getLogger("steamsignin.models")

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# SteamID64 of an individual account: leading 7, 16-26 digits in total.
STEAM_ID_PATTERN = r"^7[0-9]{15,25}$"


class ProfileField(str, Enum):
    """Profile fields returned by GetPlayerSummaries that this system reads."""

    STEAM_ID = "steamid"
    COMMUNITY_VISIBILITY = "communityvisibilitystate"
    PROFILE_STATE = "profilestate"
    USERNAME = "personaname"
    PROFILE_URL = "profileurl"
    AVATAR = "avatar"
    AVATAR_MEDIUM = "avatarmedium"
    AVATAR_FULL = "avatarfull"
    PERSONA_STATE = "personastate"
    LAST_LOGOFF = "lastlogoff"
    TIME_CREATED = "timecreated"
    REAL_NAME = "realname"
    PRIMARY_CLAN = "primaryclanid"
    COUNTRY_CODE = "loccountrycode"


class PersonaState(IntEnum):
    OFFLINE = 0
    ONLINE = 1
    BUSY = 2
    AWAY = 3
    SNOOZE = 4
    LOOKING_TO_TRADE = 5
    LOOKING_TO_PLAY = 6


class Visibility(IntEnum):
    PRIVATE = 0
    FRIENDS_ONLY = 1
    PUBLIC = 3


class AvatarSize(IntEnum):
    NORMAL = 1  # 32 x 32
    MEDIUM = 2  # 64 x 64
    FULL = 3  # 184 x 184


_INT_FIELDS = frozenset(
    {
        ProfileField.COMMUNITY_VISIBILITY,
        ProfileField.PROFILE_STATE,
        ProfileField.PERSONA_STATE,
        ProfileField.LAST_LOGOFF,
        ProfileField.TIME_CREATED,
    }
)


def _coerce(name: ProfileField, value: Any) -> Optional[Union[str, int]]:
    if value is None:
        return None
    if name in _INT_FIELDS:
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-integer %s value %r", name.value, value)
            return None
    return str(value)


@dataclass(frozen=True)
class ProfileAttributes:
    """One player's profile as returned by the Steam Web API.

    Known fields are typed; anything else the provider sends is kept verbatim
    in `extra` so nothing is lost when the record is written back to the
    session. Field names match the API names so ProfileField values can be
    used directly with getattr().
    """

    steamid: Optional[str] = None
    communityvisibilitystate: Optional[int] = None
    profilestate: Optional[int] = None
    personaname: Optional[str] = None
    profileurl: Optional[str] = None
    avatar: Optional[str] = None
    avatarmedium: Optional[str] = None
    avatarfull: Optional[str] = None
    personastate: Optional[int] = None
    lastlogoff: Optional[int] = None
    timecreated: Optional[int] = None
    realname: Optional[str] = None
    primaryclanid: Optional[str] = None
    loccountrycode: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "ProfileAttributes":
        """Build from one entry of response.players, coercing known fields."""
        known: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in raw.items():
            try:
                name = ProfileField(key)
            except ValueError:
                extra[key] = value
                continue
            known[name.value] = _coerce(name, value)
        return cls(**known, extra=extra)

    def get(self, name: Union[str, ProfileField]) -> Any:
        """Look up a field by API name; unknown names fall back to `extra`."""
        key = name.value if isinstance(name, ProfileField) else name
        if key in _KNOWN_NAMES:
            return getattr(self, key)
        return self.extra.get(key)

    def to_dict(self) -> dict[str, Any]:
        """Return the provider-shaped mapping (non-null known fields + extra)."""
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "extra"}
        data = {k: v for k, v in data.items() if v is not None}
        data.update(self.extra)
        return data

    def is_empty(self) -> bool:
        return not self.to_dict()


_KNOWN_NAMES = frozenset(f.value for f in ProfileField)
