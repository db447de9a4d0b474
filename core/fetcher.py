"""
fetcher.py -- Steam Web API profile lookups.

One endpoint: ISteamUser/GetPlayerSummaries/v0002. It takes an API key and a
comma-separated list of up to 100 SteamID64s and returns
{"response": {"players": [{...}, ...]}}.

Every failure mode (transport error, non-2xx status, bad JSON, unexpected
shape) resolves to "no profile". Callers cannot tell "unreachable" from
"unknown account" -- a wrapping layer is needed for that. No retries.

The API key travels in the query string, so it must never reach a log line.
requests exceptions embed the full URL in their message; log the exception
type and status only.
"""

import logging
from typing import Any, Iterable, Optional

import requests

from core.config import PLAYER_SUMMARIES_API
from core.models import ProfileAttributes

logger = logging.getLogger("steamsignin.fetcher")

# GetPlayerSummaries rejects requests with more than 100 steamids.
MAX_IDS_PER_REQUEST = 100


class ProfileFetcher:
    """Fetch ProfileAttributes for SteamID64s from the Steam Web API.

    A single requests.Session is kept per fetcher for connection pooling.
    max_redirects=3 replaces the requests default of 30 -- this is one known
    public API, 3 hops is generous.
    """

    def __init__(
        self,
        api_url: str = PLAYER_SUMMARIES_API,
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_url = api_url
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            session.max_redirects = 3
        self._session = session

    def fetch(self, credential: str, identity_key: str) -> Optional[ProfileAttributes]:
        """Return the profile for one SteamID64, or None if none could be fetched."""
        players = self._request(credential, [identity_key])
        return players[0] if players else None

    def fetch_many(self, credential: str, identity_keys: Iterable[str]) -> list[ProfileAttributes]:
        """Return profiles for several SteamID64s.

        Deduplicates input (preserving first-occurrence order) and splits it
        into chunks of MAX_IDS_PER_REQUEST. A failed chunk contributes nothing;
        the provider omits unknown ids, so the result may be shorter than the
        input and is not guaranteed to follow input order.
        """
        seen: set[str] = set()
        deduped: list[str] = []
        for key in identity_keys:
            if key not in seen:
                seen.add(key)
                deduped.append(key)

        results: list[ProfileAttributes] = []
        for start in range(0, len(deduped), MAX_IDS_PER_REQUEST):
            results.extend(self._request(credential, deduped[start : start + MAX_IDS_PER_REQUEST]))
        return results

    def close(self) -> None:
        self._session.close()

    def _request(self, credential: str, identity_keys: list[str]) -> list[ProfileAttributes]:
        if not identity_keys:
            return []
        params = {"key": credential, "steamids": ",".join(identity_keys)}
        try:
            resp = self._session.get(self.api_url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else "unknown"
            logger.warning("Profile fetch for %d id(s) failed: HTTP %s", len(identity_keys), status)
            return []
        except requests.RequestException as e:
            logger.warning("Profile fetch for %d id(s) failed: %s", len(identity_keys), type(e).__name__)
            return []
        except ValueError:
            logger.warning("Profile fetch for %d id(s) returned invalid JSON", len(identity_keys))
            return []

        return _parse_players(body)


def _parse_players(body: Any) -> list[ProfileAttributes]:
    """Pull response.players out of a decoded body, skipping empty entries."""
    if not isinstance(body, dict):
        logger.warning("Unexpected profile response shape: %s", type(body).__name__)
        return []
    response = body.get("response")
    players = response.get("players", []) if isinstance(response, dict) else []
    if not isinstance(players, list):
        logger.warning("Unexpected players shape: %s", type(players).__name__)
        return []

    profiles: list[ProfileAttributes] = []
    for entry in players:
        if not isinstance(entry, dict) or not entry:
            continue
        profiles.append(ProfileAttributes.from_api(entry))
    return profiles
