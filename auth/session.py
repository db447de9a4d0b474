"""
auth/session.py -- SessionStore: the per-browser-session home of the SessionRecord.

The store is an explicit collaborator handed to the validator and the identity
helpers. In the app it wraps Starlette's request.session (a dict serialized into
a signed cookie by SessionMiddleware); in tests it wraps a plain dict.

No locking. Starlette rewrites the whole cookie on every response, so two
concurrent requests from one browser are last-writer-wins. A caller that runs
reload() alongside logout() for the same browser must serialize them itself.

Credential handling [M8]: Starlette's session cookie is signed but readable by
the browser. Unless persist_credential is set, the API key is left out of the
cookie and restored from default_credential on load.
"""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from typing import Any

from auth.models import SessionRecord

logger = logging.getLogger("steamsignin.auth.session")

SESSION_KEY = "steam_auth"


class SessionStore:
    def __init__(
        self,
        session: MutableMapping[str, Any],
        default_credential: str | None = None,
        persist_credential: bool = False,
    ) -> None:
        self._session = session
        self.default_credential = default_credential
        self.persist_credential = persist_credential

    def load(self) -> SessionRecord | None:
        """Return the stored record, or None if there is none or it is unreadable."""
        data = self._session.get(SESSION_KEY)
        if data is None:
            return None
        record = SessionRecord.from_session(data)
        if record is None:
            logger.warning("Discarding unreadable session record")
            return None
        if not record.credential:
            record.credential = self.default_credential
        return record

    def save(self, record: SessionRecord) -> None:
        """Replace the stored record wholesale."""
        self._session[SESSION_KEY] = record.to_session(include_credential=self.persist_credential)

    def clear(self) -> None:
        self._session.pop(SESSION_KEY, None)

    def is_logged_in(self) -> bool:
        record = self.load()
        return record is not None and record.valid
