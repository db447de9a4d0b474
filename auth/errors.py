"""
auth/errors.py -- Exceptions raised at the point of use.

Validation failures on the return endpoint are NOT exceptions -- they are
accumulated as AuthError codes on the AssertionResult. Only failures with no
meaningful continuation are raised.
"""

from __future__ import annotations


class ProtocolSetupError(Exception):
    """The OpenID authentication URL could not be built.

    Raised for a malformed realm, a failed provider discovery, or any error the
    OpenID library reports while assembling the request.
    """


class TimestampUnavailable(LookupError):
    """A timestamp accessor was called but the profile has no such field.

    Steam omits lastlogoff and timecreated for some private profiles.
    """

    def __init__(self, attribute: str) -> None:
        super().__init__(f"Profile has no {attribute!r} timestamp")
        self.attribute = attribute
