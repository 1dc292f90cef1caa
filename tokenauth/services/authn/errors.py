"""Authentication failure taxonomy.

Every failure is surfaced to callers as one class, :class:`AuthnError`; the
``reason`` attribute is the stable machine-readable code. Transports must not
vary their status by reason.
"""

from __future__ import annotations

from enum import StrEnum

from tokenauth.services._shared.errors import ServiceError
from tokenauth.services.authn.messages import (
    MESSAGE_SIGN_TOKEN_FAILED,
    MESSAGE_STORE_FAILED,
    MESSAGE_TOKEN_EXPIRED,
    MESSAGE_TOKEN_INVALID,
    MESSAGE_TOKEN_NOT_YET_VALID,
    MESSAGE_TOKEN_PARSE_FAIL,
    MESSAGE_TOKEN_REVOKED,
    MESSAGE_UNSUPPORTED_SIGNING_METHOD,
    Message,
)


class Reason(StrEnum):
    """Stable reason codes for authentication failures."""

    MALFORMED = "token_malformed"
    EXPIRED = "token_expired"
    NOT_YET_VALID = "token_not_yet_valid"
    ALGORITHM_MISMATCH = "algorithm_mismatch"
    REVOKED = "token_revoked"
    SIGNING_FAILED = "signing_failed"
    STORE_FAILURE = "store_failure"
    INVALID = "token_invalid"


REASON_MESSAGES: dict[Reason, Message] = {
    Reason.MALFORMED: MESSAGE_TOKEN_INVALID,
    Reason.EXPIRED: MESSAGE_TOKEN_EXPIRED,
    Reason.NOT_YET_VALID: MESSAGE_TOKEN_NOT_YET_VALID,
    Reason.ALGORITHM_MISMATCH: MESSAGE_UNSUPPORTED_SIGNING_METHOD,
    Reason.REVOKED: MESSAGE_TOKEN_REVOKED,
    Reason.SIGNING_FAILED: MESSAGE_SIGN_TOKEN_FAILED,
    Reason.STORE_FAILURE: MESSAGE_STORE_FAILED,
    Reason.INVALID: MESSAGE_TOKEN_PARSE_FAIL,
}


class AuthnError(ServiceError):
    """
    Raised for every rejected sign/parse/destroy call.

    :param reason: Stable reason code.
    :param message: Display text, already localized by the caller's localizer.
        Defaults to the English text of the reason's message.
    """

    def __init__(self, reason: Reason, message: str | None = None) -> None:
        self.reason = reason
        self.message = message or REASON_MESSAGES[reason].other
        super().__init__(self.message)

    @property
    def message_id(self) -> str:
        return REASON_MESSAGES[self.reason].id

    @property
    def retryable(self) -> bool:
        """Only store failures can succeed on a later attempt."""
        return self.reason is Reason.STORE_FAILURE

    def __repr__(self) -> str:
        return f"AuthnError(reason={self.reason.value!r}, message={self.message!r})"
