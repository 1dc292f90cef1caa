"""Message identifiers for authentication failures and the localizer seam.

The engine never formats user-facing text itself: every failure maps to a
:class:`Message` and the configured localizer turns it into a display string.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Message:
    """
    Translatable message.

    :param id: Stable lookup key for translation catalogs.
    :param other: Default (English) text.
    """

    id: str
    other: str


MESSAGE_TOKEN_INVALID = Message("jwt.token.invalid", "Token is invalid")
MESSAGE_TOKEN_EXPIRED = Message("jwt.token.expired", "Token is expired")
MESSAGE_TOKEN_NOT_YET_VALID = Message("jwt.token.not_yet_valid", "Token is not valid yet")
MESSAGE_TOKEN_PARSE_FAIL = Message("jwt.token.parse.failed", "Fail to parse token")
MESSAGE_UNSUPPORTED_SIGNING_METHOD = Message("jwt.token.signing.method", "Wrong signing method")
MESSAGE_TOKEN_REVOKED = Message("jwt.token.revoked", "Token has been revoked")
MESSAGE_SIGN_TOKEN_FAILED = Message("jwt.token.sign.failed", "Failed to sign token")
MESSAGE_STORE_FAILED = Message("jwt.token.store.failed", "Token store unavailable")

Localizer = Callable[[Message], str]


def default_localizer(message: Message) -> str:
    """Return the default text of ``message``."""
    return message.other


class CatalogLocalizer:
    """
    Localizer backed by an in-memory catalog.

    :param translations: ``{language: {message_id: text}}``.
    :param language: Callable returning the language for the current call
        (e.g. derived from the request), or ``None`` for the default text.
    """

    def __init__(
        self,
        translations: Mapping[str, Mapping[str, str]],
        language: Callable[[], str | None] = lambda: None,
    ) -> None:
        self.translations = {lang.lower(): dict(entries) for lang, entries in translations.items()}
        self.language = language

    @property
    def languages(self) -> list[str]:
        return sorted(self.translations)

    def __call__(self, message: Message) -> str:
        lang = self.language()
        if not lang:
            return message.other
        catalog = self.translations.get(lang.lower())
        if catalog is None:
            # "pt-BR" falls back to "pt"
            catalog = self.translations.get(lang.lower().split("-")[0], {})
        return catalog.get(message.id, message.other)
