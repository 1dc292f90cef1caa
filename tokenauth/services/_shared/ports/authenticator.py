from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from tokenauth.services._shared.deadline import Deadline

if TYPE_CHECKING:
    from tokenauth.services.authn.dto import Claims, IssuedToken


class Authenticator(Protocol):
    """Port for issuing, verifying and revoking signed tokens."""

    def sign(self, subject: str) -> IssuedToken: ...

    def parse_claims(self, token: str, *, deadline: Deadline | None = None) -> Claims: ...

    def destroy(self, token: str, *, deadline: Deadline | None = None) -> None: ...

    def release(self) -> None: ...
