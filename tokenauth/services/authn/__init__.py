"""Token issuance, verification and revocation."""

from __future__ import annotations

from .dto import Claims, IssuedToken, SigningConfig
from .errors import AuthnError, Reason
from .messages import CatalogLocalizer, Localizer, Message, default_localizer
from .service import JWTAuthenticator

__all__ = [
    "JWTAuthenticator",
    "SigningConfig",
    "Claims",
    "IssuedToken",
    "AuthnError",
    "Reason",
    "Message",
    "Localizer",
    "CatalogLocalizer",
    "default_localizer",
]
