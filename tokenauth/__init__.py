"""Revocable stateless-token authentication.

Provide convenient access to :func:`tokenauth.factory.create_app` and the
authenticator core so callers can ``from tokenauth import JWTAuthenticator``
without traversing the package structure.
"""

from __future__ import annotations

from .factory import create_app
from .services import (
    AuthnError,
    Claims,
    Deadline,
    InMemoryRevocationStore,
    IssuedToken,
    JWTAuthenticator,
    Reason,
    RevocationStore,
    SigningConfig,
)

__all__ = [
    "create_app",
    "JWTAuthenticator",
    "SigningConfig",
    "Claims",
    "IssuedToken",
    "AuthnError",
    "Reason",
    "RevocationStore",
    "InMemoryRevocationStore",
    "Deadline",
]
