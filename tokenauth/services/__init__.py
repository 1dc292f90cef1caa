"""Service layer public API.

This package exposes the essential building blocks for the service layer so that
callers can import from :mod:`tokenauth.services` without knowing internal structure.

Re-exports
----------
- Authenticator (from ``tokenauth.services.authn``)
    * :class:`JWTAuthenticator`
    * DTOs: :class:`SigningConfig`, :class:`Claims`, :class:`IssuedToken`
    * Errors: :class:`AuthnError`, :class:`Reason`

- Ports (from ``tokenauth.services._shared.ports``)
    * :class:`Authenticator`
    * :class:`RevocationStore`, :class:`InMemoryRevocationStore`

- Shared primitives (from ``tokenauth.services._shared``)
    * :class:`Deadline`
    * :class:`ServiceError`, :class:`DeadlineExceeded`, :class:`ConfigurationError`,
      :class:`StoreClosed`
"""

from __future__ import annotations

from ._shared.deadline import Deadline
from ._shared.errors import ConfigurationError, DeadlineExceeded, ServiceError, StoreClosed
from ._shared.ports import Authenticator, InMemoryRevocationStore, RevocationStore
from .authn import AuthnError, Claims, IssuedToken, JWTAuthenticator, Reason, SigningConfig

__all__ = [
    "JWTAuthenticator",
    "SigningConfig",
    "Claims",
    "IssuedToken",
    "AuthnError",
    "Reason",
    "Authenticator",
    "RevocationStore",
    "InMemoryRevocationStore",
    "Deadline",
    "ServiceError",
    "DeadlineExceeded",
    "ConfigurationError",
    "StoreClosed",
]
