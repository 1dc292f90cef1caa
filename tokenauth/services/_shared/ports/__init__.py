"""
tokenauth.services._shared.ports
================================

Collection of *ports* (hexagonal interfaces) that define the contracts
for token issuance and revocation infrastructure.

These ports decouple the service layer from concrete implementations
of token signing and revocation storage.

Modules
-------
- :mod:`authenticator`:
    Defines :class:`~.Authenticator`, the abstraction for issuing, verifying and
    revoking signed tokens.

- :mod:`revocation_store`:
    Defines :class:`~.RevocationStore`, TTL-aware storage for revocation
    markers, and :class:`~.InMemoryRevocationStore` for tests and single-process
    deployments.

Design Notes
------------
All these ports follow *Dependency Inversion Principle (DIP)* to keep
the service layer independent from implementation details.
Concrete adapters (e.g., Redis) implement these interfaces under
``tokenauth.infra``.
"""

from __future__ import annotations

from .authenticator import Authenticator
from .revocation_store import InMemoryRevocationStore, RevocationStore, validate_ttl

__all__ = [
    "Authenticator",
    "RevocationStore",
    "InMemoryRevocationStore",
    "validate_ttl",
]
