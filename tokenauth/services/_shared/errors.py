"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and should never import or depend
on Flask or HTTP directly. They serve as stable contracts between the token
engine, the revocation stores and their callers.

The translation to HTTP responses (RFC 7807) is handled by
``tokenauth/core/errors.py``.
"""

from __future__ import annotations

from dataclasses import dataclass

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from stores or the token engine.
    - The API layer later translates them to problem responses.
    """

    pass


# --------------------------------------------------------------------------- #
# Specific service-level errors
# --------------------------------------------------------------------------- #


class ConfigurationError(ServiceError, ValueError):
    """
    Raised at startup when the signing configuration is unusable.

    Subclasses :class:`ValueError` so plain validation call sites keep working.
    """


@dataclass(slots=True)
class DeadlineExceeded(ServiceError):
    """
    Raised when a caller's deadline passed (or was cancelled) before a store call.

    :param operation: Name of the operation that was refused.
    :type operation: str
    :param cancelled: ``True`` when the deadline was cancelled explicitly.
    :type cancelled: bool
    """

    operation: str
    cancelled: bool = False

    def __str__(self) -> str:  # pragma: no cover
        cause = "cancelled" if self.cancelled else "deadline exceeded"
        return f"{self.operation}: {cause}"


class StoreClosed(ServiceError):
    """Raised when a revocation store is used after :meth:`close`."""
