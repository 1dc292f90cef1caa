"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import ClaimsSchema, IssuedTokenSchema

__all__ = [
    "ClaimsSchema",
    "IssuedTokenSchema",
]
