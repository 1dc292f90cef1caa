"""Redis-backed adapters."""

from __future__ import annotations

from .redis_revocation_store import RedisRevocationStore, RedisStoreConfig

__all__ = ["RedisRevocationStore", "RedisStoreConfig"]
