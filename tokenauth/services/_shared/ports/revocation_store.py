from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol

from tokenauth.services._shared.deadline import Deadline, check_deadline
from tokenauth.services._shared.errors import StoreClosed


class RevocationStore(Protocol):
    """
    Abstraction over a TTL-capable key/value store holding revocation markers.

    Keys are the exact signed token strings (optionally namespaced by a
    store-wide prefix). A ``set`` followed by ``check`` on the same instance
    MUST observe the record. Every call accepts an explicit ``deadline``;
    implementations refuse to start work once it has passed.
    """

    def set(self, token: str, ttl: timedelta, *, deadline: Deadline | None = None) -> None:
        """Create or overwrite a record that expires after ``ttl`` (must be positive)."""

    def delete(self, token: str, *, deadline: Deadline | None = None) -> bool:
        """Remove a record. :returns: True if it existed."""

    def check(self, token: str, *, deadline: Deadline | None = None) -> bool:
        """Existence check only."""

    def close(self) -> None:
        """Release backend resources. Later calls raise :class:`StoreClosed`."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


def validate_ttl(ttl: timedelta) -> None:
    """Reject TTLs that would create a record without a usable expiry."""
    if ttl <= timedelta(0):
        raise ValueError(f"ttl must be positive, got {ttl!r}")


class InMemoryRevocationStore(RevocationStore):
    """
    In-memory revocation store with lazy expiry on read.

    Expired entries are dropped when looked up and swept on every write, so the
    map never grows beyond the set of live revocations.

    .. note::
       Uses a threading lock so it can back concurrent unit tests.
    """

    def __init__(self, *, prefix: str = "", clock: Callable[[], datetime] = _utcnow) -> None:
        self._prefix = prefix
        self._clock = clock
        self._records: dict[str, datetime] = {}
        self._lock = threading.Lock()
        self._closed = False

    # ------------------------- helpers -------------------------

    def _k(self, token: str) -> str:
        if self._closed:
            raise StoreClosed("revocation store is closed")
        return f"{self._prefix}{token}"

    def _alive(self, key: str, now: datetime) -> bool:
        expires_at = self._records.get(key)
        if expires_at is None:
            return False
        if expires_at <= now:
            del self._records[key]
            return False
        return True

    def _sweep(self, now: datetime) -> None:
        for key in [k for k, exp in self._records.items() if exp <= now]:
            del self._records[key]

    # -------------------------- API ----------------------------

    def set(self, token: str, ttl: timedelta, *, deadline: Deadline | None = None) -> None:
        check_deadline(deadline, "revocation_store.set")
        validate_ttl(ttl)
        with self._lock:
            now = self._clock()
            self._sweep(now)
            self._records[self._k(token)] = now + ttl

    def delete(self, token: str, *, deadline: Deadline | None = None) -> bool:
        check_deadline(deadline, "revocation_store.delete")
        key = self._k(token)
        with self._lock:
            existed = self._alive(key, self._clock())
            self._records.pop(key, None)
            return existed

    def check(self, token: str, *, deadline: Deadline | None = None) -> bool:
        check_deadline(deadline, "revocation_store.check")
        with self._lock:
            return self._alive(self._k(token), self._clock())

    def ttl(self, token: str) -> timedelta | None:
        """Remaining lifetime of a record (test helper); ``None`` when absent."""
        with self._lock:
            now = self._clock()
            key = self._k(token)
            if not self._alive(key, now):
                return None
            return self._records[key] - now

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            self._sweep(self._clock())
            return len(self._records)
