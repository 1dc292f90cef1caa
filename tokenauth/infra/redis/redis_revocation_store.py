from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import cast

import redis  # type: ignore[import-untyped]

from tokenauth.services._shared.deadline import Deadline, check_deadline
from tokenauth.services._shared.errors import StoreClosed
from tokenauth.services._shared.ports import RevocationStore, validate_ttl

# Records only need to exist; the value is never read.
PLACEHOLDER = "1"


@dataclass(frozen=True, slots=True)
class RedisStoreConfig:
    """
    Connection settings for :class:`RedisRevocationStore`.

    :param addr: ``host:port`` of the Redis server.
    :param username: ACL user name, if any.
    :param password: Password, if any.
    :param database: Logical database number.
    :param key_prefix: Namespace prepended to every token key.
    :param socket_timeout: Seconds before a network call gives up.
    """

    addr: str = "localhost:6379"
    username: str | None = None
    password: str | None = None
    database: int = 0
    key_prefix: str = ""
    socket_timeout: float | None = 2.0


class RedisRevocationStore(RevocationStore):
    """
    Revocation markers in Redis, keyed ``<prefix><token>`` with a per-key TTL.

    Backend errors (:class:`redis.exceptions.RedisError`) are not caught here;
    the authenticator decides how to surface them.

    :param r: A Redis client (connected lazily by redis-py).
    :param prefix: Namespace for keys in a shared database.
    """

    def __init__(self, r: redis.Redis, *, prefix: str = "") -> None:
        self.r = r
        self.prefix = prefix
        self._closed = False

    @classmethod
    def from_config(cls, cfg: RedisStoreConfig) -> RedisRevocationStore:
        host, _, port = cfg.addr.rpartition(":")
        client = redis.Redis(
            host=host or cfg.addr,
            port=int(port) if host else 6379,
            db=cfg.database,
            username=cfg.username,
            password=cfg.password,
            socket_timeout=cfg.socket_timeout,
            socket_connect_timeout=cfg.socket_timeout,
        )
        return cls(client, prefix=cfg.key_prefix)

    @classmethod
    def from_url(
        cls, url: str, *, prefix: str = "", socket_timeout: float | None = 2.0
    ) -> RedisRevocationStore:
        client = redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client, prefix=prefix)

    def _k(self, token: str) -> str:
        if self._closed:
            raise StoreClosed("revocation store is closed")
        return f"{self.prefix}{token}"

    def set(self, token: str, ttl: timedelta, *, deadline: Deadline | None = None) -> None:
        check_deadline(deadline, "revocation_store.set")
        validate_ttl(ttl)
        # PX keeps sub-second remainders; EX would truncate them to zero.
        ttl_ms = max(1, int(ttl.total_seconds() * 1000))
        self.r.set(self._k(token), PLACEHOLDER, px=ttl_ms)

    def delete(self, token: str, *, deadline: Deadline | None = None) -> bool:
        check_deadline(deadline, "revocation_store.delete")
        return cast(int, self.r.delete(self._k(token))) > 0

    def check(self, token: str, *, deadline: Deadline | None = None) -> bool:
        check_deadline(deadline, "revocation_store.check")
        return cast(int, self.r.exists(self._k(token))) > 0

    def ping(self) -> bool:
        return bool(self.r.ping())

    def close(self) -> None:
        self._closed = True
        self.r.close()
