"""Global pytest fixtures for the tokenauth test-suite."""

from __future__ import annotations

from collections.abc import Callable, Generator
from typing import Any

import fakeredis
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from flask import Flask

from tokenauth import create_app
from tokenauth.core.config import TestingConfig
from tokenauth.infra.redis import RedisRevocationStore
from tokenauth.services import InMemoryRevocationStore, JWTAuthenticator, SigningConfig

TEST_KEY = "tokenauth-unit-test-signing-key-0123456789abcdef"
OTHER_KEY = "tokenauth-some-other-signing-key-fedcba9876543210"


@pytest.fixture()
def signing_config() -> SigningConfig:
    """HS256 configuration with issuer ``svc`` and the default 2h lifetime."""

    return SigningConfig(signing_key=TEST_KEY, issuer="svc")


@pytest.fixture()
def memory_store() -> InMemoryRevocationStore:
    """Provide a fresh in-memory revocation store."""

    return InMemoryRevocationStore()


@pytest.fixture()
def authenticator(
    memory_store: InMemoryRevocationStore, signing_config: SigningConfig
) -> JWTAuthenticator:
    """Authenticator wired to the in-memory store."""

    return JWTAuthenticator(memory_store, signing_config)


@pytest.fixture()
def fake_redis() -> fakeredis.FakeRedis:
    """Provide a fresh FakeRedis instance for each test."""

    r = fakeredis.FakeRedis()
    # ensure a clean starting point
    r.flushall()
    return r


@pytest.fixture()
def redis_store(fake_redis: fakeredis.FakeRedis) -> RedisRevocationStore:
    """Provide a RedisRevocationStore backed by FakeRedis."""

    return RedisRevocationStore(fake_redis, prefix="test:revoked:")


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """RSA key shared by every asymmetric test (generation is slow)."""

    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_private_pem(rsa_private_key: rsa.RSAPrivateKey) -> bytes:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def rsa_public_pem(rsa_private_key: rsa.RSAPrivateKey) -> bytes:
    return rsa_private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@pytest.fixture()
def app() -> Generator[Flask, None, None]:
    """Create a Flask application configured for testing.

    Returns
    -------
    Generator[Flask, None, None]
        Application using :class:`TestingConfig` (in-memory revocation store).
    """

    application = create_app(TestingConfig)
    application.logger.setLevel("WARNING")
    yield application
    application.extensions["authenticator"].release()


@pytest.fixture()
def client(app: Flask) -> Any:
    """Return a Flask test client."""

    return app.test_client()


@pytest.fixture()
def issue_token(app: Flask) -> Callable[[str], str]:
    """Sign a token for ``subject`` with the app's authenticator."""

    def _issue(subject: str = "user-42") -> str:
        return app.extensions["authenticator"].sign(subject).token

    return _issue


@pytest.fixture()
def freeze_time() -> Callable[[str | None], Any]:
    """Factory returning :func:`freezegun.freeze_time`.

    Examples
    --------
    >>> def test_with_frozen_time(freeze_time):
    ...     with freeze_time("2024-01-01") as frozen:
    ...         frozen.tick(60)
    """

    from freezegun import freeze_time as _freeze_time

    def _factory(target: str | None = None) -> Any:
        return _freeze_time(target or "2024-01-01 12:00:00")

    return _factory
