"""Global extension instances and initialization helpers."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import timedelta
from pathlib import Path
from typing import Any

from flask import Flask, current_app, has_app_context, has_request_context, request
from redis.exceptions import RedisError  # type: ignore[import-untyped]

from tokenauth.infra.redis import RedisRevocationStore
from tokenauth.services._shared.ports import InMemoryRevocationStore, RevocationStore
from tokenauth.services.authn import CatalogLocalizer, JWTAuthenticator, SigningConfig

# Global singleton (import-safe); rebuilt by every init_app call.
authenticator: JWTAuthenticator | None = None

BACKENDS = ("redis", "memory", "none")


def _read_key(path: str | None) -> str | None:
    if not path:
        return None
    return Path(path).read_text(encoding="utf-8")


def signing_config_from_mapping(config: Mapping[str, Any]) -> SigningConfig:
    """Build the :class:`SigningConfig` from Flask-style settings.

    Parameters
    ----------
    config: Mapping[str, Any]
        Usually ``app.config``. See :class:`tokenauth.core.config.BaseConfig`
        for the recognised keys.

    Returns
    -------
    SigningConfig
        Validated configuration; invalid algorithm/key combinations raise
        :class:`~tokenauth.services.ConfigurationError` here, at startup.
    """
    private_key = _read_key(config.get("JWT_PRIVATE_KEY_PATH"))
    public_key = _read_key(config.get("JWT_PUBLIC_KEY_PATH"))
    return SigningConfig(
        algorithm=config.get("JWT_ALGORITHM", "HS256"),
        signing_key=private_key or config["JWT_SECRET_KEY"],
        verification_key=public_key,
        issuer=config.get("JWT_ISSUER", ""),
        lifetime=timedelta(seconds=int(config.get("JWT_EXPIRES_SECONDS", 7200))),
        token_type=config.get("JWT_TOKEN_TYPE", "Bearer"),
        extra_headers=dict(config.get("JWT_EXTRA_HEADERS") or {}),
        leeway=timedelta(seconds=int(config.get("JWT_LEEWAY_SECONDS", 0))),
    )


def build_revocation_store(config: Mapping[str, Any]) -> RevocationStore | None:
    """Instantiate the revocation store selected by ``REVOCATION_BACKEND``."""
    backend = str(config.get("REVOCATION_BACKEND") or "none").strip().lower()
    if backend not in BACKENDS:
        raise RuntimeError(f"Unknown REVOCATION_BACKEND {backend!r}; expected one of {BACKENDS}")
    prefix = config.get("REDIS_KEY_PREFIX", "")
    if backend == "memory":
        return InMemoryRevocationStore(prefix=prefix)
    if backend == "none":
        return None

    redis_url = config.get("REDIS_URL")
    if not redis_url:
        raise RuntimeError("REVOCATION_BACKEND=redis requires REDIS_URL")
    store = RedisRevocationStore.from_url(
        redis_url,
        prefix=prefix,
        socket_timeout=config.get("REDIS_SOCKET_TIMEOUT"),
    )
    try:
        store.ping()
    except RedisError as exc:
        raise RuntimeError(f"Failed to connect to Redis at {redis_url!r}") from exc
    return store


def _request_language(languages: list[str]) -> str | None:
    if not has_request_context() or not languages:
        return None
    return request.accept_languages.best_match(languages)


def init_app(app: Flask) -> None:
    """Build the revocation store and the authenticator for ``app``.

    Parameters
    ----------
    app: flask.Flask
        Application whose config drives the signing and store settings. The
        authenticator is exposed as ``app.extensions["authenticator"]``.
    """
    global authenticator

    signing = signing_config_from_mapping(app.config)
    store = build_revocation_store(app.config)
    localizer = CatalogLocalizer(app.config.get("AUTH_TRANSLATIONS") or {})
    languages = localizer.languages
    localizer.language = lambda: _request_language(languages)

    authenticator = JWTAuthenticator(store, signing, localize=localizer)
    app.extensions["authenticator"] = authenticator
    app.logger.info(
        "authn.ready",
        extra={
            "algorithm": signing.algorithm,
            "revocation_backend": type(store).__name__ if store is not None else None,
        },
    )


def get_authenticator() -> JWTAuthenticator:
    """Return the authenticator bound to the current app (or the global one)."""
    found: JWTAuthenticator | None = None
    if has_app_context():
        found = current_app.extensions.get("authenticator")
    found = found or authenticator
    if found is None:
        raise RuntimeError("Authenticator is not initialized. Call init_app() first.")
    return found


def release() -> None:
    """Release the global authenticator's resources (call once at shutdown)."""
    if authenticator is not None:
        authenticator.release()
