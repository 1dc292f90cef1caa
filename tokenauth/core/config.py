"""Application settings with environment-based simple classes."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from typing import Any, Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'


# Load .env in development (no-op when the file is missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_json(name: str, default: Any) -> Any:
    """Parse a JSON document from an environment variable, or return ``default``."""
    val = os.getenv(name)
    if not val:
        return default
    return json.loads(val)


def _default_backend() -> str:
    return "redis" if os.getenv("REDIS_URL") else "none"


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    JWT_ALGORITHM: str
        JWS algorithm used to sign and verify tokens.
    JWT_SECRET_KEY: str
        HMAC secret. Ignored when ``JWT_PRIVATE_KEY_PATH`` is set.
    JWT_PRIVATE_KEY_PATH / JWT_PUBLIC_KEY_PATH: str | None
        PEM files for asymmetric algorithms. The public key is derived from the
        private one when omitted.
    JWT_ISSUER: str
        ``iss`` claim stamped on tokens and verified on parse.
    JWT_EXPIRES_SECONDS: int
        Token lifetime in seconds (two hours by default).
    JWT_TOKEN_TYPE: str
        Label returned with issued tokens and expected in ``Authorization``.
    JWT_LEEWAY_SECONDS: int
        Clock-skew tolerance for time claims.
    JWT_EXTRA_HEADERS: dict
        Additional JOSE header fields (JSON in the environment).
    REVOCATION_BACKEND: str
        ``redis``, ``memory`` or ``none`` (stateless, no revocation).
    REDIS_URL: str | None
        Connection URL for the Redis revocation store.
    REDIS_KEY_PREFIX: str
        Namespace for revocation keys in a shared Redis database.
    REDIS_SOCKET_TIMEOUT: float
        Seconds before a Redis network call gives up.
    AUTH_STORE_TIMEOUT_SECONDS: float
        Per-request deadline for revocation store calls.
    AUTH_TRANSLATIONS: dict
        ``{language: {message_id: text}}`` for localized error messages.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    DEBUG: bool
        Toggles Flask debug mode.
    TESTING: bool
        Enables Flask testing mode when ``True``.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Signing
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "tokenauth-development-signing-key-change-me")
    JWT_PRIVATE_KEY_PATH = os.getenv("JWT_PRIVATE_KEY_PATH")
    JWT_PUBLIC_KEY_PATH = os.getenv("JWT_PUBLIC_KEY_PATH")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "")
    JWT_EXPIRES_SECONDS = int(os.getenv("JWT_EXPIRES_SECONDS", "7200"))
    JWT_TOKEN_TYPE = os.getenv("JWT_TOKEN_TYPE", "Bearer")
    JWT_LEEWAY_SECONDS = int(os.getenv("JWT_LEEWAY_SECONDS", "0"))
    JWT_EXTRA_HEADERS: dict[str, Any] = env_json("JWT_EXTRA_HEADERS", {})

    # Revocation store
    REVOCATION_BACKEND = os.getenv("REVOCATION_BACKEND", _default_backend())
    REDIS_URL = os.getenv("REDIS_URL")
    REDIS_KEY_PREFIX = os.getenv("REDIS_KEY_PREFIX", "jwt:revoked:")
    REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", "2.0"))
    AUTH_STORE_TIMEOUT_SECONDS = float(os.getenv("AUTH_STORE_TIMEOUT_SECONDS", "2.0"))

    # Localization
    AUTH_TRANSLATIONS: dict[str, dict[str, str]] = env_json("AUTH_TRANSLATIONS", {})

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and falls back to the in-memory revocation
    store so logout works without a Redis server.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    REVOCATION_BACKEND = os.getenv("REVOCATION_BACKEND", "redis" if os.getenv("REDIS_URL") else "memory")


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses the in-memory revocation store unless ``TEST_REDIS_URL`` is set.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    DEBUG = False
    REDIS_URL = os.getenv("TEST_REDIS_URL")
    REVOCATION_BACKEND = "redis" if os.getenv("TEST_REDIS_URL") else "memory"
    JWT_SECRET_KEY = "tokenauth-testing-signing-key-0123456789"
    JWT_ISSUER = "tokenauth-tests"
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug disabled; revocation requires ``REDIS_URL`` (otherwise the
    service runs stateless and logout cannot revoke).
    """

    DEBUG = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
