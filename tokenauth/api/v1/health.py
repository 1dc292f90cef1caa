"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from redis.exceptions import RedisError  # type: ignore[import-untyped]

from tokenauth.api.deps import json_response, timing
from tokenauth.core.extensions import get_authenticator
from tokenauth.infra.redis import RedisRevocationStore

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Return application and revocation store health information."""

    store = get_authenticator().store
    if store is None:
        store_status = "disabled"
    elif isinstance(store, RedisRevocationStore):
        store_status = "ok"
        try:
            store.ping()
        except RedisError:
            current_app.logger.exception("healthcheck.store_error")
            store_status = "fail"
    else:
        store_status = "ok"
    payload = {
        "status": "ok" if store_status != "fail" else "degraded",
        "revocation_store": store_status,
        "version": current_app.config.get("APP_VERSION", "dev"),
    }
    return json_response(payload, status=200 if store_status != "fail" else 503)
