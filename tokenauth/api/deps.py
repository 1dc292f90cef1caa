"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar, cast

from flask import Response, current_app, g, jsonify, request

from tokenauth.core.errors import Unauthorized
from tokenauth.core.extensions import get_authenticator
from tokenauth.services._shared.deadline import Deadline
from tokenauth.services.authn import Claims

F = TypeVar("F", bound=Callable[..., Any])


def request_deadline() -> Deadline:
    """Deadline for revocation store calls made on behalf of this request."""
    return Deadline.after(float(current_app.config.get("AUTH_STORE_TIMEOUT_SECONDS", 2.0)))


def bearer_token() -> str:
    """Extract the token from ``Authorization: <type> <token>``.

    :raises Unauthorized: When the header is missing or uses another scheme.
    """
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.strip().partition(" ")
    expected = str(current_app.config.get("JWT_TOKEN_TYPE", "Bearer"))
    if not header:
        raise Unauthorized("Missing Authorization header")
    if scheme.lower() != expected.lower() or not token.strip():
        raise Unauthorized(f"Authorization header must use the {expected} scheme")
    return token.strip()


def require_auth(func: F) -> F:
    """Ensure the request carries a valid, non-revoked token.

    The verified claims and the raw token are stored on ``flask.g`` as
    ``claims`` and ``access_token``.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        token = bearer_token()
        g.claims = get_authenticator().parse_claims(token, deadline=request_deadline())
        g.access_token = token
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def current_claims() -> Claims:
    """Return the claims verified by :func:`require_auth`."""
    return cast(Claims, g.claims)


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
