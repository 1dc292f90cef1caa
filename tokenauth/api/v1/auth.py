"""Authentication endpoints backed by the token authenticator."""

from __future__ import annotations

from flask import Blueprint, Response, g

from tokenauth.api.deps import current_claims, json_response, request_deadline, require_auth, timing
from tokenauth.core.extensions import get_authenticator
from tokenauth.schemas import ClaimsSchema

bp = Blueprint("auth", __name__)

claims_schema = ClaimsSchema()


@bp.get("/whoami")
@require_auth
@timing
def whoami():
    """Return the verified claims of the presented token."""

    return json_response({"data": claims_schema.dump(current_claims())})


@bp.post("/logout")
@require_auth
@timing
def logout():
    """Revoke the presented token until its natural expiry."""

    get_authenticator().destroy(g.access_token, deadline=request_deadline())
    return Response(status=204)
