"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields


class IssuedTokenSchema(Schema):
    """Client-facing representation of an issued token."""

    token = fields.String(required=True)
    type = fields.String(required=True)
    expires_at = fields.Integer(required=True, data_key="expireAt")


class ClaimsSchema(Schema):
    """Response payload exposing the verified claims of the presented token."""

    subject = fields.String(required=True)
    issuer = fields.String(allow_none=True)
    issued_at = fields.DateTime(required=True)
    not_before = fields.DateTime(required=True)
    expires_at = fields.DateTime(required=True)
