# tokenauth/services/authn/service.py
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

import jwt
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    ImmatureSignatureError,
    InvalidAlgorithmError,
    InvalidSignatureError,
    PyJWTError,
)

from tokenauth.services._shared.deadline import Deadline
from tokenauth.services._shared.ports.authenticator import Authenticator
from tokenauth.services._shared.ports.revocation_store import RevocationStore
from tokenauth.services.authn.dto import Claims, IssuedToken, SigningConfig
from tokenauth.services.authn.errors import REASON_MESSAGES, AuthnError, Reason
from tokenauth.services.authn.messages import Localizer, default_localizer

log = logging.getLogger(__name__)

T = TypeVar("T")

REQUIRED_CLAIMS = ["exp", "iat", "nbf", "sub"]


class JWTAuthenticator(Authenticator):
    """
    Issue, verify and revoke JWTs, consulting an optional revocation store.

    Tokens stay self-contained: authenticity and timing are checked from the
    token alone. When a :class:`RevocationStore` is configured, a token that is
    otherwise valid is rejected if a revocation record exists for it. Records
    expire together with the token, so the store never needs a sweep.

    Without a store the authenticator runs in pure stateless mode and
    :meth:`destroy` is a no-op.

    Concurrency
    -----------
    Instances hold only the immutable :class:`SigningConfig` and the store
    handle, so they are safe to share between threads. A ``parse_claims`` call
    racing a ``destroy`` of the same token may still read "not revoked" right
    before the record lands; revocation is prompt, not instantaneous.
    """

    def __init__(
        self,
        store: RevocationStore | None = None,
        config: SigningConfig | None = None,
        *,
        localize: Localizer = default_localizer,
    ) -> None:
        """
        Initialize the authenticator with its dependencies.

        :param store: Revocation store, or ``None`` for stateless mode.
        :param config: Signing configuration (defaults: HS256, 2h, ``Bearer``).
        :param localize: Maps failure messages to display strings.
        """
        self.store = store
        self.config = config or SigningConfig()
        self.localize = localize
        self._released = False

    # ------------------------------------------------------------------ #
    # Sign
    # ------------------------------------------------------------------ #

    def sign(self, subject: str) -> IssuedToken:
        """
        Issue a new token for ``subject``.

        :param subject: Principal identifier, non-empty.
        :returns: The signed token with its type label and expiry.
        :raises ValueError: If ``subject`` is empty.
        :raises AuthnError: ``SIGNING_FAILED`` when the key/algorithm cannot sign.
        """
        if not isinstance(subject, str) or not subject:
            raise ValueError("subject must be a non-empty string")

        cfg = self.config
        claims = Claims.issue(
            subject=subject,
            issuer=cfg.issuer,
            now=self.now_utc(),
            lifetime=cfg.lifetime,
        )
        try:
            token = jwt.encode(
                claims.to_payload(),
                cfg.signing_key,
                algorithm=cfg.algorithm,
                headers=dict(cfg.extra_headers) or None,
            )
        except (PyJWTError, NotImplementedError, TypeError, ValueError) as exc:
            log.error(
                "authn.sign.failed",
                extra={"subject": subject, "algorithm": cfg.algorithm},
                exc_info=True,
            )
            raise self._error(Reason.SIGNING_FAILED) from exc

        log.info(
            "authn.sign",
            extra={"subject": subject, "expires_at": claims.expires_at.isoformat()},
        )
        return IssuedToken(
            token=token,
            type=cfg.token_type,
            expires_at=int(claims.expires_at.timestamp()),
        )

    # ------------------------------------------------------------------ #
    # Parse
    # ------------------------------------------------------------------ #

    def parse_claims(self, token: str, *, deadline: Deadline | None = None) -> Claims:
        """
        Verify ``token`` and return its claims.

        Security
        --------
        - The algorithm declared by the token must be the configured one, even
          if the signature would verify under another algorithm.
        - ``now`` must fall within ``[nbf, exp]`` (plus configured leeway).
        - A revocation record overrides an otherwise valid token.
        - Store failures reject the token (fail closed).

        :param token: Compact JWS string.
        :param deadline: Bound for the revocation lookup.
        :raises AuthnError: With the specific :class:`Reason`.
        """
        if not token:
            raise self._error(Reason.MALFORMED)

        claims = self._parse_token(token)

        if self.store is not None:
            store = self.store
            revoked = self._call_store("check", lambda: store.check(token, deadline=deadline))
            if revoked:
                log.info("authn.revoked", extra={"subject": claims.subject})
                raise self._error(Reason.REVOKED)
        return claims

    # ------------------------------------------------------------------ #
    # Destroy
    # ------------------------------------------------------------------ #

    def destroy(self, token: str, *, deadline: Deadline | None = None) -> None:
        """
        Revoke ``token`` until its natural expiry.

        Only signature, structure and algorithm are verified: the revocation
        store is not consulted and already expired tokens are accepted (there
        is nothing left to revoke, so no record is written).

        :param token: Compact JWS string.
        :param deadline: Bound for the revocation write.
        :raises AuthnError: On parse failures or ``STORE_FAILURE``.
        """
        if not token:
            raise self._error(Reason.MALFORMED)

        claims = self._parse_token(token, verify_time=False)

        if self.store is None:
            log.debug("authn.destroy.no_store", extra={"subject": claims.subject})
            return

        ttl = claims.remaining(self.now_utc())
        if ttl <= timedelta(0):
            # Near-miss: the token is already naturally invalid.
            log.info(
                "authn.destroy.skipped",
                extra={"subject": claims.subject, "ttl_seconds": ttl.total_seconds()},
            )
            return

        store = self.store
        self._call_store("set", lambda: store.set(token, ttl, deadline=deadline))
        log.info(
            "authn.destroy",
            extra={"subject": claims.subject, "ttl_seconds": round(ttl.total_seconds(), 3)},
        )

    # ------------------------------------------------------------------ #
    # Release
    # ------------------------------------------------------------------ #

    def release(self) -> None:
        """Close the revocation store, if any. Later calls are no-ops."""
        if self.store is None or self._released:
            return
        self._released = True
        self.store.close()
        log.info("authn.release")

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _parse_token(self, token: str, *, verify_time: bool = True) -> Claims:
        cfg = self.config
        try:
            header = jwt.get_unverified_header(token)
        except DecodeError as exc:
            raise self._reject(Reason.MALFORMED, exc) from exc
        declared = header.get("alg")
        if not declared:
            raise self._reject(Reason.MALFORMED, None)

        try:
            key = cfg.resolve_key(header)
        except Exception as exc:
            # Any resolver refusal (unknown kid, foreign alg) is an algorithm rejection.
            raise self._reject(Reason.ALGORITHM_MISMATCH, exc) from exc

        options: dict[str, Any] = {"require": REQUIRED_CLAIMS}
        if not verify_time:
            options.update(verify_exp=False, verify_nbf=False, verify_iat=False)
        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=[cfg.algorithm],
                issuer=cfg.issuer or None,
                leeway=cfg.leeway,
                options=options,
            )
        except ExpiredSignatureError as exc:
            raise self._reject(Reason.EXPIRED, exc) from exc
        except ImmatureSignatureError as exc:
            raise self._reject(Reason.NOT_YET_VALID, exc) from exc
        except InvalidAlgorithmError as exc:
            raise self._reject(Reason.ALGORITHM_MISMATCH, exc) from exc
        except InvalidSignatureError as exc:
            raise self._reject(Reason.INVALID, exc) from exc
        except DecodeError as exc:
            raise self._reject(Reason.MALFORMED, exc) from exc
        except PyJWTError as exc:
            raise self._reject(Reason.INVALID, exc) from exc
        except (TypeError, ValueError) as exc:
            # Resolved key unusable for the configured algorithm.
            raise self._reject(Reason.INVALID, exc) from exc

        # A custom key resolver may accept other algorithms; the configured one wins.
        if declared != cfg.algorithm:
            raise self._reject(Reason.ALGORITHM_MISMATCH, None)
        try:
            return Claims.from_payload(payload)
        except (OverflowError, ValueError, OSError) as exc:
            # Time claims PyJWT accepts as integers may not fit a datetime.
            raise self._reject(Reason.INVALID, exc) from exc

    def _call_store(self, operation: str, fn: Callable[[], T]) -> T:
        """Run a store call; any failure rejects the caller (fail closed)."""
        try:
            return fn()
        except Exception as exc:
            log.warning(
                "authn.store.failed",
                extra={"operation": operation, "error": type(exc).__name__},
                exc_info=True,
            )
            raise self._error(Reason.STORE_FAILURE) from exc

    def _reject(self, reason: Reason, exc: Exception | None) -> AuthnError:
        log.debug(
            "authn.parse.rejected",
            extra={"reason": reason.value, "detail": str(exc) if exc else None},
        )
        return self._error(reason)

    def _error(self, reason: Reason) -> AuthnError:
        return AuthnError(reason, self.localize(REASON_MESSAGES[reason]))

    @staticmethod
    def now_utc() -> datetime:
        return datetime.now(UTC)
