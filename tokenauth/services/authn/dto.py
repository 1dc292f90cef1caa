# tokenauth/services/authn/dto.py
from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from types import MappingProxyType
from typing import Any

from jwt.algorithms import Algorithm, HMACAlgorithm, get_default_algorithms
from jwt.exceptions import InvalidAlgorithmError, InvalidKeyError

from tokenauth.schemas.auth import IssuedTokenSchema
from tokenauth.services._shared.errors import ConfigurationError

DEFAULT_ALGORITHM = "HS256"
DEFAULT_SIGNING_KEY = "tokenauth-development-signing-key-change-me"
DEFAULT_LIFETIME = timedelta(hours=2)
MAX_LIFETIME = timedelta(days=366)
DEFAULT_TOKEN_TYPE = "Bearer"

# Header fields PyJWT owns; letting callers override them would break verification.
RESERVED_HEADERS = frozenset({"alg"})

KeyResolver = Callable[[Mapping[str, Any]], Any]

_issued_token_schema = IssuedTokenSchema()


# ------------------------ Config DTO ------------------------------------- #


@dataclass(frozen=True, slots=True)
class SigningConfig:
    """
    Token signing configuration, validated once at construction.

    :param algorithm: JWS algorithm name (e.g. ``"HS256"``, ``"RS256"``).
    :param signing_key: Secret (HMAC) or private key (PEM or key object).
    :param verification_key: Key used to verify signatures. Defaults to the
        signing key for HMAC and to its public half for asymmetric algorithms.
    :param key_resolver: Optional ``header -> key`` callable used at verify
        time. The default one rejects every algorithm but ``algorithm``.
    :param issuer: Value of the ``iss`` claim; verified when non-empty.
    :param lifetime: Token lifetime (one second up to :data:`MAX_LIFETIME`).
    :param token_type: Display label returned with issued tokens.
    :param extra_headers: Additional JOSE header fields stamped on tokens.
    :param leeway: Clock-skew tolerance applied to time claims.
    :raises ConfigurationError: If the algorithm/key combination is unusable.
    """

    algorithm: str = DEFAULT_ALGORITHM
    signing_key: Any = DEFAULT_SIGNING_KEY
    verification_key: Any = None
    key_resolver: KeyResolver | None = None
    issuer: str = ""
    lifetime: timedelta = DEFAULT_LIFETIME
    token_type: str = DEFAULT_TOKEN_TYPE
    extra_headers: Mapping[str, Any] = field(default_factory=dict)
    leeway: timedelta = timedelta(0)

    def __post_init__(self) -> None:
        impl = self._algorithm_impl()
        try:
            prepared = impl.prepare_key(self.signing_key)
            # Probe signature: catches public keys and wrong key families up front.
            impl.sign(b"tokenauth", prepared)
        except (InvalidKeyError, TypeError, ValueError, AttributeError) as exc:
            raise ConfigurationError(
                f"Signing key is not usable with algorithm {self.algorithm!r}: {exc}"
            ) from exc

        if not timedelta(seconds=1) <= self.lifetime <= MAX_LIFETIME:
            raise ConfigurationError(
                f"Token lifetime must be between one second and {MAX_LIFETIME.days} days"
            )
        if self.leeway < timedelta(0):
            raise ConfigurationError("Leeway must not be negative")
        if not self.token_type:
            raise ConfigurationError("Token type label must not be empty")
        reserved = RESERVED_HEADERS.intersection(self.extra_headers)
        if reserved:
            raise ConfigurationError(f"Extra headers must not override {sorted(reserved)}")

        if self.verification_key is None:
            object.__setattr__(self, "verification_key", self._derive_verification_key(impl, prepared))
        object.__setattr__(self, "extra_headers", MappingProxyType(dict(self.extra_headers)))

    def _algorithm_impl(self) -> Algorithm:
        if self.algorithm.lower() == "none":
            raise ConfigurationError("Unsigned tokens ('none' algorithm) are not supported")
        impl = get_default_algorithms().get(self.algorithm)
        if impl is None:
            raise ConfigurationError(f"Unsupported signing algorithm: {self.algorithm!r}")
        return impl

    def _derive_verification_key(self, impl: Algorithm, prepared: Any) -> Any:
        if isinstance(impl, HMACAlgorithm):
            return self.signing_key
        public_key = getattr(prepared, "public_key", None)
        return public_key() if callable(public_key) else prepared

    def resolve_key(self, header: Mapping[str, Any]) -> Any:
        """
        Return the verification key for a token with the given header.

        :raises InvalidAlgorithmError: If the header declares another algorithm.
        """
        if self.key_resolver is not None:
            return self.key_resolver(header)
        declared = header.get("alg")
        if declared != self.algorithm:
            raise InvalidAlgorithmError(
                f"Token algorithm {declared!r} does not match configured {self.algorithm!r}"
            )
        return self.verification_key


# ------------------------ Claims ----------------------------------------- #


def _numeric_date(value: datetime) -> int:
    return int(value.timestamp())


def _from_numeric_date(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value), tz=UTC)


@dataclass(frozen=True, slots=True)
class Claims:
    """
    Registered claims carried by a token.

    :ivar subject: Principal the token is about (``sub``).
    :ivar issuer: Token issuer (``iss``); empty when not configured.
    :ivar issued_at: Issuance instant (``iat``).
    :ivar not_before: Start of validity (``nbf``).
    :ivar expires_at: End of validity (``exp``).
    """

    subject: str
    issuer: str
    issued_at: datetime
    not_before: datetime
    expires_at: datetime

    @classmethod
    def issue(cls, *, subject: str, issuer: str, now: datetime, lifetime: timedelta) -> Claims:
        """Build claims from a single ``now`` so ``iat <= nbf <= exp`` holds."""
        # NumericDate has second granularity.
        now = now.replace(microsecond=0)
        expires_at = (now + lifetime).replace(microsecond=0)
        return cls(
            subject=subject,
            issuer=issuer,
            issued_at=now,
            not_before=now,
            expires_at=expires_at,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "sub": self.subject,
            "iat": _numeric_date(self.issued_at),
            "nbf": _numeric_date(self.not_before),
            "exp": _numeric_date(self.expires_at),
        }
        if self.issuer:
            payload["iss"] = self.issuer
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Claims:
        return cls(
            subject=str(payload["sub"]),
            issuer=str(payload.get("iss") or ""),
            issued_at=_from_numeric_date(payload["iat"]),
            not_before=_from_numeric_date(payload["nbf"]),
            expires_at=_from_numeric_date(payload["exp"]),
        )

    def remaining(self, now: datetime) -> timedelta:
        """Time left until natural expiry (negative once expired)."""
        return self.expires_at - now


# --------------------------- Output DTOs --------------------------------- #


@dataclass(frozen=True, slots=True)
class IssuedToken:
    """
    Value returned to callers after signing.

    :param token: Signed compact JWS string.
    :type token: str
    :param type: Display label (e.g. ``"Bearer"``).
    :type type: str
    :param expires_at: Expiry as Unix seconds (copy of ``exp``).
    :type expires_at: int
    """

    token: str
    type: str
    expires_at: int

    def to_dict(self) -> dict[str, Any]:
        return dict(_issued_token_schema.dump(self))

    def encode_to_json(self) -> str:
        return _issued_token_schema.dumps(self)
