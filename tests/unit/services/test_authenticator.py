# tests/unit/services/test_authenticator.py
from __future__ import annotations

import hashlib
import hmac
import json
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta

import jwt
import pytest
from jwt.utils import base64url_encode
from redis.exceptions import ConnectionError as RedisConnectionError

from tokenauth.services import (
    AuthnError,
    Deadline,
    DeadlineExceeded,
    InMemoryRevocationStore,
    JWTAuthenticator,
    Reason,
    SigningConfig,
    StoreClosed,
)
from tokenauth.services.authn import CatalogLocalizer

TEST_KEY = "tokenauth-unit-test-signing-key-0123456789abcdef"
OTHER_KEY = "tokenauth-some-other-signing-key-fedcba9876543210"


# ------------------------------ Doubles ----------------------------------- #
class RecordingStore(InMemoryRevocationStore):
    """In-memory store that records every call made through the port."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[str] = []

    def set(self, token, ttl, *, deadline=None):
        self.calls.append("set")
        return super().set(token, ttl, deadline=deadline)

    def check(self, token, *, deadline=None):
        self.calls.append("check")
        return super().check(token, deadline=deadline)

    def close(self):
        self.calls.append("close")
        return super().close()


class FailingStore(InMemoryRevocationStore):
    """Store whose network calls always fail."""

    def set(self, token, ttl, *, deadline=None):
        raise RedisConnectionError("connection refused")

    def check(self, token, *, deadline=None):
        raise RedisConnectionError("connection refused")


def _claims_payload(now: datetime, *, lifetime: timedelta = timedelta(hours=2)) -> dict:
    ts = int(now.timestamp())
    return {
        "sub": "user-42",
        "iss": "svc",
        "iat": ts,
        "nbf": ts,
        "exp": ts + int(lifetime.total_seconds()),
    }


def _reason(excinfo: pytest.ExceptionInfo[AuthnError]) -> Reason:
    return excinfo.value.reason


# ------------------------------ Sign / parse ------------------------------ #
def test_sign_then_parse_round_trip(authenticator):
    """Parsing a freshly issued token yields the signed subject."""
    issued = authenticator.sign("user-42")

    claims = authenticator.parse_claims(issued.token)

    assert claims.subject == "user-42"
    assert claims.issuer == "svc"
    assert claims.issued_at == claims.not_before <= claims.expires_at
    assert issued.expires_at == int(claims.expires_at.timestamp())


@pytest.mark.parametrize("subject", ["1", "user-42", "ünïcødé", "a" * 256])
def test_round_trip_preserves_any_subject(authenticator, subject):
    assert authenticator.parse_claims(authenticator.sign(subject).token).subject == subject


def test_two_hour_lifecycle_sign_revoke_expire(authenticator, memory_store, freeze_time):
    """
    Full lifecycle with a 2h lifetime:

    - sign -> Bearer token expiring at iat + 7200
    - parse within the window -> subject
    - destroy -> parse reports REVOKED
    - after natural expiry the record is gone -> parse reports EXPIRED
    """
    with freeze_time("2024-01-01 12:00:00") as frozen:
        issued = authenticator.sign("user-42")
        claims = authenticator.parse_claims(issued.token)

        assert issued.type == "Bearer"
        assert issued.expires_at == int(claims.issued_at.timestamp()) + 7200
        assert claims.subject == "user-42"

        authenticator.destroy(issued.token)
        with pytest.raises(AuthnError) as exc:
            authenticator.parse_claims(issued.token)
        assert _reason(exc) is Reason.REVOKED

        frozen.tick(timedelta(hours=2, seconds=1))
        assert memory_store.check(issued.token) is False
        with pytest.raises(AuthnError) as exc:
            authenticator.parse_claims(issued.token)
        assert _reason(exc) is Reason.EXPIRED


def test_token_valid_until_last_second_then_expired(authenticator, freeze_time):
    """Valid for every instant in [iat, exp); EXPIRED from exp on."""
    with freeze_time("2024-01-01 12:00:00") as frozen:
        issued = authenticator.sign("user-42")

        frozen.tick(timedelta(hours=2) - timedelta(seconds=1))
        assert authenticator.parse_claims(issued.token).subject == "user-42"

        frozen.tick(timedelta(seconds=1))
        with pytest.raises(AuthnError) as exc:
            authenticator.parse_claims(issued.token)
        assert _reason(exc) is Reason.EXPIRED


def test_token_from_the_future_is_not_yet_valid(authenticator, freeze_time):
    with freeze_time("2024-01-01 12:00:00") as frozen:
        issued = authenticator.sign("user-42")
        frozen.move_to("2024-01-01 11:59:00")

        with pytest.raises(AuthnError) as exc:
            authenticator.parse_claims(issued.token)
        assert _reason(exc) is Reason.NOT_YET_VALID


def test_leeway_tolerates_small_clock_skew(memory_store, freeze_time):
    auth = JWTAuthenticator(
        memory_store, SigningConfig(signing_key=TEST_KEY, leeway=timedelta(seconds=30))
    )
    with freeze_time("2024-01-01 12:00:00") as frozen:
        issued = auth.sign("user-42")
        frozen.move_to("2024-01-01 11:59:45")
        assert auth.parse_claims(issued.token).subject == "user-42"


def test_extra_headers_are_stamped_on_issued_tokens(memory_store):
    auth = JWTAuthenticator(
        memory_store, SigningConfig(signing_key=TEST_KEY, extra_headers={"kid": "key-2024"})
    )

    header = jwt.get_unverified_header(auth.sign("user-42").token)

    assert header["kid"] == "key-2024"
    assert header["alg"] == "HS256"


def test_sign_rejects_empty_subject(authenticator):
    with pytest.raises(ValueError):
        authenticator.sign("")


def test_sign_failure_surfaces_signing_failed(memory_store):
    """Headers that cannot be encoded make signing fail without retries."""
    auth = JWTAuthenticator(
        memory_store, SigningConfig(signing_key=TEST_KEY, extra_headers={"x5u": object()})
    )

    with pytest.raises(AuthnError) as exc:
        auth.sign("user-42")
    assert _reason(exc) is Reason.SIGNING_FAILED
    assert exc.value.__cause__ is not None


def test_rs256_round_trip_derives_public_key(memory_store, rsa_private_pem):
    auth = JWTAuthenticator(memory_store, SigningConfig(algorithm="RS256", signing_key=rsa_private_pem))

    issued = auth.sign("user-42")

    assert jwt.get_unverified_header(issued.token)["alg"] == "RS256"
    assert auth.parse_claims(issued.token).subject == "user-42"


# ------------------------------ Malformed / invalid ----------------------- #
def test_empty_token_is_malformed_without_store_lookup(signing_config):
    store = RecordingStore()
    auth = JWTAuthenticator(store, signing_config)

    with pytest.raises(AuthnError) as exc:
        auth.parse_claims("")

    assert _reason(exc) is Reason.MALFORMED
    assert store.calls == []


@pytest.mark.parametrize("garbage", ["abc", "a.b", "not.a.token", "a.b.c.d", "..."])
def test_garbage_is_malformed(authenticator, garbage):
    with pytest.raises(AuthnError) as exc:
        authenticator.parse_claims(garbage)
    assert _reason(exc) is Reason.MALFORMED


def test_token_signed_with_another_key_is_invalid(authenticator):
    forged = JWTAuthenticator(None, SigningConfig(signing_key=OTHER_KEY, issuer="svc"))

    with pytest.raises(AuthnError) as exc:
        authenticator.parse_claims(forged.sign("user-42").token)
    assert _reason(exc) is Reason.INVALID


def test_token_from_another_issuer_is_invalid(authenticator):
    other = JWTAuthenticator(None, SigningConfig(signing_key=TEST_KEY, issuer="other"))

    with pytest.raises(AuthnError) as exc:
        authenticator.parse_claims(other.sign("user-42").token)
    assert _reason(exc) is Reason.INVALID


def test_token_missing_required_claims_is_invalid(authenticator):
    token = jwt.encode({"sub": "user-42", "iss": "svc"}, TEST_KEY, algorithm="HS256")

    with pytest.raises(AuthnError) as exc:
        authenticator.parse_claims(token)
    assert _reason(exc) is Reason.INVALID


# ------------------------------ Algorithm confusion ----------------------- #
def test_other_hmac_algorithm_is_rejected(authenticator):
    """Same key, HS512 instead of HS256: signature is fine, algorithm is not."""
    token = jwt.encode(_claims_payload(datetime.now(UTC)), TEST_KEY, algorithm="HS512")

    with pytest.raises(AuthnError) as exc:
        authenticator.parse_claims(token)
    assert _reason(exc) is Reason.ALGORITHM_MISMATCH


def test_unsigned_token_is_rejected(authenticator):
    token = jwt.encode(_claims_payload(datetime.now(UTC)), None, algorithm="none")

    with pytest.raises(AuthnError) as exc:
        authenticator.parse_claims(token)
    assert _reason(exc) is Reason.ALGORITHM_MISMATCH


def test_public_key_used_as_hmac_secret_is_rejected(memory_store, rsa_private_pem, rsa_public_pem):
    """Classic RS256 -> HS256 confusion: HMAC keyed with the public PEM."""
    auth = JWTAuthenticator(memory_store, SigningConfig(algorithm="RS256", signing_key=rsa_private_pem))
    header = base64url_encode(json.dumps({"alg": "HS256", "typ": "JWT"}).encode())
    payload = base64url_encode(json.dumps(_claims_payload(datetime.now(UTC))).encode())
    signing_input = header + b"." + payload
    signature = base64url_encode(hmac.new(rsa_public_pem, signing_input, hashlib.sha256).digest())
    token = (signing_input + b"." + signature).decode()

    with pytest.raises(AuthnError) as exc:
        auth.parse_claims(token)
    assert _reason(exc) is Reason.ALGORITHM_MISMATCH


def test_permissive_key_resolver_still_enforces_configured_algorithm(memory_store):
    config = SigningConfig(signing_key=TEST_KEY, key_resolver=lambda header: TEST_KEY)
    auth = JWTAuthenticator(memory_store, config)
    token = jwt.encode(_claims_payload(datetime.now(UTC)), TEST_KEY, algorithm="HS384")

    with pytest.raises(AuthnError) as exc:
        auth.parse_claims(token)
    assert _reason(exc) is Reason.ALGORITHM_MISMATCH


def test_resolver_refusing_unknown_kid_is_algorithm_mismatch(memory_store):
    """A resolver raising for an unknown or missing ``kid`` rejects the token."""
    keys = {"k1": TEST_KEY}
    config = SigningConfig(signing_key=TEST_KEY, key_resolver=lambda header: keys[header["kid"]])
    auth = JWTAuthenticator(memory_store, config)

    def _token(**headers) -> str:
        return jwt.encode(_claims_payload(datetime.now(UTC)), TEST_KEY, algorithm="HS256", headers=headers)

    assert auth.parse_claims(_token(kid="k1")).subject == "user-42"
    for token in (_token(kid="zzz"), _token()):
        with pytest.raises(AuthnError) as exc:
            auth.parse_claims(token)
        assert _reason(exc) is Reason.ALGORITHM_MISMATCH
        assert isinstance(exc.value.__cause__, KeyError)


def test_resolver_returning_unusable_key_is_invalid(memory_store):
    config = SigningConfig(signing_key=TEST_KEY, key_resolver=lambda header: None)
    auth = JWTAuthenticator(memory_store, config)
    token = jwt.encode(_claims_payload(datetime.now(UTC)), TEST_KEY, algorithm="HS256")

    for call in (auth.parse_claims, auth.destroy):
        with pytest.raises(AuthnError) as exc:
            call(token)
        assert _reason(exc) is Reason.INVALID
    assert len(memory_store) == 0


@pytest.mark.parametrize("claim", ["exp", "iat", "nbf"])
def test_time_claim_outside_datetime_range_is_invalid(authenticator, claim):
    payload = _claims_payload(datetime.now(UTC))
    payload[claim] = 10**20 if claim == "exp" else -(10**20)
    token = jwt.encode(payload, TEST_KEY, algorithm="HS256")

    for call in (authenticator.parse_claims, authenticator.destroy):
        with pytest.raises(AuthnError) as exc:
            call(token)
        assert _reason(exc) is Reason.INVALID


# ------------------------------ Destroy ----------------------------------- #
def test_destroy_writes_record_for_remaining_lifetime(authenticator, memory_store, freeze_time):
    with freeze_time("2024-01-01 12:00:00") as frozen:
        issued = authenticator.sign("user-42")
        frozen.tick(timedelta(minutes=30))

        authenticator.destroy(issued.token)

        assert memory_store.ttl(issued.token) == timedelta(hours=1, minutes=30)


def test_destroy_ttl_matches_expiry_in_redis(redis_store, fake_redis, signing_config):
    auth = JWTAuthenticator(redis_store, signing_config)
    issued = auth.sign("user-42")

    auth.destroy(issued.token)

    pttl = fake_redis.pttl(f"test:revoked:{issued.token}")
    assert 7_198_000 < pttl <= 7_200_000
    with pytest.raises(AuthnError) as exc:
        auth.parse_claims(issued.token)
    assert _reason(exc) is Reason.REVOKED


def test_destroy_of_expired_token_is_a_silent_no_op(signing_config, freeze_time):
    store = RecordingStore()
    auth = JWTAuthenticator(store, signing_config)
    with freeze_time("2024-01-01 12:00:00") as frozen:
        issued = auth.sign("user-42")
        frozen.tick(timedelta(hours=3))

        auth.destroy(issued.token)

    assert store.calls == []
    assert len(store) == 0


def test_destroy_does_not_consult_the_store(signing_config):
    store = RecordingStore()
    auth = JWTAuthenticator(store, signing_config)
    issued = auth.sign("user-42")

    auth.destroy(issued.token)
    auth.destroy(issued.token)

    assert store.calls == ["set", "set"]


@pytest.mark.parametrize("token", ["", "garbage"])
def test_destroy_propagates_parse_failures(authenticator, memory_store, token):
    with pytest.raises(AuthnError) as exc:
        authenticator.destroy(token)
    assert _reason(exc) is Reason.MALFORMED
    assert len(memory_store) == 0


def test_destroy_rejects_forged_token(authenticator, memory_store):
    forged = JWTAuthenticator(None, SigningConfig(signing_key=OTHER_KEY, issuer="svc"))

    with pytest.raises(AuthnError) as exc:
        authenticator.destroy(forged.sign("user-42").token)
    assert _reason(exc) is Reason.INVALID
    assert len(memory_store) == 0


# ------------------------------ Stateless mode ---------------------------- #
def test_without_store_destroy_is_a_no_op_and_token_stays_valid(signing_config, freeze_time):
    auth = JWTAuthenticator(None, signing_config)
    with freeze_time("2024-01-01 12:00:00") as frozen:
        issued = auth.sign("user-42")

        auth.destroy(issued.token)

        frozen.tick(timedelta(hours=1, minutes=59))
        assert auth.parse_claims(issued.token).subject == "user-42"
    auth.release()


# ------------------------------ Store failures ---------------------------- #
def test_store_failure_on_check_fails_closed(signing_config):
    auth = JWTAuthenticator(FailingStore(), signing_config)
    issued = auth.sign("user-42")

    with pytest.raises(AuthnError) as exc:
        auth.parse_claims(issued.token)

    assert _reason(exc) is Reason.STORE_FAILURE
    assert exc.value.retryable is True
    assert isinstance(exc.value.__cause__, RedisConnectionError)


def test_store_failure_on_destroy_is_propagated(signing_config):
    auth = JWTAuthenticator(FailingStore(), signing_config)

    with pytest.raises(AuthnError) as exc:
        auth.destroy(auth.sign("user-42").token)
    assert _reason(exc) is Reason.STORE_FAILURE


def test_expired_deadline_rejects_before_store_lookup(authenticator):
    issued = authenticator.sign("user-42")

    with pytest.raises(AuthnError) as exc:
        authenticator.parse_claims(issued.token, deadline=Deadline.after(0))

    assert _reason(exc) is Reason.STORE_FAILURE
    assert isinstance(exc.value.__cause__, DeadlineExceeded)


def test_cancelled_deadline_rejects_destroy(authenticator, memory_store):
    issued = authenticator.sign("user-42")
    deadline = Deadline.never()
    deadline.cancel()

    with pytest.raises(AuthnError) as exc:
        authenticator.destroy(issued.token, deadline=deadline)

    assert _reason(exc) is Reason.STORE_FAILURE
    assert exc.value.__cause__.cancelled is True
    assert len(memory_store) == 0


# ------------------------------ Misc -------------------------------------- #
def test_failures_are_localized(memory_store, signing_config):
    localizer = CatalogLocalizer({"es": {"jwt.token.invalid": "Token inválido"}}, language=lambda: "es")
    auth = JWTAuthenticator(memory_store, signing_config, localize=localizer)

    with pytest.raises(AuthnError) as exc:
        auth.parse_claims("")

    assert exc.value.message == "Token inválido"
    assert exc.value.message_id == "jwt.token.invalid"
    assert exc.value.reason is Reason.MALFORMED


def test_release_closes_store_once(signing_config):
    store = RecordingStore()
    auth = JWTAuthenticator(store, signing_config)

    auth.release()
    auth.release()

    assert store.calls == ["close"]


def test_store_closed_by_release_fails_closed(authenticator):
    issued = authenticator.sign("user-42")
    authenticator.destroy(issued.token)

    authenticator.release()

    with pytest.raises(AuthnError) as exc:
        authenticator.parse_claims(issued.token)
    assert _reason(exc) is Reason.STORE_FAILURE
    assert isinstance(exc.value.__cause__, StoreClosed)


def test_concurrent_sign_parse_destroy(authenticator):
    """The authenticator is shared across threads without locking."""

    def _cycle(i: int) -> Reason:
        issued = authenticator.sign(f"user-{i}")
        assert authenticator.parse_claims(issued.token).subject == f"user-{i}"
        authenticator.destroy(issued.token)
        try:
            authenticator.parse_claims(issued.token)
        except AuthnError as err:
            return err.reason
        raise AssertionError("token should be revoked")

    with ThreadPoolExecutor(max_workers=8) as pool:
        reasons = list(pool.map(_cycle, range(40)))

    assert set(reasons) == {Reason.REVOKED}
