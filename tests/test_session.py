from __future__ import annotations

import time
from unittest.mock import MagicMock

import jwt
import pytest

from manager_api.auth.models import OIDC_ISSUER, SessionClaims
from manager_api.auth.session import (
    OIDC_TOKEN_COOKIE,
    SessionCookieStore,
    SessionSigningError,
    build_session_claims,
    decode_session_token,
    sign_session_token,
    token_cookie_kwargs,
)

SECRET = "test-secret-key-for-testing-purposes-only"


def _request(cookies: dict) -> MagicMock:
    req = MagicMock()
    req.cookies = cookies
    return req


def test_build_session_claims_marks_oidc_issuer() -> None:
    claims = build_session_claims("alice@example.com", 600, now=1_700_000_000)
    assert claims == SessionClaims(
        subject="alice@example.com",
        issuer=OIDC_ISSUER,
        issued_at=1_700_000_000,
        expires_at=1_700_000_600,
    )


def test_signed_token_is_hs256_and_verifies() -> None:
    claims = build_session_claims("alice@example.com", 600)
    token = sign_session_token(SECRET, claims)

    assert jwt.get_unverified_header(token)["alg"] == "HS256"
    assert decode_session_token(SECRET, token) == claims


def test_signed_token_rejects_wrong_secret() -> None:
    token = sign_session_token(SECRET, build_session_claims("alice@example.com", 600))
    with pytest.raises(jwt.InvalidSignatureError):
        decode_session_token("another-secret-key-for-testing-purposes", token)


def test_expired_token_is_rejected() -> None:
    claims = build_session_claims("alice@example.com", 60, now=int(time.time()) - 3600)
    token = sign_session_token(SECRET, claims)
    with pytest.raises(jwt.ExpiredSignatureError):
        decode_session_token(SECRET, token)


@pytest.mark.parametrize("secret", ["", None])
def test_signing_without_secret_fails(secret) -> None:
    with pytest.raises(SessionSigningError):
        sign_session_token(secret, build_session_claims("alice@example.com", 600))


def test_token_cookie_is_short_lived_and_script_readable() -> None:
    kwargs = token_cookie_kwargs("v")
    assert kwargs["key"] == OIDC_TOKEN_COOKIE == "oidc_user_token"
    assert kwargs["max_age"] == 30
    assert kwargs["path"] == "/"
    assert kwargs["domain"] is None
    assert kwargs["httponly"] is False
    assert kwargs["secure"] is False


def test_store_missing_cookie_is_absent() -> None:
    store = SessionCookieStore(SECRET)
    assert store.get(_request({})) is None
    assert store.get(_request({"oidc": ""})) is None


def test_store_bad_signature_is_absent() -> None:
    store = SessionCookieStore(SECRET)
    forged = SessionCookieStore("another-secret-key-for-testing-purposes").encode({"user": "x"})
    assert store.get(_request({"oidc": forged})) is None
    assert store.get(_request({"oidc": "garbage"})) is None


def test_store_round_trip() -> None:
    store = SessionCookieStore(SECRET)
    value = store.encode({"user": "alice@example.com"})
    cookie = store.get(_request({"oidc": value}))
    assert cookie is not None
    assert cookie.stale is False


def test_store_old_cookie_is_stale_not_absent() -> None:
    store = SessionCookieStore(SECRET, max_age=-1)
    value = store.encode({"user": "alice@example.com"})
    cookie = store.get(_request({"oidc": value}))
    assert cookie is not None
    assert cookie.stale is True


def test_store_expire_kwargs_use_negative_max_age() -> None:
    store = SessionCookieStore(SECRET)
    kwargs = store.expire_kwargs()
    assert kwargs["key"] == "oidc"
    assert kwargs["max_age"] < 0


def test_store_requires_secret() -> None:
    with pytest.raises(ValueError):
        SessionCookieStore("")
