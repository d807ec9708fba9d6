from __future__ import annotations

import time
from typing import Any, Dict, Optional

import jwt  # PyJWT
from fastapi import Request
from itsdangerous import BadData, SignatureExpired, URLSafeTimedSerializer

from manager_api.auth.models import OIDC_ISSUER, SessionClaims, SessionCookie

# Handoff cookie: short-lived. The next page load is expected to read it,
# move it to localStorage (as `token`) and remove it.
OIDC_TOKEN_COOKIE = "oidc_user_token"
OIDC_TOKEN_MAX_AGE = 30

OIDC_SESSION_COOKIE = "oidc"
SESSION_SALT = "manager-api-oidc-session-v1"

SESSION_ALGORITHM = "HS256"


class SessionSigningError(Exception):
    """The session token could not be signed."""


def build_session_claims(subject: str, expire_seconds: int, now: Optional[int] = None) -> SessionClaims:
    issued_at = int(time.time()) if now is None else int(now)
    return SessionClaims(
        subject=subject,
        issuer=OIDC_ISSUER,
        issued_at=issued_at,
        expires_at=issued_at + int(expire_seconds),
    )


def sign_session_token(secret: Optional[str], claims: SessionClaims) -> str:
    if not secret:
        raise SessionSigningError("session secret is not configured (AUTH_SECRET)")
    payload = {
        "sub": claims.subject,
        "iss": claims.issuer,
        "iat": claims.issued_at,
        "exp": claims.expires_at,
    }
    try:
        return jwt.encode(payload, secret, algorithm=SESSION_ALGORITHM)
    except (jwt.PyJWTError, TypeError, ValueError) as e:
        raise SessionSigningError(str(e)) from e


def decode_session_token(secret: str, token: str) -> SessionClaims:
    """
    Verify signature and expiry of a session token.

    Raises `jwt.PyJWTError` subclasses on any verification failure.
    """
    data = jwt.decode(
        token,
        key=secret,
        algorithms=[SESSION_ALGORITHM],
        options={"require": ["sub", "iss", "iat", "exp"]},
    )
    return SessionClaims(
        subject=str(data["sub"]),
        issuer=str(data["iss"]),
        issued_at=int(data["iat"]),
        expires_at=int(data["exp"]),
    )


def token_cookie_kwargs(value: str) -> dict:
    # NOT http-only: the frontend has to read it.
    return {
        "key": OIDC_TOKEN_COOKIE,
        "value": value,
        "max_age": OIDC_TOKEN_MAX_AGE,
        "path": "/",
        "domain": None,
        "secure": False,
        "httponly": False,
    }


class SessionCookieStore:
    """
    Signed-cookie store for the `oidc` session.

    Nothing is kept server-side; the cookie value is an itsdangerous
    timestamped signature over a small JSON payload.
    """

    def __init__(self, secret: str, *, name: str = OIDC_SESSION_COOKIE, max_age: int = 86400 * 30):
        if not secret:
            raise ValueError("cookie secret is required")
        self.name = name
        self.max_age = max_age
        self._serializer = URLSafeTimedSerializer(secret_key=secret, salt=SESSION_SALT)

    def encode(self, payload: Dict[str, Any]) -> str:
        """Sign a payload into a cookie value `get` accepts."""
        return self._serializer.dumps(payload)

    def get(self, request: Request) -> Optional[SessionCookie]:
        """
        Look up the session cookie on a request.

        Returns None when the cookie is missing or its signature does not
        verify; a stale SessionCookie when it verifies but is too old.
        """
        raw = request.cookies.get(self.name)
        if not raw:
            return None
        try:
            self._serializer.loads(raw, max_age=self.max_age)
        except SignatureExpired:
            return SessionCookie(stale=True)
        except BadData:
            return None
        return SessionCookie()

    def expire_kwargs(self) -> dict:
        return {
            "key": self.name,
            "value": "",
            "max_age": -1,
            "path": "/",
            "httponly": True,
            "samesite": "lax",
        }
