from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# Marks a session token minted by the OIDC flow. The downstream authenticator
# must not look the subject up in the statically configured users.
OIDC_ISSUER = "oidc"


@dataclass(frozen=True)
class AccessToken:
    """Bearer token returned by the provider's token endpoint."""

    access_token: str


@dataclass(frozen=True)
class UserInfo:
    """User identity returned by the provider's user-info endpoint."""

    email: str
    subject: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class SessionClaims:
    subject: str
    issuer: str
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class SessionCookie:
    """A verified `oidc` session cookie."""

    stale: bool = False  # signed by us, but older than the store's max age
