from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

from manager_api.auth.util import random_token


@dataclass(frozen=True)
class AuthConfig:
    # OIDC client configuration
    oidc_enabled: bool
    oidc_client_id: Optional[str]
    oidc_client_secret: Optional[str]
    oidc_discovery_url: Optional[str]
    oidc_auth_url: Optional[str]  # Explicit endpoints override discovery
    oidc_token_url: Optional[str]
    oidc_userinfo_url: Optional[str]
    oidc_redirect_url: Optional[str]
    oidc_scopes: List[str]

    # Shared anti-forgery value, constant for the process lifetime
    oidc_state: str

    # Session credential
    session_secret: Optional[str]
    session_expire_seconds: int

    # Signs the `oidc` logout cookie (defaults to session_secret)
    cookie_secret: Optional[str]

    http_timeout_seconds: float

    @property
    def endpoints_configured(self) -> bool:
        """Explicit endpoints are enough to skip discovery."""
        return bool(self.oidc_auth_url and self.oidc_token_url and self.oidc_userinfo_url)

    def validate(self) -> List[str]:
        """Return configuration problems that prevent the OIDC flow from working."""
        problems: List[str] = []
        if not self.oidc_enabled:
            return problems
        if not self.oidc_client_id:
            problems.append("OIDC_CLIENT_ID is required")
        if not self.oidc_client_secret:
            problems.append("OIDC_CLIENT_SECRET is required")
        if not self.oidc_redirect_url:
            problems.append("OIDC_REDIRECT_URL is required")
        if not self.oidc_discovery_url and not self.endpoints_configured:
            problems.append("OIDC_DISCOVERY_URL or OIDC_AUTH_URL/OIDC_TOKEN_URL/OIDC_USERINFO_URL is required")
        if self.session_expire_seconds <= 0:
            problems.append("AUTH_EXPIRE_TIME must be a positive number of seconds")
        if not self.session_secret:
            problems.append("AUTH_SECRET is required for signing session tokens")
        if not self.oidc_state:
            problems.append("OIDC_STATE must not be empty")
        return problems


def _env(name: str) -> Optional[str]:
    return (os.getenv(name, "") or "").strip() or None


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    v = (value or "").strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    return default


def _parse_scopes(value: Optional[str]) -> List[str]:
    items = [x.strip() for x in (value or "").replace(",", " ").split()]
    scopes = [x for x in items if x]
    return scopes or ["openid", "email", "profile"]


@lru_cache(maxsize=1)
def load_auth_config() -> AuthConfig:
    """
    Load OIDC/session configuration from environment variables.

    OIDC_STATE is generated once per process when not set; it is shared by
    every login round-trip until restart.
    """
    expire = int(float(_env("AUTH_EXPIRE_TIME") or "3600"))

    timeout = float(_env("OIDC_HTTP_TIMEOUT") or "10")
    if timeout <= 0:
        timeout = 10.0

    session_secret = _env("AUTH_SECRET")

    return AuthConfig(
        oidc_enabled=_parse_bool(_env("OIDC_ENABLED")),
        oidc_client_id=_env("OIDC_CLIENT_ID"),
        oidc_client_secret=_env("OIDC_CLIENT_SECRET"),
        oidc_discovery_url=_env("OIDC_DISCOVERY_URL"),
        oidc_auth_url=_env("OIDC_AUTH_URL"),
        oidc_token_url=_env("OIDC_TOKEN_URL"),
        oidc_userinfo_url=_env("OIDC_USERINFO_URL"),
        oidc_redirect_url=_env("OIDC_REDIRECT_URL"),
        oidc_scopes=_parse_scopes(_env("OIDC_SCOPE")),
        oidc_state=_env("OIDC_STATE") or random_token(32),
        session_secret=session_secret,
        session_expire_seconds=expire,
        cookie_secret=_env("OIDC_COOKIE_SECRET") or session_secret,
        http_timeout_seconds=timeout,
    )
