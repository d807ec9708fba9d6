from __future__ import annotations

import time
from typing import Any, Dict, Optional, Protocol, Tuple
from urllib.parse import urlencode

import requests

from manager_api.auth.config import AuthConfig
from manager_api.auth.models import AccessToken, UserInfo

_discovery_cache: Dict[str, Tuple[float, Optional[Dict[str, Any]]]] = {}


class OidcProviderError(Exception):
    """The identity provider rejected a request or returned an unusable response."""


class OidcProvider(Protocol):
    def authorize_url(self, state: str) -> str: ...

    def exchange(self, code: str) -> AccessToken: ...

    def user_info(self, token: AccessToken) -> UserInfo: ...


def _get_discovery(discovery_url: str, timeout: float) -> Dict[str, Any]:
    """
    Fetch OIDC discovery document from provider.
    Caches result for 1 hour per discovery URL.
    """
    ts, cached = _discovery_cache.get(discovery_url, (0.0, None))
    now = time.time()
    if cached is not None and now - ts < 3600:
        return cached
    r = requests.get(discovery_url, timeout=timeout)
    r.raise_for_status()
    data = r.json()
    if not isinstance(data, dict):
        raise OidcProviderError("Invalid OIDC discovery document")
    _discovery_cache[discovery_url] = (now, data)
    return data


class HttpOidcProvider:
    """
    Authorization-code client for a single OIDC provider.

    Endpoints come from the explicit configuration when all three are set,
    otherwise from the provider's discovery document.
    """

    def __init__(self, cfg: AuthConfig):
        self._cfg = cfg

    def _endpoint(self, key: str, explicit: Optional[str]) -> str:
        if explicit:
            return explicit
        if not self._cfg.oidc_discovery_url:
            raise OidcProviderError(f"OIDC {key} not configured")
        try:
            disc = _get_discovery(self._cfg.oidc_discovery_url, self._cfg.http_timeout_seconds)
        except (requests.RequestException, ValueError) as e:
            raise OidcProviderError(f"OIDC discovery failed: {e}") from e
        url = str(disc.get(key) or "")
        if not url:
            raise OidcProviderError(f"OIDC discovery missing {key}")
        return url

    def authorize_url(self, state: str) -> str:
        auth_endpoint = self._endpoint("authorization_endpoint", self._cfg.oidc_auth_url)
        params = {
            "client_id": self._cfg.oidc_client_id or "",
            "redirect_uri": self._cfg.oidc_redirect_url or "",
            "response_type": "code",
            "scope": " ".join(self._cfg.oidc_scopes),
            "state": state,
        }
        sep = "&" if "?" in auth_endpoint else "?"
        return f"{auth_endpoint}{sep}{urlencode(params)}"

    def exchange(self, code: str) -> AccessToken:
        """Exchange an authorization code for an access token. No retries."""
        token_endpoint = self._endpoint("token_endpoint", self._cfg.oidc_token_url)
        payload = {
            "client_id": self._cfg.oidc_client_id or "",
            "client_secret": self._cfg.oidc_client_secret or "",
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._cfg.oidc_redirect_url or "",
        }
        try:
            r = requests.post(
                token_endpoint,
                data=payload,
                headers={"Accept": "application/json"},
                timeout=self._cfg.http_timeout_seconds,
            )
        except requests.RequestException as e:
            raise OidcProviderError(f"token request failed: {e}") from e
        if r.status_code >= 400:
            # Avoid leaking sensitive info; include minimal context.
            raise OidcProviderError(f"token exchange failed (status={r.status_code})")
        try:
            data = r.json()
        except ValueError as e:
            raise OidcProviderError("invalid token response") from e
        if not isinstance(data, dict):
            raise OidcProviderError("invalid token response")
        access_token = str(data.get("access_token") or "").strip()
        if not access_token:
            raise OidcProviderError("token response missing access_token")
        return AccessToken(access_token=access_token)

    def user_info(self, token: AccessToken) -> UserInfo:
        userinfo_endpoint = self._endpoint("userinfo_endpoint", self._cfg.oidc_userinfo_url)
        try:
            r = requests.get(
                userinfo_endpoint,
                headers={"Authorization": f"Bearer {token.access_token}", "Accept": "application/json"},
                timeout=self._cfg.http_timeout_seconds,
            )
        except requests.RequestException as e:
            raise OidcProviderError(f"userinfo request failed: {e}") from e
        if r.status_code >= 400:
            raise OidcProviderError(f"userinfo request failed (status={r.status_code})")
        try:
            data = r.json()
        except ValueError as e:
            raise OidcProviderError("invalid userinfo response") from e
        if not isinstance(data, dict):
            raise OidcProviderError("invalid userinfo response")
        email = str(data.get("email") or "").strip()
        if not email:
            raise OidcProviderError("userinfo response missing email")
        return UserInfo(
            email=email,
            subject=str(data.get("sub") or "").strip() or None,
            name=str(data.get("name") or "").strip() or None,
        )
