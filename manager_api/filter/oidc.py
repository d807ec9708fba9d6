"""
OIDC login filter for the admin API.

Intercepts three exact paths and leaves every other request untouched:

- login:    302 to the provider, carrying the shared state
- callback: state check -> code exchange -> user info -> signed session token
            in a 30s `oidc_user_token` cookie -> 307 to `/`
- logout:   expire the `oidc` session cookie (403 when there is none)

Every failure is terminal for the request; the browser restarts at login.
"""

from __future__ import annotations

import enum
import hmac
import logging
from typing import Awaitable, Callable, Dict, Optional

from fastapi import Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse, Response

from manager_api.auth.config import AuthConfig
from manager_api.auth.oidc import HttpOidcProvider, OidcProvider, OidcProviderError
from manager_api.auth.session import (
    SessionCookieStore,
    SessionSigningError,
    build_session_claims,
    sign_session_token,
    token_cookie_kwargs,
)

logger = logging.getLogger(__name__)

LOGIN_PATH = "/apisix/admin/oidc/login"
CALLBACK_PATH = "/apisix/admin/oidc/callback"
LOGOUT_PATH = "/apisix/admin/oidc/logout"


class OidcRoute(enum.Enum):
    LOGIN = "login"
    CALLBACK = "callback"
    LOGOUT = "logout"
    PASS_THROUGH = "pass_through"


ROUTES: Dict[str, OidcRoute] = {
    LOGIN_PATH: OidcRoute.LOGIN,
    CALLBACK_PATH: OidcRoute.CALLBACK,
    LOGOUT_PATH: OidcRoute.LOGOUT,
}


def resolve_route(path: str) -> OidcRoute:
    """Exact match only; `/apisix/admin/oidc/login/x` is not the login path."""
    return ROUTES.get(path, OidcRoute.PASS_THROUGH)


def _state_matches(received: str, expected: str) -> bool:
    return hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8"))


CallNext = Callable[[Request], Awaitable[Response]]


class OidcFilter:
    def __init__(
        self,
        cfg: AuthConfig,
        provider: OidcProvider,
        store: Optional[SessionCookieStore] = None,
    ):
        self._cfg = cfg
        self._provider = provider
        self._store = store or SessionCookieStore(cfg.cookie_secret or "")

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        route = resolve_route(request.url.path)
        if route is OidcRoute.LOGIN:
            return await self.login()
        if route is OidcRoute.CALLBACK:
            return await self.callback(request)
        if route is OidcRoute.LOGOUT:
            return self.logout(request)
        return await call_next(request)

    async def login(self) -> Response:
        try:
            url = await run_in_threadpool(self._provider.authorize_url, self._cfg.oidc_state)
        except OidcProviderError as e:
            logger.warning("build authorization url failed: %s", e)
            return Response(status_code=403)
        return RedirectResponse(url=url, status_code=302)

    async def callback(self, request: Request) -> Response:
        state = request.query_params.get("state") or ""
        if not _state_matches(state, self._cfg.oidc_state):
            logger.warning("the state does not match")
            return Response(status_code=403)

        # in exchange for token
        code = request.query_params.get("code") or ""
        try:
            token = await run_in_threadpool(self._provider.exchange, code)
        except OidcProviderError as e:
            logger.warning("exchange code for token failed: %s", e)
            return Response(status_code=403)

        # in exchange for user's information
        try:
            user = await run_in_threadpool(self._provider.user_info, token)
        except OidcProviderError as e:
            logger.warning("exchange access_token for user's information failed: %s", e)
            return Response(status_code=403)

        claims = build_session_claims(user.email, self._cfg.session_expire_seconds)
        try:
            signed = sign_session_token(self._cfg.session_secret, claims)
        except SessionSigningError as e:
            logger.error("sign session token failed: %s", e)
            return Response(status_code=500)

        logger.info("oidc login succeeded")
        resp = RedirectResponse(url="/", status_code=307)
        resp.set_cookie(**token_cookie_kwargs(signed))
        return resp

    def logout(self, request: Request) -> Response:
        cookie = self._store.get(request)
        if cookie is None or cookie.stale:
            return Response(status_code=403)

        resp = Response(status_code=200)
        resp.set_cookie(**self._store.expire_kwargs())
        return resp


def install_oidc_filter(app, cfg: AuthConfig, provider: Optional[OidcProvider] = None) -> Optional[OidcFilter]:
    """
    Register the OIDC filter as HTTP middleware on a Starlette/FastAPI app.

    Returns None (and installs nothing) when OIDC is disabled.
    """
    if not cfg.oidc_enabled:
        logger.info("OIDC login disabled")
        return None

    problems = cfg.validate()
    if problems:
        raise ValueError("invalid OIDC configuration: " + "; ".join(problems))

    oidc_filter = OidcFilter(cfg, provider or HttpOidcProvider(cfg))
    app.middleware("http")(oidc_filter.dispatch)
    logger.info("OIDC login enabled (redirect_url=%s)", cfg.oidc_redirect_url)
    return oidc_filter
