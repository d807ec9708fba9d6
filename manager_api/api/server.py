"""
Admin API HTTP server.

Hosts the OIDC login filter in front of the admin routes. Anything the filter
does not claim is served by the routes registered here.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request

from manager_api.auth.config import AuthConfig, load_auth_config
from manager_api.auth.oidc import OidcProvider
from manager_api.filter.oidc import install_oidc_filter

logger = logging.getLogger(__name__)


def create_app(cfg: Optional[AuthConfig] = None, provider: Optional[OidcProvider] = None) -> FastAPI:
    """
    Build the admin API app.

    `cfg` defaults to the environment; `provider` defaults to an HTTP client
    for the configured OIDC provider.
    """
    cfg = cfg or load_auth_config()
    app = FastAPI(title="APISIX manager API")

    install_oidc_filter(app, cfg, provider)

    # Registered last so it wraps the OIDC filter and sees its responses too.
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all incoming HTTP requests."""
        start_time = time.time()
        logger.debug("%s %s", request.method, request.url.path)
        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
            raise
        process_time = time.time() - start_time
        logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response

    @app.get("/healthz")
    def healthz() -> Dict[str, Any]:
        return {"ok": True}

    return app


def run(host: str = "0.0.0.0", port: int = 9000) -> None:
    import uvicorn

    # Configure logging for the application
    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    app = create_app()
    logger.info("Starting manager API on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
