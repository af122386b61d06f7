from __future__ import annotations

"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
builds the guard's object graph explicitly: counter store → rate limiter →
CSRF service → RequestGuard. Nothing is a module-level singleton, so each test
can build an app around its own guard.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI

from request_guard.adapters.counter_store.factory import build_counter_store
from request_guard.api.routes import csrf_router, health_router
from request_guard.core.config import Settings, settings
from request_guard.core.csrf import CsrfTokenService
from request_guard.core.exception_handlers import setup_exception_handlers
from request_guard.core.identity import IdentifierResolver
from request_guard.core.logging import configure_logging
from request_guard.core.metrics import setup_metrics_endpoint
from request_guard.core.middleware import build_request_id_middleware
from request_guard.core.openapi import apply_openapi_customizations
from request_guard.core.policies import build_policies
from request_guard.core.protection import RequestGuard
from request_guard.core.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


def build_guard(
    config: Settings,
    *,
    clock: Callable[[], float] = time.time,
) -> RequestGuard:
    """Assemble a RequestGuard from configuration.

    Policy validation happens here, so a misconfigured policy stops the
    application from starting rather than failing a request.

    Args:
        config: Resolved settings.
        clock: Time source shared by the store and the limiter.

    Returns:
        Fully wired RequestGuard.
    """
    policies = build_policies(config.rate_limit)
    store = build_counter_store(config.store, clock=clock)

    return RequestGuard(
        limiter=RateLimiter(store, clock=clock),
        csrf=CsrfTokenService(config.csrf),
        resolver=IdentifierResolver(config.identity),
        policies=policies,
        rate_limit_enabled=config.rate_limit.enabled,
        csrf_enabled=config.csrf.enabled,
        include_headers=config.rate_limit.include_headers,
    )


def create_app(
    config: Settings | None = None,
    *,
    guard: RequestGuard | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        config: Settings to use; defaults to the environment-derived settings.
        guard: Pre-built guard (tests inject one with a fake clock).

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = config or settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app_guard = guard or build_guard(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "app.startup",
            extra={
                "app_env": cfg.app_env,
                "backend": app_guard.limiter.store.kind.value,
                "rate_limit_enabled": app_guard.rate_limit_enabled,
                "csrf_enabled": app_guard.csrf_enabled,
            },
        )
        try:
            yield
        finally:
            await app_guard.limiter.store.aclose()
            logger.info("app.shutdown")

    app = FastAPI(
        title=cfg.app.title,
        description=(
            "Abuse and integrity protection layer: per-caller fixed-window rate "
            "limiting backed by a local or Redis counter store, and double-submit "
            "CSRF tokens bound to a per-session secret with HMAC."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.guard = app_guard

    # Middleware
    app.middleware("http")(build_request_id_middleware(cfg.log.request_id_header))

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(csrf_router, prefix="/v1")
    app.include_router(health_router)
    setup_metrics_endpoint(app)

    # OpenAPI customizations (CSRF header scheme, tags, exemptions)
    apply_openapi_customizations(app, csrf_header=cfg.csrf.header_name)

    return app
