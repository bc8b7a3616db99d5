"""
vault_keyring.api.app

FastAPI app factory for the vault keyring service.

Responsibilities:
- Build the FastAPI application and register routers/middleware/error handlers.
- Initialize and dispose shared infrastructure (DB engine/session factory, HTTP client).
- Optionally run the background poller for pending signing requests.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator

import httpx
from fastapi import FastAPI

from vault_keyring import __version__
from vault_keyring.api.errors import install_error_handlers
from vault_keyring.api.routers.accounts import router as accounts_router
from vault_keyring.api.routers.configuration import router as configuration_router
from vault_keyring.api.routers.cron import router as cron_router
from vault_keyring.api.routers.dev_auth import router as dev_auth_router
from vault_keyring.api.routers.events import router as events_router
from vault_keyring.api.routers.health import router as health_router
from vault_keyring.api.routers.requests import router as requests_router
from vault_keyring.db.init_db import init_db
from vault_keyring.db.session import create_engine, create_sessionmaker
from vault_keyring.observability.logging import configure_logging, get_logger
from vault_keyring.observability.middleware import RequestContextMiddleware
from vault_keyring.services.keyring_service import InFlightRequests
from vault_keyring.services.poller import run_poller
from vault_keyring.settings import Settings

log = get_logger(__name__)


def create_app(
    *,
    settings: Settings,
    vault_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    `vault_transport` replaces the network transport of the shared HTTP client
    (vault API and host RPC proxy check); tests pass an `httpx.MockTransport`.
    """

    configure_logging(service_name=settings.service_name, level=settings.log_level)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            # Dev/test convenience: create tables automatically.
            await init_db(engine)
        app.state.http = httpx.AsyncClient(transport=vault_transport, timeout=30.0)

        poller: asyncio.Task[None] | None = None
        if settings.poll_interval_seconds > 0:
            poller = asyncio.create_task(
                run_poller(
                    settings=settings,
                    session_factory=app.state.sessionmaker,
                    http=app.state.http,
                    in_flight=app.state.in_flight,
                )
            )
        try:
            yield
        finally:
            if poller is not None:
                poller.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await poller
            await app.state.http.aclose()
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="Vault Keyring",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.in_flight = InFlightRequests()

    app.add_middleware(RequestContextMiddleware)
    install_error_handlers(app)
    app.include_router(health_router, tags=["health"])
    app.include_router(dev_auth_router)
    app.include_router(accounts_router)
    app.include_router(requests_router)
    app.include_router(cron_router)
    app.include_router(configuration_router)
    app.include_router(events_router)
    return app


# --- Module Notes -----------------------------------------------------------
# App composition stays here; keyring semantics live in `services.keyring_service`.
