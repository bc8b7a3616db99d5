"""
vault_keyring.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings, DB sessions and the shared HTTP client.
- Build a request-scoped `VaultKeyring` with the local host bridge.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vault_keyring.host.bridge import LocalHostBridge
from vault_keyring.services.keyring_service import InFlightRequests, VaultKeyring
from vault_keyring.settings import Settings


def settings_dep(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[attr-defined]


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


def http_from_app(request: Request) -> httpx.AsyncClient:
    return request.app.state.http  # type: ignore[attr-defined]


def in_flight_from_app(request: Request) -> InFlightRequests:
    return request.app.state.in_flight  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Commit/rollback is managed explicitly by the keyring service.
    async with session_factory() as session:
        yield session


def keyring_dep(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
    http: httpx.AsyncClient = Depends(http_from_app),
    in_flight: InFlightRequests = Depends(in_flight_from_app),
) -> VaultKeyring:
    host = LocalHostBridge(settings=settings, session=session, http=http)
    return VaultKeyring(
        session=session, settings=settings, http=http, host=host, in_flight=in_flight
    )
