"""
vault_keyring.services.poller

Background poll loop for deployments without an external scheduler.

Each cycle opens its own DB session and runs `VaultKeyring.check_pending_requests`.
"""

from __future__ import annotations

import asyncio

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vault_keyring.host.bridge import LocalHostBridge
from vault_keyring.observability.logging import get_logger
from vault_keyring.services.keyring_service import InFlightRequests, PollSummary, VaultKeyring
from vault_keyring.settings import Settings

log = get_logger(__name__)


async def poll_once(
    *,
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    http: httpx.AsyncClient,
    in_flight: InFlightRequests,
) -> PollSummary:
    async with session_factory() as session:
        host = LocalHostBridge(settings=settings, session=session, http=http)
        keyring = VaultKeyring(
            session=session, settings=settings, http=http, host=host, in_flight=in_flight
        )
        return await keyring.check_pending_requests()


async def run_poller(
    *,
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    http: httpx.AsyncClient,
    in_flight: InFlightRequests,
) -> None:
    interval = settings.poll_interval_seconds
    log.info("poller_started", interval_seconds=interval)
    while True:
        await asyncio.sleep(interval)
        try:
            summary = await poll_once(
                settings=settings,
                session_factory=session_factory,
                http=http,
                in_flight=in_flight,
            )
        except Exception:
            # Keep the loop alive; the next cycle retries everything still pending.
            log.exception("poll_cycle_failed")
            continue
        if summary.checked:
            log.info(
                "poll_cycle",
                checked=summary.checked,
                signed=len(summary.signed),
                rejected=len(summary.rejected),
                failed=len(summary.failed),
            )
