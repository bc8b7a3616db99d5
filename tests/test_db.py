"""
tests.test_db

Schema created by `init_db` and the repository counters used by readiness.
"""

from __future__ import annotations

import pytest
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vault_keyring.db.init_db import init_db
from vault_keyring.db.repositories.credentials import CredentialRepo
from vault_keyring.db.repositories.requests import SigningRequestRepo
from vault_keyring.db.session import create_engine
from vault_keyring.settings import Settings


@pytest.mark.asyncio
async def test_schema_indexes_follow_naming_convention(settings: Settings) -> None:
    engine = create_engine(settings)
    try:
        await init_db(engine)
        async with engine.connect() as conn:
            names = await conn.run_sync(
                lambda c: {ix["name"] for ix in inspect(c).get_indexes("signing_requests")}
            )
    finally:
        await engine.dispose()

    assert {
        "ix_signing_requests_account_id",
        "ix_signing_requests_remote_request_id",
        "ix_signing_requests_status_created",
    } <= names


@pytest.mark.asyncio
async def test_counters(session_factory: async_sessionmaker[AsyncSession]) -> None:
    async with session_factory() as session:
        creds = CredentialRepo(session)
        requests = SigningRequestRepo(session)
        assert await creds.count() == 0
        assert await requests.count_pending() == 0

        await creds.replace(organization_id="org-a", enc="e", iv="i", tag="t")
        await creds.replace(organization_id="org-b", enc="e", iv="i", tag="t")
        await creds.replace(organization_id="org-a", enc="e2", iv="i2", tag="t2")
        await requests.create(
            request_id="req-1",
            account_id="acct-1",
            scope="eip155:1",
            method="personal_sign",
            params=["hi", "0x" + "11" * 20],
            remote_request_id="remote-1",
        )

        assert await creds.count() == 2
        assert await requests.count_pending() == 1
