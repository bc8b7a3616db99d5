"""
vault_keyring.db.repositories.credentials

Repository for `Credential` entities (one row per organization).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vault_keyring.db.models import Credential


class CredentialRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, organization_id: str) -> Credential | None:
        return await self._session.get(Credential, organization_id)

    async def replace(self, *, organization_id: str, enc: str, iv: str, tag: str) -> Credential:
        # Wholesale replacement: every token field is overwritten.
        cred = await self._session.get(Credential, organization_id, with_for_update=True)
        if cred is None:
            cred = Credential(organization_id=organization_id, enc=enc, iv=iv, tag=tag)
            self._session.add(cred)
        else:
            cred.enc, cred.iv, cred.tag = enc, iv, tag
            cred.updated_at = datetime.utcnow()
        await self._session.flush()
        return cred

    async def count(self) -> int:
        return await self._session.scalar(select(func.count()).select_from(Credential)) or 0

    async def remove(self, organization_id: str) -> None:
        await self._session.execute(
            delete(Credential).where(Credential.organization_id == organization_id)
        )
        await self._session.flush()
