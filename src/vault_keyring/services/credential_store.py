"""
vault_keyring.services.credential_store

Database-backed credential store for the vault client.

Each organization has exactly one session token; a refresh replaces it
wholesale and an invalidated session removes it. Every mutation is committed
before returning.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from vault_keyring.db.repositories.credentials import CredentialRepo
from vault_keyring.vault_client.queries import SessionToken


class DbCredentialStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._repo = CredentialRepo(session)

    async def get(self, organization_id: str) -> SessionToken | None:
        cred = await self._repo.get(organization_id)
        if cred is None:
            return None
        return SessionToken(enc=cred.enc, iv=cred.iv, tag=cred.tag)

    async def replace(self, organization_id: str, token: SessionToken) -> None:
        await self._repo.replace(
            organization_id=organization_id, enc=token.enc, iv=token.iv, tag=token.tag
        )
        await self._session.commit()

    async def remove(self, organization_id: str) -> None:
        await self._repo.remove(organization_id)
        await self._session.commit()
