"""
vault_keyring.db.repositories.accounts

Repository for `Account` entities.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vault_keyring.db.models import Account


class AccountRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        name: str,
        address: str,
        organization_id: str,
        methods: list[str],
        options: dict[str, Any],
        account_id: str | None = None,
    ) -> Account:
        account = Account(
            name=name,
            address=address.lower(),
            organization_id=organization_id,
            methods=methods,
            options=options,
        )
        if account_id is not None:
            account.id = account_id
        self._session.add(account)
        await self._session.flush()
        return account

    async def get(self, account_id: str) -> Account | None:
        return await self._session.get(Account, account_id)

    async def get_by_address(self, address: str) -> Account | None:
        stmt = select(Account).where(Account.address == address.lower())
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list(self) -> list[Account]:
        stmt = select(Account).order_by(Account.created_at)
        return list((await self._session.execute(stmt)).scalars().all())

    async def delete(self, account: Account) -> None:
        await self._session.delete(account)
        await self._session.flush()
