"""
vault_keyring.db.repositories.requests

Repository for `SigningRequest` entities.

Responsibilities:
- Record newly submitted requests in `pending` status.
- Select pending requests for the poll cycle.
- Apply terminal transitions (the only mutation after creation).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vault_keyring.db.models import SigningRequest
from vault_keyring.keyring.state import RequestStatus


class SigningRequestRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        request_id: str,
        account_id: str,
        scope: str,
        method: str,
        params: Any,
        remote_request_id: str,
    ) -> SigningRequest:
        req = SigningRequest(
            id=request_id,
            account_id=account_id,
            scope=scope,
            method=method,
            params=params,
            remote_request_id=remote_request_id,
            status=RequestStatus.pending,
            result=None,
        )
        self._session.add(req)
        await self._session.flush()
        return req

    async def get(self, request_id: str) -> SigningRequest | None:
        return await self._session.get(SigningRequest, request_id)

    async def list(self) -> list[SigningRequest]:
        stmt = select(SigningRequest).order_by(SigningRequest.created_at)
        return list((await self._session.execute(stmt)).scalars().all())

    async def list_pending(self) -> list[SigningRequest]:
        stmt = (
            select(SigningRequest)
            .where(SigningRequest.status == RequestStatus.pending)
            .order_by(SigningRequest.created_at)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def count_pending(self) -> int:
        stmt = select(SigningRequest.id).where(SigningRequest.status == RequestStatus.pending)
        return len((await self._session.execute(stmt)).scalars().all())

    async def count_pending_for_account(self, account_id: str) -> int:
        stmt = select(SigningRequest.id).where(
            SigningRequest.account_id == account_id,
            SigningRequest.status == RequestStatus.pending,
        )
        return len((await self._session.execute(stmt)).scalars().all())

    async def set_terminal(
        self,
        *,
        request_id: str,
        status: RequestStatus,
        result: Any = None,
    ) -> bool:
        """
        Moves a pending request to a terminal status. Returns False (and changes
        nothing) when the request is missing or already terminal.
        """

        req = await self._session.get(SigningRequest, request_id, with_for_update=True)
        if req is None or req.status.is_terminal:
            return False
        req.status = status
        req.result = result
        req.updated_at = datetime.utcnow()
        return True
