"""
vault_keyring.db.repositories.events

Repository for `KeyringEvent` entities.

Responsibilities:
- Append keyring events (account lifecycle, request outcomes, notices).
- Query recent events for the host.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from vault_keyring.db.models import KeyringEvent


class KeyringEventRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        *,
        event_type: str,
        subject_id: str | None,
        payload: dict[str, Any],
    ) -> KeyringEvent:
        # Events are append-only.
        ev = KeyringEvent(event_type=event_type, subject_id=subject_id, payload=payload)
        self._session.add(ev)
        await self._session.flush()
        return ev

    async def list_recent(
        self, *, limit: int = 200, event_type: str | None = None
    ) -> list[KeyringEvent]:
        stmt = select(KeyringEvent).order_by(desc(KeyringEvent.created_at)).limit(limit)
        if event_type is not None:
            stmt = stmt.where(KeyringEvent.event_type == event_type)
        return list((await self._session.execute(stmt)).scalars().all())

    async def list_for_subject(self, subject_id: str) -> list[KeyringEvent]:
        stmt = (
            select(KeyringEvent)
            .where(KeyringEvent.subject_id == subject_id)
            .order_by(KeyringEvent.created_at)
        )
        return list((await self._session.execute(stmt)).scalars().all())


# --- Module Notes -----------------------------------------------------------
# The local host bridge writes here; a host that consumes events over another
# channel can ignore the table.
