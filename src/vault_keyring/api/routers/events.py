"""
vault_keyring.api.routers.events

Read API over keyring events (approvals, rejections, notices).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vault_keyring.api.deps import db_session
from vault_keyring.api.schemas import EventResponse
from vault_keyring.auth.deps import require_method
from vault_keyring.auth.models import KeyringRpc
from vault_keyring.db.repositories.events import KeyringEventRepo

router = APIRouter(prefix="/v1/events", tags=["events"])


@router.get(
    "",
    response_model=list[EventResponse],
    dependencies=[Depends(require_method(KeyringRpc.list_requests))],
)
async def list_events(
    event_type: str | None = None,
    limit: int = Query(default=200, ge=1, le=1000),
    session: AsyncSession = Depends(db_session),
) -> list[EventResponse]:
    events = await KeyringEventRepo(session).list_recent(limit=limit, event_type=event_type)
    return [EventResponse.from_model(ev) for ev in events]
