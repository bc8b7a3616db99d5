"""
vault_keyring.api.routers.health

Liveness and readiness endpoints.

`/healthz` only says the process is up. `/readyz` answers whether the keyring
can serve signing traffic: the database answers, a custody API key is set and
the custody endpoint is an http(s) URL. It also reports the keyring mode and
how much work is waiting (pending requests, organizations with a session).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from vault_keyring.api.deps import db_session, settings_dep
from vault_keyring.db.repositories.config import KeyringConfigRepo
from vault_keyring.db.repositories.credentials import CredentialRepo
from vault_keyring.db.repositories.requests import SigningRequestRepo
from vault_keyring.observability.logging import get_logger
from vault_keyring.settings import Settings

router = APIRouter()
log = get_logger(__name__)


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> JSONResponse:
    problems = _vault_problems(settings)
    body: dict[str, Any] = {
        "mode": (await KeyringConfigRepo(session).get_mode()).value,
        "organizations": await CredentialRepo(session).count(),
        "pending_requests": await SigningRequestRepo(session).count_pending(),
    }
    if problems:
        log.warning("not_ready", problems=problems)
        return JSONResponse(status_code=503, content={"status": "unavailable", "problems": problems, **body})
    return JSONResponse(content={"status": "ready", **body})


def _vault_problems(settings: Settings) -> list[str]:
    problems = []
    if not settings.vault_api_key:
        problems.append("vault_api_key is not set")
    if not settings.vault_api_url.startswith(("http://", "https://")):
        problems.append("vault_api_url is not an http(s) URL")
    return problems
