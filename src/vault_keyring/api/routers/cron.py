"""
vault_keyring.api.routers.cron

Periodic trigger invoked by the host scheduler.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from vault_keyring.api.deps import keyring_dep
from vault_keyring.api.schemas import PollResponse
from vault_keyring.auth.deps import require_method
from vault_keyring.auth.models import KeyringRpc
from vault_keyring.services.keyring_service import VaultKeyring

router = APIRouter(prefix="/v1/cron", tags=["cron"])


@router.post(
    "/check-pending",
    response_model=PollResponse,
    dependencies=[Depends(require_method(KeyringRpc.check_pending))],
)
async def check_pending_requests(keyring: VaultKeyring = Depends(keyring_dep)) -> PollResponse:
    summary = await keyring.check_pending_requests()
    return PollResponse(
        skipped=summary.skipped,
        checked=summary.checked,
        signed=summary.signed,
        rejected=summary.rejected,
        failed=summary.failed,
    )
