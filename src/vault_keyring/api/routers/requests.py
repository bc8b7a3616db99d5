"""
vault_keyring.api.routers.requests

Signing request endpoints.

Responsibilities:
- Submit signing requests (recorded as pending once the vault accepts them).
- Read request state; approve (finalize now) or reject.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from vault_keyring.api.deps import keyring_dep
from vault_keyring.api.schemas import (
    ApproveRequestResponse,
    SigningRequestResponse,
    SubmitRequestBody,
    SubmitRequestResponse,
)
from vault_keyring.auth.deps import require_method
from vault_keyring.auth.models import KeyringRpc
from vault_keyring.keyring.state import RequestStatus
from vault_keyring.services.keyring_service import VaultKeyring

router = APIRouter(prefix="/v1/requests", tags=["requests"])


@router.get(
    "",
    response_model=list[SigningRequestResponse],
    dependencies=[Depends(require_method(KeyringRpc.list_requests))],
)
async def list_requests(
    keyring: VaultKeyring = Depends(keyring_dep),
) -> list[SigningRequestResponse]:
    return [SigningRequestResponse.from_model(r) for r in await keyring.list_requests()]


@router.post(
    "",
    response_model=SubmitRequestResponse,
    dependencies=[Depends(require_method(KeyringRpc.submit_request))],
)
async def submit_request(
    body: SubmitRequestBody,
    keyring: VaultKeyring = Depends(keyring_dep),
) -> SubmitRequestResponse:
    remote_request_id = await keyring.submit_request(
        request_id=body.id,
        account_id=body.account_id,
        method=body.method,
        params=body.params,
        scope=body.scope,
    )
    return SubmitRequestResponse(remote_request_id=remote_request_id)


@router.get(
    "/{request_id}",
    response_model=SigningRequestResponse,
    dependencies=[Depends(require_method(KeyringRpc.get_request))],
)
async def get_request(
    request_id: str, keyring: VaultKeyring = Depends(keyring_dep)
) -> SigningRequestResponse:
    return SigningRequestResponse.from_model(await keyring.get_request(request_id))


@router.post(
    "/{request_id}/approve",
    response_model=ApproveRequestResponse,
    dependencies=[Depends(require_method(KeyringRpc.approve_request))],
)
async def approve_request(
    request_id: str, keyring: VaultKeyring = Depends(keyring_dep)
) -> ApproveRequestResponse:
    status = await keyring.approve_request(request_id)
    current = status or RequestStatus.pending
    return ApproveRequestResponse(
        id=request_id, status=current.value, finalized=current.is_terminal
    )


@router.post(
    "/{request_id}/reject",
    dependencies=[Depends(require_method(KeyringRpc.reject_request))],
)
async def reject_request(request_id: str, keyring: VaultKeyring = Depends(keyring_dep)) -> None:
    await keyring.reject_request(request_id)
