"""
vault_keyring.api.routers.accounts

Keyring account endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from starlette.status import HTTP_201_CREATED, HTTP_204_NO_CONTENT

from vault_keyring.api.deps import keyring_dep
from vault_keyring.api.schemas import (
    AccountResponse,
    CreateAccountRequest,
    FilterChainsRequest,
    FilterChainsResponse,
)
from vault_keyring.auth.deps import require_method
from vault_keyring.auth.models import KeyringRpc
from vault_keyring.services.keyring_service import VaultKeyring

router = APIRouter(prefix="/v1/accounts", tags=["accounts"])


@router.get(
    "",
    response_model=list[AccountResponse],
    dependencies=[Depends(require_method(KeyringRpc.list_accounts))],
)
async def list_accounts(keyring: VaultKeyring = Depends(keyring_dep)) -> list[AccountResponse]:
    return [AccountResponse.from_model(a) for a in await keyring.list_accounts()]


@router.post(
    "",
    response_model=AccountResponse,
    status_code=HTTP_201_CREATED,
    dependencies=[Depends(require_method(KeyringRpc.create_account))],
)
async def create_account(
    body: CreateAccountRequest,
    keyring: VaultKeyring = Depends(keyring_dep),
) -> AccountResponse:
    return AccountResponse.from_model(await keyring.create_account(body.options))


@router.get(
    "/{account_id}",
    response_model=AccountResponse,
    dependencies=[Depends(require_method(KeyringRpc.get_account))],
)
async def get_account(
    account_id: str, keyring: VaultKeyring = Depends(keyring_dep)
) -> AccountResponse:
    return AccountResponse.from_model(await keyring.get_account(account_id))


@router.delete(
    "/{account_id}",
    status_code=HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_method(KeyringRpc.delete_account))],
)
async def delete_account(account_id: str, keyring: VaultKeyring = Depends(keyring_dep)) -> Response:
    await keyring.delete_account(account_id)
    return Response(status_code=HTTP_204_NO_CONTENT)


@router.post(
    "/{account_id}/chains",
    response_model=FilterChainsResponse,
    dependencies=[Depends(require_method(KeyringRpc.filter_account_chains))],
)
async def filter_account_chains(
    account_id: str,
    body: FilterChainsRequest,
    keyring: VaultKeyring = Depends(keyring_dep),
) -> FilterChainsResponse:
    return FilterChainsResponse(chains=await keyring.filter_account_chains(account_id, body.chains))
