"""
vault_keyring.api.routers.configuration

Keyring configuration endpoints.

Responsibilities:
- Install/replace an organization's vault session credentials.
- Read/update the keyring mode; register per-chain RPC relay URLs.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from vault_keyring.api.deps import keyring_dep
from vault_keyring.api.schemas import CredentialsRequest, ModeBody, RpcUrlRequest
from vault_keyring.auth.deps import require_method
from vault_keyring.auth.models import KeyringRpc
from vault_keyring.services.keyring_service import VaultKeyring
from vault_keyring.vault_client.queries import SessionToken

router = APIRouter(
    prefix="/v1/configuration",
    tags=["configuration"],
    dependencies=[Depends(require_method(KeyringRpc.configure))],
)


@router.put("/credentials")
async def put_credentials(
    body: CredentialsRequest, keyring: VaultKeyring = Depends(keyring_dep)
) -> dict[str, str]:
    token = SessionToken(enc=body.token.enc, iv=body.token.iv, tag=body.token.tag)
    await keyring.add_credentials(body.organization_id, token)
    return {"organization_id": body.organization_id}


@router.get("/mode", response_model=ModeBody)
async def get_mode(keyring: VaultKeyring = Depends(keyring_dep)) -> ModeBody:
    return ModeBody(mode=await keyring.get_mode())


@router.put("/mode", response_model=ModeBody)
async def put_mode(body: ModeBody, keyring: VaultKeyring = Depends(keyring_dep)) -> ModeBody:
    await keyring.update_mode(body.mode)
    return body


@router.put("/rpc-urls")
async def put_rpc_url(
    body: RpcUrlRequest, keyring: VaultKeyring = Depends(keyring_dep)
) -> dict[str, str]:
    await keyring.add_rpc_url(chain_id=body.chain_id, url=body.rpc_url)
    return {"chain_id": body.chain_id}
