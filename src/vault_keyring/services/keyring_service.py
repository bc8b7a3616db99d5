"""
vault_keyring.services.keyring_service

Keyring lifecycle service (transaction + persistence owner).

Responsibilities:
- Manage vault-backed accounts.
- Submit signing requests to the vault and record them as pending.
- Poll pending requests and finalize them (signed / rejected), rebuilding
  message signatures from the encrypted raw signature the vault returns.
- Hold keyring configuration: credentials, mode, per-chain RPC routes.

State machine: created -> pending -> {signed | rejected}. `created` only exists
inside `submit_request`; a failed vault call records nothing. Only a vault
failure status moves a request to `rejected`; every other finalize failure
leaves it pending for the next poll.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog
from eth_utils import add_0x_prefix, is_hex_address
from sqlalchemy.ext.asyncio import AsyncSession

from vault_keyring import __version__
from vault_keyring.crypto import ecies
from vault_keyring.crypto.key_vault import DeterministicKeyVault
from vault_keyring.crypto.signatures import (
    personal_sign_digest,
    reconstruct_signature,
    typed_data_digest,
)
from vault_keyring.db.models import Account, SigningRequest
from vault_keyring.db.repositories.accounts import AccountRepo
from vault_keyring.db.repositories.config import KeyringConfigRepo
from vault_keyring.db.repositories.requests import SigningRequestRepo
from vault_keyring.errors import (
    AccountNotFound,
    DuplicateAddress,
    KeyringError,
    MalformedResponse,
    ProxyNotConfigured,
    RequestAlreadyFinal,
    RequestNotFound,
    UnknownChain,
    UnsupportedMethod,
    UnsupportedOperation,
    ValidationError,
)
from vault_keyring.host.bridge import HostBridge
from vault_keyring.keyring.methods import (
    EIP1559_TX_TYPE,
    SUPPORTED_METHODS,
    PersonalSign,
    SignTransaction,
    SignTypedData,
    SigningIntent,
    parse_intent,
)
from vault_keyring.keyring.state import (
    KeyringEventType,
    KeyringMode,
    RequestStatus,
    is_failed_status,
    is_final_status,
)
from vault_keyring.observability.logging import get_logger
from vault_keyring.services.credential_store import DbCredentialStore
from vault_keyring.settings import Settings
from vault_keyring.vault_client.client import VaultApiClient
from vault_keyring.vault_client.queries import SessionToken

log = get_logger(__name__)

ACCOUNT_TYPE = "eip155:eoa"

class InFlightRequests:
    """
    Request ids with a finalize in progress. One instance is shared by every
    `VaultKeyring` of a process (see `api.app`).
    """

    def __init__(self) -> None:
        self._ids: set[str] = set()

    def claim(self, request_id: str) -> bool:
        if request_id in self._ids:
            return False
        self._ids.add(request_id)
        return True

    def release(self, request_id: str) -> None:
        self._ids.discard(request_id)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._ids


@dataclass(slots=True)
class PollSummary:
    skipped: bool = False
    checked: int = 0
    signed: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class VaultKeyring:
    def __init__(
        self,
        *,
        session: AsyncSession,
        settings: Settings,
        http: httpx.AsyncClient,
        host: HostBridge,
        in_flight: InFlightRequests,
    ) -> None:
        self._session = session
        self._in_flight = in_flight
        self._settings = settings
        self._http = http
        self._host = host

        self._accounts = AccountRepo(session)
        self._requests = SigningRequestRepo(session)
        self._config = KeyringConfigRepo(session)
        self._credentials = DbCredentialStore(session)
        self._key_vault = DeterministicKeyVault(host.get_entropy)

    async def _client(self) -> VaultApiClient:
        mode = await self._config.get_mode()
        return VaultApiClient(
            settings=self._settings,
            http=self._http,
            credentials=self._credentials,
            on_session_invalidated=self._host.notify_session_invalidated,
            client_info=f"host:{self._settings.host_version}/keyring:{__version__}/mode:{mode}",
        )

    # --- Accounts ----------------------------------------------------------

    async def list_accounts(self) -> list[Account]:
        return await self._accounts.list()

    async def get_account(self, account_id: str) -> Account:
        account = await self._accounts.get(account_id)
        if account is None:
            raise AccountNotFound(f"Account {account_id} does not exist")
        return account

    async def create_account(self, options: dict[str, Any]) -> Account:
        name = options.get("name")
        address = options.get("address")
        organization_id = options.get("organizationId")
        if not isinstance(name, str):
            raise ValidationError("Provided account name must be a string")
        if not isinstance(address, str):
            raise ValidationError("Provided address must be a string")
        if not isinstance(organization_id, str) or not organization_id:
            raise ValidationError("Provided organizationId must be a non-empty string")

        address = add_0x_prefix(address)
        if not is_hex_address(address):
            raise ValidationError(f"Address {address} is not a valid EVM address")
        if await self._accounts.get_by_address(address) is not None:
            raise DuplicateAddress(f"Address {address} already in use")

        account_id = str(options.get("id") or "") or str(uuid.uuid4())
        payload = {
            "id": account_id,
            "name": name,
            "address": address.lower(),
            "organizationId": organization_id,
            "methods": list(SUPPORTED_METHODS),
            "type": ACCOUNT_TYPE,
        }
        await self._host.emit_event(
            KeyringEventType.account_created,
            account_id,
            {"account": payload, "accountNameSuggestion": name},
        )
        stored = await self._accounts.create(
            account_id=account_id,
            name=name,
            address=address,
            organization_id=organization_id,
            methods=list(SUPPORTED_METHODS),
            options=dict(options),
        )
        await self._session.commit()
        log.info("account_created", account_id=stored.id, organization_id=organization_id)
        return stored

    async def update_account(self, account_id: str, changes: dict[str, Any]) -> None:
        raise UnsupportedOperation("Updating accounts is not supported")

    async def delete_account(self, account_id: str) -> None:
        account = await self.get_account(account_id)
        if await self._requests.count_pending_for_account(account_id):
            raise ValidationError(f"Account {account_id} has pending signing requests")

        await self._host.emit_event(KeyringEventType.account_deleted, account_id, {"id": account_id})
        await self._accounts.delete(account)
        await self._session.commit()
        log.info("account_deleted", account_id=account_id)

    async def filter_account_chains(self, account_id: str, chains: list[str]) -> list[str]:
        await self.get_account(account_id)
        return [c for c in chains if c.startswith("eip155:")]

    # --- Requests ----------------------------------------------------------

    async def list_requests(self) -> list[SigningRequest]:
        return await self._requests.list()

    async def get_request(self, request_id: str) -> SigningRequest:
        req = await self._requests.get(request_id)
        if req is None:
            raise RequestNotFound(f"Request {request_id} does not exist")
        return req

    async def submit_request(
        self,
        *,
        request_id: str,
        account_id: str,
        method: str,
        params: Any,
        scope: str = "",
    ) -> str:
        """
        Creates the vault signing job and records the request as pending.

        Returns the vault request id.
        """

        account = await self.get_account(account_id)
        if method not in account.methods:
            raise UnsupportedMethod(method)
        if await self._requests.get(request_id) is not None:
            raise ValidationError(f"Request {request_id} already exists")

        intent = parse_intent(method, params)
        _check_signer(intent, account)

        client = await self._client()
        remote_request_id = await self._dispatch(client, request_id, account, intent)

        await self._requests.create(
            request_id=request_id,
            account_id=account.id,
            scope=scope,
            method=method,
            params=params,
            remote_request_id=remote_request_id,
        )
        await self._session.commit()
        log.info(
            "request_submitted",
            request_id=request_id,
            remote_request_id=remote_request_id,
            method=method,
        )
        return remote_request_id

    async def _dispatch(
        self,
        client: VaultApiClient,
        request_id: str,
        account: Account,
        intent: SigningIntent,
    ) -> str:
        org = account.organization_id
        match intent:
            case SignTransaction(transaction=tx):
                if not await self.check_proxy_usage():
                    raise ProxyNotConfigured()
                mode = await self._config.get_mode()
                rpc_url = await self._rpc_url(tx.chain_id, mode)
                submit = mode is KeyringMode.enhanced
                if tx.type_byte == EIP1559_TX_TYPE:
                    return await client.create_eip1559_transaction(
                        org, tx, submit=submit, rpc_url=rpc_url
                    )
                return await client.create_legacy_transaction(
                    org, tx, submit=submit, rpc_url=rpc_url
                )
            case PersonalSign(message=message, address=address):
                public_key = await self._key_vault.public_key_hex(request_id)
                return await client.create_personal_sign(
                    org, address=address, message=message, public_key=public_key
                )
            case SignTypedData(address=address, data=data, version=version):
                public_key = await self._key_vault.public_key_hex(request_id)
                return await client.create_sign_typed_data(
                    org, address=address, data=data, version=version, public_key=public_key
                )
        raise UnsupportedMethod(type(intent).__name__)

    async def reject_request(self, request_id: str) -> None:
        await self.get_request(request_id)
        raise UnsupportedOperation("Requests can only be rejected in the vault")

    # --- Polling / finalization -------------------------------------------

    async def check_pending_requests(self) -> PollSummary:
        """
        Periodic entry point: tries to finalize every pending request.

        Failures are isolated per request and never raised; the request stays
        pending for the next cycle.
        """

        summary = PollSummary()
        try:
            using_proxy = await self.check_proxy_usage()
        except KeyringError as e:
            log.warning("proxy_check_failed", error=str(e))
            using_proxy = False
        if not using_proxy:
            log.warning("poll_skipped", reason="enhanced mode without vault proxy")
            summary.skipped = True
            return summary

        # Ids are captured up front: a rollback after a failed finalize expires loaded rows.
        pending_ids = [req.id for req in await self._requests.list_pending()]
        for request_id in pending_ids:
            summary.checked += 1
            status = await self._finalize_isolated(request_id)
            if status is RequestStatus.signed:
                summary.signed.append(request_id)
            elif status is RequestStatus.rejected:
                summary.rejected.append(request_id)
            elif status is None:
                summary.failed.append(request_id)
        return summary

    async def approve_request(self, request_id: str) -> RequestStatus | None:
        """
        Finalizes one request on demand. Returns the resulting status, or None
        when the attempt failed (logged, request left pending).
        """

        req = await self.get_request(request_id)
        if req.status.is_terminal:
            raise RequestAlreadyFinal(request_id, req.status.value)
        return await self._finalize_isolated(request_id)

    async def _finalize_isolated(self, request_id: str) -> RequestStatus | None:
        try:
            return await self.finalize(request_id)
        except Exception:
            await self._session.rollback()
            log.exception("finalize_failed", request_id=request_id)
            return None

    async def finalize(self, request_id: str) -> RequestStatus:
        req = await self.get_request(request_id)
        if req.status.is_terminal:
            raise RequestAlreadyFinal(request_id, req.status.value)
        if not self._in_flight.claim(request_id):
            log.info("finalize_in_progress", request_id=request_id)
            return req.status

        try:
            with structlog.contextvars.bound_contextvars(
                request_id=request_id, remote_request_id=req.remote_request_id
            ):
                account = await self.get_account(req.account_id)
                client = await self._client()
                intent = parse_intent(req.method, req.params)
                match intent:
                    case SignTransaction():
                        return await self._finalize_transaction(client, req, account)
                    case PersonalSign(message=message, address=address):
                        digest = personal_sign_digest(message)
                        return await self._finalize_message(client, req, account, digest, address)
                    case SignTypedData(address=address, data=data, version=version):
                        digest = typed_data_digest(data, version)
                        return await self._finalize_message(client, req, account, digest, address)
                raise UnsupportedMethod(req.method)
        finally:
            self._in_flight.release(request_id)

    async def _finalize_transaction(
        self, client: VaultApiClient, req: SigningRequest, account: Account
    ) -> RequestStatus:
        info = await client.transaction_info(account.organization_id, req.remote_request_id)

        if is_failed_status(info.status):
            log.info("request_rejected", remote_status=info.status)
            await self._transition(req.id, RequestStatus.rejected, None)
            return RequestStatus.rejected
        if not is_final_status(info.status):
            return RequestStatus.pending

        if not (info.v and info.r and info.s):
            raise MalformedResponse("Signed transaction is missing v/r/s")
        result = {"v": add_0x_prefix(info.v), "r": add_0x_prefix(info.r), "s": add_0x_prefix(info.s)}
        await self._transition(req.id, RequestStatus.signed, result)
        return RequestStatus.signed

    async def _finalize_message(
        self,
        client: VaultApiClient,
        req: SigningRequest,
        account: Account,
        digest: bytes,
        address: str,
    ) -> RequestStatus:
        remote = await client.get_request(account.organization_id, req.remote_request_id)
        # Message requests only distinguish final vs not final; cancelled ones stay pending.
        if not is_final_status(remote.status):
            return RequestStatus.pending
        if not remote.raw_signature:
            raise MalformedResponse("Signed request has no encrypted signature")

        async with self._key_vault.key_pair(req.id) as pair:
            raw = ecies.decrypt_hex(pair.private_key, remote.raw_signature)
        signature = reconstruct_signature(digest, raw, address)

        await self._transition(req.id, RequestStatus.signed, signature)
        return RequestStatus.signed

    async def _transition(self, request_id: str, status: RequestStatus, result: Any) -> None:
        changed = await self._requests.set_terminal(
            request_id=request_id, status=status, result=result
        )
        await self._session.commit()
        if not changed:
            return
        if status is RequestStatus.signed:
            await self._host.emit_event(
                KeyringEventType.request_approved, request_id, {"id": request_id, "result": result}
            )
            log.info("request_signed")
        else:
            await self._host.emit_event(
                KeyringEventType.request_rejected, request_id, {"id": request_id}
            )

    # --- Configuration -----------------------------------------------------

    async def add_credentials(self, organization_id: str, token: SessionToken) -> None:
        if not organization_id:
            raise ValidationError("organizationId must be a non-empty string")
        if not token.is_complete:
            raise ValidationError("Session token requires enc, iv and tag")
        await self._credentials.replace(organization_id, token)
        log.info("credentials_installed", organization_id=organization_id)

    async def get_mode(self) -> KeyringMode:
        return await self._config.get_mode()

    async def update_mode(self, mode: KeyringMode) -> None:
        await self._config.set_mode(mode)
        await self._session.commit()
        log.info("mode_updated", mode=mode.value)

    async def add_rpc_url(self, *, chain_id: str, url: str) -> None:
        if not url.startswith(("http://", "https://")):
            raise ValidationError(f"RPC url {url!r} must be an http(s) URL")
        await self._config.set_rpc_url(chain_id=chain_id, url=url)
        await self._session.commit()

    async def check_proxy_usage(self) -> bool:
        if await self._config.get_mode() is not KeyringMode.enhanced:
            return True
        using_proxy = await self._host.is_using_rpc_proxy()
        if not using_proxy:
            await self._host.display_proxy_notice()
        return using_proxy

    async def _rpc_url(self, chain_id: str, mode: KeyringMode) -> str | None:
        if mode is not KeyringMode.enhanced:
            return None
        url = await self._config.get_rpc_url(chain_id)
        if url is None:
            raise UnknownChain(chain_id)
        return url


def _check_signer(intent: SigningIntent, account: Account) -> None:
    match intent:
        case SignTransaction(transaction=tx):
            signer = tx.from_address
        case PersonalSign(address=address) | SignTypedData(address=address):
            signer = address
    if signer.lower() != account.address:
        raise ValidationError(f"Signer {signer} does not match account address {account.address}")


# --- Module Notes -----------------------------------------------------------
# This service is the only writer of accounts, requests and configuration; every
# mutation is committed before the method returns.
