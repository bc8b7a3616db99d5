"""
vault_keyring.vault_client.client

HTTP client for the custody vault GraphQL API.

Responsibilities:
- POST GraphQL documents with the API key and client-info headers.
- Map transport failures to `Unreachable` / `BadStatus` and error lists to `RemoteError`.
- Run the session refresh protocol: on an invalid-session error, refresh the
  organization's token once and retry the original call once.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from vault_keyring.errors import (
    BadStatus,
    MalformedResponse,
    MissingConfiguration,
    RefreshFailed,
    RemoteError,
    TransportError,
    Unreachable,
)
from vault_keyring.keyring.methods import EvmTransaction
from vault_keyring.observability.logging import get_logger
from vault_keyring.settings import Settings
from vault_keyring.vault_client import queries
from vault_keyring.vault_client.queries import SessionToken

log = get_logger(__name__)

INVALID_SESSION_ERROR = "INVALID_SESSION_TOKEN"

BuildQuery = Callable[[SessionToken], str]
SessionInvalidatedHook = Callable[[str], Awaitable[None]]


class CredentialStore(Protocol):
    async def get(self, organization_id: str) -> SessionToken | None: ...

    async def replace(self, organization_id: str, token: SessionToken) -> None: ...

    async def remove(self, organization_id: str) -> None: ...


@dataclass(frozen=True, slots=True)
class TransactionInfo:
    status: str
    v: str | None = None
    r: str | None = None
    s: str | None = None
    transaction_digest: str | None = None


@dataclass(frozen=True, slots=True)
class RemoteRequest:
    status: str
    raw_signature: str | None = None


class VaultApiClient:
    def __init__(
        self,
        *,
        settings: Settings,
        http: httpx.AsyncClient,
        credentials: CredentialStore,
        on_session_invalidated: SessionInvalidatedHook,
        client_info: str = "",
    ) -> None:
        self._settings = settings
        self._http = http
        self._credentials = credentials
        self._on_session_invalidated = on_session_invalidated
        self._client_info = client_info

    def _headers(self) -> dict[str, str]:
        headers = {"x-api-key": self._settings.vault_api_key}
        if self._client_info:
            headers["x-client-info"] = self._client_info
        return headers

    async def _post(self, query: str) -> dict[str, Any]:
        try:
            r = await self._http.post(
                self._settings.vault_api_url,
                headers=self._headers(),
                json={"query": query},
            )
        except httpx.HTTPError as e:
            raise Unreachable(f"Failed to reach the vault API, error: {e}") from e
        if not r.is_success:
            raise BadStatus(r.status_code)
        try:
            body = r.json()
        except ValueError as e:
            raise MalformedResponse("Vault API returned a non-JSON body") from e
        if not isinstance(body, dict):
            raise MalformedResponse("Vault API returned a non-object body")
        return body

    async def graphql(self, organization_id: str, build: BuildQuery) -> dict[str, Any]:
        """
        Executes `build(token)` for the organization's current session.

        At most one refresh and one retry: a retried call that still reports an
        invalid session raises `RefreshFailed` instead of refreshing again.
        """

        token = await self._credentials.get(organization_id)
        if token is None:
            raise MissingConfiguration(
                f"No vault credentials configured for organization {organization_id}"
            )

        response = await self._post(build(token))
        if _is_invalid_session(response):
            token = await self._refresh(organization_id, token)
            response = await self._post(build(token))
            if _is_invalid_session(response):
                raise RefreshFailed(organization_id, "refreshed session was rejected")

        errors = response.get("errors")
        if errors:
            raise RemoteError(list(errors))
        data = response.get("data")
        if not isinstance(data, dict):
            raise MalformedResponse("Vault API response has no data object")
        return data

    async def _refresh(self, organization_id: str, token: SessionToken) -> SessionToken:
        log.info("vault_session_refresh", organization_id=organization_id)
        try:
            response = await self._post(queries.refresh_authentication_tokens(token))
            if response.get("errors"):
                raise RemoteError(list(response["errors"]))
            payload = (response.get("data") or {}).get("refreshAuthenticationTokens") or {}
            refreshed = SessionToken(
                enc=str(payload.get("enc") or ""),
                iv=str(payload.get("iv") or ""),
                tag=str(payload.get("tag") or ""),
            )
            if not refreshed.is_complete:
                raise MalformedResponse("Refresh response is missing token material")
        except (TransportError, RemoteError, MalformedResponse) as e:
            log.warning(
                "vault_session_invalidated", organization_id=organization_id, error=str(e)
            )
            await self._credentials.remove(organization_id)
            await self._on_session_invalidated(organization_id)
            raise RefreshFailed(organization_id, str(e)) from e

        await self._credentials.replace(organization_id, refreshed)
        return refreshed

    # --- Operations --------------------------------------------------------

    async def create_eip1559_transaction(
        self,
        organization_id: str,
        tx: EvmTransaction,
        *,
        submit: bool,
        rpc_url: str | None = None,
    ) -> str:
        data = await self.graphql(
            organization_id,
            lambda token: queries.create_eip1559_transaction(
                token,
                tx,
                submit=submit,
                source=self._settings.client_source,
                currency=self._settings.currency,
                rpc_url=rpc_url,
            ),
        )
        return _request_id(data, "createEIP1559Transaction")

    async def create_legacy_transaction(
        self,
        organization_id: str,
        tx: EvmTransaction,
        *,
        submit: bool,
        rpc_url: str | None = None,
    ) -> str:
        data = await self.graphql(
            organization_id,
            lambda token: queries.create_ethereum_transaction(
                token,
                tx,
                submit=submit,
                source=self._settings.client_source,
                currency=self._settings.currency,
                rpc_url=rpc_url,
            ),
        )
        return _request_id(data, "createEthereumTransaction")

    async def create_personal_sign(
        self, organization_id: str, *, address: str, message: str, public_key: str
    ) -> str:
        data = await self.graphql(
            organization_id,
            lambda token: queries.create_eth_personal_sign(
                token,
                address=address,
                message=message,
                public_key=public_key,
                source=self._settings.client_source,
            ),
        )
        return _request_id(data, "createEthPersonalSign")

    async def create_sign_typed_data(
        self,
        organization_id: str,
        *,
        address: str,
        data: dict[str, Any] | str,
        version: str,
        public_key: str,
    ) -> str:
        resp = await self.graphql(
            organization_id,
            lambda token: queries.create_eth_sign_typed_data(
                token,
                address=address,
                data=data,
                version=version,
                public_key=public_key,
                source=self._settings.client_source,
            ),
        )
        return _request_id(resp, "createEthSignTypedData")

    async def transaction_info(self, organization_id: str, remote_request_id: str) -> TransactionInfo:
        data = await self.graphql(
            organization_id, lambda token: queries.transaction_info(token, remote_request_id)
        )
        info = data.get("transactionInfo")
        if not isinstance(info, dict) or not info.get("status"):
            raise MalformedResponse("transactionInfo response has no status")
        signed = info.get("signedTransaction") or {}
        tx = signed.get("transaction") or {}
        return TransactionInfo(
            status=str(info["status"]),
            v=tx.get("v"),
            r=tx.get("r"),
            s=tx.get("s"),
            transaction_digest=signed.get("transactionDigest"),
        )

    async def get_request(self, organization_id: str, remote_request_id: str) -> RemoteRequest:
        data = await self.graphql(
            organization_id, lambda token: queries.get_request(token, remote_request_id)
        )
        req = data.get("getRequest")
        if not isinstance(req, dict) or not req.get("status"):
            raise MalformedResponse("getRequest response has no status")
        signatures = req.get("signatures") or {}
        return RemoteRequest(status=str(req["status"]), raw_signature=signatures.get("raw"))


def _is_invalid_session(response: dict[str, Any]) -> bool:
    errors = response.get("errors")
    if not errors or not isinstance(errors, list) or not isinstance(errors[0], dict):
        return False
    return INVALID_SESSION_ERROR in str(errors[0].get("errorType") or "")


def _request_id(data: dict[str, Any], field: str) -> str:
    payload = data.get(field)
    if not isinstance(payload, dict) or not payload.get("requestId"):
        raise MalformedResponse(f"{field} response has no requestId")
    return str(payload["requestId"])


# --- Module Notes -----------------------------------------------------------
# No retries beyond the refresh protocol: a failed poll simply leaves the
# request pending for the next cycle.
