"""
vault_keyring.host.bridge

Host bridge: what the keyring consumes from the wallet runtime.

Responsibilities:
- Provide deterministic per-salt entropy (never stored by the keyring).
- Deliver keyring events and user-facing notices.
- Check whether chain RPC traffic goes through the vault proxy.

`LocalHostBridge` is the in-process implementation used by the HTTP service:
entropy comes from the configured wallet secret, events/notices are appended to
the `keyring_events` table, and the proxy check is a JSON-RPC call to the host
RPC endpoint.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from vault_keyring.crypto.key_vault import derive_entropy
from vault_keyring.db.repositories.events import KeyringEventRepo
from vault_keyring.errors import MalformedResponse, Unreachable
from vault_keyring.keyring.state import KeyringEventType
from vault_keyring.observability.logging import get_logger
from vault_keyring.settings import Settings

log = get_logger(__name__)

PROXY_NOTICE = (
    "Enhanced mode is enabled but RPC requests are not going through the vault proxy. "
    "Turn enhanced mode off or enable the vault proxy for this network."
)
SESSION_INVALIDATED_NOTICE = (
    "Organization {organization_id} and all associated accounts have been logged out. "
    "Reconnect the keyring to the organization from the vault web app."
)


class HostBridge(Protocol):
    async def get_entropy(self, salt: str) -> bytes: ...

    async def emit_event(
        self, event_type: KeyringEventType, subject_id: str | None, payload: dict[str, Any]
    ) -> None: ...

    async def notify_session_invalidated(self, organization_id: str) -> None: ...

    async def is_using_rpc_proxy(self) -> bool: ...

    async def display_proxy_notice(self) -> None: ...


class LocalHostBridge:
    def __init__(
        self,
        *,
        settings: Settings,
        session: AsyncSession,
        http: httpx.AsyncClient,
    ) -> None:
        self._settings = settings
        self._session = session
        self._http = http
        self._events = KeyringEventRepo(session)

    async def get_entropy(self, salt: str) -> bytes:
        return derive_entropy(self._settings.wallet_secret.encode("utf-8"), salt)

    async def emit_event(
        self, event_type: KeyringEventType, subject_id: str | None, payload: dict[str, Any]
    ) -> None:
        await self._events.add(event_type=event_type.value, subject_id=subject_id, payload=payload)
        await self._session.commit()
        log.info("keyring_event", event_type=event_type.value, subject_id=subject_id)

    async def notify_session_invalidated(self, organization_id: str) -> None:
        message = SESSION_INVALIDATED_NOTICE.format(organization_id=organization_id)
        await self.emit_event(
            KeyringEventType.session_invalidated, organization_id, {"message": message}
        )

    async def is_using_rpc_proxy(self) -> bool:
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_feeHistory",
            "params": ["0x1", "latest", []],
        }
        try:
            r = await self._http.post(self._settings.host_rpc_url, json=payload)
            r.raise_for_status()
            body = r.json()
        except httpx.HTTPError as e:
            raise Unreachable(f"Unexpected problem while trying to call eth_feeHistory, {e}") from e
        except ValueError as e:
            raise MalformedResponse("eth_feeHistory returned a non-JSON body") from e

        result = body.get("result") if isinstance(body, dict) else None
        if not isinstance(result, dict):
            raise MalformedResponse(
                f"Unexpected, non-object response while checking RPC proxy usage: {result!r}"
            )
        return result.get("proxy") is True

    async def display_proxy_notice(self) -> None:
        await self.emit_event(KeyringEventType.proxy_notice, None, {"message": PROXY_NOTICE})


# --- Module Notes -----------------------------------------------------------
# A host embedding the keyring in-process can pass its own HostBridge to
# `VaultKeyring`; nothing else in the service depends on LocalHostBridge.
