"""
tests.conftest

Shared fixtures: a file-backed SQLite database, a scriptable fake vault behind
`httpx.MockTransport`, and an in-memory host bridge.
"""

from __future__ import annotations

import json
import re
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from eth_keys import keys
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vault_keyring.crypto.key_vault import derive_entropy
from vault_keyring.db.init_db import init_db
from vault_keyring.db.session import create_engine, create_sessionmaker
from vault_keyring.keyring.state import KeyringEventType
from vault_keyring.services.keyring_service import InFlightRequests, VaultKeyring
from vault_keyring.settings import Settings
from vault_keyring.vault_client.queries import SessionToken

ORG_ID = "org-1"
SIGNER_KEY = keys.PrivateKey(
    bytes.fromhex("4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318")
)
SIGNER_ADDRESS = SIGNER_KEY.public_key.to_checksum_address()

Handler = Callable[[str], dict[str, Any] | httpx.Response]

_OPERATIONS = (
    "refreshAuthenticationTokens",
    "createEIP1559Transaction",
    "createEthereumTransaction",
    "createEthPersonalSign",
    "createEthSignTypedData",
    "transactionInfo",
    "getRequest",
)


class FakeVault:
    """
    Routes GraphQL documents by operation name to per-operation handlers.

    A handler receives the query text and returns a JSON body or a ready response.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.headers: list[httpx.Headers] = []
        self.handlers: dict[str, Handler] = {}
        self.proxy = True

    def on(self, operation: str, handler: Handler) -> None:
        self.handlers[operation] = handler

    def operations(self) -> list[str]:
        return [op for op, _ in self.calls]

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if "method" in body:
            # Host RPC endpoint (proxy check).
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {"proxy": self.proxy}})

        query = body["query"]
        operation = next(op for op in _OPERATIONS if op in query)
        self.calls.append((operation, query))
        self.headers.append(request.headers)
        handler = self.handlers.get(operation)
        if handler is None:
            return httpx.Response(500, json={"message": f"unexpected {operation}"})
        result = handler(query)
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json=result)


class FakeHost:
    def __init__(self, secret: bytes = b"test-wallet-secret") -> None:
        self.secret = secret
        self.events: list[tuple[KeyringEventType, str | None, dict[str, Any]]] = []
        self.invalidated: list[str] = []
        self.proxy = True
        self.proxy_notices = 0

    async def get_entropy(self, salt: str) -> bytes:
        return derive_entropy(self.secret, salt)

    async def emit_event(
        self, event_type: KeyringEventType, subject_id: str | None, payload: dict[str, Any]
    ) -> None:
        self.events.append((event_type, subject_id, payload))

    async def notify_session_invalidated(self, organization_id: str) -> None:
        self.invalidated.append(organization_id)

    async def is_using_rpc_proxy(self) -> bool:
        return self.proxy

    async def display_proxy_notice(self) -> None:
        self.proxy_notices += 1

    def events_of(self, event_type: KeyringEventType) -> list[tuple[str | None, dict[str, Any]]]:
        return [(s, p) for t, s, p in self.events if t is event_type]


MAIL_TYPED_DATA = {
    "types": {
        "EIP712Domain": [
            {"name": "name", "type": "string"},
            {"name": "version", "type": "string"},
            {"name": "chainId", "type": "uint256"},
            {"name": "verifyingContract", "type": "address"},
        ],
        "Person": [
            {"name": "name", "type": "string"},
            {"name": "wallet", "type": "address"},
        ],
        "Mail": [
            {"name": "from", "type": "Person"},
            {"name": "to", "type": "Person"},
            {"name": "contents", "type": "string"},
        ],
    },
    "primaryType": "Mail",
    "domain": {
        "name": "Ether Mail",
        "version": "1",
        "chainId": 1,
        "verifyingContract": "0xCcCCccccCCCCcCCCCCCcCcCccCcCCCcCcccccccC",
    },
    "message": {
        "from": {"name": "Cow", "wallet": "0xCD2a3d9F938E13CD947Ec05AbC7FE734Df8DD826"},
        "to": {"name": "Bob", "wallet": "0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB"},
        "contents": "Hello, Bob!",
    },
}

MAIL_DIGEST = "be609aee343fb3c4b28e1df9e632fca64fcfaede20f02e86244efddf30957bd2"


def public_key_from(query: str) -> bytes:
    m = re.search(r'signatureEncryptionPublicKey: "([0-9a-f]+)"', query)
    assert m is not None
    return bytes.fromhex(m.group(1))


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'keyring.db'}",
        vault_api_url="http://vault.test/graphql",
        vault_api_key="test-api-key",
        host_rpc_url="http://rpc.test",
        host_version="1.2.3",
    )


@pytest.fixture
def vault() -> FakeVault:
    return FakeVault()


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest_asyncio.fixture
async def session_factory(settings: Settings) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_engine(settings)
    await init_db(engine)
    try:
        yield create_sessionmaker(engine)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def http(vault: FakeVault) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(vault.handle)) as client:
        yield client


@pytest.fixture
def in_flight() -> InFlightRequests:
    return InFlightRequests()


@pytest_asyncio.fixture
async def keyring(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    http: httpx.AsyncClient,
    host: FakeHost,
    in_flight: InFlightRequests,
) -> AsyncIterator[VaultKeyring]:
    async with session_factory() as session:
        kr = VaultKeyring(
            session=session, settings=settings, http=http, host=host, in_flight=in_flight
        )
        await kr.add_credentials(ORG_ID, SessionToken(enc="enc-1", iv="iv-1", tag="tag-1"))
        yield kr
