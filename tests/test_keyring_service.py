"""
tests.test_keyring_service

Keyring lifecycle against a fake vault: submission, polling and finalization.
"""

from __future__ import annotations

import re

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys import keys
from eth_utils import keccak

from tests.conftest import (
    MAIL_DIGEST,
    MAIL_TYPED_DATA,
    ORG_ID,
    SIGNER_ADDRESS,
    SIGNER_KEY,
    FakeHost,
    FakeVault,
    public_key_from,
)
from vault_keyring.crypto import ecies
from vault_keyring.crypto.signatures import personal_sign_digest
from vault_keyring.errors import (
    AccountNotFound,
    DuplicateAddress,
    ProxyNotConfigured,
    RequestAlreadyFinal,
    UnknownChain,
    UnsupportedMethod,
    UnsupportedOperation,
    UnsupportedTransactionType,
    ValidationError,
)
from vault_keyring.keyring.state import KeyringEventType, KeyringMode, RequestStatus
from vault_keyring.services.keyring_service import InFlightRequests, VaultKeyring


def _tx(**overrides) -> dict:
    tx = {
        "nonce": "0x1",
        "chainId": "0x1",
        "gasLimit": "0x5208",
        "from": SIGNER_ADDRESS,
        "to": "0x" + "22" * 20,
        "value": "0xde0b6b3a7640000",
        "data": "0x",
        "type": "0x2",
        "maxFeePerGas": "0x3b9aca00",
        "maxPriorityFeePerGas": "0x3b9aca00",
    }
    tx.update(overrides)
    return tx


def _created(operation: str, remote_id: str = "remote-1"):
    return lambda q: {"data": {operation: {"requestId": remote_id}}}


def _tx_status(status: str, **signed):
    def handler(query: str) -> dict:
        info: dict = {"status": status, "signedTransaction": None}
        if signed:
            info["signedTransaction"] = {"transactionDigest": "0xabc", "transaction": signed}
        return {"data": {"transactionInfo": info}}

    return handler


def _vault_signature(public_key: bytes, digest: bytes, key: keys.PrivateKey = SIGNER_KEY) -> str:
    # The vault signs without a recovery id and encrypts r || s to the request's key.
    sig = key.sign_msg_hash(digest)
    raw = sig.r.to_bytes(32, "big") + sig.s.to_bytes(32, "big")
    return ecies.encrypt(public_key, raw).hex()


def _serve_signature(vault: FakeVault, encrypted: str) -> None:
    vault.on(
        "getRequest",
        lambda q: {"data": {"getRequest": {"status": "SIGNED", "signatures": {"raw": encrypted}}}},
    )


def _expected_signature(digest: bytes) -> str:
    sig = SIGNER_KEY.sign_msg_hash(digest)
    return "0x" + sig.r.to_bytes(32, "big").hex() + sig.s.to_bytes(32, "big").hex() + f"{sig.v + 27:02x}"


async def _account(keyring: VaultKeyring) -> str:
    account = await keyring.create_account(
        {"name": "Treasury", "address": SIGNER_ADDRESS, "organizationId": ORG_ID}
    )
    return account.id


# --- Accounts ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_account_validates_and_emits_event(keyring: VaultKeyring, host: FakeHost) -> None:
    account = await keyring.create_account(
        {"name": "Treasury", "address": SIGNER_ADDRESS[2:], "organizationId": ORG_ID}
    )

    assert account.address == SIGNER_ADDRESS.lower()
    assert "personal_sign" in account.methods
    created = host.events_of(KeyringEventType.account_created)
    assert len(created) == 1
    assert created[0][1]["account"]["type"] == "eip155:eoa"
    assert [a.id for a in await keyring.list_accounts()] == [account.id]

    with pytest.raises(DuplicateAddress):
        await keyring.create_account(
            {"name": "Again", "address": SIGNER_ADDRESS.upper().replace("0X", "0x"), "organizationId": ORG_ID}
        )
    with pytest.raises(ValidationError):
        await keyring.create_account({"name": "Bad", "address": "0x1234", "organizationId": ORG_ID})
    with pytest.raises(ValidationError):
        await keyring.create_account({"name": 7, "address": "0x" + "33" * 20, "organizationId": ORG_ID})
    with pytest.raises(ValidationError):
        await keyring.create_account({"name": "NoOrg", "address": "0x" + "33" * 20})


@pytest.mark.asyncio
async def test_account_operations(keyring: VaultKeyring, host: FakeHost) -> None:
    account_id = await _account(keyring)

    chains = await keyring.filter_account_chains(account_id, ["eip155:1", "bip122:000000000019d6", "eip155:137"])
    assert chains == ["eip155:1", "eip155:137"]
    with pytest.raises(UnsupportedOperation):
        await keyring.update_account(account_id, {"name": "x"})

    await keyring.delete_account(account_id)
    assert host.events_of(KeyringEventType.account_deleted) == [(account_id, {"id": account_id})]
    with pytest.raises(AccountNotFound):
        await keyring.get_account(account_id)


# --- Submission ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_submit_eip1559_transaction_in_basic_mode(keyring: VaultKeyring, vault: FakeVault) -> None:
    account_id = await _account(keyring)
    vault.on("createEIP1559Transaction", _created("createEIP1559Transaction"))

    remote_id = await keyring.submit_request(
        request_id="req-1", account_id=account_id, method="eth_signTransaction", params=[_tx()]
    )

    assert remote_id == "remote-1"
    query = vault.calls[0][1]
    assert "sendToNetworkWhenSigned: false" in query
    assert "rpcUrl" not in query
    assert "data:" not in query
    assert vault.headers[0]["x-client-info"].endswith("/mode:basic")
    req = await keyring.get_request("req-1")
    assert req.status is RequestStatus.pending
    assert req.remote_request_id == "remote-1"


@pytest.mark.asyncio
async def test_submit_legacy_transaction_uses_decimal_quantities(
    keyring: VaultKeyring, vault: FakeVault
) -> None:
    account_id = await _account(keyring)
    vault.on("createEthereumTransaction", _created("createEthereumTransaction"))

    await keyring.submit_request(
        request_id="req-1",
        account_id=account_id,
        method="eth_signTransaction",
        params=[_tx(type="0x0", gasPrice="0x3b9aca00", maxFeePerGas=None, maxPriorityFeePerGas=None)],
    )

    query = vault.calls[0][1]
    assert 'gasPrice: "1000000000"' in query
    assert 'value: "1000000000000000000"' in query
    assert "chainId: 1," in query


@pytest.mark.asyncio
async def test_unsupported_transaction_type_never_reaches_vault(
    keyring: VaultKeyring, vault: FakeVault
) -> None:
    account_id = await _account(keyring)

    with pytest.raises(UnsupportedTransactionType):
        await keyring.submit_request(
            request_id="req-1",
            account_id=account_id,
            method="eth_signTransaction",
            params=[_tx(type="0x1", gasPrice="0x1")],
        )

    assert vault.calls == []
    assert await keyring.list_requests() == []


@pytest.mark.asyncio
async def test_submit_rejects_unknown_method_and_foreign_signer(
    keyring: VaultKeyring, vault: FakeVault
) -> None:
    account_id = await _account(keyring)

    with pytest.raises(UnsupportedMethod):
        await keyring.submit_request(
            request_id="req-1", account_id=account_id, method="eth_sign", params=[]
        )
    with pytest.raises(ValidationError):
        await keyring.submit_request(
            request_id="req-1",
            account_id=account_id,
            method="personal_sign",
            params=["hello", "0x" + "44" * 20],
        )
    assert vault.calls == []


@pytest.mark.asyncio
async def test_enhanced_mode_without_proxy_blocks_transactions(
    keyring: VaultKeyring, vault: FakeVault, host: FakeHost
) -> None:
    account_id = await _account(keyring)
    await keyring.update_mode(KeyringMode.enhanced)
    host.proxy = False

    with pytest.raises(ProxyNotConfigured):
        await keyring.submit_request(
            request_id="req-1", account_id=account_id, method="eth_signTransaction", params=[_tx()]
        )

    assert vault.calls == []
    assert host.proxy_notices == 1

    summary = await keyring.check_pending_requests()
    assert summary.skipped is True
    assert vault.calls == []


@pytest.mark.asyncio
async def test_enhanced_mode_routes_through_chain_rpc(keyring: VaultKeyring, vault: FakeVault) -> None:
    account_id = await _account(keyring)
    await keyring.update_mode(KeyringMode.enhanced)
    vault.on("createEIP1559Transaction", _created("createEIP1559Transaction"))

    with pytest.raises(UnknownChain):
        await keyring.submit_request(
            request_id="req-1", account_id=account_id, method="eth_signTransaction", params=[_tx()]
        )

    await keyring.add_rpc_url(chain_id="1", url="https://rpc.example/mainnet")
    await keyring.submit_request(
        request_id="req-1", account_id=account_id, method="eth_signTransaction", params=[_tx()]
    )

    query = vault.calls[0][1]
    assert "sendToNetworkWhenSigned: true" in query
    assert 'rpcUrl: "https://rpc.example/mainnet"' in query
    assert vault.headers[0]["x-client-info"].endswith("/mode:enhanced")


@pytest.mark.asyncio
async def test_add_rpc_url_requires_http(keyring: VaultKeyring) -> None:
    with pytest.raises(ValidationError):
        await keyring.add_rpc_url(chain_id="0x1", url="ws://rpc.example")


# --- Finalization ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_personal_sign_round_trip(keyring: VaultKeyring, vault: FakeVault, host: FakeHost) -> None:
    account_id = await _account(keyring)
    vault.on("createEthPersonalSign", _created("createEthPersonalSign"))

    await keyring.submit_request(
        request_id="req-1",
        account_id=account_id,
        method="personal_sign",
        params=["hello", SIGNER_ADDRESS],
    )
    public_key = public_key_from(vault.calls[0][1])

    vault.on("getRequest", lambda q: {"data": {"getRequest": {"status": "PENDING"}}})
    summary = await keyring.check_pending_requests()
    assert summary.checked == 1
    assert summary.signed == []
    assert (await keyring.get_request("req-1")).status is RequestStatus.pending

    _serve_signature(vault, _vault_signature(public_key, personal_sign_digest("hello")))

    summary = await keyring.check_pending_requests()

    assert summary.signed == ["req-1"]
    req = await keyring.get_request("req-1")
    assert req.status is RequestStatus.signed
    assert len(req.result) == 132
    assert req.result[-2:] in ("1b", "1c")
    assert Account.recover_message(encode_defunct(text="hello"), signature=req.result) == SIGNER_ADDRESS
    approved = host.events_of(KeyringEventType.request_approved)
    assert approved == [("req-1", {"id": "req-1", "result": req.result})]


@pytest.mark.asyncio
async def test_typed_data_v4_round_trip(keyring: VaultKeyring, vault: FakeVault, host: FakeHost) -> None:
    account_id = await _account(keyring)
    vault.on("createEthSignTypedData", _created("createEthSignTypedData"))

    await keyring.submit_request(
        request_id="req-1",
        account_id=account_id,
        method="eth_signTypedData_v4",
        params=[SIGNER_ADDRESS, MAIL_TYPED_DATA],
    )
    assert vault.operations() == ["createEthSignTypedData"]
    digest = bytes.fromhex(MAIL_DIGEST)
    _serve_signature(vault, _vault_signature(public_key_from(vault.calls[0][1]), digest))

    summary = await keyring.check_pending_requests()

    assert summary.signed == ["req-1"]
    req = await keyring.get_request("req-1")
    assert req.status is RequestStatus.signed
    assert req.result == _expected_signature(digest)
    assert host.events_of(KeyringEventType.request_approved) == [
        ("req-1", {"id": "req-1", "result": req.result})
    ]


@pytest.mark.asyncio
async def test_typed_data_v3_round_trip_with_omitted_field(
    keyring: VaultKeyring, vault: FakeVault
) -> None:
    data = {
        "types": {
            "EIP712Domain": [{"name": "name", "type": "string"}],
            "Mail": [
                {"name": "contents", "type": "string"},
                {"name": "note", "type": "string"},
            ],
        },
        "primaryType": "Mail",
        "domain": {"name": "Ether Mail"},
        "message": {"contents": "hi"},
    }
    domain_hash = keccak(keccak(b"EIP712Domain(string name)") + keccak(b"Ether Mail"))
    struct_hash = keccak(keccak(b"Mail(string contents,string note)") + keccak(b"hi"))
    digest = keccak(b"\x19\x01" + domain_hash + struct_hash)

    account_id = await _account(keyring)
    vault.on("createEthSignTypedData", _created("createEthSignTypedData"))
    await keyring.submit_request(
        request_id="req-1",
        account_id=account_id,
        method="eth_signTypedData_v3",
        params=[SIGNER_ADDRESS, data],
    )
    _serve_signature(vault, _vault_signature(public_key_from(vault.calls[0][1]), digest))

    assert await keyring.approve_request("req-1") is RequestStatus.signed

    assert (await keyring.get_request("req-1")).result == _expected_signature(digest)


@pytest.mark.asyncio
async def test_poll_leaves_tampered_signature_pending(
    keyring: VaultKeyring, vault: FakeVault, host: FakeHost
) -> None:
    account_id = await _account(keyring)
    vault.on("createEthPersonalSign", _created("createEthPersonalSign"))
    await keyring.submit_request(
        request_id="req-1", account_id=account_id, method="personal_sign", params=["hello", SIGNER_ADDRESS]
    )
    encrypted = bytearray.fromhex(
        _vault_signature(public_key_from(vault.calls[0][1]), personal_sign_digest("hello"))
    )
    encrypted[-40] ^= 0x01
    _serve_signature(vault, encrypted.hex())

    summary = await keyring.check_pending_requests()

    assert summary.checked == 1
    assert summary.failed == ["req-1"]
    assert summary.signed == []
    assert (await keyring.get_request("req-1")).status is RequestStatus.pending
    assert host.events_of(KeyringEventType.request_approved) == []


@pytest.mark.asyncio
async def test_poll_leaves_signature_from_another_key_pending(
    keyring: VaultKeyring, vault: FakeVault, host: FakeHost
) -> None:
    account_id = await _account(keyring)
    vault.on("createEthPersonalSign", _created("createEthPersonalSign"))
    await keyring.submit_request(
        request_id="req-1", account_id=account_id, method="personal_sign", params=["hello", SIGNER_ADDRESS]
    )
    other = keys.PrivateKey(b"\x02" * 32)
    _serve_signature(
        vault, _vault_signature(public_key_from(vault.calls[0][1]), personal_sign_digest("hello"), other)
    )

    summary = await keyring.check_pending_requests()

    assert summary.failed == ["req-1"]
    assert summary.signed == []
    assert (await keyring.get_request("req-1")).status is RequestStatus.pending
    assert host.events_of(KeyringEventType.request_approved) == []


@pytest.mark.asyncio
async def test_finalize_skips_request_already_in_flight(
    keyring: VaultKeyring, vault: FakeVault, in_flight: InFlightRequests
) -> None:
    account_id = await _account(keyring)
    vault.on("createEthPersonalSign", _created("createEthPersonalSign"))
    await keyring.submit_request(
        request_id="req-1", account_id=account_id, method="personal_sign", params=["hello", SIGNER_ADDRESS]
    )
    _serve_signature(vault, _vault_signature(public_key_from(vault.calls[0][1]), personal_sign_digest("hello")))

    assert in_flight.claim("req-1")
    assert await keyring.finalize("req-1") is RequestStatus.pending
    assert "getRequest" not in vault.operations()

    in_flight.release("req-1")
    assert await keyring.finalize("req-1") is RequestStatus.signed
    assert "req-1" not in in_flight


@pytest.mark.asyncio
async def test_cancelled_transaction_is_rejected_once(
    keyring: VaultKeyring, vault: FakeVault, host: FakeHost
) -> None:
    account_id = await _account(keyring)
    vault.on("createEIP1559Transaction", _created("createEIP1559Transaction"))
    await keyring.submit_request(
        request_id="req-1", account_id=account_id, method="eth_signTransaction", params=[_tx()]
    )
    vault.on("transactionInfo", _tx_status("USER_CANCELLED"))

    first = await keyring.check_pending_requests()
    second = await keyring.check_pending_requests()

    assert first.rejected == ["req-1"]
    assert second.checked == 0
    assert (await keyring.get_request("req-1")).status is RequestStatus.rejected
    assert len(host.events_of(KeyringEventType.request_rejected)) == 1

    with pytest.raises(RequestAlreadyFinal):
        await keyring.finalize("req-1")
    with pytest.raises(RequestAlreadyFinal):
        await keyring.approve_request("req-1")


@pytest.mark.asyncio
async def test_signed_transaction_result_is_prefixed(keyring: VaultKeyring, vault: FakeVault) -> None:
    account_id = await _account(keyring)
    vault.on("createEIP1559Transaction", _created("createEIP1559Transaction"))
    await keyring.submit_request(
        request_id="req-1", account_id=account_id, method="eth_signTransaction", params=[_tx()]
    )
    vault.on("transactionInfo", _tx_status("SUBMITTED", v="1", r="ab" * 32, s="0x" + "cd" * 32))

    assert await keyring.approve_request("req-1") is RequestStatus.signed

    req = await keyring.get_request("req-1")
    assert req.result == {"v": "0x1", "r": "0x" + "ab" * 32, "s": "0x" + "cd" * 32}


@pytest.mark.asyncio
async def test_poll_isolates_failing_requests(keyring: VaultKeyring, vault: FakeVault) -> None:
    account_id = await _account(keyring)
    ids = iter(["remote-bad", "remote-good"])
    vault.on("createEIP1559Transaction", lambda q: {"data": {"createEIP1559Transaction": {"requestId": next(ids)}}})
    for request_id in ("req-bad", "req-good"):
        await keyring.submit_request(
            request_id=request_id, account_id=account_id, method="eth_signTransaction", params=[_tx()]
        )

    signed = _tx_status("SIGNED", v="0x1b", r="0x" + "ab" * 32, s="0x" + "cd" * 32)

    def transaction_info(query: str):
        if re.search(r'transactionId: "remote-bad"', query):
            return {"errors": [{"message": "internal", "errorType": "INTERNAL"}]}
        return signed(query)

    vault.on("transactionInfo", transaction_info)

    summary = await keyring.check_pending_requests()

    assert summary.checked == 2
    assert summary.failed == ["req-bad"]
    assert summary.signed == ["req-good"]
    assert (await keyring.get_request("req-bad")).status is RequestStatus.pending


@pytest.mark.asyncio
async def test_cancelled_message_request_stays_pending(keyring: VaultKeyring, vault: FakeVault) -> None:
    account_id = await _account(keyring)
    vault.on("createEthPersonalSign", _created("createEthPersonalSign"))
    await keyring.submit_request(
        request_id="req-1", account_id=account_id, method="personal_sign", params=["hi", SIGNER_ADDRESS]
    )
    vault.on("getRequest", lambda q: {"data": {"getRequest": {"status": "USER_CANCELLED"}}})

    assert await keyring.approve_request("req-1") is RequestStatus.pending


@pytest.mark.asyncio
async def test_delete_account_with_pending_requests_is_refused(
    keyring: VaultKeyring, vault: FakeVault
) -> None:
    account_id = await _account(keyring)
    vault.on("createEthPersonalSign", _created("createEthPersonalSign"))
    await keyring.submit_request(
        request_id="req-1", account_id=account_id, method="personal_sign", params=["hi", SIGNER_ADDRESS]
    )

    with pytest.raises(ValidationError):
        await keyring.delete_account(account_id)
    with pytest.raises(UnsupportedOperation):
        await keyring.reject_request("req-1")
    with pytest.raises(ValidationError):
        await keyring.submit_request(
            request_id="req-1", account_id=account_id, method="personal_sign", params=["hi", SIGNER_ADDRESS]
        )
