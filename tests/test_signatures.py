"""
tests.test_signatures

Digest construction and completion of raw vault signatures.
"""

from __future__ import annotations

import json

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import keccak

from tests.conftest import MAIL_DIGEST, MAIL_TYPED_DATA, SIGNER_ADDRESS, SIGNER_KEY
from vault_keyring.crypto.key_vault import SECP256K1_N
from vault_keyring.crypto.signatures import (
    normalize_s,
    personal_sign_digest,
    reconstruct_signature,
    typed_data_digest,
)
from vault_keyring.errors import InvalidSignatureLength, SignatureAddressMismatch, ValidationError


def _raw(digest: bytes) -> tuple[bytes, int]:
    sig = SIGNER_KEY.sign_msg_hash(digest)
    return sig.r.to_bytes(32, "big") + sig.s.to_bytes(32, "big"), sig.v + 27


def test_personal_sign_digest_uses_eip191_prefix() -> None:
    assert personal_sign_digest("hello") == keccak(b"\x19Ethereum Signed Message:\n5hello")
    assert personal_sign_digest("0xdeadbeef") == keccak(
        b"\x19Ethereum Signed Message:\n4" + bytes.fromhex("deadbeef")
    )


def test_personal_sign_hex_decoding_is_lenient() -> None:
    empty = keccak(b"\x19Ethereum Signed Message:\n0")
    assert personal_sign_digest("0xzz") == empty
    assert personal_sign_digest("0x") == empty
    assert personal_sign_digest("0xdeadbeefzz00") == personal_sign_digest("0xdeadbeef")
    assert personal_sign_digest("0xabc") == keccak(b"\x19Ethereum Signed Message:\n1\xab")


def test_typed_data_digest_matches_reference_mail_example() -> None:
    assert typed_data_digest(MAIL_TYPED_DATA, "V4").hex() == MAIL_DIGEST
    assert typed_data_digest(MAIL_TYPED_DATA, "V3").hex() == MAIL_DIGEST


def test_typed_data_accepts_json_string() -> None:
    assert typed_data_digest(json.dumps(MAIL_TYPED_DATA), "V4").hex() == MAIL_DIGEST
    assert typed_data_digest(json.dumps(MAIL_TYPED_DATA), "V3").hex() == MAIL_DIGEST


def test_typed_data_v3_skips_fields_missing_from_message() -> None:
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
    expected = keccak(b"\x19\x01" + domain_hash + struct_hash)

    assert typed_data_digest(data, "V3") == expected


def test_typed_data_v3_encodes_nested_structs_and_atomic_values() -> None:
    data = {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "chainId", "type": "uint256"},
            ],
            "Person": [{"name": "wallet", "type": "address"}],
            "Order": [
                {"name": "owner", "type": "Person"},
                {"name": "amount", "type": "uint256"},
                {"name": "active", "type": "bool"},
            ],
        },
        "primaryType": "Order",
        "domain": {"name": "Shop", "chainId": "0x1"},
        "message": {"owner": {"wallet": SIGNER_ADDRESS}, "amount": "42", "active": True},
    }
    domain_hash = keccak(
        keccak(b"EIP712Domain(string name,uint256 chainId)")
        + keccak(b"Shop")
        + (1).to_bytes(32, "big")
    )
    person_hash = keccak(
        keccak(b"Person(address wallet)") + bytes(12) + bytes.fromhex(SIGNER_ADDRESS[2:])
    )
    order_hash = keccak(
        keccak(b"Order(Person owner,uint256 amount,bool active)Person(address wallet)")
        + person_hash
        + (42).to_bytes(32, "big")
        + (1).to_bytes(32, "big")
    )

    assert typed_data_digest(data, "V3") == keccak(b"\x19\x01" + domain_hash + order_hash)


def test_typed_data_v3_rejects_only_encoded_arrays() -> None:
    data = {
        "types": {
            "EIP712Domain": [{"name": "name", "type": "string"}],
            "Group": [
                {"name": "title", "type": "string"},
                {"name": "members", "type": "address[]"},
            ],
            "Unused": [{"name": "items", "type": "uint256[]"}],
        },
        "primaryType": "Group",
        "domain": {"name": "Groups"},
        "message": {"title": "core", "members": [SIGNER_ADDRESS]},
    }
    with pytest.raises(ValidationError):
        typed_data_digest(data, "V3")
    assert len(typed_data_digest(data, "V4")) == 32

    without_members = {**data, "message": {"title": "core"}}
    assert len(typed_data_digest(without_members, "V3")) == 32


def test_typed_data_rejects_garbage() -> None:
    with pytest.raises(ValidationError):
        typed_data_digest("{not json", "V4")


def test_reconstruct_signature_appends_recovery_id() -> None:
    digest = personal_sign_digest("hello")
    raw, v = _raw(digest)

    signature = reconstruct_signature(digest, raw, SIGNER_ADDRESS)

    assert len(signature) == 132
    assert signature.startswith("0x")
    assert signature[-2:] in ("1b", "1c")
    assert int(signature[-2:], 16) == v
    assert signature[2:130] == raw.hex()
    recovered = Account.recover_message(encode_defunct(text="hello"), signature=signature)
    assert recovered == SIGNER_ADDRESS


def test_reconstruct_signature_normalizes_high_s() -> None:
    digest = personal_sign_digest("hello")
    raw, _ = _raw(digest)
    s = int.from_bytes(raw[32:], "big")
    high = raw[:32] + (SECP256K1_N - s).to_bytes(32, "big")

    assert reconstruct_signature(digest, high, SIGNER_ADDRESS) == reconstruct_signature(
        digest, raw, SIGNER_ADDRESS
    )
    assert normalize_s(SECP256K1_N - s) == s
    assert normalize_s(s) == s


def test_reconstruct_signature_checks_length() -> None:
    with pytest.raises(InvalidSignatureLength):
        reconstruct_signature(personal_sign_digest("hello"), b"\x01" * 63, SIGNER_ADDRESS)


def test_reconstruct_signature_checks_signer() -> None:
    digest = personal_sign_digest("hello")
    raw, _ = _raw(digest)
    with pytest.raises(SignatureAddressMismatch):
        reconstruct_signature(digest, raw, "0x" + "11" * 20)
