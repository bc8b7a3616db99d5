"""
vault_keyring.crypto.signatures

Signature codec for the three signable payload kinds.

Responsibilities:
- Build personal-sign and EIP-712 (v3/v4) digests.
- Complete a raw 64-byte (r || s) vault signature into a 65-byte recoverable
  Ethereum signature: low-s normalization plus recovery-id trial against the
  signer's known address.

Typed data v4 goes through eth-account's encoder. Version 3 is encoded here:
fields absent from the message are skipped, and arrays are only an error for a
field that is actually encoded. Both follow the eth-sig-util reference encoder
that wallet hosts use.
"""

from __future__ import annotations

import json
import re
from typing import Any, Literal

from eth_abi import encode as abi_encode
from eth_abi.exceptions import ABITypeError, EncodingError, ParseError
from eth_account.messages import SignableMessage, encode_defunct, encode_typed_data
from eth_keys import keys
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as EthKeysValidationError
from eth_utils import keccak

from vault_keyring.crypto.key_vault import SECP256K1_N
from vault_keyring.errors import InvalidSignatureLength, SignatureAddressMismatch, ValidationError

TypedDataVersion = Literal["V3", "V4"]

_HALF_N = SECP256K1_N // 2
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_TYPE_NAME = re.compile(r"^\w*")


def personal_sign_digest(message: str) -> bytes:
    """
    keccak256("\\x19Ethereum Signed Message:\\n" + len(message) + message).

    A `0x`-prefixed message is treated as hex bytes, anything else as UTF-8.
    Hex decoding is lenient like Node's `Buffer.from(s, "hex")`: it stops at the
    first pair that is not hex and drops a trailing odd nibble.
    """

    if message.startswith("0x"):
        raw = _lenient_hex(message[2:])
    else:
        raw = message.encode("utf-8")
    return _hash_signable(encode_defunct(primitive=raw))


def _lenient_hex(text: str) -> bytes:
    out = bytearray()
    for i in range(0, len(text) - 1, 2):
        pair = text[i : i + 2]
        if not _HEX_DIGITS.issuperset(pair):
            break
        out.append(int(pair, 16))
    return bytes(out)


def typed_data_digest(data: dict[str, Any] | str, version: TypedDataVersion) -> bytes:
    try:
        typed = json.loads(data) if isinstance(data, str) else data
    except json.JSONDecodeError as e:
        raise ValidationError(f"Typed data is not valid JSON: {e}") from e
    if not isinstance(typed, dict):
        raise ValidationError("Typed data must be a JSON object")
    try:
        if version == "V3":
            return _v3_digest(typed)
        return _hash_signable(encode_typed_data(full_message=typed))
    except ValidationError:
        raise
    except (KeyError, TypeError, ValueError, EncodingError, ParseError, ABITypeError) as e:
        raise ValidationError(f"Invalid typed data: {e}") from e


def _v3_digest(typed: dict[str, Any]) -> bytes:
    types = {"EIP712Domain": [], **(typed.get("types") or {})}
    primary_type = typed.get("primaryType")
    if not isinstance(primary_type, str) or primary_type not in types:
        raise ValidationError(f"No type definition specified: {primary_type}")

    parts = b"\x19\x01" + _v3_hash_struct("EIP712Domain", typed.get("domain") or {}, types)
    if primary_type != "EIP712Domain":
        parts += _v3_hash_struct(primary_type, typed.get("message") or {}, types)
    return keccak(parts)


def _v3_hash_struct(type_name: str, data: Any, types: dict[str, list[dict[str, str]]]) -> bytes:
    if not isinstance(data, dict):
        raise ValidationError(f"Value of struct {type_name} must be an object")

    abi_types = ["bytes32"]
    values: list[Any] = [keccak(text=_encode_type(type_name, types))]
    for field in types[type_name]:
        name, field_type = field["name"], field["type"]
        if name not in data:
            continue
        value = data[name]
        if field_type == "bytes":
            abi_types.append("bytes32")
            values.append(keccak(_bytes_value(value)))
        elif field_type == "string":
            abi_types.append("bytes32")
            values.append(keccak(value.encode("utf-8") if isinstance(value, str) else value))
        elif field_type in types:
            abi_types.append("bytes32")
            values.append(_v3_hash_struct(field_type, value, types))
        elif field_type.endswith("]"):
            raise ValidationError("Arrays are unimplemented in encodeData; use V4 extension")
        else:
            abi_types.append(field_type)
            values.append(_atomic_value(field_type, value))
    return keccak(abi_encode(abi_types, values))


def _encode_type(primary_type: str, types: dict[str, list[dict[str, str]]]) -> str:
    deps = _dependencies(primary_type, types, [])
    deps.remove(primary_type)
    encoded = []
    for name in [primary_type, *sorted(deps)]:
        fields = ",".join(f"{f['type']} {f['name']}" for f in types[name])
        encoded.append(f"{name}({fields})")
    return "".join(encoded)


def _dependencies(
    type_name: str, types: dict[str, list[dict[str, str]]], found: list[str]
) -> list[str]:
    base = _TYPE_NAME.match(type_name).group(0)
    if base in found or base not in types:
        return found
    found.append(base)
    for field in types[base]:
        _dependencies(field["type"], types, found)
    return found


def _bytes_value(value: Any) -> bytes:
    if isinstance(value, str):
        return bytes.fromhex(value[2:]) if value.startswith("0x") else value.encode("utf-8")
    return bytes(value)


def _atomic_value(abi_type: str, value: Any) -> Any:
    if abi_type.startswith(("uint", "int")) and isinstance(value, str):
        return int(value, 16) if value.lower().startswith("0x") else int(value)
    if abi_type == "address" and isinstance(value, str):
        return value.lower()
    if abi_type.startswith("bytes") and isinstance(value, str):
        return bytes.fromhex(value.removeprefix("0x"))
    if abi_type == "bool":
        return bool(value)
    return value


def _hash_signable(signable: SignableMessage) -> bytes:
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


def normalize_s(s: int) -> int:
    if s > _HALF_N:
        return SECP256K1_N - s
    return s


def recover_v(digest: bytes, r: int, s: int, address: str) -> int:
    expected = address.lower()
    for v in (27, 28):
        try:
            signature = keys.Signature(vrs=(v - 27, r, s))
            public_key = signature.recover_public_key_from_msg_hash(digest)
        except (BadSignature, EthKeysValidationError):
            continue
        if public_key.to_address().lower() == expected:
            return v
    raise SignatureAddressMismatch(address)


def reconstruct_signature(digest: bytes, raw_signature: bytes, address: str) -> str:
    """
    Returns `0x` + r (32 bytes) + low-s (32 bytes) + v (1 byte, 27 or 28).
    """

    if len(raw_signature) != 64:
        raise InvalidSignatureLength(len(raw_signature))

    r = int.from_bytes(raw_signature[:32], "big")
    s = normalize_s(int.from_bytes(raw_signature[32:], "big"))
    v = recover_v(digest, r, s, address)
    return "0x" + raw_signature[:32].hex() + s.to_bytes(32, "big").hex() + f"{v:02x}"


# --- Module Notes -----------------------------------------------------------
# The vault signs with an unknown recovery id and s already forced low; the
# recovery trial is what makes the output usable by `ecrecover`.
