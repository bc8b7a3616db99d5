"""
vault_keyring.keyring.methods

Signing intents: one variant per supported EVM method.

Responsibilities:
- Parse a host request (`method`, `params`) into a typed intent.
- Validate transaction fields and the transaction type byte.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from vault_keyring.crypto.signatures import TypedDataVersion, typed_data_digest
from vault_keyring.errors import (
    UnsupportedMethod,
    UnsupportedTransactionType,
    ValidationError,
)


class EthMethod(enum.StrEnum):
    sign_transaction = "eth_signTransaction"
    personal_sign = "personal_sign"
    sign_typed_data_v3 = "eth_signTypedData_v3"
    sign_typed_data_v4 = "eth_signTypedData_v4"


SUPPORTED_METHODS: tuple[str, ...] = tuple(m.value for m in EthMethod)

LEGACY_TX_TYPE = 0
EIP1559_TX_TYPE = 2


class EvmTransaction(BaseModel):
    """Transaction fields as the wallet host sends them (hex quantities)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    nonce: str
    chain_id: str = Field(alias="chainId")
    gas_limit: str = Field(alias="gasLimit")
    from_address: str = Field(alias="from")
    to: str | None = None
    value: str = "0x0"
    data: str = "0x"
    type: str = "0x0"
    gas_price: str | None = Field(default=None, alias="gasPrice")
    max_fee_per_gas: str | None = Field(default=None, alias="maxFeePerGas")
    max_priority_fee_per_gas: str | None = Field(default=None, alias="maxPriorityFeePerGas")

    @property
    def type_byte(self) -> int:
        try:
            return int(self.type, 16)
        except ValueError as e:
            raise UnsupportedTransactionType(self.type) from e


@dataclass(frozen=True, slots=True)
class SignTransaction:
    transaction: EvmTransaction


@dataclass(frozen=True, slots=True)
class PersonalSign:
    message: str
    address: str


@dataclass(frozen=True, slots=True)
class SignTypedData:
    address: str
    data: dict[str, Any] | str
    version: TypedDataVersion


SigningIntent = SignTransaction | PersonalSign | SignTypedData


def parse_intent(method: str, params: Any) -> SigningIntent:
    if method not in SUPPORTED_METHODS:
        raise UnsupportedMethod(method)
    args = list(params or []) if isinstance(params, list | tuple) else []

    match EthMethod(method):
        case EthMethod.sign_transaction:
            return SignTransaction(transaction=_parse_transaction(_arg(args, 0, method)))
        case EthMethod.personal_sign:
            message, address = _arg(args, 0, method), _arg(args, 1, method)
            return PersonalSign(message=_str(message, "message"), address=_str(address, "address"))
        case EthMethod.sign_typed_data_v3:
            return _typed(args, method, "V3")
        case EthMethod.sign_typed_data_v4:
            return _typed(args, method, "V4")


def _parse_transaction(raw: Any) -> EvmTransaction:
    if not isinstance(raw, dict):
        raise ValidationError("Transaction must be an object")
    try:
        tx = EvmTransaction.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid transaction: {e.errors()}") from e
    if tx.type_byte not in (LEGACY_TX_TYPE, EIP1559_TX_TYPE):
        raise UnsupportedTransactionType(tx.type)
    if tx.type_byte == LEGACY_TX_TYPE and tx.gas_price is None:
        raise ValidationError("Legacy transaction requires gasPrice")
    if tx.type_byte == EIP1559_TX_TYPE and (
        tx.max_fee_per_gas is None or tx.max_priority_fee_per_gas is None
    ):
        raise ValidationError("EIP-1559 transaction requires maxFeePerGas and maxPriorityFeePerGas")
    return tx


def _typed(args: list[Any], method: str, version: TypedDataVersion) -> SignTypedData:
    address, data = _arg(args, 0, method), _arg(args, 1, method)
    if not isinstance(data, dict | str):
        raise ValidationError("Typed data must be an object or a JSON string")
    # Fail at submission rather than at finalization if the payload cannot be hashed.
    typed_data_digest(data, version)
    return SignTypedData(address=_str(address, "address"), data=data, version=version)


def _arg(args: list[Any], index: int, method: str) -> Any:
    if len(args) <= index:
        raise ValidationError(f"Missing parameter {index} for {method}")
    return args[index]


def _str(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"Provided {name} must be a string")
    return value
