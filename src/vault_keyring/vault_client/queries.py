"""
vault_keyring.vault_client.queries

GraphQL documents for the custody vault API.

Every builder takes the current session token first so the client can rebuild
the same document with a refreshed token. String values are JSON-encoded, which
is a valid GraphQL string literal.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from vault_keyring.keyring.methods import EvmTransaction


@dataclass(frozen=True, slots=True)
class SessionToken:
    enc: str
    iv: str
    tag: str

    @property
    def is_complete(self) -> bool:
        return bool(self.enc and self.iv and self.tag)


def _lit(value: str) -> str:
    return json.dumps(value)


def _auth(token: SessionToken) -> str:
    return (
        f"authentication: {{ enc: {_lit(token.enc)}, iv: {_lit(token.iv)}, tag: {_lit(token.tag)} }}"
    )


def _hex_to_dec(value: str | None) -> str:
    return str(int(value or "0x0", 16))


def create_eip1559_transaction(
    token: SessionToken,
    tx: EvmTransaction,
    *,
    submit: bool,
    source: str,
    currency: str,
    rpc_url: str | None = None,
) -> str:
    fields = [
        f"nonce: {_lit(tx.nonce)}",
        f"chainId: {_lit(tx.chain_id)}",
        f"maxFeePerGas: {_lit(tx.max_fee_per_gas or '')}",
        f"maxPriorityFeePerGas: {_lit(tx.max_priority_fee_per_gas or '')}",
        f"gasLimit: {_lit(tx.gas_limit)}",
        f"from: {_lit(tx.from_address)}",
    ]
    if tx.to:
        fields.append(f"to: {_lit(tx.to)}")
    if tx.value:
        fields.append(f"value: {_lit(tx.value)}")
    if tx.data and tx.data != "0x":
        fields.append(f"data: {_lit(tx.data)}")

    rpc = f"rpcUrl: {_lit(rpc_url)}," if rpc_url else ""
    return f"""mutation {{
  createEIP1559Transaction(
    createEIP1559TransactionInput: {{
      {_auth(token)},
      transaction: {{ {", ".join(fields)} }},
      source: {_lit(source)},
      sendToNetworkWhenSigned: {_bool(submit)},
      {rpc}
      currency: {_lit(currency)}
    }}
  ) {{
    ... on CreateEvmTransactionResponse {{ requestId }}
  }}
}}"""


def create_ethereum_transaction(
    token: SessionToken,
    tx: EvmTransaction,
    *,
    submit: bool,
    source: str,
    currency: str,
    rpc_url: str | None = None,
) -> str:
    # The legacy endpoint takes decimal quantities.
    fields = [
        f"nonce: {int(tx.nonce, 16)}",
        f"chainId: {int(tx.chain_id, 16)}",
        f"gasPrice: {_lit(_hex_to_dec(tx.gas_price))}",
        f"gasLimit: {_lit(_hex_to_dec(tx.gas_limit))}",
        f"value: {_lit(_hex_to_dec(tx.value))}",
        f"fromAddress: {_lit(tx.from_address)}",
        f"to: {_lit(tx.to or '')}",
    ]
    if tx.data and tx.data != "0x":
        fields.append(f"data: {_lit(tx.data)}")

    rpc = f"rpcUrl: {_lit(rpc_url)}," if rpc_url else ""
    return f"""mutation {{
  createEthereumTransaction(
    createTransactionInput: {{
      {_auth(token)},
      ethereumTransaction: {{ {", ".join(fields)} }},
      source: {_lit(source)},
      sendToNetworkWhenSigned: {_bool(submit)},
      {rpc}
      sendToDevicesForSigning: true,
      currency: {_lit(currency)}
    }}
  ) {{
    ... on CreateEthereumTransactionResponse {{ requestId }}
  }}
}}"""


def create_eth_personal_sign(
    token: SessionToken,
    *,
    address: str,
    message: str,
    public_key: str,
    source: str,
) -> str:
    return f"""mutation {{
  createEthPersonalSign(createEthPersonalSignInput: {{
    {_auth(token)},
    messageAddress: {{ message: {_lit(message)}, address: {_lit(address)} }},
    source: {_lit(source)},
    sendToDevicesForSigning: true,
    signatureEncryptionPublicKey: {_lit(public_key)}
  }}) {{
    requestId
  }}
}}"""


def create_eth_sign_typed_data(
    token: SessionToken,
    *,
    address: str,
    data: dict[str, Any] | str,
    version: str,
    public_key: str,
    source: str,
) -> str:
    message = data if isinstance(data, str) else json.dumps(data, separators=(",", ":"))
    return f"""mutation {{
  createEthSignTypedData(createEthSignTypedDataInput: {{
    {_auth(token)},
    messageAddress: {{ message: {_lit(message)}, address: {_lit(address)}, version: {_lit(version)} }},
    source: {_lit(source)},
    sendToDevicesForSigning: true,
    signatureEncryptionPublicKey: {_lit(public_key)}
  }}) {{
    requestId
  }}
}}"""


def transaction_info(token: SessionToken, remote_request_id: str) -> str:
    return f"""query {{
  transactionInfo({_auth(token)}, transactionId: {_lit(remote_request_id)}) {{
    signedTransaction {{
      transactionDigest
      transaction {{ r s v }}
    }}
    status
  }}
}}"""


def get_request(token: SessionToken, remote_request_id: str) -> str:
    return f"""query {{
  getRequest({_auth(token)}, requestId: {_lit(remote_request_id)}) {{
    requestId
    status
    type
    transactionHash
    signatures {{ raw }}
  }}
}}"""


def refresh_authentication_tokens(token: SessionToken) -> str:
    return f"""query {{
  refreshAuthenticationTokens({_auth(token)}) {{ enc iv tag }}
}}"""


def _bool(value: bool) -> str:
    return "true" if value else "false"
