"""
vault_keyring.errors

Exception hierarchy shared by the keyring, the vault client and the codec.

Responsibilities:
- Name every failure the keyring can surface (validation, unsupported input,
  transport, protocol, cryptographic).
- Carry structured context (status code, remote error list) for logs and the API.
"""

from __future__ import annotations

from typing import Any


class KeyringError(Exception):
    """Base class for all keyring failures."""


# Validation -----------------------------------------------------------------


class ValidationError(KeyringError):
    pass


class DuplicateAddress(ValidationError):
    pass


class AccountNotFound(ValidationError):
    pass


class RequestNotFound(ValidationError):
    pass


class MissingConfiguration(ValidationError):
    pass


# Unsupported ----------------------------------------------------------------


class UnsupportedMethod(KeyringError):
    def __init__(self, method: str) -> None:
        super().__init__(f"EVM method '{method}' not supported")
        self.method = method


class UnsupportedTransactionType(KeyringError):
    def __init__(self, tx_type: str) -> None:
        super().__init__(f"Transaction type {tx_type} is not supported")
        self.tx_type = tx_type


class UnsupportedOperation(KeyringError):
    pass


class UnknownChain(KeyringError):
    def __init__(self, chain_id: str) -> None:
        super().__init__(f"ChainId {chain_id} does not correspond to an rpc url")
        self.chain_id = chain_id


# State ----------------------------------------------------------------------


class RequestAlreadyFinal(KeyringError):
    def __init__(self, request_id: str, status: str) -> None:
        super().__init__(f"Request {request_id} is already {status}")
        self.request_id = request_id
        self.status = status


class ProxyNotConfigured(KeyringError):
    def __init__(self) -> None:
        super().__init__("Keyring is in enhanced mode but the vault RPC proxy is not configured")


# Transport ------------------------------------------------------------------


class TransportError(KeyringError):
    pass


class Unreachable(TransportError):
    pass


class BadStatus(TransportError):
    def __init__(self, code: int) -> None:
        super().__init__(f"Vault API returned a non-successful status code: {code}")
        self.code = code


# Protocol -------------------------------------------------------------------


class ProtocolError(KeyringError):
    pass


class RemoteError(ProtocolError):
    def __init__(self, errors: list[dict[str, Any]]) -> None:
        super().__init__(f"Vault API returned an error response: {errors!r}")
        self.errors = errors


class RefreshFailed(ProtocolError):
    def __init__(self, organization_id: str, reason: str) -> None:
        super().__init__(f"Failed to refresh session for organization {organization_id}: {reason}")
        self.organization_id = organization_id
        self.reason = reason


class MalformedResponse(ProtocolError):
    pass


# Cryptographic --------------------------------------------------------------


class CryptoError(KeyringError):
    pass


class InvalidSignatureLength(CryptoError):
    def __init__(self, length: int) -> None:
        super().__init__(f"Signature has invalid length: {length}")
        self.length = length


class SignatureAddressMismatch(CryptoError):
    def __init__(self, address: str) -> None:
        super().__init__(f"Cannot retrieve v signature value for address {address}")
        self.address = address


class DecryptionFailed(CryptoError):
    pass


# --- Module Notes -----------------------------------------------------------
# The API layer maps these classes to HTTP status codes in `api.errors`.
