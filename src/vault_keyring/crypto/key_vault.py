"""
vault_keyring.crypto.key_vault

Deterministic ECIES key pairs regenerated on demand.

Responsibilities:
- Derive a secp256k1 key pair from 32 bytes of host entropy (HMAC-DRBG seeded
  keygen, byte-compatible with the `elliptic` JS library used by wallet hosts).
- Offer a scoped acquisition helper that wipes entropy and private key bytes
  once the single operation using them has finished.

Nothing in this module persists key material. The same (secret, salt) pair always
yields the same key pair, so a public key handed to the vault at submission time
can be matched by a private key rebuilt at finalization time.
"""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

EntropySource = Callable[[str], Awaitable[bytes]]


@dataclass(slots=True)
class DeterministicKeyPair:
    private_key: bytearray
    public_key: bytes  # uncompressed SEC1 point, 65 bytes

    @property
    def public_key_hex(self) -> str:
        return self.public_key.hex()

    def wipe(self) -> None:
        for i in range(len(self.private_key)):
            self.private_key[i] = 0


class _HmacDrbg:
    """HMAC-SHA256 DRBG (NIST SP 800-90A) without reseeding."""

    def __init__(self, *, entropy: bytes, nonce: bytes, pers: bytes = b"") -> None:
        self._k = bytes(32)
        self._v = b"\x01" * 32
        self._update(entropy + nonce + pers)

    def _hmac(self, *parts: bytes) -> bytes:
        return hmac.new(self._k, b"".join(parts), hashlib.sha256).digest()

    def _update(self, seed: bytes | None = None) -> None:
        self._k = self._hmac(self._v, b"\x00", seed or b"")
        self._v = self._hmac(self._v)
        if not seed:
            return
        self._k = self._hmac(self._v, b"\x01", seed)
        self._v = self._hmac(self._v)

    def generate(self, length: int) -> bytes:
        out = b""
        while len(out) < length:
            self._v = self._hmac(self._v)
            out += self._v
        self._update()
        return out[:length]


def derive_key_pair(entropy: bytes | bytearray) -> DeterministicKeyPair:
    if len(entropy) < 24:
        raise ValueError("Not enough entropy: at least 192 bits are required")

    drbg = _HmacDrbg(entropy=bytes(entropy), nonce=SECP256K1_N.to_bytes(32, "big"))
    while True:
        candidate = int.from_bytes(drbg.generate(32), "big")
        if candidate <= SECP256K1_N - 2:
            break
    secret = candidate + 1

    public = ec.derive_private_key(secret, ec.SECP256K1()).public_key()
    return DeterministicKeyPair(
        private_key=bytearray(secret.to_bytes(32, "big")),
        public_key=public.public_bytes(
            serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
        ),
    )


def derive_entropy(secret_seed: bytes, salt: str) -> bytes:
    return hmac.new(secret_seed, salt.encode("utf-8"), hashlib.sha256).digest()


def derive(secret_seed: bytes, salt: str) -> DeterministicKeyPair:
    return derive_key_pair(derive_entropy(secret_seed, salt))


class DeterministicKeyVault:
    """
    Regenerates the key pair bound to a salt (the signing request id).

    Usage:
        async with vault.key_pair(request_id) as pair:
            plaintext = ecies.decrypt(pair.private_key, data)
    """

    def __init__(self, entropy_source: EntropySource) -> None:
        self._entropy_source = entropy_source

    @asynccontextmanager
    async def key_pair(self, salt: str) -> AsyncIterator[DeterministicKeyPair]:
        entropy = bytearray(await self._entropy_source(salt))
        try:
            pair = derive_key_pair(entropy)
        finally:
            _zero(entropy)
        try:
            yield pair
        finally:
            pair.wipe()

    async def public_key_hex(self, salt: str) -> str:
        async with self.key_pair(salt) as pair:
            return pair.public_key_hex


def _zero(buf: bytearray) -> None:
    for i in range(len(buf)):
        buf[i] = 0
