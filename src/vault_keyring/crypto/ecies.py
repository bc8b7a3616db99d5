"""
vault_keyring.crypto.ecies

ECIES over secp256k1 in the geth wire format.

Responsibilities:
- Decrypt signatures the vault encrypted to a keyring-derived public key.
- Encrypt to a public key (used by tests and local tooling to emulate the vault).

Wire format: ephemeral public key (65 bytes, uncompressed) || iv (16) ||
AES-128-CTR ciphertext || HMAC-SHA256(iv || ciphertext) (32). Keys come from a
NIST concat KDF (SHA-256) over the ECDH x-coordinate: the first 16 bytes are the
AES key, SHA-256 of the last 16 bytes is the MAC key.
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.concatkdf import ConcatKDFHash

from vault_keyring.errors import DecryptionFailed

_PUBLIC_KEY_LEN = 65
_IV_LEN = 16
_MAC_LEN = 32


def encrypt(public_key: bytes, message: bytes) -> bytes:
    peer = _load_public_key(public_key)
    ephemeral = ec.generate_private_key(ec.SECP256K1())
    enc_key, mac_key = _derive_keys(ephemeral.exchange(ec.ECDH(), peer))

    iv = os.urandom(_IV_LEN)
    encryptor = Cipher(algorithms.AES(enc_key), modes.CTR(iv)).encryptor()
    ciphertext = encryptor.update(message) + encryptor.finalize()

    ephemeral_public = ephemeral.public_key().public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
    )
    return ephemeral_public + iv + ciphertext + _mac(mac_key, iv + ciphertext)


def decrypt(private_key: bytes | bytearray, data: bytes) -> bytes:
    if len(data) < _PUBLIC_KEY_LEN + _IV_LEN + _MAC_LEN:
        raise DecryptionFailed(f"Encrypted payload too short: {len(data)} bytes")

    ephemeral_public = data[:_PUBLIC_KEY_LEN]
    iv_and_ciphertext = data[_PUBLIC_KEY_LEN:-_MAC_LEN]
    tag = data[-_MAC_LEN:]

    key = ec.derive_private_key(int.from_bytes(private_key, "big"), ec.SECP256K1())
    enc_key, mac_key = _derive_keys(key.exchange(ec.ECDH(), _load_public_key(ephemeral_public)))

    verifier = hmac.HMAC(mac_key, hashes.SHA256())
    verifier.update(iv_and_ciphertext)
    try:
        verifier.verify(tag)
    except InvalidSignature as e:
        raise DecryptionFailed("Encrypted payload failed MAC verification") from e

    iv, ciphertext = iv_and_ciphertext[:_IV_LEN], iv_and_ciphertext[_IV_LEN:]
    decryptor = Cipher(algorithms.AES(enc_key), modes.CTR(iv)).decryptor()
    return decryptor.update(ciphertext) + decryptor.finalize()


def decrypt_hex(private_key: bytes | bytearray, data: str) -> bytes:
    try:
        raw = bytes.fromhex(data.removeprefix("0x"))
    except ValueError as e:
        raise DecryptionFailed("Encrypted payload is not valid hex") from e
    return decrypt(private_key, raw)


def _load_public_key(data: bytes) -> ec.EllipticCurvePublicKey:
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), data)
    except ValueError as e:
        raise DecryptionFailed("Invalid secp256k1 public key") from e


def _derive_keys(shared_x: bytes) -> tuple[bytes, bytes]:
    material = ConcatKDFHash(algorithm=hashes.SHA256(), length=32, otherinfo=None).derive(shared_x)
    digest = hashes.Hash(hashes.SHA256())
    digest.update(material[16:])
    return material[:16], digest.finalize()


def _mac(mac_key: bytes, data: bytes) -> bytes:
    h = hmac.HMAC(mac_key, hashes.SHA256())
    h.update(data)
    return h.finalize()
