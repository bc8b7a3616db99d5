"""
vault_keyring.crypto

Cryptography used by the keyring: ECIES transport encryption, deterministic key
derivation and signature digest/reconstruction.
"""

# Package marker.
