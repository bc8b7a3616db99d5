"""
vault_keyring.auth

Host authentication for the keyring API.

Responsibilities:
- Bearer JWTs identifying the calling host origin and its roles.
- Per-role keyring method permissions.
"""

# Package marker.
