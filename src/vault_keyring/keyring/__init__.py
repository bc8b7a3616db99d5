"""
vault_keyring.keyring

Keyring domain types.

Responsibilities:
- Signing intents (one variant per supported EVM method) and their parsing.
- Request/remote status vocabularies and the keyring mode.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Call sites should go through `services.keyring_service`; these types carry no I/O.
