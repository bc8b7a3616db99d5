"""
vault_keyring.vault_client

Client boundary for the custody vault GraphQL API.

Responsibilities:
- Build GraphQL documents for the vault operations.
- Execute authenticated calls and drive the session refresh protocol.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Only `services.keyring_service` talks to this package; routers never call the vault.
