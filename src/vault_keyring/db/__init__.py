"""
vault_keyring.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide ORM models, engine/session setup, and repositories for the keyring
  state: accounts, signing requests, credentials, RPC routes, mode and events.
"""

# Package marker.
