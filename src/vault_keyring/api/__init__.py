"""
vault_keyring.api

Host-facing HTTP API (FastAPI).

Responsibilities:
- Keyring account/request endpoints, configuration and the periodic trigger.
- App composition and dependency wiring.
"""

# Package marker.
