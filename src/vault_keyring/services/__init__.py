"""
vault_keyring.services

Service layer (transaction + persistence owners).

Responsibilities:
- The keyring service: accounts, signing request lifecycle, configuration.
- The database-backed credential store used by the vault client.
"""

# Package marker.
