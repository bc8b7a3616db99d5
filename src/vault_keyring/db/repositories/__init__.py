"""
vault_keyring.db.repositories

Repository layer (query/persistence helpers).
"""

# Package marker.
