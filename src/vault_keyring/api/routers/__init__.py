"""
vault_keyring.api.routers

HTTP routers of the keyring API.
"""

# Package marker.
