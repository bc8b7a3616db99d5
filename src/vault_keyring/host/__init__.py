"""
vault_keyring.host

Boundary towards the wallet host (entropy, events, notices, RPC proxy check).
"""

# Package marker.
