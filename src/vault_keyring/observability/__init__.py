"""
vault_keyring.observability

Structured logging and request-context propagation.
"""
