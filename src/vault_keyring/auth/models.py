"""
vault_keyring.auth.models

Host origin identity and keyring method permissions.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class KeyringRpc(enum.StrEnum):
    list_accounts = "keyring_listAccounts"
    get_account = "keyring_getAccount"
    create_account = "keyring_createAccount"
    filter_account_chains = "keyring_filterAccountChains"
    delete_account = "keyring_deleteAccount"
    list_requests = "keyring_listRequests"
    get_request = "keyring_getRequest"
    submit_request = "keyring_submitRequest"
    approve_request = "keyring_approveRequest"
    reject_request = "keyring_rejectRequest"
    check_pending = "keyring_checkPendingRequests"
    configure = "keyring_configure"


# The wallet itself drives signing; dapps (the vault web app) manage accounts.
ROLE_PERMISSIONS: dict[str, frozenset[KeyringRpc]] = {
    "wallet": frozenset(
        {
            KeyringRpc.list_accounts,
            KeyringRpc.get_account,
            KeyringRpc.filter_account_chains,
            KeyringRpc.delete_account,
            KeyringRpc.list_requests,
            KeyringRpc.get_request,
            KeyringRpc.submit_request,
            KeyringRpc.approve_request,
            KeyringRpc.reject_request,
            KeyringRpc.check_pending,
        }
    ),
    "dapp": frozenset(
        {
            KeyringRpc.list_accounts,
            KeyringRpc.list_requests,
            KeyringRpc.get_account,
            KeyringRpc.create_account,
            KeyringRpc.delete_account,
            KeyringRpc.get_request,
            KeyringRpc.configure,
        }
    ),
}


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Authenticated host origin.
    """

    origin: str
    roles: frozenset[str]

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles

    def can_call(self, method: KeyringRpc) -> bool:
        if self.is_admin:
            return True
        return any(method in ROLE_PERMISSIONS.get(role, frozenset()) for role in self.roles)
