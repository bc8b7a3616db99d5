"""
vault_keyring.keyring.state

Status vocabularies shared by persistence, the vault client and the keyring.
"""

from __future__ import annotations

import enum


class RequestStatus(enum.StrEnum):
    # Local lifecycle. `Created` is transient inside a submission and never stored.
    pending = "pending"
    signed = "signed"
    rejected = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.pending


class RemoteStatus(enum.StrEnum):
    # Vault-side status vocabulary; values are the wire strings.
    pending = "PENDING"
    queued = "QUEUED"
    signed = "SIGNED"
    submitted = "SUBMITTED"
    user_cancelled = "USER_CANCELLED"
    blocked = "BLOCKED"
    error = "ERROR"


SUCCESS_STATUSES = frozenset({RemoteStatus.signed, RemoteStatus.submitted})
FAILURE_STATUSES = frozenset({RemoteStatus.user_cancelled, RemoteStatus.blocked, RemoteStatus.error})


def is_final_status(status: str | None) -> bool:
    return status in SUCCESS_STATUSES


def is_failed_status(status: str | None) -> bool:
    return status in FAILURE_STATUSES


class KeyringMode(enum.StrEnum):
    basic = "basic"
    # Transactions are broadcast by the vault through its RPC proxy.
    enhanced = "enhanced"


class KeyringEventType(enum.StrEnum):
    account_created = "AccountCreated"
    account_deleted = "AccountDeleted"
    request_approved = "RequestApproved"
    request_rejected = "RequestRejected"
    session_invalidated = "SessionInvalidated"
    proxy_notice = "ProxyNotice"
