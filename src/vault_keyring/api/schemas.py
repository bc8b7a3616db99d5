"""
vault_keyring.api.schemas

Request/response bodies of the host-facing API.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from vault_keyring.db.models import Account, KeyringEvent, SigningRequest
from vault_keyring.keyring.state import KeyringMode


class AccountResponse(BaseModel):
    id: str
    name: str
    address: str
    organization_id: str
    methods: list[str]
    type: str = "eip155:eoa"
    options: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_model(cls, account: Account) -> AccountResponse:
        return cls(
            id=account.id,
            name=account.name,
            address=account.address,
            organization_id=account.organization_id,
            methods=list(account.methods or []),
            options=dict(account.options or {}),
        )


class CreateAccountRequest(BaseModel):
    # Free-form keyring options; `name`, `address` and `organizationId` are required.
    options: dict[str, Any] = Field(default_factory=dict)


class FilterChainsRequest(BaseModel):
    chains: list[str] = Field(default_factory=list)


class FilterChainsResponse(BaseModel):
    chains: list[str]


class SigningRequestResponse(BaseModel):
    id: str
    account_id: str
    scope: str
    method: str
    params: Any
    remote_request_id: str
    status: str
    result: Any = None

    @classmethod
    def from_model(cls, req: SigningRequest) -> SigningRequestResponse:
        return cls(
            id=req.id,
            account_id=req.account_id,
            scope=req.scope,
            method=req.method,
            params=req.params,
            remote_request_id=req.remote_request_id,
            status=req.status.value,
            result=req.result,
        )


class SubmitRequestBody(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    account_id: str = Field(min_length=1, max_length=64)
    scope: str = ""
    method: str
    params: Any = Field(default_factory=list)


class SubmitRequestResponse(BaseModel):
    pending: bool = True
    remote_request_id: str


class ApproveRequestResponse(BaseModel):
    id: str
    status: str
    finalized: bool


class PollResponse(BaseModel):
    skipped: bool
    checked: int
    signed: list[str]
    rejected: list[str]
    failed: list[str]


class SessionTokenBody(BaseModel):
    enc: str = Field(min_length=1)
    iv: str = Field(min_length=1)
    tag: str = Field(min_length=1)


class CredentialsRequest(BaseModel):
    organization_id: str = Field(min_length=1, max_length=128)
    token: SessionTokenBody


class ModeBody(BaseModel):
    mode: KeyringMode


class RpcUrlRequest(BaseModel):
    chain_id: str = Field(min_length=1, max_length=32)
    rpc_url: str = Field(min_length=1)


class EventResponse(BaseModel):
    id: str
    event_type: str
    subject_id: str | None
    payload: dict[str, Any]

    @classmethod
    def from_model(cls, ev: KeyringEvent) -> EventResponse:
        return cls(
            id=ev.id, event_type=ev.event_type, subject_id=ev.subject_id, payload=ev.payload
        )
