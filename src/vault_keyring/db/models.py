"""
vault_keyring.db.models

Persistence schema for the keyring state.

Responsibilities:
- Define ORM models:
  - Account: wallet-visible account backed by a vault organization
  - SigningRequest: a host request tracked until the vault reaches a terminal status
  - Credential: the current session token of one organization
  - RpcRoute: per-chain relay URL used in enhanced mode
  - KeyringConfig: single-row keyring mode
  - KeyringEvent: append-only events emitted towards the host
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Enum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from vault_keyring.db.base import Base
from vault_keyring.keyring.state import KeyringMode, RequestStatus


def _utcnow() -> datetime:
    return datetime.utcnow()


def _new_id() -> str:
    return str(uuid.uuid4())


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    # Stored lowercase; uniqueness is case-insensitive.
    address: Mapped[str] = mapped_column(String(42), nullable=False, unique=True, index=True)
    organization_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    methods: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    options: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)


class SigningRequest(Base):
    __tablename__ = "signing_requests"

    # Host-assigned keyring request id; also the salt of the ECIES key pair.
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # No FK: terminal requests outlive a deleted account as history.
    account_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    scope: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    method: Mapped[str] = mapped_column(String(64), nullable=False)
    params: Mapped[Any] = mapped_column(JSON, nullable=False, default=list)

    remote_request_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    status: Mapped[RequestStatus] = mapped_column(Enum(RequestStatus), nullable=False, index=True)
    result: Mapped[Any] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (Index("ix_signing_requests_status_created", "status", "created_at"),)


class Credential(Base):
    __tablename__ = "credentials"

    organization_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    enc: Mapped[str] = mapped_column(Text, nullable=False)
    iv: Mapped[str] = mapped_column(String(256), nullable=False)
    tag: Mapped[str] = mapped_column(String(256), nullable=False)

    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)


class RpcRoute(Base):
    __tablename__ = "rpc_routes"

    chain_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)


class KeyringConfig(Base):
    __tablename__ = "keyring_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    mode: Mapped[KeyringMode] = mapped_column(
        Enum(KeyringMode), nullable=False, default=KeyringMode.basic
    )


class KeyringEvent(Base):
    __tablename__ = "keyring_events"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    subject_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, index=True)


# --- Module Notes -----------------------------------------------------------
# Signing requests are never deleted; terminal rows stay for audit/history.
