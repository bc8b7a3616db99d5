"""
vault_keyring.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (JWT secret, vault API key, wallet secret).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="VAULT_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "vault-keyring"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Auth (host-facing API)
    jwt_alg: str = "HS256"
    jwt_issuer: str = "vault-keyring"
    jwt_audience: str = "vault-keyring-api"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./vault_keyring.db"

    # Custody service (GraphQL over authenticated POST)
    vault_api_url: str = "http://localhost:9000/graphql"
    vault_api_key: str = Field(default="", repr=False)
    client_source: str = "MetaMask"
    currency: str = "GBP"

    # Host bridge
    wallet_secret: str = Field(default="dev-wallet-secret-change-me", repr=False)
    host_rpc_url: str = "http://localhost:8545"
    host_version: str = "0.0.0"

    # Periodic poll of pending requests; 0 leaves triggering to the host.
    poll_interval_seconds: float = 0.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Credentials for the custody service are per organization and live in the
# database (see `services.credential_store`), not in settings.
