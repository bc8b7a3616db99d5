"""
vault_keyring.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Convert a bearer token into a typed `Principal`.
- Enforce per-method keyring permissions via a reusable dependency factory.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN

from vault_keyring.auth.jwt import JwtConfig, JwtValidationError, decode_and_validate
from vault_keyring.auth.models import KeyringRpc, Principal
from vault_keyring.settings import Settings

_bearer = HTTPBearer(auto_error=False)


def _app_settings(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[attr-defined]


def get_principal(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(_app_settings),
) -> Principal:
    if creds is None or not creds.credentials:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    try:
        payload = decode_and_validate(cfg=JwtConfig.from_settings(settings), token=creds.credentials)
    except JwtValidationError as e:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}") from e

    origin = str(payload.get("sub", ""))
    roles_raw = payload.get("roles", [])
    if not origin:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Invalid token subject")
    if not isinstance(roles_raw, list):
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Invalid token roles")

    return Principal(origin=origin, roles=frozenset(str(r) for r in roles_raw))


def require_method(method: KeyringRpc):
    def _dep(principal: Principal = Depends(get_principal)) -> Principal:
        if not principal.can_call(method):
            raise HTTPException(
                status_code=HTTP_403_FORBIDDEN,
                detail=f"Origin '{principal.origin}' is not allowed to call '{method.value}'",
            )
        return principal

    return _dep
