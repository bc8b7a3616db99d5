"""
vault_keyring.db.repositories.config

Keyring mode and per-chain RPC routes.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vault_keyring.db.models import KeyringConfig, RpcRoute
from vault_keyring.keyring.state import KeyringMode


class KeyringConfigRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_mode(self) -> KeyringMode:
        cfg = await self._session.get(KeyringConfig, 1)
        return cfg.mode if cfg is not None else KeyringMode.basic

    async def set_mode(self, mode: KeyringMode) -> None:
        cfg = await self._session.get(KeyringConfig, 1, with_for_update=True)
        if cfg is None:
            self._session.add(KeyringConfig(id=1, mode=mode))
        else:
            cfg.mode = mode
        await self._session.flush()

    async def get_rpc_url(self, chain_id: str) -> str | None:
        route = await self._session.get(RpcRoute, _norm_chain(chain_id))
        return route.url if route is not None else None

    async def set_rpc_url(self, *, chain_id: str, url: str) -> None:
        key = _norm_chain(chain_id)
        route = await self._session.get(RpcRoute, key, with_for_update=True)
        if route is None:
            self._session.add(RpcRoute(chain_id=key, url=url))
        else:
            route.url = url
        await self._session.flush()

    async def list_rpc_routes(self) -> dict[str, str]:
        rows = (await self._session.execute(select(RpcRoute))).scalars().all()
        return {r.chain_id: r.url for r in rows}


def _norm_chain(chain_id: str) -> str:
    # Hosts send chain ids as hex quantities; "0x01" and "0x1" name the same chain.
    try:
        return hex(int(chain_id, 16)) if chain_id.startswith("0x") else hex(int(chain_id))
    except ValueError:
        return chain_id
