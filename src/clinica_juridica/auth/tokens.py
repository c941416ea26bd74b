"""
clinica_juridica.auth.tokens

In-process registry of issued refresh tokens.

Responsibilities:
- Remember refresh tokens handed out at login so logout can revoke them.
- Reject refresh attempts with tokens that were never issued or were revoked.
"""

from __future__ import annotations

import asyncio


class RefreshTokenRegistry:
    """
    Process-local store; a multi-instance deployment would back this with a shared cache.
    """

    def __init__(self) -> None:
        self._tokens: set[str] = set()
        self._lock = asyncio.Lock()

    async def add(self, token: str) -> None:
        async with self._lock:
            self._tokens.add(token)

    async def revoke(self, token: str) -> None:
        async with self._lock:
            self._tokens.discard(token)

    async def contains(self, token: str) -> bool:
        async with self._lock:
            return token in self._tokens
