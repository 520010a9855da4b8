"""
Per-account nonce management and submission serialization.

One relayer account signs every transaction on a chain, so submissions on the
same chain must not interleave: the account nonce is reserved, the
transaction broadcast and its receipt awaited while the account's lock is
held. Submissions for different accounts (different chains) proceed
independently.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

logger = logging.getLogger(__name__)


class NonceManager:
    """Serializes submissions per account and tracks the next nonce.

    The cached nonce is advanced after each successful broadcast and dropped
    after a failure so the next reservation re-reads it from the node.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._nonces: Dict[str, int] = {}

    def _get_lock(self, address: str) -> asyncio.Lock:
        """Get or create lock for an address.

        Lock creation happens without an await, so on a single event loop two
        coroutines cannot create separate locks for the same address.
        """
        key = address.lower()
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def is_busy(self, address: str) -> bool:
        lock = self._locks.get(address.lower())
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def reserve(self, address: str, rpc_client: Any) -> AsyncIterator[int]:
        """Hold the account's lock and yield the nonce to use.

        The caller signals a broadcast by leaving the block normally; any
        exception invalidates the cached nonce.
        """
        key = address.lower()
        async with self._get_lock(key):
            nonce = self._nonces.get(key)
            if nonce is None:
                nonce = await rpc_client.get_nonce(address)
                logger.debug(f"Synced nonce for {key}: {nonce}")
            try:
                yield nonce
            except BaseException:
                self._nonces.pop(key, None)
                raise
            self._nonces[key] = nonce + 1

    def reset(self, address: str) -> None:
        """Forget the cached nonce for an address."""
        self._nonces.pop(address.lower(), None)
