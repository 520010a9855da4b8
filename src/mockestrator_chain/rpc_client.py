"""Async JSON-RPC client for one chain endpoint.

Every request carries an HTTP timeout, so a stalled node fails the request
instead of hanging it.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from mockestrator_core.exceptions import RPCError
from mockestrator_core.utils import to_hex

logger = logging.getLogger(__name__)


class ChainRPCClient:
    """JSON-RPC client for blockchain interaction."""

    def __init__(
        self,
        rpc_url: str,
        chain_id: Optional[int] = None,
        timeout_seconds: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._rpc_url = rpc_url
        self._chain_id = chain_id
        self._timeout = timeout_seconds
        self._http_client = http_client
        self._request_id = 0

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Make a JSON-RPC call and return its ``result``."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        client = self._get_client()
        try:
            response = await client.post(
                self._rpc_url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPError as e:
            raise RPCError(
                f"RPC transport error calling {method}: {e}",
                chain_id=self._chain_id,
                method=method,
            ) from e

        if "error" in result and result["error"] is not None:
            error = result["error"]
            raise RPCError(
                f"RPC error from {method}: {error.get('message', error)}",
                chain_id=self._chain_id,
                method=method,
                code=error.get("code"),
                data=error.get("data"),
            )

        logger.debug(f"RPC {method} ok (chain {self._chain_id})")
        return result.get("result")

    # ------------------------------------------------------------------
    # eth_* methods
    # ------------------------------------------------------------------

    async def get_chain_id(self) -> int:
        return int(await self.call("eth_chainId"), 16)

    async def get_balance(self, address: str) -> int:
        return int(await self.call("eth_getBalance", [address, "latest"]), 16)

    async def eth_call(self, to: str, data: bytes) -> bytes:
        result = await self.call("eth_call", [{"to": to, "data": to_hex(data)}, "latest"])
        return bytes.fromhex(result[2:]) if result else b""

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        return int(await self.call("eth_estimateGas", [tx]), 16)

    async def get_gas_price(self) -> int:
        return int(await self.call("eth_gasPrice"), 16)

    async def get_nonce(self, address: str) -> int:
        return int(await self.call("eth_getTransactionCount", [address, "pending"]), 16)

    async def send_raw_transaction(self, signed_tx: bytes) -> str:
        return await self.call("eth_sendRawTransaction", [to_hex(signed_tx)])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self.call("eth_getTransactionReceipt", [tx_hash])

    async def get_block_number(self) -> int:
        return int(await self.call("eth_blockNumber"), 16)

    # ------------------------------------------------------------------
    # anvil_* cheat codes used to prepare forked test chains
    # ------------------------------------------------------------------

    async def set_code(self, address: str, bytecode: str) -> None:
        await self.call("anvil_setCode", [address, bytecode])

    async def set_balance(self, address: str, amount: int) -> None:
        await self.call("anvil_setBalance", [address, hex(amount)])

    async def set_storage_at(self, address: str, slot: bytes, value: int) -> None:
        await self.call(
            "anvil_setStorageAt",
            [address, to_hex(slot), "0x" + value.to_bytes(32, "big").hex()],
        )

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
