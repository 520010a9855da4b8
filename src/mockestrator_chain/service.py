"""Per-chain execution service backed by a JSON-RPC node and a local signer."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from eth_account import Account

from mockestrator_core.config import MockestratorSettings, RpcFileEntry
from mockestrator_core.exceptions import (
    ConfigurationError,
    MockestratorValidationError,
    TransactionRevertedError,
    TransactionTimeoutError,
)
from mockestrator_core.ports import Balance, Call, ChainExecutionPort
from mockestrator_core.utils import to_hex

from .encoding import (
    decode_aggregate3_result,
    encode_aggregate3,
    encode_aggregate3_value,
    encode_balance_of,
    encode_erc20_transfer,
    encode_erc20_transfer_from,
    encode_execute_singlechain_ops,
    encode_router_mock_fill,
)
from .nonce_manager import NonceManager
from .registry import ChainEntry, TokenEntry, get_chain_entry
from .rpc_client import ChainRPCClient

logger = logging.getLogger(__name__)


class ChainExecutionService(ChainExecutionPort):
    """Executes relayer transactions on one chain.

    Features:
    - Token balance reads (native + ERC-20 via one Multicall3 read)
    - ERC-20 / Multicall3 / router / intent executor calldata
    - Local signing with the configured relayer key
    - Per-account submission serialization and receipt polling with a deadline
    """

    def __init__(
        self,
        chain: ChainEntry,
        rpc_client: ChainRPCClient,
        private_key: str,
        router: str,
        intent_executor: str,
        multicall: str,
        nonce_manager: Optional[NonceManager] = None,
        gas_limit_buffer_percent: int = 20,
        receipt_timeout_seconds: float = 120.0,
        receipt_poll_interval_seconds: float = 0.5,
    ):
        self._chain = chain
        self._rpc = rpc_client
        self._account = Account.from_key(private_key)
        self._router = router
        self._intent_executor = intent_executor
        self._multicall = multicall
        self._nonce_manager = nonce_manager or NonceManager()
        self._gas_buffer = gas_limit_buffer_percent
        self._receipt_timeout = receipt_timeout_seconds
        self._poll_interval = receipt_poll_interval_seconds

    @classmethod
    def from_config(
        cls,
        chain_id: int,
        entry: RpcFileEntry,
        settings: MockestratorSettings,
        nonce_manager: Optional[NonceManager] = None,
    ) -> "ChainExecutionService":
        chain = get_chain_entry(chain_id)
        if chain is None:
            raise ConfigurationError(f"Unsupported chain {chain_id} in rpcs file")
        return cls(
            chain=chain,
            rpc_client=ChainRPCClient(
                entry.rpc,
                chain_id=chain_id,
                timeout_seconds=settings.rpc_timeout_seconds,
            ),
            private_key=entry.private_key,
            router=entry.router,
            intent_executor=entry.intent_executor,
            multicall=entry.multicall,
            nonce_manager=nonce_manager,
            gas_limit_buffer_percent=settings.gas_limit_buffer_percent,
            receipt_timeout_seconds=settings.receipt_timeout_seconds,
            receipt_poll_interval_seconds=settings.receipt_poll_interval_seconds,
        )

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def chain_id(self) -> int:
        return self._chain.chain_id

    @property
    def chain(self) -> ChainEntry:
        return self._chain

    @property
    def rpc(self) -> ChainRPCClient:
        return self._rpc

    @property
    def account_address(self) -> str:
        return self._account.address

    @property
    def router_address(self) -> str:
        return self._router

    @property
    def multicall_address(self) -> str:
        return self._multicall

    def supported_tokens(self) -> List[str]:
        return self._chain.symbols

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _resolve_tokens(self, symbols: Sequence[str]) -> List[TokenEntry]:
        tokens = []
        for symbol in symbols:
            token = self._chain.token_by_symbol(symbol)
            if token is None:
                raise MockestratorValidationError(
                    f"Token {symbol} not supported on chain {self.chain_id}",
                    field="symbol",
                )
            tokens.append(token)
        return tokens

    async def _erc20_balances(self, address: str, tokens: List[TokenEntry]) -> List[int]:
        if not tokens:
            return []
        data = encode_aggregate3([(t.address, True, encode_balance_of(address)) for t in tokens])
        raw = await self._rpc.eth_call(self._multicall, data)
        amounts = []
        for success, ret in decode_aggregate3_result(raw):
            amounts.append(int.from_bytes(ret[:32], "big") if success and len(ret) >= 32 else 0)
        return amounts

    async def balance_of(self, address: str, symbols: Sequence[str]) -> List[Balance]:
        tokens = self._resolve_tokens(symbols)
        natives = [t for t in tokens if t.is_native]
        erc20s = [t for t in tokens if not t.is_native]

        erc20_amounts, *native_amounts = await asyncio.gather(
            self._erc20_balances(address, erc20s),
            *(self._rpc.get_balance(address) for _ in natives),
        )

        amounts: Dict[str, int] = dict(zip((t.symbol for t in erc20s), erc20_amounts))
        amounts.update(zip((t.symbol for t in natives), native_amounts))
        return [
            Balance(
                symbol=t.symbol,
                token=t.address,
                amount=amounts[t.symbol],
                decimals=t.decimals,
                chain_id=self.chain_id,
            )
            for t in tokens
        ]

    # ------------------------------------------------------------------
    # Calldata
    # ------------------------------------------------------------------

    def transfer(self, to: str, amount: int) -> bytes:
        return encode_erc20_transfer(to, amount)

    def transfer_from(self, sender: str, to: str, amount: int) -> bytes:
        return encode_erc20_transfer_from(sender, to, amount)

    def multicall(self, calls: Sequence[Call]) -> Call:
        return Call(
            target=self._multicall,
            value=sum(c.value for c in calls),
            data=encode_aggregate3_value(calls),
        )

    def router_batch_call(self, calls: Sequence[Call]) -> Call:
        return Call(target=self._router, value=0, data=encode_router_mock_fill(calls))

    def intent_executor_call(self, account: str, nonce: int, payload: bytes, signature: bytes) -> Call:
        return Call(
            target=self._intent_executor,
            value=0,
            data=encode_execute_singlechain_ops(account, nonce, payload, signature),
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, call: Call) -> str:
        """Sign, broadcast and confirm ``call`` as one relayer transaction."""
        sender = self.account_address
        async with self._nonce_manager.reserve(sender, self._rpc) as nonce:
            rpc_tx = {
                "from": sender,
                "to": call.target,
                "value": hex(call.value),
                "data": to_hex(call.data),
            }
            estimated = await self._rpc.estimate_gas(rpc_tx)
            gas_limit = estimated * (100 + self._gas_buffer) // 100
            gas_price = await self._rpc.get_gas_price()

            signed = self._account.sign_transaction({
                "to": call.target,
                "value": call.value,
                "data": to_hex(call.data),
                "gas": gas_limit,
                "gasPrice": gas_price,
                "nonce": nonce,
                "chainId": self.chain_id,
            })
            tx_hash = await self._rpc.send_raw_transaction(signed.raw_transaction)
            logger.info(
                f"Submitted {tx_hash} on chain {self.chain_id} "
                f"(to={call.target} value={call.value} nonce={nonce} gas={gas_limit})"
            )
            await self._wait_for_receipt(tx_hash)
        return tx_hash

    async def _wait_for_receipt(self, tx_hash: str) -> Dict[str, Any]:
        """Poll until the transaction is mined; raise if it reverted."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._receipt_timeout

        while True:
            receipt = await self._rpc.get_transaction_receipt(tx_hash)
            if receipt:
                status = int(receipt.get("status", "0x0"), 16)
                if status == 0:
                    logger.error(f"Transaction {tx_hash} reverted on chain {self.chain_id}")
                    raise TransactionRevertedError(tx_hash, chain_id=self.chain_id)
                logger.info(
                    f"Transaction {tx_hash} mined in block {int(receipt.get('blockNumber', '0x0'), 16)}"
                )
                return receipt

            if loop.time() >= deadline:
                raise TransactionTimeoutError(tx_hash, self._receipt_timeout, chain_id=self.chain_id)
            await asyncio.sleep(self._poll_interval)

    async def close(self):
        await self._rpc.close()


def build_chain_services(
    rpcs: Mapping[int, RpcFileEntry],
    settings: MockestratorSettings,
) -> Dict[int, ChainExecutionService]:
    """Create one execution service per configured chain, in file order."""
    services: Dict[int, ChainExecutionService] = {}
    for chain_id, entry in rpcs.items():
        services[chain_id] = ChainExecutionService.from_config(chain_id, entry, settings)
        logger.info(f"Configured chain {chain_id} via {entry.rpc}")
    return services
