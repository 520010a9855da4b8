"""Tests for the JSON-RPC backed chain execution service."""
from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from eth_abi import encode
from eth_account import Account

from conftest import RECIPIENT, TARGET, USDC_BASE_SEPOLIA
from mockestrator_chain.bootstrap import bootstrap_chain, bootstrap_chains
from mockestrator_chain.encoding import (
    ERC20_APPROVE,
    MULTICALL_AGGREGATE3,
    balance_storage_slot,
)
from mockestrator_chain.registry import get_chain_entry
from mockestrator_chain.rpc_client import ChainRPCClient
from mockestrator_chain.service import ChainExecutionService, build_chain_services
from mockestrator_core.config import (
    DEFAULT_RELAYER_KEY,
    INTENT_EXECUTOR_ADDRESS,
    MOCK_ROUTER_ADDRESS,
    MULTICALL3_ADDRESS,
    FundingFileEntry,
    MockestratorSettings,
    RpcFileEntry,
)
from mockestrator_core.exceptions import (
    ConfigurationError,
    MockestratorValidationError,
    RPCError,
    TransactionRevertedError,
    TransactionTimeoutError,
)
from mockestrator_core.ports import Call

RELAYER = Account.from_key(DEFAULT_RELAYER_KEY).address
TX_HASH = "0x" + "c" * 64


def make_rpc() -> AsyncMock:
    rpc = AsyncMock(spec=ChainRPCClient)
    rpc.get_nonce.return_value = 3
    rpc.estimate_gas.return_value = 100_000
    rpc.get_gas_price.return_value = 1_000_000_000
    rpc.send_raw_transaction.return_value = TX_HASH
    rpc.get_transaction_receipt.return_value = {"status": "0x1", "blockNumber": "0x10"}
    return rpc


def make_service(rpc, **kwargs) -> ChainExecutionService:
    options = dict(receipt_timeout_seconds=0.05, receipt_poll_interval_seconds=0.01)
    options.update(kwargs)
    return ChainExecutionService(
        chain=get_chain_entry(84532),
        rpc_client=rpc,
        private_key=DEFAULT_RELAYER_KEY,
        router=MOCK_ROUTER_ADDRESS,
        intent_executor=INTENT_EXECUTOR_ADDRESS,
        multicall=MULTICALL3_ADDRESS,
        **options,
    )


class TestCalldata:

    def test_identity(self):
        service = make_service(make_rpc())

        assert service.chain_id == 84532
        assert service.account_address == RELAYER
        assert service.supported_tokens() == ["ETH", "USDC", "WETH"]

    def test_multicall_sums_values(self):
        service = make_service(make_rpc())
        call = service.multicall([Call(TARGET, 2, b""), Call(RECIPIENT, 3, b"")])

        assert call.target == MULTICALL3_ADDRESS
        assert call.value == 5

    def test_router_batch_is_non_payable(self):
        service = make_service(make_rpc())
        call = service.router_batch_call([Call(TARGET, 2, b"")])

        assert call.target == MOCK_ROUTER_ADDRESS
        assert call.value == 0

    def test_intent_executor_call_target(self):
        service = make_service(make_rpc())
        call = service.intent_executor_call(RECIPIENT, 1, b"\x02\x01", b"\xff")

        assert call.target == INTENT_EXECUTOR_ADDRESS


@pytest.mark.asyncio
class TestBalances:

    async def test_native_and_erc20(self):
        rpc = make_rpc()
        rpc.get_balance.return_value = 10**18
        rpc.eth_call.return_value = encode(["(bool,bytes)[]"], [[(True, encode(["uint256"], [1234]))]])
        service = make_service(rpc)

        balances = await service.balance_of(RECIPIENT, ["ETH", "USDC"])

        assert [(b.symbol, b.amount, b.decimals) for b in balances] == [("ETH", 10**18, 18), ("USDC", 1234, 6)]
        assert balances[1].token == USDC_BASE_SEPOLIA
        to, data = rpc.eth_call.await_args.args
        assert to == MULTICALL3_ADDRESS
        assert data[:4] == MULTICALL_AGGREGATE3

    async def test_failed_read_counts_as_zero(self):
        rpc = make_rpc()
        rpc.eth_call.return_value = encode(["(bool,bytes)[]"], [[(False, b"")]])
        service = make_service(rpc)

        balances = await service.balance_of(RECIPIENT, ["USDC"])

        assert balances[0].amount == 0
        rpc.get_balance.assert_not_awaited()

    async def test_unknown_symbol(self):
        service = make_service(make_rpc())

        with pytest.raises(MockestratorValidationError):
            await service.balance_of(RECIPIENT, ["DOGE"])


@pytest.mark.asyncio
class TestExecute:

    async def test_signs_and_waits_for_receipt(self):
        rpc = make_rpc()
        service = make_service(rpc, gas_limit_buffer_percent=50)

        tx_hash = await service.execute(Call(TARGET, 7, b"\x01\x02"))

        assert tx_hash == TX_HASH
        estimate_tx = rpc.estimate_gas.await_args.args[0]
        assert estimate_tx == {"from": RELAYER, "to": TARGET, "value": "0x7", "data": "0x0102"}

        raw = rpc.send_raw_transaction.await_args.args[0]
        assert Account.recover_transaction(raw) == RELAYER
        rpc.get_transaction_receipt.assert_awaited_with(TX_HASH)

    async def test_nonce_is_tracked_between_transactions(self):
        rpc = make_rpc()
        service = make_service(rpc)

        await service.execute(Call(TARGET, 0, b""))
        await service.execute(Call(TARGET, 0, b""))

        assert rpc.get_nonce.await_count == 1

    async def test_reverted_transaction(self):
        rpc = make_rpc()
        rpc.get_transaction_receipt.return_value = {"status": "0x0", "blockNumber": "0x1"}
        service = make_service(rpc)

        with pytest.raises(TransactionRevertedError) as exc_info:
            await service.execute(Call(TARGET, 0, b""))
        assert exc_info.value.tx_hash == TX_HASH

        # next submission re-syncs the nonce
        rpc.get_transaction_receipt.return_value = {"status": "0x1", "blockNumber": "0x2"}
        await service.execute(Call(TARGET, 0, b""))
        assert rpc.get_nonce.await_count == 2

    async def test_receipt_deadline(self):
        rpc = make_rpc()
        rpc.get_transaction_receipt.return_value = None
        service = make_service(rpc)

        with pytest.raises(TransactionTimeoutError):
            await service.execute(Call(TARGET, 0, b""))

    async def test_rpc_error_propagates(self):
        rpc = make_rpc()
        rpc.estimate_gas.side_effect = RPCError("execution reverted", chain_id=84532, method="eth_estimateGas")
        service = make_service(rpc)

        with pytest.raises(RPCError):
            await service.execute(Call(TARGET, 0, b""))
        rpc.send_raw_transaction.assert_not_awaited()


class TestFromConfig:

    def test_unknown_chain(self):
        with pytest.raises(ConfigurationError):
            ChainExecutionService.from_config(1, RpcFileEntry(rpc="http://localhost:8545"), MockestratorSettings())

    def test_build_chain_services(self):
        settings = MockestratorSettings(rpc_timeout_seconds=3)
        services = build_chain_services(
            {84532: RpcFileEntry(rpc="http://localhost:30005"), 11155111: RpcFileEntry(rpc="http://localhost:30006")},
            settings,
        )

        assert list(services) == [84532, 11155111]
        assert services[84532].rpc.rpc_url == "http://localhost:30005"
        assert services[84532].router_address == MOCK_ROUTER_ADDRESS


@pytest.mark.asyncio
class TestRPCClient:

    async def test_result(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert body["method"] == "eth_chainId"
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "0x14a34"})

        client = ChainRPCClient("http://node", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        assert await client.get_chain_id() == 84532
        await client.close()

    async def test_json_rpc_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "nonce too low"}},
            )

        client = ChainRPCClient(
            "http://node",
            chain_id=84532,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        with pytest.raises(RPCError) as exc_info:
            await client.get_nonce(RELAYER)
        assert exc_info.value.code == -32000
        assert exc_info.value.details["method"] == "eth_getTransactionCount"

    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="bad gateway")

        client = ChainRPCClient("http://node", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        with pytest.raises(RPCError, match="transport error"):
            await client.get_block_number()

    async def test_anvil_storage_write_is_32_bytes(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": None})

        client = ChainRPCClient("http://node", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        await client.set_storage_at(USDC_BASE_SEPOLIA, b"\x01" * 32, 5)

        params = seen[0]["params"]
        assert seen[0]["method"] == "anvil_setStorageAt"
        assert params[1] == "0x" + "01" * 32
        assert params[2] == "0x" + "00" * 31 + "05"


@pytest.mark.asyncio
class TestBootstrap:

    async def test_funds_and_approves(self):
        rpc = make_rpc()
        service = make_service(rpc)
        funding = FundingFileEntry.model_validate({
            "native": "0x56bc75e2d63100000",
            "tokens": {"USDC": "1000000000"},
            "codeOverrides": {MOCK_ROUTER_ADDRESS.lower(): "0x6080"},
        })

        with patch.object(service, "execute", new=AsyncMock(return_value=TX_HASH)) as execute:
            await bootstrap_chain(service, funding)

        rpc.set_code.assert_awaited_once_with(MOCK_ROUTER_ADDRESS, "0x6080")
        rpc.set_balance.assert_awaited_once_with(RELAYER, 100 * 10**18)
        rpc.set_storage_at.assert_awaited_once_with(
            USDC_BASE_SEPOLIA, balance_storage_slot(RELAYER, 9), 1_000_000_000
        )

        approvals = [c.args[0] for c in execute.await_args_list]
        assert [a.target for a in approvals] == [USDC_BASE_SEPOLIA] * 3
        assert all(a.data[:4] == ERC20_APPROVE for a in approvals)

    async def test_native_symbol_cannot_be_written_to_storage(self):
        service = make_service(make_rpc())

        with pytest.raises(ConfigurationError):
            await bootstrap_chain(service, FundingFileEntry(tokens={"ETH": 1}))

    async def test_skips_chains_without_service(self):
        rpc = make_rpc()
        service = make_service(rpc)

        await bootstrap_chains({84532: service}, {421614: FundingFileEntry(native=1)})

        rpc.set_balance.assert_not_awaited()
