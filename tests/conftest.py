"""Pytest configuration and fixtures for mock orchestrator tests."""
from __future__ import annotations

import os
from typing import Any, Dict, List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

# Set test environment before importing the app
os.environ.setdefault("MOCKESTRATOR_ENVIRONMENT", "test")

from mockestrator_api.main import create_app
from mockestrator_chain.encoding import (
    encode_aggregate3_value,
    encode_erc20_transfer,
    encode_erc20_transfer_from,
    encode_execute_singlechain_ops,
    encode_router_mock_fill,
)
from mockestrator_core.compiler import ExecutionCompiler
from mockestrator_core.config import (
    INTENT_EXECUTOR_ADDRESS,
    MOCK_ROUTER_ADDRESS,
    MULTICALL3_ADDRESS,
    MockestratorSettings,
)
from mockestrator_core.intents import SignedIntentOp
from mockestrator_core.orchestrator import IntentOrchestrator
from mockestrator_core.ports import Balance, Call, ChainExecutionPort
from mockestrator_core.store import IntentRecordStore

BASE_SEPOLIA = 84532
ETH_SEPOLIA = 11155111

# Address of anvil's first default key
RELAYER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
SPONSOR = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
RECIPIENT = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"
USDC_BASE_SEPOLIA = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"
TARGET = "0x90F79bf6EB2c4f870365E785982E1f101E93b906"

REAL_SIGNATURE = "0x" + "ab" * 65


class FakeChainService(ChainExecutionPort):
    """In-memory chain service that records every executed transaction."""

    def __init__(
        self,
        chain_id: int = BASE_SEPOLIA,
        balances: Optional[Dict[str, int]] = None,
        fail_with: Optional[Exception] = None,
    ):
        self._chain_id = chain_id
        self.balances = balances if balances is not None else {"ETH": 0, "USDC": 0}
        self.fail_with = fail_with
        self.executed: List[Call] = []

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def account_address(self) -> str:
        return RELAYER

    def supported_tokens(self) -> List[str]:
        return list(self.balances)

    async def balance_of(self, address: str, symbols: Sequence[str]) -> List[Balance]:
        return [
            Balance(
                symbol=symbol,
                token="0x0000000000000000000000000000000000000000" if symbol == "ETH" else USDC_BASE_SEPOLIA,
                amount=self.balances[symbol],
                decimals=18 if symbol == "ETH" else 6,
                chain_id=self._chain_id,
            )
            for symbol in symbols
        ]

    def transfer(self, to: str, amount: int) -> bytes:
        return encode_erc20_transfer(to, amount)

    def transfer_from(self, sender: str, to: str, amount: int) -> bytes:
        return encode_erc20_transfer_from(sender, to, amount)

    def multicall(self, calls: Sequence[Call]) -> Call:
        return Call(
            target=MULTICALL3_ADDRESS,
            value=sum(c.value for c in calls),
            data=encode_aggregate3_value(calls),
        )

    def router_batch_call(self, calls: Sequence[Call]) -> Call:
        return Call(target=MOCK_ROUTER_ADDRESS, value=0, data=encode_router_mock_fill(calls))

    def intent_executor_call(self, account: str, nonce: int, payload: bytes, signature: bytes) -> Call:
        return Call(
            target=INTENT_EXECUTOR_ADDRESS,
            value=0,
            data=encode_execute_singlechain_ops(account, nonce, payload, signature),
        )

    async def execute(self, call: Call) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        self.executed.append(call)
        return "0x" + f"{len(self.executed):064x}"


def token_id(address: str) -> str:
    """Wire token id (decimal string) for an ERC-20 address."""
    return str(int(address, 16))


@pytest.fixture
def fake_service() -> FakeChainService:
    return FakeChainService(BASE_SEPOLIA, balances={"ETH": 10**18, "USDC": 5_000_000})


@pytest.fixture
def services(fake_service) -> Dict[int, FakeChainService]:
    return {
        BASE_SEPOLIA: fake_service,
        ETH_SEPOLIA: FakeChainService(ETH_SEPOLIA, balances={"ETH": 2 * 10**18, "USDC": 1_000_000}),
    }


@pytest.fixture
def store() -> IntentRecordStore:
    return IntentRecordStore()


@pytest.fixture
def settings() -> MockestratorSettings:
    return MockestratorSettings(
        environment="test",
        bootstrap_on_startup=False,
        log_json=False,
        route_ttl_seconds=600,
    )


@pytest.fixture
def orchestrator(services, store, settings) -> IntentOrchestrator:
    return IntentOrchestrator(services=services, store=store, compiler=ExecutionCompiler(), settings=settings)


@pytest.fixture
def app(settings, services, store):
    return create_app(settings=settings, services=services, store=store)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_signed_op():
    """Factory for wire-format signed intent operations."""

    def _make(
        nonce: int = 42,
        token_out: Optional[List[List[Any]]] = None,
        destination_ops: Any = None,
        destination_signature: Optional[str] = None,
        setup_ops: Optional[List[Dict[str, Any]]] = None,
        destination_chain_id: int = BASE_SEPOLIA,
        recipient: str = RECIPIENT,
        extra_elements: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        element = {
            "arbiter": "0xdead00000000000000000000000000000000beef",
            "chainId": str(BASE_SEPOLIA),
            "idsAndAmounts": [],
            "spendTokens": [],
            "mandate": {
                "recipient": recipient,
                "tokenOut": token_out if token_out is not None else [[token_id(USDC_BASE_SEPOLIA), "1000000"]],
                "destinationChainId": str(destination_chain_id),
                "fillDeadline": "9999999999",
                "preClaimOps": [],
                "destinationOps": destination_ops if destination_ops is not None else [],
                "qualifier": {
                    "settlementContext": {"settlementLayer": "SAME_CHAIN", "fundingMethod": "NO_FUNDING"},
                    "encodedVal": "0xfefe",
                },
                "v": 0,
                "minGas": "0",
            },
        }
        op = {
            "sponsor": SPONSOR,
            "nonce": str(nonce),
            "expires": "9999999999",
            "elements": [element] + (extra_elements or []),
            "serverSignature": "",
            "signedMetadata": {
                "tokenPrices": {},
                "gasPrices": {},
                "account": {
                    "address": SPONSOR,
                    "accountType": "ERC7579",
                    "accountContext": {},
                    "setupOps": setup_ops or [],
                },
            },
            "originSignatures": [REAL_SIGNATURE],
        }
        if destination_signature is not None:
            op["destinationSignature"] = destination_signature
        return op

    return _make


@pytest.fixture
def signed_op(make_signed_op):
    """Factory returning parsed ``SignedIntentOp`` models."""

    def _build(**kwargs) -> SignedIntentOp:
        return SignedIntentOp.model_validate(make_signed_op(**kwargs))

    return _build
