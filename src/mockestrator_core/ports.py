"""Chain execution port consumed by the intent pipeline.

The intent decoder, compiler and orchestrator never talk to a node directly.
They work against ``ChainExecutionPort``, one instance per supported chain;
``mockestrator_chain.service.ChainExecutionService`` is the JSON-RPC backed
implementation.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Sequence


@dataclass(frozen=True)
class Call:
    """A single contract call: target, native value and calldata."""
    target: str
    value: int = 0
    data: bytes = b""


@dataclass(frozen=True)
class Balance:
    """Balance of one token for one account on one chain."""
    symbol: str
    token: str
    amount: int
    decimals: int
    chain_id: int


class ChainExecutionPort(ABC):
    """Per-chain execution service interface."""

    @property
    @abstractmethod
    def chain_id(self) -> int:
        """Chain id this service executes on."""

    @property
    @abstractmethod
    def account_address(self) -> str:
        """Address of the relayer account that signs every transaction."""

    @abstractmethod
    def supported_tokens(self) -> List[str]:
        """Token symbols this chain knows about."""

    @abstractmethod
    async def balance_of(self, address: str, symbols: Sequence[str]) -> List[Balance]:
        """Balances of ``address`` for the given token symbols."""

    @abstractmethod
    def transfer(self, to: str, amount: int) -> bytes:
        """ERC-20 ``transfer`` calldata."""

    @abstractmethod
    def transfer_from(self, sender: str, to: str, amount: int) -> bytes:
        """ERC-20 ``transferFrom`` calldata."""

    @abstractmethod
    def multicall(self, calls: Sequence[Call]) -> Call:
        """Aggregate calls into one Multicall3 call that reverts if any sub-call fails."""

    @abstractmethod
    def router_batch_call(self, calls: Sequence[Call]) -> Call:
        """Wrap calls into one mock router batch call."""

    @abstractmethod
    def intent_executor_call(
        self,
        account: str,
        nonce: int,
        payload: bytes,
        signature: bytes,
    ) -> Call:
        """Build the intent executor call that runs signed destination ops."""

    @abstractmethod
    async def execute(self, call: Call) -> str:
        """Send ``call`` as one transaction, await its receipt, return the tx hash."""
