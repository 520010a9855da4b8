"""Execution compiler: decoded intent to one on-chain transaction.

Calls are assembled in a fixed order (account setup, token payouts, then either
the intent executor call or a native payout) and collapsed into a single
transaction by a dispatch strategy:

* ``NONE``          nothing to do, the all-zero hash is returned unsent
* ``DIRECT``        exactly one call, sent as-is
* ``MULTICALL``     two or more calls through Multicall3 ``aggregate3Value``
* ``ROUTER_BATCH``  destination ops present, every call goes through the router
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .decoder import DecodedIntent
from .exceptions import DestinationSignatureRequiredError, IntentCompilationError
from .op_payload import pack_operations
from .ports import Call, ChainExecutionPort
from .utils import ZERO_HASH, hex_to_bytes

logger = logging.getLogger(__name__)


class DispatchStrategy(str, Enum):
    NONE = "none"
    DIRECT = "direct"
    MULTICALL = "multicall"
    ROUTER_BATCH = "router_batch"


@dataclass
class ExecutionBatch:
    """Ordered calls plus the transaction that will carry them."""
    calls: List[Call] = field(default_factory=list)
    native_value: int = 0
    strategy: DispatchStrategy = DispatchStrategy.NONE
    transaction: Optional[Call] = None


def is_fake_signature(signature: Optional[str]) -> bool:
    """True for a missing, ``0x`` or all-zero signature."""
    if not signature:
        return True
    body = signature[2:] if signature.lower().startswith("0x") else signature
    if not body:
        return True
    return set(body) <= {"0"}


class ExecutionCompiler:
    """Builds and executes the transaction for a decoded intent."""

    def compile(
        self,
        decoded: DecodedIntent,
        service: ChainExecutionPort,
        destination_signature: Optional[str],
        sponsor: str,
        nonce: int,
    ) -> ExecutionBatch:
        calls: List[Call] = list(decoded.setup_ops)

        for transfer in decoded.transfers:
            calls.append(
                Call(
                    target=transfer.token,
                    value=0,
                    data=service.transfer_from(service.account_address, decoded.recipient, transfer.amount),
                )
            )

        if decoded.has_destination_ops:
            if is_fake_signature(destination_signature):
                raise DestinationSignatureRequiredError()
            # mockFill carries no per-call value and the router is non-payable
            valued = [c for c in calls if c.value]
            if decoded.native_amount or valued:
                raise IntentCompilationError(
                    "native value cannot be delivered through the router batch",
                    details={
                        "native_amount": str(decoded.native_amount),
                        "valued_calls": [c.target for c in valued],
                    },
                )

            ops = decoded.destination_ops
            payload = pack_operations(ops.execution_type, ops.signature_mode, ops.calls)
            calls.append(
                service.intent_executor_call(
                    account=sponsor,
                    nonce=nonce,
                    payload=payload,
                    signature=hex_to_bytes(destination_signature),
                )
            )
            batch = ExecutionBatch(
                calls=calls,
                native_value=0,
                strategy=DispatchStrategy.ROUTER_BATCH,
                transaction=service.router_batch_call(calls),
            )
        else:
            if decoded.native_amount:
                calls.append(Call(target=decoded.recipient, value=decoded.native_amount))
            batch = self._legacy_batch(calls, service)

        logger.info(
            f"Compiled intent {nonce}: strategy={batch.strategy.value} "
            f"calls={len(batch.calls)} value={batch.native_value}"
        )
        return batch

    @staticmethod
    def _legacy_batch(calls: List[Call], service: ChainExecutionPort) -> ExecutionBatch:
        native_value = sum(c.value for c in calls)
        if not calls:
            return ExecutionBatch(strategy=DispatchStrategy.NONE)
        if len(calls) == 1:
            return ExecutionBatch(
                calls=calls,
                native_value=native_value,
                strategy=DispatchStrategy.DIRECT,
                transaction=calls[0],
            )
        return ExecutionBatch(
            calls=calls,
            native_value=native_value,
            strategy=DispatchStrategy.MULTICALL,
            transaction=service.multicall(calls),
        )

    async def execute(self, batch: ExecutionBatch, service: ChainExecutionPort) -> str:
        """Send the batch as exactly one transaction (none for an empty batch)."""
        if batch.strategy is DispatchStrategy.NONE or batch.transaction is None:
            logger.info("Empty execution batch, nothing sent")
            return ZERO_HASH
        return await service.execute(batch.transaction)
