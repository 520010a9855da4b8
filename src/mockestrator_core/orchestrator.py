"""Intent orchestrator: routing, execution, status and portfolio.

Glues the decoder, compiler, record store and the per-chain execution
services together. Every collaborator is passed in; nothing here is global.
"""
from __future__ import annotations

import asyncio
import logging
import secrets
import time
from typing import Dict, List, Mapping, Optional

from .compiler import ExecutionCompiler
from .config import MockestratorSettings
from .decoder import decode_intent
from .exceptions import IntentDecodeError, MockestratorException, UnsupportedChainError
from .intents import (
    Element,
    IntentCost,
    IntentOp,
    IntentRouteRequest,
    IntentRouteResponse,
    LockedBalance,
    Mandate,
    PortfolioBalance,
    PortfolioEntry,
    Qualifier,
    SettlementContext,
    SignedAccount,
    SignedIntentOp,
    SignedMetadata,
    TokenChainBalance,
    TokenReceived,
)
from .op_payload import ExecutionType, SignatureMode, encode_variant_tag
from .ports import Balance, ChainExecutionPort
from .store import IntentRecord, IntentRecordStore, IntentStatus
from .utils import normalize_address

logger = logging.getLogger(__name__)

ARBITER_ADDRESS = "0xdead00000000000000000000000000000000beef"
SERVER_SIGNATURE = "4f8c3b1d2f3a7e61c8f4a9170a4b2f8e5c9d0b6a3c7e8f4a9172b3c1d4e5f6a0"
ENCODED_QUALIFIER = "0xfefe"

SETTLEMENT_SAME_CHAIN = "SAME_CHAIN"
SETTLEMENT_ACROSS = "ACROSS"


class IntentOrchestrator:
    """Entry point used by the HTTP layer."""

    def __init__(
        self,
        services: Mapping[int, ChainExecutionPort],
        store: IntentRecordStore,
        compiler: Optional[ExecutionCompiler] = None,
        settings: Optional[MockestratorSettings] = None,
    ):
        self._services: Dict[int, ChainExecutionPort] = dict(services)
        self._store = store
        self._compiler = compiler or ExecutionCompiler()
        self._route_ttl = settings.route_ttl_seconds if settings else 3600

    @property
    def chain_ids(self) -> List[int]:
        return list(self._services)

    def service(self, chain_id: int) -> ChainExecutionPort:
        service = self._services.get(chain_id)
        if service is None:
            raise UnsupportedChainError(chain_id)
        return service

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def _source_chain(self, request: IntentRouteRequest) -> int:
        if request.account_access_list and request.account_access_list.chain_ids:
            return request.account_access_list.chain_ids[0]
        if not self._services:
            raise UnsupportedChainError(request.destination_chain_id)
        return next(iter(self._services))

    def create_route(self, request: IntentRouteRequest) -> IntentRouteResponse:
        """Fabricate an unsigned intent operation for a route request."""
        destination_chain_id = request.destination_chain_id
        self.service(destination_chain_id)
        source_chain_id = self._source_chain(request)
        self.service(source_chain_id)

        sponsor = request.account.address
        recipient = sponsor
        nonce = secrets.randbits(256)
        expires = int(time.time()) + self._route_ttl

        token_out = [[str(int(t.token_address, 16)), str(t.amount)] for t in request.token_requests]

        destination_ops: object = []
        if request.destination_executions:
            destination_ops = {
                "vt": encode_variant_tag(
                    ExecutionType[request.destination_execution_type],
                    SignatureMode[request.destination_signature_mode],
                ),
                "ops": [c.to_wire() for c in request.destination_executions],
            }

        settlement_layer = (
            SETTLEMENT_SAME_CHAIN if source_chain_id == destination_chain_id else SETTLEMENT_ACROSS
        )

        mandate = Mandate(
            recipient=recipient,
            token_out=token_out,
            destination_chain_id=destination_chain_id,
            fill_deadline=expires,
            pre_claim_ops=[],
            destination_ops=destination_ops,
            qualifier=Qualifier(
                settlement_context=SettlementContext(settlement_layer=settlement_layer),
                encoded_val=ENCODED_QUALIFIER,
            ),
            v=0,
            min_gas=0,
        )
        intent_op = IntentOp(
            sponsor=sponsor,
            nonce=nonce,
            expires=expires,
            elements=[
                Element(
                    arbiter=ARBITER_ADDRESS,
                    chain_id=source_chain_id,
                    ids_and_amounts=[list(pair) for pair in token_out],
                    spend_tokens=[],
                    mandate=mandate,
                )
            ],
            server_signature=SERVER_SIGNATURE,
            signed_metadata=SignedMetadata(
                account=SignedAccount(
                    address=sponsor,
                    account_type=request.account.account_type,
                    account_context=request.account.account_context,
                    setup_ops=[c.to_wire() for c in request.account.setup_ops],
                ),
            ),
        )

        tokens_spent: Dict[str, Dict[str, LockedBalance]] = {str(source_chain_id): {}}
        for t in request.token_requests:
            tokens_spent[str(source_chain_id)][t.token_address] = LockedBalance(locked=0, unlocked=t.amount)

        intent_cost = IntentCost(
            has_fulfilled_all=True,
            tokens_spent=tokens_spent,
            tokens_received=[
                TokenReceived(
                    token_address=t.token_address,
                    amount_spent=t.amount,
                    destination_amount=t.amount,
                )
                for t in request.token_requests
            ],
        )

        logger.info(
            f"Routed intent {nonce}: {source_chain_id} -> {destination_chain_id} "
            f"({settlement_layer}, {len(token_out)} token(s))"
        )
        return IntentRouteResponse(intent_op=intent_op, intent_cost=intent_cost)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, op: SignedIntentOp) -> str:
        """Execute a signed intent and record the outcome under its nonce.

        The record is written as PENDING first and always ends COMPLETED or
        FAILED; errors are re-raised after the FAILED record is stored. A
        resubmission of the same nonce replaces the record, and an older
        execution still in flight then leaves the newer record alone.
        """
        intent_id = op.nonce
        first_mandate = op.elements[0].mandate
        record = IntentRecord(
            status=IntentStatus.PENDING,
            recipient=first_mandate.recipient,
            destination_chain_id=first_mandate.destination_chain_id,
        )
        submission_id = record.submission_id
        await self._store.put(intent_id, record)

        try:
            decoded = decode_intent(op)
            try:
                sponsor = normalize_address(op.sponsor)
            except ValueError as e:
                raise IntentDecodeError(str(e), path="sponsor") from e

            service = self.service(decoded.destination_chain_id)
            batch = self._compiler.compile(
                decoded,
                service,
                destination_signature=op.destination_signature,
                sponsor=sponsor,
                nonce=op.nonce,
            )
            tx_hash = await self._compiler.execute(batch, service)
            await self._store.transition(
                intent_id,
                IntentStatus.PRECONFIRMED,
                submission_id=submission_id,
                recipient=decoded.recipient,
                fill_transaction_hash=tx_hash,
            )
            await self._store.transition(
                intent_id,
                IntentStatus.COMPLETED,
                submission_id=submission_id,
                fill_timestamp=int(time.time()),
            )
        except Exception as e:
            logger.error(f"Intent {intent_id} failed: {e}")
            try:
                await self._store.transition(
                    intent_id,
                    IntentStatus.FAILED,
                    submission_id=submission_id,
                    error=str(e),
                )
            except MockestratorException as record_error:
                logger.error(f"Could not record failure of intent {intent_id}: {record_error}")
            raise

        logger.info(f"Intent {intent_id} completed in {tx_hash}")
        return tx_hash

    async def status(self, intent_id: int) -> IntentRecord:
        return await self._store.get(intent_id)

    # ------------------------------------------------------------------
    # Portfolio
    # ------------------------------------------------------------------

    async def portfolio(self, address: str) -> List[PortfolioEntry]:
        """Aggregate balances for every supported token across all chains."""
        per_chain: List[List[Balance]] = await asyncio.gather(
            *(service.balance_of(address, service.supported_tokens()) for service in self._services.values())
        )

        entries: Dict[str, PortfolioEntry] = {}
        for balances in per_chain:
            for balance in balances:
                entry = entries.get(balance.symbol)
                if entry is None:
                    entry = PortfolioEntry(
                        token_name=balance.symbol,
                        token_decimals=balance.decimals,
                        balance=PortfolioBalance(locked=0, unlocked=0),
                    )
                    entries[balance.symbol] = entry
                entry.balance.unlocked += balance.amount
                entry.token_chain_balance.append(
                    TokenChainBalance(
                        chain_id=balance.chain_id,
                        token_address=balance.token,
                        balance=PortfolioBalance(locked=0, unlocked=balance.amount),
                    )
                )
        return list(entries.values())
