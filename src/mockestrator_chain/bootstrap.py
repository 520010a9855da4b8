"""Startup preparation of forked test chains.

For every chain listed in the funding file:

1. install raw bytecode overrides (mock router, executor fixtures, ...)
2. set the relayer's native balance
3. write the relayer's ERC-20 balances straight into token storage
4. approve the relayer itself, Multicall3 and the router to move the
   relayer's tokens, so ``transferFrom(relayer, ...)`` succeeds whichever
   contract ends up as ``msg.sender``
"""
from __future__ import annotations

import logging
from typing import Mapping

from mockestrator_core.config import FundingFileEntry
from mockestrator_core.exceptions import ConfigurationError
from mockestrator_core.ports import Call

from .encoding import MAX_UINT256, balance_storage_slot, encode_erc20_approve
from .service import ChainExecutionService

logger = logging.getLogger(__name__)


async def bootstrap_chain(service: ChainExecutionService, funding: FundingFileEntry) -> None:
    rpc = service.rpc
    relayer = service.account_address

    for address, bytecode in funding.code_overrides.items():
        await rpc.set_code(address, bytecode)
        logger.info(f"Installed code override at {address} on chain {service.chain_id}")

    if funding.native is not None:
        await rpc.set_balance(relayer, funding.native)
        logger.info(f"Funded relayer {relayer} with {funding.native} wei on chain {service.chain_id}")

    spenders = [relayer, service.multicall_address, service.router_address]
    for symbol, amount in funding.tokens.items():
        token = service.chain.token_by_symbol(symbol)
        if token is None or token.is_native:
            raise ConfigurationError(f"Cannot fund {symbol} on chain {service.chain_id}: not an ERC-20 token")
        if token.balance_slot is None:
            raise ConfigurationError(f"No balance slot known for {symbol} on chain {service.chain_id}")

        await rpc.set_storage_at(token.address, balance_storage_slot(relayer, token.balance_slot), amount)
        logger.info(f"Funded relayer {relayer} with {amount} {symbol} on chain {service.chain_id}")

        for spender in spenders:
            await service.execute(
                Call(target=token.address, value=0, data=encode_erc20_approve(spender, MAX_UINT256))
            )


async def bootstrap_chains(
    services: Mapping[int, ChainExecutionService],
    funding: Mapping[int, FundingFileEntry],
) -> None:
    for chain_id, entry in funding.items():
        service = services.get(chain_id)
        if service is None:
            logger.warning(f"Funding configured for chain {chain_id} which has no RPC entry, skipping")
            continue
        await bootstrap_chain(service, entry)
