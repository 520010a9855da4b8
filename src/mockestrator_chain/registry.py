"""Built-in registry of supported test chains and their tokens."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from eth_utils import to_checksum_address

from mockestrator_core.utils import ZERO_ADDRESS

NATIVE_SYMBOL = "ETH"


@dataclass(frozen=True)
class TokenEntry:
    """A token deployment on one chain."""
    symbol: str
    address: str
    decimals: int
    balance_slot: Optional[int] = None  # storage slot of the balances mapping

    @property
    def is_native(self) -> bool:
        return self.address == ZERO_ADDRESS


@dataclass(frozen=True)
class ChainEntry:
    """A supported chain."""
    chain_id: int
    name: str
    tokens: List[TokenEntry] = field(default_factory=list)

    def token_by_symbol(self, symbol: str) -> Optional[TokenEntry]:
        for token in self.tokens:
            if token.symbol == symbol:
                return token
        return None

    def token_by_address(self, address: str) -> Optional[TokenEntry]:
        wanted = to_checksum_address(address)
        for token in self.tokens:
            if token.address == wanted:
                return token
        return None

    @property
    def symbols(self) -> List[str]:
        return [t.symbol for t in self.tokens]


def _token(symbol: str, address: str, decimals: int, balance_slot: Optional[int] = None) -> TokenEntry:
    return TokenEntry(
        symbol=symbol,
        address=to_checksum_address(address),
        decimals=decimals,
        balance_slot=balance_slot,
    )


def _native() -> TokenEntry:
    return TokenEntry(symbol=NATIVE_SYMBOL, address=ZERO_ADDRESS, decimals=18)


CHAIN_REGISTRY: Dict[int, ChainEntry] = {
    84532: ChainEntry(
        chain_id=84532,
        name="base_sepolia",
        tokens=[
            _native(),
            _token("USDC", "0x036CbD53842c5426634e7929541eC2318f3dCF7e", 6, balance_slot=9),
            _token("WETH", "0x4200000000000000000000000000000000000006", 18, balance_slot=3),
        ],
    ),
    11155111: ChainEntry(
        chain_id=11155111,
        name="ethereum_sepolia",
        tokens=[
            _native(),
            _token("USDC", "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238", 6, balance_slot=9),
            _token("WETH", "0xfff9976782d46cc05630d1f6ebab18b2324d6b14", 18, balance_slot=3),
        ],
    ),
    421614: ChainEntry(
        chain_id=421614,
        name="arbitrum_sepolia",
        tokens=[
            _native(),
            _token("USDC", "0x75faf114eafb1bdbe2f0316df893fd58ce46aa4d", 6, balance_slot=9),
            _token("WETH", "0x980b62da83eff3d4576c647993b0c1d7faf17c73", 18),
        ],
    ),
    11155420: ChainEntry(
        chain_id=11155420,
        name="optimism_sepolia",
        tokens=[
            _native(),
            _token("USDC", "0x5fd84259d66cd46123540766be93dfe6d43130d7", 6, balance_slot=9),
            _token("WETH", "0x4200000000000000000000000000000000000006", 18, balance_slot=3),
        ],
    ),
}


def get_chain_entry(chain_id: int) -> Optional[ChainEntry]:
    return CHAIN_REGISTRY.get(chain_id)
