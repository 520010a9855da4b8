"""Wire-value helpers shared across packages.

Big integers (nonces, amounts, chain ids, token ids) travel as JSON numbers,
decimal strings or 0x-prefixed hex strings and are always emitted as decimal
strings so that JavaScript clients never lose precision.
"""
from __future__ import annotations

from typing import Any

from eth_utils import is_address, to_checksum_address

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ZERO_HASH = "0x" + "00" * 32

_ADDRESS_MASK = (1 << 160) - 1


def parse_int(value: Any) -> int:
    """Parse an integer from a JSON number, decimal string or hex string.

    Raises:
        ValueError: if the value is not an integer representation
    """
    if isinstance(value, bool):
        raise ValueError(f"not an integer: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            return int(text, 16)
        return int(text, 10)
    raise ValueError(f"not an integer: {value!r}")


def int_to_address(value: int) -> str:
    """Right-align the low 20 bytes of an integer into a checksummed address."""
    return to_checksum_address((value & _ADDRESS_MASK).to_bytes(20, "big"))


def normalize_address(value: Any) -> str:
    """Checksum an address string, raising ValueError when it is not one."""
    if not isinstance(value, str) or not is_address(value):
        raise ValueError(f"not an address: {value!r}")
    return to_checksum_address(value)


def hex_to_bytes(value: Any) -> bytes:
    """Decode a 0x-prefixed hex string (``0x`` alone is empty bytes)."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str):
        raise ValueError(f"not a hex string: {value!r}")
    text = value[2:] if value.lower().startswith("0x") else value
    return bytes.fromhex(text)


def to_hex(data: bytes) -> str:
    return "0x" + data.hex()
