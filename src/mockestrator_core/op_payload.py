"""Packed destination-operation payload consumed by the intent executor.

Layout::

    [execution_type: 1 byte][signature_mode: 1 byte][abi.encode((address,uint256,bytes)[])]

The two header bytes are the same pair carried by the mandate's ``vt`` tag.
"""
from __future__ import annotations

from enum import IntEnum
from typing import List, Sequence, Tuple

from eth_abi import decode, encode
from eth_utils import to_checksum_address

from .ports import Call

HEADER_SIZE = 2
OPS_ABI_TYPE = "(address,uint256,bytes)[]"


class ExecutionType(IntEnum):
    """How the executor interprets the packed operations."""
    EIP712_HASH = 0
    CALLDATA = 1
    ERC7579 = 2
    MULTICALL = 3


class SignatureMode(IntEnum):
    """How the executor validates the destination signature."""
    EMISSARY = 0
    ERC1271 = 1
    EMISSARY_ERC1271 = 2
    ERC1271_EMISSARY = 3
    EMISSARY_EXECUTION = 4
    EMISSARYEXECUTION_ERC1271 = 5
    ERC1271_EMISSARY_EXECUTION = 6


DEFAULT_EXECUTION_TYPE = ExecutionType.ERC7579
DEFAULT_SIGNATURE_MODE = SignatureMode.ERC1271


def encode_variant_tag(execution_type: ExecutionType, signature_mode: SignatureMode) -> str:
    """Encode the two header bytes as the mandate's ``vt`` hex string."""
    return "0x" + bytes([int(execution_type), int(signature_mode)]).hex()


def pack_operations(
    execution_type: ExecutionType,
    signature_mode: SignatureMode,
    calls: Sequence[Call],
) -> bytes:
    """Pack destination calls behind the 2-byte header."""
    body = encode(
        [OPS_ABI_TYPE],
        [[(to_checksum_address(c.target), c.value, c.data) for c in calls]],
    )
    return bytes([int(execution_type), int(signature_mode)]) + body


def unpack_operations(payload: bytes) -> Tuple[ExecutionType, SignatureMode, List[Call]]:
    """Inverse of :func:`pack_operations`.

    Raises:
        ValueError: on a truncated payload or unknown header byte
    """
    if len(payload) < HEADER_SIZE:
        raise ValueError(f"payload too short: {len(payload)} bytes")
    execution_type = ExecutionType(payload[0])
    signature_mode = SignatureMode(payload[1])
    (ops,) = decode([OPS_ABI_TYPE], payload[HEADER_SIZE:])
    calls = [Call(target=to_checksum_address(to), value=value, data=data) for to, value, data in ops]
    return execution_type, signature_mode, calls
