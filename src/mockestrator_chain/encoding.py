"""ABI calldata encoding for the contracts the relayer talks to.

Covers ERC-20, Multicall3, the mock router fixture and the intent executor.
"""
from __future__ import annotations

from typing import List, Sequence, Tuple

from eth_abi import decode, encode
from web3 import Web3

from mockestrator_core.ports import Call

MAX_UINT256 = 2**256 - 1


def function_selector(signature: str) -> bytes:
    """First four bytes of keccak256 of the canonical function signature."""
    return Web3.keccak(text=signature)[:4]


ERC20_TRANSFER = function_selector("transfer(address,uint256)")
ERC20_TRANSFER_FROM = function_selector("transferFrom(address,address,uint256)")
ERC20_APPROVE = function_selector("approve(address,uint256)")
ERC20_BALANCE_OF = function_selector("balanceOf(address)")

MULTICALL_AGGREGATE3 = function_selector("aggregate3((address,bool,bytes)[])")
MULTICALL_AGGREGATE3_VALUE = function_selector("aggregate3Value((address,bool,uint256,bytes)[])")

ROUTER_MOCK_FILL = function_selector("mockFill((address,bytes)[])")

INTENT_EXECUTOR_EXECUTE = function_selector(
    "executeSinglechainOps((address,uint256,(bytes),bytes))"
)


def encode_erc20_transfer(to: str, amount: int) -> bytes:
    return ERC20_TRANSFER + encode(["address", "uint256"], [Web3.to_checksum_address(to), amount])


def encode_erc20_transfer_from(sender: str, to: str, amount: int) -> bytes:
    return ERC20_TRANSFER_FROM + encode(
        ["address", "address", "uint256"],
        [Web3.to_checksum_address(sender), Web3.to_checksum_address(to), amount],
    )


def encode_erc20_approve(spender: str, amount: int = MAX_UINT256) -> bytes:
    return ERC20_APPROVE + encode(["address", "uint256"], [Web3.to_checksum_address(spender), amount])


def encode_balance_of(owner: str) -> bytes:
    return ERC20_BALANCE_OF + encode(["address"], [Web3.to_checksum_address(owner)])


def encode_aggregate3(calls: Sequence[Tuple[str, bool, bytes]]) -> bytes:
    """Multicall3 ``aggregate3`` for read batches."""
    return MULTICALL_AGGREGATE3 + encode(
        ["(address,bool,bytes)[]"],
        [[(Web3.to_checksum_address(target), allow_failure, data) for target, allow_failure, data in calls]],
    )


def decode_aggregate3_result(data: bytes) -> List[Tuple[bool, bytes]]:
    """Decode the ``(bool success, bytes returnData)[]`` result of aggregate3."""
    (results,) = decode(["(bool,bytes)[]"], data)
    return [(bool(success), bytes(ret)) for success, ret in results]


def encode_aggregate3_value(calls: Sequence[Call]) -> bytes:
    """Multicall3 ``aggregate3Value`` with ``allowFailure = false`` on every call."""
    return MULTICALL_AGGREGATE3_VALUE + encode(
        ["(address,bool,uint256,bytes)[]"],
        [[(Web3.to_checksum_address(c.target), False, c.value, c.data) for c in calls]],
    )


def encode_router_mock_fill(calls: Sequence[Call]) -> bytes:
    """Mock router ``mockFill((target, callData)[])``; the router is non-payable."""
    return ROUTER_MOCK_FILL + encode(
        ["(address,bytes)[]"],
        [[(Web3.to_checksum_address(c.target), c.data) for c in calls]],
    )


def encode_execute_singlechain_ops(account: str, nonce: int, payload: bytes, signature: bytes) -> bytes:
    """Intent executor ``executeSinglechainOps((account, nonce, (data), signature))``."""
    return INTENT_EXECUTOR_EXECUTE + encode(
        ["(address,uint256,(bytes),bytes)"],
        [(Web3.to_checksum_address(account), nonce, (payload,), signature)],
    )


def balance_storage_slot(holder: str, mapping_slot: int) -> bytes:
    """Storage key of ``balances[holder]`` for a Solidity mapping at ``mapping_slot``."""
    return Web3.keccak(encode(["address", "uint256"], [Web3.to_checksum_address(holder), mapping_slot]))
