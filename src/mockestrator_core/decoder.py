"""Intent decoder: wire-format mandates to normalized transfers and calls.

``destinationOps`` arrives in one of two shapes and is discriminated exactly
once, here, into a closed variant:

* a flat array of ``{to, data}`` / ``{to, value, data}`` descriptors
  (:class:`LegacyDestinationOps`, executed as ERC7579 / ERC1271)
* an object ``{vt, ops}`` whose 2-byte ``vt`` carries the execution type and
  signature mode (:class:`TaggedDestinationOps`)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from .exceptions import IntentDecodeError
from .intents import SignedIntentOp
from .op_payload import (
    DEFAULT_EXECUTION_TYPE,
    DEFAULT_SIGNATURE_MODE,
    ExecutionType,
    SignatureMode,
)
from .ports import Call
from .utils import ZERO_ADDRESS, hex_to_bytes, int_to_address, normalize_address, parse_int

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenTransfer:
    """One non-native token owed to the recipient."""
    token: str
    amount: int


@dataclass(frozen=True)
class LegacyDestinationOps:
    calls: List[Call]

    @property
    def execution_type(self) -> ExecutionType:
        return DEFAULT_EXECUTION_TYPE

    @property
    def signature_mode(self) -> SignatureMode:
        return DEFAULT_SIGNATURE_MODE


@dataclass(frozen=True)
class TaggedDestinationOps:
    execution_type: ExecutionType
    signature_mode: SignatureMode
    calls: List[Call]


DestinationOps = Union[LegacyDestinationOps, TaggedDestinationOps]


@dataclass
class DecodedIntent:
    """Normalized view of a signed intent, ready for compilation."""
    recipient: str
    destination_chain_id: int
    transfers: List[TokenTransfer] = field(default_factory=list)
    native_amount: int = 0
    destination_ops: Optional[DestinationOps] = None
    setup_ops: List[Call] = field(default_factory=list)

    @property
    def has_destination_ops(self) -> bool:
        return self.destination_ops is not None and len(self.destination_ops.calls) > 0


def decode_token_out(entry: Any, path: str = "tokenOut") -> TokenTransfer:
    """Decode one ``[tokenId, amount]`` pair.

    The token address is the low 20 bytes of ``tokenId``; the amount is taken
    verbatim. A zero address denotes the native currency.
    """
    if not isinstance(entry, (list, tuple)) or len(entry) != 2:
        raise IntentDecodeError(f"token-out entry must be a [tokenId, amount] pair, got {entry!r}", path=path)
    try:
        token_id = parse_int(entry[0])
        amount = parse_int(entry[1])
    except ValueError as e:
        raise IntentDecodeError(f"token-out entry is not two integers: {e}", path=path) from e
    if token_id < 0 or amount < 0:
        raise IntentDecodeError("token-out values must be non-negative", path=path)
    return TokenTransfer(token=int_to_address(token_id), amount=amount)


def decode_call(raw: Any, path: str) -> Call:
    """Decode a ``{to, value?, data}`` call descriptor."""
    if not isinstance(raw, dict):
        raise IntentDecodeError(f"call descriptor must be an object, got {raw!r}", path=path)
    if "to" not in raw or raw["to"] is None:
        raise IntentDecodeError("call descriptor is missing 'to'", path=path)
    if "data" not in raw or raw["data"] is None:
        raise IntentDecodeError("call descriptor is missing 'data'", path=path)
    try:
        return Call(
            target=normalize_address(raw["to"]),
            value=parse_int(raw.get("value", 0) or 0),
            data=hex_to_bytes(raw["data"]),
        )
    except ValueError as e:
        raise IntentDecodeError(f"invalid call descriptor: {e}", path=path) from e


def decode_variant_tag(vt: Any, path: str) -> tuple[ExecutionType, SignatureMode]:
    """Split the 2-byte ``vt`` tag into execution type and signature mode."""
    try:
        if isinstance(vt, int) and not isinstance(vt, bool):
            raw = vt.to_bytes(2, "big")
        else:
            raw = hex_to_bytes(vt)
    except (ValueError, OverflowError) as e:
        raise IntentDecodeError(f"invalid variant tag {vt!r}", path=path) from e
    if len(raw) != 2:
        raise IntentDecodeError(f"variant tag must be 2 bytes, got {len(raw)}", path=path)
    try:
        return ExecutionType(raw[0]), SignatureMode(raw[1])
    except ValueError as e:
        raise IntentDecodeError(f"unknown variant tag {vt!r}: {e}", path=path) from e


def decode_destination_ops(raw: Any, path: str = "destinationOps") -> Optional[DestinationOps]:
    """Discriminate and decode the two accepted ``destinationOps`` shapes."""
    if raw is None:
        return None
    if isinstance(raw, list):
        return LegacyDestinationOps(
            calls=[decode_call(op, f"{path}[{i}]") for i, op in enumerate(raw)]
        )
    if isinstance(raw, dict):
        ops = raw.get("ops", [])
        if not isinstance(ops, list):
            raise IntentDecodeError("'ops' must be an array", path=f"{path}.ops")
        calls = [decode_call(op, f"{path}.ops[{i}]") for i, op in enumerate(ops)]
        if raw.get("vt") is None:
            return LegacyDestinationOps(calls=calls)
        execution_type, signature_mode = decode_variant_tag(raw["vt"], f"{path}.vt")
        return TaggedDestinationOps(
            execution_type=execution_type,
            signature_mode=signature_mode,
            calls=calls,
        )
    raise IntentDecodeError(f"unsupported destinationOps shape: {type(raw).__name__}", path=path)


def decode_intent(op: SignedIntentOp) -> DecodedIntent:
    """Normalize a signed intent operation.

    Recipient and destination chain come from the first element. Token-out
    entries are collected across every element; only the first native entry
    sets the native amount. Destination ops come from the first element that
    carries any.
    """
    if not op.elements:
        raise IntentDecodeError("intent has no elements", path="elements")

    first = op.elements[0].mandate
    try:
        recipient = normalize_address(first.recipient)
    except ValueError as e:
        raise IntentDecodeError(str(e), path="elements[0].mandate.recipient") from e

    decoded = DecodedIntent(
        recipient=recipient,
        destination_chain_id=first.destination_chain_id,
    )

    native_seen = False
    for i, element in enumerate(op.elements):
        mandate = element.mandate
        for j, entry in enumerate(mandate.token_out):
            transfer = decode_token_out(entry, f"elements[{i}].mandate.tokenOut[{j}]")
            if transfer.token == ZERO_ADDRESS:
                if native_seen:
                    logger.warning(
                        f"Ignoring extra native token-out entry {j} of element {i} for intent {op.nonce}"
                    )
                    continue
                native_seen = True
                decoded.native_amount = transfer.amount
                continue
            decoded.transfers.append(transfer)

        if decoded.destination_ops is None or not decoded.destination_ops.calls:
            ops = decode_destination_ops(mandate.destination_ops, f"elements[{i}].mandate.destinationOps")
            if ops is not None and (decoded.destination_ops is None or ops.calls):
                decoded.destination_ops = ops

    decoded.setup_ops = [
        decode_call(raw, f"signedMetadata.account.setupOps[{i}]")
        for i, raw in enumerate(op.signed_metadata.account.setup_ops)
    ]
    return decoded
