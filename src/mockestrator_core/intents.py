"""Wire models for intent routing, submission and status.

Field names are snake_case in Python and camelCase on the wire. Big integers
are accepted as numbers, decimal strings or hex strings and serialized as
decimal strings. Portfolio balances are the exception and stay JSON numbers.

The mandate's ``tokenOut`` and ``destinationOps`` stay loosely typed here: their
shape is checked by the intent decoder, which reports problems as decode
errors rather than request validation errors.
"""
from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .op_payload import ExecutionType, SignatureMode
from .utils import normalize_address, parse_int

WireInt = Annotated[
    int,
    BeforeValidator(parse_int),
    PlainSerializer(str, return_type=str, when_used="json"),
]


class WireModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# Route request
# =============================================================================

class CallInput(WireModel):
    """A contract call descriptor supplied by the client."""
    to: str
    value: WireInt = 0
    data: str = "0x"

    @field_validator("to")
    @classmethod
    def checksum_to(cls, v: str) -> str:
        return normalize_address(v)

    @field_validator("data")
    @classmethod
    def validate_data(cls, v: str) -> str:
        if not v.startswith("0x"):
            raise ValueError("data must be 0x-prefixed hex")
        bytes.fromhex(v[2:])
        return v


class TokenRequest(WireModel):
    token_address: str
    amount: WireInt = Field(ge=0)

    @field_validator("token_address")
    @classmethod
    def checksum_token(cls, v: str) -> str:
        return normalize_address(v)


class AccountAccessList(WireModel):
    chain_ids: List[WireInt] = Field(default_factory=list)


class AccountDescriptor(WireModel):
    address: str
    account_type: str = ""
    account_context: Dict[str, Any] = Field(default_factory=dict)
    setup_ops: List[CallInput] = Field(default_factory=list)

    @field_validator("address")
    @classmethod
    def checksum_address(cls, v: str) -> str:
        return normalize_address(v)


class IntentRouteRequest(WireModel):
    """Body of ``POST /intents/route``."""
    destination_chain_id: WireInt
    token_requests: List[TokenRequest] = Field(min_length=1)
    account: AccountDescriptor
    account_access_list: Optional[AccountAccessList] = None
    destination_executions: List[CallInput] = Field(default_factory=list)
    destination_execution_type: str = ExecutionType.ERC7579.name
    destination_signature_mode: str = SignatureMode.ERC1271.name

    @field_validator("destination_execution_type")
    @classmethod
    def known_execution_type(cls, v: str) -> str:
        if v not in ExecutionType.__members__:
            raise ValueError(f"unknown execution type {v}")
        return v

    @field_validator("destination_signature_mode")
    @classmethod
    def known_signature_mode(cls, v: str) -> str:
        if v not in SignatureMode.__members__:
            raise ValueError(f"unknown signature mode {v}")
        return v


# =============================================================================
# Intent operation (route response body and signed submission)
# =============================================================================

class SettlementContext(WireModel):
    settlement_layer: str
    funding_method: str = "NO_FUNDING"


class Qualifier(WireModel):
    settlement_context: SettlementContext
    encoded_val: str = "0x"


class Mandate(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    recipient: str
    token_out: List[Any] = Field(default_factory=list)
    destination_chain_id: WireInt
    fill_deadline: WireInt = 0
    pre_claim_ops: List[Any] = Field(default_factory=list)
    destination_ops: Any = Field(default_factory=list)
    qualifier: Optional[Qualifier] = None
    v: int = 0
    min_gas: WireInt = 0


class Element(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    arbiter: str
    chain_id: WireInt
    ids_and_amounts: List[Any] = Field(default_factory=list)
    spend_tokens: List[Any] = Field(default_factory=list)
    mandate: Mandate


class SignedAccount(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    address: str = ""
    account_type: str = ""
    account_context: Dict[str, Any] = Field(default_factory=dict)
    setup_ops: List[Any] = Field(default_factory=list)


class SignedMetadata(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    token_prices: Dict[str, Any] = Field(default_factory=dict)
    gas_prices: Dict[str, Any] = Field(default_factory=dict)
    account: SignedAccount = Field(default_factory=SignedAccount)


class IntentOp(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    sponsor: str
    nonce: WireInt
    expires: WireInt
    elements: List[Element] = Field(min_length=1)
    server_signature: str = ""
    signed_metadata: SignedMetadata = Field(default_factory=SignedMetadata)


class SignedIntentOp(IntentOp):
    """An intent operation as returned by routing, plus client signatures."""
    origin_signatures: List[str] = Field(default_factory=list)
    destination_signature: Optional[str] = None


class SubmitIntentRequest(WireModel):
    """Body of ``POST /intent-operations``."""
    signed_intent_op: SignedIntentOp


# =============================================================================
# Responses
# =============================================================================

class LockedBalance(WireModel):
    locked: WireInt = 0
    unlocked: WireInt = 0


class TokenReceived(WireModel):
    token_address: str
    amount_spent: WireInt
    destination_amount: WireInt
    fee: WireInt = 0
    has_fulfilled: bool = True


class SponsorFee(WireModel):
    relayer: WireInt = 0
    protocol: WireInt = 0


class IntentCost(WireModel):
    has_fulfilled_all: bool = True
    tokens_spent: Dict[str, Dict[str, LockedBalance]] = Field(default_factory=dict)
    tokens_received: List[TokenReceived] = Field(default_factory=list)
    sponsor_fee: SponsorFee = Field(default_factory=SponsorFee)


class IntentRouteResponse(WireModel):
    intent_op: IntentOp
    intent_cost: IntentCost


class SubmitResult(WireModel):
    id: WireInt
    status: Literal["PENDING"] = "PENDING"


class SubmitIntentResponse(WireModel):
    result: SubmitResult


class IntentStatusResponse(WireModel):
    status: str
    recipient: Optional[str] = None
    destination_chain_id: Optional[WireInt] = None
    fill_timestamp: Optional[int] = None
    fill_transaction_hash: Optional[str] = None
    claims: List[Any] = Field(default_factory=list)
    error: Optional[str] = None


class PortfolioBalance(WireModel):
    """Portfolio amounts, emitted as JSON numbers for numeric comparisons."""
    locked: int = 0
    unlocked: int = 0


class TokenChainBalance(WireModel):
    chain_id: WireInt
    token_address: str
    balance: PortfolioBalance


class PortfolioEntry(WireModel):
    token_name: str
    token_decimals: int
    balance: PortfolioBalance
    token_chain_balance: List[TokenChainBalance] = Field(default_factory=list)


class PortfolioResponse(WireModel):
    portfolio: List[PortfolioEntry]
