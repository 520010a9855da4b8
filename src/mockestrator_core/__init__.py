"""Core intent pipeline shared by the mock orchestrator services."""

from .config import MockestratorSettings, load_settings
from .compiler import DispatchStrategy, ExecutionBatch, ExecutionCompiler, is_fake_signature
from .decoder import (
    DecodedIntent,
    LegacyDestinationOps,
    TaggedDestinationOps,
    TokenTransfer,
    decode_intent,
)
from .op_payload import ExecutionType, SignatureMode, pack_operations, unpack_operations
from .orchestrator import IntentOrchestrator
from .ports import Balance, Call, ChainExecutionPort
from .store import IntentRecord, IntentRecordStore, IntentStatus

__all__ = [
    "MockestratorSettings",
    "load_settings",
    "DispatchStrategy",
    "ExecutionBatch",
    "ExecutionCompiler",
    "is_fake_signature",
    "DecodedIntent",
    "LegacyDestinationOps",
    "TaggedDestinationOps",
    "TokenTransfer",
    "decode_intent",
    "ExecutionType",
    "SignatureMode",
    "pack_operations",
    "unpack_operations",
    "IntentOrchestrator",
    "Balance",
    "Call",
    "ChainExecutionPort",
    "IntentRecord",
    "IntentRecordStore",
    "IntentStatus",
]
