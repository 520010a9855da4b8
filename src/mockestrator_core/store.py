"""In-memory intent record store keyed by intent nonce."""
from __future__ import annotations

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from .exceptions import IntentNotFoundError, InvalidStatusTransitionError

logger = logging.getLogger(__name__)


class IntentStatus(str, Enum):
    PENDING = "PENDING"
    PRECONFIRMED = "PRECONFIRMED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (IntentStatus.COMPLETED, IntentStatus.FAILED)


ALLOWED_TRANSITIONS = {
    IntentStatus.PENDING: {IntentStatus.PRECONFIRMED, IntentStatus.COMPLETED, IntentStatus.FAILED},
    IntentStatus.PRECONFIRMED: {IntentStatus.COMPLETED, IntentStatus.FAILED},
    IntentStatus.COMPLETED: set(),
    IntentStatus.FAILED: set(),
}


@dataclass
class IntentRecord:
    """Lifecycle record of one submitted intent."""
    status: IntentStatus = IntentStatus.PENDING
    recipient: Optional[str] = None
    destination_chain_id: Optional[int] = None
    fill_timestamp: Optional[int] = None
    fill_transaction_hash: Optional[str] = None
    claims: List[Any] = field(default_factory=list)
    error: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    submission_id: str = field(default_factory=lambda: secrets.token_hex(8))


class IntentRecordStore:
    """Process-lifetime mapping of intent id to record.

    ``put`` upserts unconditionally, so a resubmitted nonce replaces the
    previous record. Each record carries the ``submission_id`` of the
    execution that wrote it; transitions scoped to an older submission are
    ignored.
    """

    def __init__(self) -> None:
        self._records: Dict[int, IntentRecord] = {}
        self._lock = asyncio.Lock()

    async def get(self, intent_id: int) -> IntentRecord:
        async with self._lock:
            record = self._records.get(intent_id)
            if record is None:
                raise IntentNotFoundError(intent_id)
            return replace(record, claims=list(record.claims))

    async def put(self, intent_id: int, record: IntentRecord) -> None:
        async with self._lock:
            if intent_id in self._records:
                logger.warning(f"Overwriting existing record for intent {intent_id}")
            self._records[intent_id] = record

    async def transition(
        self,
        intent_id: int,
        status: IntentStatus,
        submission_id: Optional[str] = None,
        **changes: Any,
    ) -> Optional[IntentRecord]:
        """Move a record to ``status`` and apply field changes atomically.

        When ``submission_id`` is given and the stored record belongs to a
        later submission of the same intent, nothing changes and ``None`` is
        returned.
        """
        async with self._lock:
            record = self._records.get(intent_id)
            if record is None:
                raise IntentNotFoundError(intent_id)
            if submission_id is not None and record.submission_id != submission_id:
                logger.info(
                    f"Intent {intent_id}: submission {submission_id} superseded by "
                    f"{record.submission_id}, not moving to {status.value}"
                )
                return None
            if status not in ALLOWED_TRANSITIONS[record.status]:
                raise InvalidStatusTransitionError(intent_id, record.status.value, status.value)
            updated = replace(record, status=status, **changes)
            self._records[intent_id] = updated
            logger.debug(f"Intent {intent_id}: {record.status.value} -> {status.value}")
            return updated

    def __len__(self) -> int:
        return len(self._records)
