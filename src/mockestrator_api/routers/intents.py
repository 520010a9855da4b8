"""Intent routing, submission and status routes."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status

from mockestrator_core.exceptions import MockestratorValidationError
from mockestrator_core.intents import (
    IntentRouteRequest,
    IntentRouteResponse,
    IntentStatusResponse,
    SubmitIntentRequest,
    SubmitIntentResponse,
    SubmitResult,
)
from mockestrator_core.orchestrator import IntentOrchestrator
from mockestrator_core.utils import parse_int

logger = logging.getLogger(__name__)

router = APIRouter(tags=["intents"])


# Dependencies

class IntentDependencies:
    """Dependencies for intent routes."""
    def __init__(self, orchestrator: IntentOrchestrator):
        self.orchestrator = orchestrator


def get_deps() -> IntentDependencies:
    """Dependency injection placeholder."""
    raise NotImplementedError("Must be overridden")


# Routes

@router.post(
    "/intents/route",
    response_model=IntentRouteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_route(
    request: IntentRouteRequest,
    deps: IntentDependencies = Depends(get_deps),
):
    """Fabricate an unsigned intent operation and its cost summary."""
    return deps.orchestrator.create_route(request)


@router.post(
    "/intent-operations",
    response_model=SubmitIntentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_intent(
    request: SubmitIntentRequest,
    deps: IntentDependencies = Depends(get_deps),
):
    """Execute a signed intent operation.

    Execution finishes before the response is sent, but the reported status
    is always ``PENDING``; clients poll the status route for the outcome.
    """
    op = request.signed_intent_op
    await deps.orchestrator.execute(op)
    return SubmitIntentResponse(result=SubmitResult(id=op.nonce))


@router.get("/intent-operation/{intent_id}", response_model=IntentStatusResponse)
async def get_intent_status(
    intent_id: str,
    deps: IntentDependencies = Depends(get_deps),
):
    """Get the lifecycle record of a submitted intent."""
    try:
        parsed_id = parse_int(intent_id)
    except ValueError as e:
        raise MockestratorValidationError(f"Invalid intent id: {intent_id}", field="id") from e

    record = await deps.orchestrator.status(parsed_id)
    return IntentStatusResponse(
        status=record.status.value,
        recipient=record.recipient,
        destination_chain_id=record.destination_chain_id,
        fill_timestamp=record.fill_timestamp,
        fill_transaction_hash=record.fill_transaction_hash,
        claims=record.claims,
        error=record.error,
    )
