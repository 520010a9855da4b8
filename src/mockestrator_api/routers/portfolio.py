"""Account portfolio routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from mockestrator_core.exceptions import MockestratorValidationError
from mockestrator_core.intents import PortfolioResponse
from mockestrator_core.orchestrator import IntentOrchestrator
from mockestrator_core.utils import normalize_address

router = APIRouter(tags=["portfolio"])


class PortfolioDependencies:
    def __init__(self, orchestrator: IntentOrchestrator):
        self.orchestrator = orchestrator


def get_deps() -> PortfolioDependencies:
    """Dependency injection placeholder."""
    raise NotImplementedError("Must be overridden")


@router.get("/accounts/{user_address}/portfolio", response_model=PortfolioResponse)
async def get_portfolio(
    user_address: str,
    deps: PortfolioDependencies = Depends(get_deps),
):
    """Balances of every supported token, summed across configured chains."""
    try:
        address = normalize_address(user_address)
    except ValueError as e:
        raise MockestratorValidationError(str(e), field="userAddress") from e

    entries = await deps.orchestrator.portfolio(address)
    return PortfolioResponse(portfolio=entries)
