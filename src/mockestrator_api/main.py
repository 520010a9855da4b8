"""API composition root."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Mapping, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from mockestrator_chain import ChainExecutionService, bootstrap_chains, build_chain_services
from mockestrator_core.config import (
    MockestratorSettings,
    load_funding_file,
    load_rpcs_file,
    load_settings,
)
from mockestrator_core.compiler import ExecutionCompiler
from mockestrator_core.orchestrator import IntentOrchestrator
from mockestrator_core.ports import ChainExecutionPort
from mockestrator_core.store import IntentRecordStore

from .middleware import (
    StructuredLoggingMiddleware,
    register_exception_handlers,
    setup_logging,
)
from .routers import intents as intents_router
from .routers import portfolio as portfolio_router

logger = logging.getLogger("mockestrator.api")

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    settings: MockestratorSettings = app.state.settings
    services: Mapping[int, ChainExecutionPort] = app.state.chain_services

    logger.info(f"Starting mock orchestrator for chains {sorted(services)}")
    if settings.bootstrap_on_startup:
        funding = load_funding_file(settings.funding_file)
        await bootstrap_chains(services, funding)
        logger.info("Chain bootstrap complete")

    yield

    logger.info("Shutting down mock orchestrator...")
    for service in services.values():
        if isinstance(service, ChainExecutionService):
            await service.close()


def create_app(
    settings: MockestratorSettings | None = None,
    services: Optional[Mapping[int, ChainExecutionPort]] = None,
    store: IntentRecordStore | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(json_format=settings.use_json_logs, level=settings.log_level)

    if services is None:
        services = build_chain_services(load_rpcs_file(settings.rpcs_file), settings)
    store = store or IntentRecordStore()

    app = FastAPI(
        title="Mock Intent Orchestrator",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.chain_services = services
    app.state.intent_store = store

    app.add_middleware(StructuredLoggingMiddleware, exclude_paths=["/health"])
    register_exception_handlers(app)

    orchestrator = IntentOrchestrator(
        services=services,
        store=store,
        compiler=ExecutionCompiler(),
        settings=settings,
    )

    app.dependency_overrides[intents_router.get_deps] = lambda: intents_router.IntentDependencies(  # type: ignore[arg-type]
        orchestrator=orchestrator,
    )
    app.include_router(intents_router.router)

    app.dependency_overrides[portfolio_router.get_deps] = lambda: portfolio_router.PortfolioDependencies(  # type: ignore[arg-type]
        orchestrator=orchestrator,
    )
    app.include_router(portfolio_router.router)

    @app.get("/health", tags=["health"])
    async def health_check():
        """Health check with configured chains."""
        return {
            "status": "healthy",
            "environment": settings.environment,
            "chains": [str(chain_id) for chain_id in orchestrator.chain_ids],
            "intents": len(store),
        }

    # Registered last so every known route matches first.
    @app.api_route("/{path:path}", methods=ALL_METHODS, include_in_schema=False)
    async def not_implemented(path: str):
        logger.warning(f"Unhandled route /{path}")
        return JSONResponse(status_code=503, content={"error": "Not implemented!"})

    logger.info(f"API initialized with {len(services)} chain(s)")
    return app


def run() -> None:
    """Console entrypoint: serve the app with uvicorn."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "mockestrator_api.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    run()
