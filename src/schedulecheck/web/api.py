"""FastAPI application factory.

Main entry point for the schedule-check Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schedulecheck import __version__
from schedulecheck.config.app_config import AppConfig, load_app_config
from schedulecheck.errors import ConfigurationError
from schedulecheck.store.factory import open_store
from schedulecheck.web.handler import CheckScheduleHandler, StoreFactory
from schedulecheck.web.routes import health_router, schedule_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    config: AppConfig | None = app.state.config
    if config is None:
        logger.error("api_startup_without_config")
    else:
        logger.info(
            "api_startup",
            backend=config.store.backend,
            roster_table=config.store.roster_table,
            ledger_table=config.store.ledger_table,
            ledger_policy=config.ledger.missing_policy,
        )
    yield


def create_app(
    config: AppConfig | None = None,
    store_factory: StoreFactory = open_store,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Validated configuration. Loaded from file/env when omitted;
            if that fails, the app still starts and answers 500.
        store_factory: Opens a record store per request

    Returns:
        Configured FastAPI app instance
    """
    if config is None:
        try:
            config = load_app_config()
        except ConfigurationError as e:
            logger.error("app_config_invalid", error=str(e))

    app = FastAPI(
        title="Schedule Check API",
        description="Exam schedule lookup by exam number and password",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.handler = CheckScheduleHandler(config, store_factory=store_factory)

    # CORS middleware for the static front-end
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST"],
        allow_headers=["Content-Type"],
    )

    # Include routers
    app.include_router(health_router)
    app.include_router(schedule_router)

    return app


# Default app instance for uvicorn
app = create_app()
