"""
Mission Ledger - FastAPI application

Wires the versioned API, correlation ids, error transport and the outbox
relay scheduler.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config.settings import settings
from .api.routes import api_router
from .api.middleware import CORRELATION_HEADER, CorrelationIdMiddleware, register_error_handlers
from .domain.errors import StorageUnavailableError
from .engine.outbox_relay import OutboxRelay
from .repositories.mongo_client import create_indexes, close_connection, health_check, storage_errors
from .scheduler.dev_scheduler import start_scheduler, stop_scheduler
from .utils.logger import setup_logging, get_logger

setup_logging()
logger = get_logger(__name__)

APP_NAME = "Mission Ledger"
APP_VERSION = "1.0.0"

EXPOSED_HEADERS = [CORRELATION_HEADER, "X-Evidence-Pack-SHA256", "Content-Disposition"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup builds indexes and, in development, runs the outbox relay
    in-process. Other environments run ``scripts/run_relay.py`` beside the
    API.
    """
    logger.info(f"Starting {APP_NAME} ({settings.environment})")

    try:
        with storage_errors("create_indexes"):
            create_indexes()
    except StorageUnavailableError as e:
        logger.error(f"Failed to create indexes: {e.message}")

    relay_started = settings.environment == "development"
    if relay_started:
        start_scheduler()

    yield

    if relay_started:
        stop_scheduler()
    close_connection()
    logger.info(f"{APP_NAME} stopped")


def _outbox_backlog() -> Optional[Dict[str, int]]:
    try:
        return OutboxRelay().backlog()
    except StorageUnavailableError:
        return None


def create_app() -> FastAPI:
    application = FastAPI(
        title=APP_NAME,
        description="Mission workflow engine with an append-only evidence ledger and audit trail",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )

    # allow_credentials must be False when allowing all origins
    allow_all = settings.cors_origins.strip() == "*"
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_origins_list,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=EXPOSED_HEADERS,
    )
    application.add_middleware(CorrelationIdMiddleware)

    register_error_handlers(application)
    application.include_router(api_router, prefix="/api/v1")

    @application.get("/health", tags=["Health"])
    def health() -> Dict[str, Any]:
        """
        Database connectivity plus the outbox backlog (no auth)

        A non-zero backlog that keeps growing means the relay is not keeping
        up and audit reads may lag behind committed actions.
        """
        mongo = health_check()
        backlog = _outbox_backlog() if mongo.get("status") == "healthy" else None
        return {
            "status": "healthy" if backlog is not None else "degraded",
            "version": APP_VERSION,
            "environment": settings.environment,
            "mongo": mongo,
            "outbox_backlog": backlog,
        }

    @application.get("/", tags=["Health"])
    async def root() -> Dict[str, Any]:
        return {
            "name": APP_NAME,
            "version": APP_VERSION,
            "docs": "/api/docs" if settings.debug else None,
        }

    return application


app = create_app()
